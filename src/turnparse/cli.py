"""CLI entry point for turnparse."""

import sys
from pathlib import Path
import json

import click

from .models import (
    ParseResult,
    message_from_dict,
    parse_result_to_dict,
    score_from_dict,
    stats_to_dict,
)
from .parser import parse_conversation, read_transcript
from .scoring import DEFAULT_MODEL
from .strategies import MIN_SPAN_LENGTH


def load_text(path: str) -> str:
    """Read a transcript from a file, or stdin for '-'."""
    if path == '-':
        return click.get_text_stream('stdin').read()

    file_path = Path(path)
    if not file_path.exists():
        click.echo(f"Error: File not found: {file_path}", err=True)
        sys.exit(1)
    return read_transcript(file_path)


def format_detection_summary(result: ParseResult) -> str:
    """One block describing how the transcript was recognised."""
    detection = result.format_detection
    lines = [
        f"Format: {detection.format} ({detection.detection_method})",
        f"Platform: {detection.platform}",
        f"Confidence: {detection.confidence:.0%}",
        f"Messages: {detection.message_count}",
    ]
    if detection.patterns:
        lines.append(f"Patterns: {', '.join(detection.patterns)}")
    for issue in detection.issues:
        lines.append(f"  ! {issue}")
    for suggestion in detection.suggestions:
        lines.append(f"  > {suggestion}")
    return '\n'.join(lines)


@click.group()
@click.version_option(package_name="turnparse")
def main():
    """turnparse - turn raw AI chat transcripts into role-tagged messages."""
    pass


@main.command()
@click.argument("path")
@click.option("--format", "output_format", default="md", type=click.Choice(['md', 'json', 'text']), help="Output format")
@click.option("--expected-count", type=click.IntRange(min=0), default=None, help="Message count you expect (reported if it differs)")
@click.option("--retry-edit/--no-retry-edit", "retry_edit", default=None, help="Force or disable Retry/Edit parsing (default: auto-detect)")
@click.option("--min-length", type=click.IntRange(min=0), default=MIN_SPAN_LENGTH, help="Noise threshold for Retry/Edit spans")
def parse(path, output_format, expected_count, retry_edit, min_length):
    """Parse a transcript into messages."""
    text = load_text(path)
    result = parse_conversation(text, expected_count=expected_count, retry_edit=retry_edit, min_length=min_length)

    if output_format == 'json':
        click.echo(json.dumps(parse_result_to_dict(result), indent=2))
        return

    click.echo(format_detection_summary(result), err=True)
    click.echo("", err=True)

    if not result.messages:
        click.echo("No messages found.")
        return

    if output_format == 'text':
        for msg in result.messages:
            click.echo(f"[{msg.index}] {msg.role.upper()}: {msg.content}")
            click.echo("")
    else:  # md
        for msg in result.messages:
            click.echo(f"### {msg.index + 1}. {msg.role.capitalize()}")
            click.echo("")
            click.echo(msg.content)
            click.echo("")


@main.command()
@click.argument("path")
def detect(path):
    """Show which platform and format a transcript looks like."""
    text = load_text(path)
    result = parse_conversation(text, validate=False)
    click.echo(format_detection_summary(result))


@main.command()
@click.argument("path")
@click.option("--retry-edit/--no-retry-edit", "retry_edit", default=None, help="Force or disable Retry/Edit parsing")
def validate(path, retry_edit):
    """Check a parsed transcript for structural problems."""
    from .validate import format_validation_report

    text = load_text(path)
    result = parse_conversation(text, retry_edit=retry_edit)

    click.echo(format_validation_report(result.validation, result.messages))

    # Exit with error if there are hard errors
    if not result.validation.valid:
        sys.exit(1)


def load_scored_conversation(path: str):
    """
    Load messages and scores from a JSON document.

    Accepts {"messages": [...], "scores": [...]} or a bare list of scores.
    """
    from .session import Conversation

    file_path = Path(path)
    if not file_path.exists():
        click.echo(f"Error: File not found: {file_path}", err=True)
        sys.exit(1)

    try:
        data = json.loads(file_path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON in {file_path}: {e.msg} (line {e.lineno})", err=True)
        sys.exit(1)

    if isinstance(data, list):
        data = {'messages': [], 'scores': data}

    try:
        messages = [message_from_dict(m, i) for i, m in enumerate(data.get('messages', []))]
        scores = [score_from_dict(s) for s in data.get('scores', [])]
    except (KeyError, TypeError, ValueError) as e:
        click.echo(f"Error: Malformed messages or scores in {file_path}: {e}", err=True)
        sys.exit(1)

    conversation = Conversation(messages)
    conversation.set_scores(scores)
    return conversation


def format_stats_report(stats) -> str:
    lines = [
        "Conversation Statistics",
        "=" * 50,
        "",
        f"Messages: {stats.total_messages}",
        f"Scored: {stats.completed_analysis}",
        f"Average score: {stats.average_score:.1f}",
        f"Best score: {stats.best_score:.1f}",
        f"Worst score: {stats.worst_score:.1f}",
        f"Trend: {stats.trend}",
        "",
        "Dimension averages",
        "-" * 30,
    ]
    for key, value in stats.dimension_averages.items():
        lines.append(f"  {key}: {value:.1f}")
    return '\n'.join(lines)


@main.command()
@click.argument("path")
@click.option("--format", "output_format", default="text", type=click.Choice(['text', 'json']), help="Output format")
def stats(path, output_format):
    """Show aggregate statistics for scored messages (JSON input)."""
    conversation = load_scored_conversation(path)

    if output_format == 'json':
        click.echo(json.dumps(stats_to_dict(conversation.stats), indent=2))
    else:
        click.echo(format_stats_report(conversation.stats))


@main.command()
@click.argument("path")
@click.option("--model", default=DEFAULT_MODEL, help="Model to use for scoring")
@click.option("--session-goal", default=None, help="What the conversation was trying to achieve")
@click.option("--project-context", default=None, help="Background the scorer should know")
@click.option("--output", default=None, help="Write messages, scores and stats as JSON to file")
def score(path, model, session_goal, project_context, output):
    """Parse a transcript and score each message with Claude (requires anthropic).

    Requires ANTHROPIC_API_KEY environment variable.
    """
    from .models import score_to_dict
    from .session import Conversation

    try:
        from .scoring import ClaudeScorer, score_conversation
        scorer = ClaudeScorer(model=model)
    except ImportError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("Install with: pip install 'turnparse[score]'", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    text = load_text(path)
    result = parse_conversation(text)

    if not result.validation.valid:
        for error in result.validation.errors:
            click.echo(f"Error: {error}", err=True)
        sys.exit(1)

    conversation = Conversation.from_parse(result)
    click.echo(f"Scoring {len(conversation.messages)} messages...", err=True)

    failures = score_conversation(
        conversation,
        scorer,
        session_goal=session_goal,
        project_context=project_context,
        platform=result.format_detection.platform,
    )

    if failures:
        click.echo(f"Could not score {len(failures)} messages", err=True)

    if output:
        payload = parse_result_to_dict(result)
        payload['scores'] = [score_to_dict(s) for s in conversation.scores]
        payload['stats'] = stats_to_dict(conversation.stats)
        Path(output).write_text(json.dumps(payload, indent=2), encoding='utf-8')
        click.echo(f"Wrote results to: {output}")
    else:
        click.echo(format_stats_report(conversation.stats))


if __name__ == "__main__":
    main()
