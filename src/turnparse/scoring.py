"""Boundary to the external per-message scorer.

The scorer itself lives outside this package: anything callable as
``scorer(message, context) -> Score`` works. ClaudeScorer is one such
collaborator backed by the Anthropic API (install the ``score`` extra).
"""

import json
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from .models import Message, Platform, Score, Trend
from .session import Conversation
from .stats import DEFAULT_DIMENSIONS


DEFAULT_MODEL = "claude-sonnet-4-20250514"


@dataclass
class ScoringContext:
    """What a scorer knows about the conversation around a message."""
    previous_messages: list[Message] = field(default_factory=list)
    message_position: int = 0
    session_goal: Optional[str] = None
    project_context: Optional[str] = None
    platform: Optional[Platform] = None
    score_trend: Trend = 'stable'


class Scorer(Protocol):
    def __call__(self, message: Message, context: ScoringContext) -> Score:
        ...


def score_conversation(
    conversation: Conversation,
    scorer: Scorer,
    session_goal: Optional[str] = None,
    project_context: Optional[str] = None,
    platform: Optional[Platform] = None,
) -> list[tuple[int, str]]:
    """
    Score every message of a conversation in order.

    Each score is attached to the conversation as soon as it arrives, so the
    running trend feeds into the context of the next message. A scorer that
    refuses a message (raises) is recorded and skipped.

    Returns:
        List of (message_index, reason) for messages that could not be scored
    """
    failures: list[tuple[int, str]] = []
    messages = conversation.messages

    for message in messages:
        context = ScoringContext(
            previous_messages=messages[:message.index],
            message_position=message.index,
            session_goal=session_goal,
            project_context=project_context,
            platform=platform,
            score_trend=conversation.stats.trend,
        )
        try:
            score = scorer(message, context)
        except Exception as e:
            print(f"Warning: Scorer rejected message {message.index} ({type(e).__name__}: {e})", file=sys.stderr)
            failures.append((message.index, str(e)))
            continue

        conversation.add_score(Score(
            overall=score.overall,
            dimensions=dict(score.dimensions),
            classification=score.classification,
            confidence=score.confidence,
            index=message.index,
        ))

    return failures


# =============================================================================
# Claude-backed scorer
# =============================================================================

SCORING_SYSTEM_PROMPT = """You rate individual turns of an AI conversation. You answer with a single JSON object and nothing else."""

SCORING_PROMPT = """Rate this {role} message on a 0-100 scale for each dimension.

DIMENSIONS:
{dimension_list}

CONTEXT:
- Position in conversation: {position}
- Previous messages: {previous_count}
- Recent score trend: {trend}
{extra_context}
MESSAGE:
\"\"\"
{content}
\"\"\"

Respond with JSON only:
{{"overall": <0-100>, "dimensions": {{{dimension_keys}}}, "classification": "<brilliant|excellent|good|average|mistake|blunder>", "confidence": <0-1>}}"""

DIMENSION_DESCRIPTIONS = {
    'strategic': 'Goal alignment, efficient progress, compound value',
    'tactical': 'Clarity, specificity, actionability, structure',
    'cognitive': 'Timing, complexity matching, energy alignment',
    'innovation': 'Creative approaches, novel connections, reframing',
    'context': 'Use of earlier conversation and project context',
}

_JSON_OBJECT = re.compile(r'\{.*\}', re.DOTALL)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, float(value)))


def parse_score_response(text: str, dimensions: Sequence[str] = DEFAULT_DIMENSIONS) -> Score:
    """
    Turn a model reply into a Score.

    Raises:
        ValueError: no JSON object in the reply, or it lacks an overall value
    """
    match = _JSON_OBJECT.search(text)
    if not match:
        raise ValueError("Scorer reply contained no JSON object")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Scorer reply was not valid JSON ({e.msg})") from e

    if 'overall' not in data:
        raise ValueError("Scorer reply is missing 'overall'")

    reported = data.get('dimensions') or {}
    confidence = data.get('confidence')
    return Score(
        overall=_clamp(data['overall']),
        dimensions={key: _clamp(reported.get(key, 0)) for key in dimensions},
        classification=data.get('classification'),
        confidence=_clamp(confidence, 0.0, 1.0) if confidence is not None else None,
    )


class ClaudeScorer:
    """Scores messages with the Anthropic Messages API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
        max_chars: int = 8000,
    ):
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic package not installed. "
                "Install with: pip install 'turnparse[score]'"
            )

        api_key = api_key or os.environ.get('ANTHROPIC_API_KEY')
        if not api_key:
            raise ValueError(
                "No API key provided. Set ANTHROPIC_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model
        self.dimensions = tuple(dimensions)
        self.max_chars = max_chars

    def build_prompt(self, message: Message, context: ScoringContext) -> str:
        content = message.content
        if len(content) > self.max_chars:
            content = content[:self.max_chars] + "... [truncated]"

        extra = []
        if context.session_goal:
            extra.append(f"- Session goal: {context.session_goal}")
        if context.project_context:
            extra.append(f"- Project context: {context.project_context}")
        if context.platform:
            extra.append(f"- Platform: {context.platform}")

        return SCORING_PROMPT.format(
            role=message.role,
            dimension_list='\n'.join(
                f"- {key.upper()}: {DIMENSION_DESCRIPTIONS.get(key, key)}" for key in self.dimensions
            ),
            position=context.message_position,
            previous_count=len(context.previous_messages),
            trend=context.score_trend,
            extra_context=''.join(line + '\n' for line in extra),
            content=content,
            dimension_keys=', '.join(f'"{key}": <0-100>' for key in self.dimensions),
        )

    def __call__(self, message: Message, context: ScoringContext) -> Score:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=1024,
            temperature=0.1,
            system=SCORING_SYSTEM_PROMPT,
            messages=[
                {"role": "user", "content": self.build_prompt(message, context)}
            ]
        )
        return parse_score_response(response.content[0].text, self.dimensions)
