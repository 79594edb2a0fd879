"""Tests for CLI commands."""

import json
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from turnparse.cli import main
from turnparse.scoring import DEFAULT_MODEL
from turnparse.strategies import MIN_SPAN_LENGTH


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


class TestParseCommand:
    """Tests for parse command."""

    def test_parse_markdown(self, runner, claude_transcript_path):
        """Default output lists messages as markdown headings."""
        result = runner.invoke(main, ['parse', str(claude_transcript_path)])

        assert result.exit_code == 0
        assert '### 1. User' in result.output
        assert '### 4. Assistant' in result.output

    def test_parse_json(self, runner, claude_transcript_path):
        """JSON output carries messages, detection and validation."""
        result = runner.invoke(main, ['parse', str(claude_transcript_path), '--format', 'json'])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert len(data['messages']) == 4
        assert data['format_detection']['format'] == 'standard_labeled'
        assert data['format_detection']['confidence'] == 0.8
        assert data['validation'] == {'valid': True, 'errors': []}

    def test_parse_text(self, runner, chatgpt_transcript_path):
        """Text output prefixes each message with its role."""
        result = runner.invoke(main, ['parse', str(chatgpt_transcript_path), '--format', 'text'])

        assert result.exit_code == 0
        assert '[0] USER: How do I list files' in result.output

    def test_parse_stdin(self, runner):
        """A dash reads the transcript from stdin."""
        result = runner.invoke(
            main, ['parse', '-', '--format', 'json'],
            input="Human: hi\n\nAssistant: hello",
        )

        assert result.exit_code == 0
        assert len(json.loads(result.output)['messages']) == 2

    def test_parse_retry_edit_min_length(self, runner, temp_dir):
        """Retry/Edit options reach the parser."""
        path = temp_dir / 'export.txt'
        path.write_text("Retry\nfix the bug\nEdit\nhere is the fix\nRetry\nthanks\nEdit\ngreat\n")

        result = runner.invoke(main, ['parse', str(path), '--format', 'json', '--min-length', '4'])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [m['content'] for m in data['messages']] == ['fix the bug', 'here is the fix', 'thanks', 'great']

    def test_parse_expected_count(self, runner, claude_transcript_path):
        """Expected count mismatch shows up in issues."""
        result = runner.invoke(main, [
            'parse', str(claude_transcript_path), '--format', 'json', '--expected-count', '6',
        ])

        assert result.exit_code == 0
        assert 'Parsed 4 messages, expected 6' in json.loads(result.output)['format_detection']['issues']

    def test_parse_missing_file(self, runner, temp_dir):
        """Missing file fails gracefully."""
        result = runner.invoke(main, ['parse', str(temp_dir / 'nope.txt')])

        assert result.exit_code == 1
        assert 'not found' in result.output.lower()


class TestDetectCommand:
    """Tests for detect command."""

    def test_detect(self, runner, retry_edit_transcript_path):
        """Detection summary names format and platform."""
        result = runner.invoke(main, ['detect', str(retry_edit_transcript_path)])

        assert result.exit_code == 0
        assert 'Format: retry_edit' in result.output
        assert 'Platform: claude' in result.output
        assert 'Confidence: 80%' in result.output

    def test_detect_unlabeled(self, runner, unlabeled_transcript_path):
        """Issues and suggestions are listed."""
        result = runner.invoke(main, ['detect', str(unlabeled_transcript_path)])

        assert result.exit_code == 0
        assert 'No clear conversation labels found' in result.output


class TestValidateCommand:
    """Tests for validate command."""

    def test_validate_ok(self, runner, claude_transcript_path):
        """Valid transcript exits cleanly."""
        result = runner.invoke(main, ['validate', str(claude_transcript_path)])

        assert result.exit_code == 0
        assert 'All checks passed!' in result.output

    def test_validate_fails(self, runner, single_message_path):
        """Invalid transcript exits with 1."""
        result = runner.invoke(main, ['validate', str(single_message_path)])

        assert result.exit_code == 1
        assert 'Conversation too short' in result.output


class TestStatsCommand:
    """Tests for stats command."""

    def test_stats_text(self, runner, scored_conversation_path):
        """Report shows aggregates and trend."""
        result = runner.invoke(main, ['stats', str(scored_conversation_path)])

        assert result.exit_code == 0
        assert 'Messages: 4' in result.output
        assert 'Scored: 3' in result.output
        assert 'Average score: 65.0' in result.output
        assert 'Trend: improving' in result.output
        assert 'strategic: 60.0' in result.output

    def test_stats_json(self, runner, scored_conversation_path):
        """JSON output mirrors ComputedStats."""
        result = runner.invoke(main, ['stats', str(scored_conversation_path), '--format', 'json'])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data['best_score'] == 70
        assert data['worst_score'] == 60
        assert data['dimension_averages']['innovation'] == 50.0

    def test_stats_bare_score_list(self, runner, temp_dir):
        """A plain list of scores is accepted."""
        path = temp_dir / 'scores.json'
        path.write_text(json.dumps([{'overall': 70}, {'overall': 65}, {'overall': 60}]))

        result = runner.invoke(main, ['stats', str(path), '--format', 'json'])

        assert result.exit_code == 0
        assert json.loads(result.output)['trend'] == 'declining'

    def test_stats_invalid_json(self, runner, temp_dir):
        """Broken JSON fails gracefully."""
        path = temp_dir / 'broken.json'
        path.write_text('{"messages": [')

        result = runner.invoke(main, ['stats', str(path)])

        assert result.exit_code == 1
        assert 'Invalid JSON' in result.output

    def test_stats_bad_role(self, runner, temp_dir):
        """Unknown roles are reported, not raised."""
        path = temp_dir / 'bad.json'
        path.write_text(json.dumps({'messages': [{'role': 'narrator', 'content': 'once upon a time'}]}))

        result = runner.invoke(main, ['stats', str(path)])

        assert result.exit_code == 1
        assert 'Malformed' in result.output


class TestScoreCommand:
    """Tests for score command."""

    def test_score_without_anthropic(self, runner, claude_transcript_path):
        """Missing optional dependency gives an install hint."""
        with patch.dict(sys.modules, {'anthropic': None}):
            result = runner.invoke(main, ['score', str(claude_transcript_path)])

        assert result.exit_code == 1
        assert 'turnparse[score]' in result.output

    def test_score_without_key(self, runner, claude_transcript_path, monkeypatch):
        """Missing API key fails before any parsing."""
        monkeypatch.delenv('ANTHROPIC_API_KEY', raising=False)
        with patch.dict(sys.modules, {'anthropic': MagicMock()}):
            result = runner.invoke(main, ['score', str(claude_transcript_path)])

        assert result.exit_code == 1
        assert 'ANTHROPIC_API_KEY' in result.output

    def test_score_writes_output(self, runner, claude_transcript_path, temp_dir, monkeypatch):
        """Scores and stats are written as JSON."""
        monkeypatch.setenv('ANTHROPIC_API_KEY', 'test-key')
        fake = MagicMock()
        fake.Anthropic.return_value.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(text='{"overall": 70, "dimensions": {"strategic": 60}}')]
        )
        output = temp_dir / 'scored.json'

        with patch.dict(sys.modules, {'anthropic': fake}):
            result = runner.invoke(main, [
                'score', str(claude_transcript_path), '--output', str(output),
            ])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert len(data['scores']) == 4
        assert data['stats']['average_score'] == 70
        assert data['stats']['completed_analysis'] == 4


class TestOptionDefaults:
    """Tests for CLI option defaults."""

    def test_defaults_match_library(self):
        """Option defaults come from the library constants."""
        min_length = next(p for p in main.commands['parse'].params if p.name == 'min_length')
        model = next(p for p in main.commands['score'].params if p.name == 'model')

        assert min_length.default == MIN_SPAN_LENGTH
        assert model.default == DEFAULT_MODEL
