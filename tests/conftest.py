"""Pytest fixtures for turnparse tests."""

import pytest
from pathlib import Path
import tempfile
import shutil

from turnparse.models import Message, Score


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to the test fixtures directory."""
    return Path(__file__).parent / 'fixtures'


@pytest.fixture
def claude_transcript_path(fixtures_dir) -> Path:
    """Path to a Human:/Assistant: labeled transcript."""
    return fixtures_dir / 'claude_labeled.txt'


@pytest.fixture
def chatgpt_transcript_path(fixtures_dir) -> Path:
    """Path to a ChatGPT export with bold role headers."""
    return fixtures_dir / 'chatgpt_bold.txt'


@pytest.fixture
def retry_edit_transcript_path(fixtures_dir) -> Path:
    """Path to a chat-UI export with Retry/Edit markers and thinking banners."""
    return fixtures_dir / 'retry_edit.txt'


@pytest.fixture
def unlabeled_transcript_path(fixtures_dir) -> Path:
    """Path to a transcript of plain paragraphs."""
    return fixtures_dir / 'unlabeled.txt'


@pytest.fixture
def technical_transcript_path(fixtures_dir) -> Path:
    """Path to pasted build output without role labels."""
    return fixtures_dir / 'technical_log.txt'


@pytest.fixture
def single_message_path(fixtures_dir) -> Path:
    """Path to a transcript with only one message."""
    return fixtures_dir / 'single_message.txt'


@pytest.fixture
def scored_conversation_path(fixtures_dir) -> Path:
    """Path to a JSON document with messages and scores."""
    return fixtures_dir / 'scored_conversation.json'


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmpdir = tempfile.mkdtemp()
    yield Path(tmpdir)
    shutil.rmtree(tmpdir)


@pytest.fixture
def make_messages():
    """Build alternating user/assistant messages from a list of contents."""
    def _make(*contents, roles=None):
        messages = []
        for i, content in enumerate(contents):
            role = roles[i] if roles else ('user' if i % 2 == 0 else 'assistant')
            messages.append(Message(role=role, content=content, index=i))
        return messages
    return _make


@pytest.fixture
def make_scores():
    """Build indexed scores from overall values, with flat dimension values."""
    def _make(*overalls, dimensions=('strategic', 'tactical', 'cognitive', 'innovation')):
        return [
            Score(overall=value, dimensions={key: value for key in dimensions}, index=i)
            for i, value in enumerate(overalls)
        ]
    return _make
