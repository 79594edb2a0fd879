"""Platform and format detection for raw transcript text."""

import re

from .models import Platform


# =============================================================================
# Platform Signatures
# =============================================================================

# One hit per pattern is enough: detection counts distinct patterns, not matches.
PLATFORM_PATTERNS: dict[str, list[tuple[str, re.Pattern]]] = {
    'claude': [
        ('human_label', re.compile(r'Human:', re.IGNORECASE)),
        ('assistant_label', re.compile(r'Assistant:', re.IGNORECASE)),
        ('claude_label', re.compile(r'Claude:', re.IGNORECASE)),
        ('claude_intro', re.compile(r"I'm Claude", re.IGNORECASE)),
        ('anthropic_intro', re.compile(r"I'm an AI assistant created by Anthropic", re.IGNORECASE)),
    ],
    'chatgpt': [
        ('user_label', re.compile(r'User:', re.IGNORECASE)),
        ('chatgpt_label', re.compile(r'ChatGPT:', re.IGNORECASE)),
        ('chatgpt_intro', re.compile(r"I'm ChatGPT", re.IGNORECASE)),
        ('language_model_intro', re.compile(r"I'm an AI language model", re.IGNORECASE)),
        ('openai_intro', re.compile(r'As an AI developed by OpenAI', re.IGNORECASE)),
        ('bold_user', re.compile(r'\*\*User\*\*', re.IGNORECASE)),
        ('bold_assistant', re.compile(r'\*\*Assistant\*\*', re.IGNORECASE)),
    ],
}

RETRY_MARKER = 'Retry'
EDIT_MARKER = 'Edit'

# Minimum number of Retry markers that have an Edit after them
MIN_MARKER_PAIRS = 1

TECHNICAL_INDICATORS: list[tuple[str, re.Pattern]] = [
    ('package_manager', re.compile(r'npm run|yarn|npx|pip install|@\w+/\w+@\d+\.\d+\.\d+', re.IGNORECASE)),
    ('build_error', re.compile(r'error ts\d+|compilation|build failed|traceback \(most recent call last\)', re.IGNORECASE)),
    ('environment_loading', re.compile(r'environment variables loaded|schema loaded', re.IGNORECASE)),
    ('status_emoji', re.compile('✔|✅|❌|⚠️|🔴|🟡|🟢')),
    ('iso_timestamp', re.compile(r'\d{4}-\d{2}-\d{2}t\d{2}:\d{2}:\d{2}', re.IGNORECASE)),
    ('log_level_tag', re.compile(r'\[info\]|\[error\]|\[warn\]', re.IGNORECASE)),
]

# Technical indicators needed before unlabeled text is tagged as a technical log
MIN_TECHNICAL_MATCHES = 2


def matched_patterns(text: str) -> dict[str, list[str]]:
    """Return, per platform, the names of the signature patterns found in text."""
    return {
        platform: [name for name, pattern in patterns if pattern.search(text)]
        for platform, patterns in PLATFORM_PATTERNS.items()
    }


def detect_platform(text: str) -> Platform:
    """
    Guess which chat product produced a transcript.

    The platform with strictly more distinct matching patterns wins;
    ties (including no matches at all) resolve to "other".
    """
    matches = matched_patterns(text)
    claude_score = len(matches['claude'])
    chatgpt_score = len(matches['chatgpt'])

    if claude_score > chatgpt_score:
        return 'claude'
    if chatgpt_score > claude_score:
        return 'chatgpt'
    return 'other'


def find_retry_edit_markers(text: str) -> tuple[list[int], list[int]]:
    """
    Find standalone Retry and Edit lines.

    Returns (retry_lines, edit_lines) as 0-based line indices, where lines
    are split on newline exactly as the RetryEdit strategy splits them.
    """
    retry_lines: list[int] = []
    edit_lines: list[int] = []
    for line_num, line in enumerate(text.split('\n')):
        stripped = line.strip()
        if stripped == RETRY_MARKER:
            retry_lines.append(line_num)
        elif stripped == EDIT_MARKER:
            edit_lines.append(line_num)
    return retry_lines, edit_lines


def count_marker_pairs(retry_lines: list[int], edit_lines: list[int]) -> int:
    """Count Retry markers that are followed (anywhere later) by an Edit marker."""
    if not edit_lines:
        return 0
    last_edit = edit_lines[-1]
    return sum(1 for retry in retry_lines if retry < last_edit)


def has_retry_edit_format(text: str, min_pairs: int = MIN_MARKER_PAIRS) -> bool:
    """Check whether text carries enough Retry/Edit markers to parse by marker position."""
    retry_lines, edit_lines = find_retry_edit_markers(text)
    return count_marker_pairs(retry_lines, edit_lines) >= min_pairs


def technical_indicators(text: str) -> list[str]:
    """Names of technical-log indicators present in text."""
    return [name for name, pattern in TECHNICAL_INDICATORS if pattern.search(text)]


def is_technical(text: str) -> bool:
    return len(technical_indicators(text)) >= MIN_TECHNICAL_MATCHES
