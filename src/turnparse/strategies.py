"""Parsing strategies that turn transcript text into role-tagged messages.

Three interchangeable strategies exist:

- Labeled: explicit role labels ("Human:", "**User**", "1. Assistant", ...)
- RetryEdit: chat-UI exports where "Retry" and "Edit" lines bracket each user turn
- Generic: last resort, paragraph splitting with positional role alternation

Every strategy reports a baseline confidence and how many roles it had to
infer from position; the orchestrator turns those into the final score.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .detect import find_retry_edit_markers
from .models import Message, Platform, Role


# =============================================================================
# Confidence Model
# =============================================================================

LABELED_BASELINE = 0.8
RETRY_EDIT_BASELINE = 0.8
GENERIC_NUMBERED_BASELINE = 0.5
GENERIC_BOLD_BASELINE = 0.4
GENERIC_PARAGRAPH_BASELINE = 0.3

# Subtracted once per role inferred from position instead of a label
INFERENCE_PENALTY = 0.1
CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 1.0

# RetryEdit spans must be strictly longer than this to count as a message
MIN_SPAN_LENGTH = 10
# Generic paragraphs shorter than this are dropped
MIN_PARAGRAPH_LENGTH = 20


def confidence_for(baseline: float, inferred: int = 0) -> float:
    """Additive penalty per inferred role, floored so a parse never reads as zero."""
    value = round(baseline - INFERENCE_PENALTY * inferred, 4)
    return min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, value))


class Strategy(Enum):
    """Which parsing strategy produced a result."""
    RETRY_EDIT = 'retry_edit'
    LABELED = 'labeled'
    GENERIC = 'generic'


@dataclass
class StrategyResult:
    """Raw output of one strategy, before the orchestrator wraps it."""
    strategy: Strategy
    messages: list[Message]
    baseline: float
    method: str
    inferred: int = 0
    patterns: list[str] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return confidence_for(self.baseline, self.inferred)


# =============================================================================
# Content Normalization
# =============================================================================

def normalize_newlines(text: str) -> str:
    return text.replace('\r\n', '\n').replace('\r', '\n')


def clean_content(text: str) -> str:
    """
    Normalize message content.

    Line endings become LF, trailing whitespace is removed from each line,
    runs of blank lines collapse to a single blank line, and the result is
    trimmed. Indentation inside the message is kept.
    """
    text = normalize_newlines(text)
    text = '\n'.join(line.rstrip() for line in text.split('\n'))
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def _positional_role(position: int) -> Role:
    return 'user' if position % 2 == 0 else 'assistant'


def _make_message(role: Role, content: str, index: int) -> Message:
    return Message(role=role, content=content, index=index, editable=True)


# =============================================================================
# Label Vocabularies
# =============================================================================

CLAUDE_LABELS: dict[str, Role] = {
    'human': 'user',
    'user': 'user',
    'you': 'user',
    'person': 'user',
    'me': 'user',
    'assistant': 'assistant',
    'claude': 'assistant',
    'ai': 'assistant',
    'bot': 'assistant',
    'model': 'assistant',
    'gemini': 'assistant',
    'chatgpt': 'assistant',
    'system': 'system',
}

CHATGPT_LABELS: dict[str, Role] = {
    'user': 'user',
    'you': 'user',
    'human': 'user',
    'person': 'user',
    'me': 'user',
    'chatgpt': 'assistant',
    'gpt': 'assistant',
    'assistant': 'assistant',
    'ai': 'assistant',
    'bot': 'assistant',
    'model': 'assistant',
    'gemini': 'assistant',
    'claude': 'assistant',
    'system': 'system',
}

LABEL_VOCABULARIES: dict[str, dict[str, Role]] = {
    'claude': CLAUDE_LABELS,
    'chatgpt': CHATGPT_LABELS,
    'other': {**CLAUDE_LABELS, **CHATGPT_LABELS},
}

# Only these nouns count in numbered ("2. Assistant") and mid-line labels;
# words like "You" or "Model" start ordinary list items and sentences.
ROLE_NOUNS = ('human', 'user', 'assistant', 'claude', 'chatgpt')

# "Label:", "**Label**" or "**Label:**" at the start of a line,
# "3. Role" ending the line or followed by a colon,
# or "Role:" right after the end of a sentence on the same line
_LABEL_TEMPLATE = (
    r'(?:^[ \t]*(?:(?P<plain>{names}):'
    r'|\*\*(?P<bold>{names})(?::\*\*|\*\*:?)'
    r'|\d+\.[ \t]*(?P<numbered>{roles})(?::|[ \t]*$))'
    r'|(?<=[.?!])[ \t]+(?P<inline>{roles}):)[ \t]*'
)
_NUMBERED_TEMPLATE = r'^[ \t]*\d+\.[ \t]*(?P<numbered>{roles})(?::|[ \t]*$)[ \t]*'
_BOLD_TEMPLATE = r'^[ \t]*\*\*(?P<bold>{names})(?::\*\*|\*\*:?)[ \t]*'


def _alternation(names) -> str:
    # Longest first so "ChatGPT" is tried before "GPT"
    return '|'.join(re.escape(name) for name in sorted(names, key=len, reverse=True))


def _compile(template: str, vocabulary: dict[str, Role]) -> re.Pattern:
    roles = [noun for noun in ROLE_NOUNS if noun in vocabulary]
    return re.compile(
        template.format(names=_alternation(vocabulary), roles=_alternation(roles)),
        re.IGNORECASE | re.MULTILINE,
    )


def _matched_label(match: re.Match) -> str:
    return next(value for value in match.groupdict().values() if value)


LABEL_PATTERNS = {
    platform: _compile(_LABEL_TEMPLATE, vocabulary)
    for platform, vocabulary in LABEL_VOCABULARIES.items()
}
NUMBERED_PATTERN = _compile(_NUMBERED_TEMPLATE, LABEL_VOCABULARIES['other'])
BOLD_PATTERN = _compile(_BOLD_TEMPLATE, LABEL_VOCABULARIES['other'])


def _split_on_labels(
    text: str,
    pattern: re.Pattern,
    vocabulary: dict[str, Role],
) -> list[tuple[Optional[Role], str]]:
    """
    Cut text at every label match.

    Returns (role, body) pairs; role is None for the unlabeled text that
    precedes the first label.
    """
    matches = list(pattern.finditer(text))
    if not matches:
        return [(None, text)]

    segments: list[tuple[Optional[Role], str]] = [(None, text[:matches[0].start()])]
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        role = vocabulary[_matched_label(match).lower()]
        segments.append((role, text[match.end():end]))
    return segments


def _messages_from_segments(
    segments: list[tuple[Optional[Role], str]],
) -> tuple[list[Message], int]:
    """Build messages from labeled segments; returns (messages, inferred_count)."""
    messages: list[Message] = []
    inferred = 0

    for role, body in segments:
        content = clean_content(body)
        if not content:
            continue
        if role is None:
            role = _positional_role(len(messages))
            inferred += 1
        messages.append(_make_message(role, content, len(messages)))

    return messages, inferred


def _label_patterns(segments: list[tuple[Optional[Role], str]]) -> list[str]:
    counts: dict[str, int] = {}
    for role, _ in segments:
        if role is not None:
            counts[role] = counts.get(role, 0) + 1
    return [f"{count} {role} labels" for role, count in counts.items()]


# =============================================================================
# Labeled Strategy
# =============================================================================

def parse_labeled(text: str, platform: Platform) -> StrategyResult:
    """
    Parse text that carries explicit role labels.

    Segments that start with a recognised label take the mapped role;
    any other non-empty segment falls back to positional alternation and
    costs one confidence penalty.
    """
    vocabulary = LABEL_VOCABULARIES.get(platform, LABEL_VOCABULARIES['other'])
    pattern = LABEL_PATTERNS.get(platform, LABEL_PATTERNS['other'])

    segments = _split_on_labels(normalize_newlines(text), pattern, vocabulary)
    messages, inferred = _messages_from_segments(segments)

    return StrategyResult(
        strategy=Strategy.LABELED,
        messages=messages,
        baseline=LABELED_BASELINE,
        method='explicit_labels' if inferred == 0 else 'partial_labels',
        inferred=inferred,
        patterns=_label_patterns(segments),
    )


# =============================================================================
# RetryEdit Strategy
# =============================================================================

THOUGHT_BANNER = re.compile(r'^Thought process(?: \d+s)?$')
SENTENCE_BANNER = re.compile(r'^[A-Z][a-z].*\.$')
TIMER_LINE = re.compile(r'^\d+s$')


def strip_banners(text: str) -> str:
    """
    Remove UI chrome from the top of an assistant reply.

    Handles "Thought process 12s" lines, and a short capitalized sentence
    followed by a bare "12s" timer line (the collapsed thinking summary).
    """
    lines = text.split('\n')
    while lines:
        first = lines[0].strip()
        second = lines[1].strip() if len(lines) > 1 else ''
        if not first or TIMER_LINE.match(first):
            lines = lines[1:]
        elif THOUGHT_BANNER.match(first):
            lines = lines[2:] if TIMER_LINE.match(second) else lines[1:]
        elif SENTENCE_BANNER.match(first) and TIMER_LINE.match(second):
            lines = lines[2:]
        else:
            break
    return '\n'.join(lines)


def parse_retry_edit(text: str, min_length: int = MIN_SPAN_LENGTH) -> StrategyResult:
    """
    Extract messages from a Retry/Edit export by marker position.

    Each Retry marker opens a user turn that runs to the next Edit marker;
    the assistant reply runs from that Edit to the following Retry (or the
    end of the text). Spans no longer than min_length characters are noise.
    A noisy user span drops its whole exchange so roles keep alternating.
    """
    text = normalize_newlines(text)
    lines = text.split('\n')
    retry_lines, edit_lines = find_retry_edit_markers(text)

    messages: list[Message] = []
    for i, retry_line in enumerate(retry_lines):
        next_edit = next((edit for edit in edit_lines if edit > retry_line), None)
        if next_edit is None:
            continue

        next_retry = retry_lines[i + 1] if i + 1 < len(retry_lines) else len(lines)
        if next_retry < next_edit:
            # A later Retry owns this Edit
            continue

        user_text = clean_content('\n'.join(lines[retry_line + 1:next_edit]))
        if len(user_text) <= min_length:
            continue
        messages.append(_make_message('user', user_text, len(messages)))

        assistant_text = clean_content(strip_banners('\n'.join(lines[next_edit + 1:next_retry])))
        if len(assistant_text) > min_length:
            messages.append(_make_message('assistant', assistant_text, len(messages)))

    return StrategyResult(
        strategy=Strategy.RETRY_EDIT,
        messages=messages,
        baseline=RETRY_EDIT_BASELINE,
        method='edit_retry_markers',
        patterns=[f"{len(retry_lines)} Retry markers", f"{len(edit_lines)} Edit markers"],
    )


# =============================================================================
# Generic Strategy
# =============================================================================

def split_paragraphs(text: str, min_length: int = MIN_PARAGRAPH_LENGTH) -> list[str]:
    """Split on blank lines, keeping cleaned paragraphs of at least min_length characters."""
    paragraphs = [clean_content(part) for part in re.split(r'\n\s*\n', normalize_newlines(text))]
    return [p for p in paragraphs if len(p) >= min_length]


def parse_generic(text: str) -> StrategyResult:
    """
    Last-resort parsing for text with no platform signature.

    Numbered ("1. User") or bold ("**Human**") role markers are used when
    present; otherwise blank-line paragraphs alternate user/assistant.
    """
    vocabulary = LABEL_VOCABULARIES['other']
    text = normalize_newlines(text)

    for pattern, baseline, method in (
        (NUMBERED_PATTERN, GENERIC_NUMBERED_BASELINE, 'numbered_markers'),
        (BOLD_PATTERN, GENERIC_BOLD_BASELINE, 'bold_markers'),
    ):
        if pattern.search(text):
            segments = _split_on_labels(text, pattern, vocabulary)
            messages, inferred = _messages_from_segments(segments)
            return StrategyResult(
                strategy=Strategy.GENERIC,
                messages=messages,
                baseline=baseline,
                method=method,
                inferred=inferred,
                patterns=_label_patterns(segments),
            )

    paragraphs = split_paragraphs(text)
    messages = [
        _make_message(_positional_role(i), paragraph, i)
        for i, paragraph in enumerate(paragraphs)
    ]
    return StrategyResult(
        strategy=Strategy.GENERIC,
        messages=messages,
        baseline=GENERIC_PARAGRAPH_BASELINE,
        method='paragraph_estimation',
        patterns=[f"{len(paragraphs)} content blocks detected"],
    )
