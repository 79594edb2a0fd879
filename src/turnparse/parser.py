"""Transcript parsing: strategy selection, confidence and advisory issues."""

from collections import Counter
from pathlib import Path
from typing import Any, Optional
import re
import sys

from .detect import detect_platform, has_retry_edit_format, matched_patterns, technical_indicators, is_technical
from .models import FormatDetection, Message, ParseResult, Platform
from .strategies import (
    CONFIDENCE_FLOOR,
    MIN_SPAN_LENGTH,
    Strategy,
    StrategyResult,
    parse_generic,
    parse_labeled,
    parse_retry_edit,
)
from .validate import validate_messages


# Labeled results below this user/assistant ratio are flagged as unbalanced
MIN_ROLE_BALANCE = 0.7

_ENGLISH_WORDS = re.compile(r'\b(the|and|or|but|in|on|at|to|for|of|with|by)\b', re.IGNORECASE)
_KEYWORD = re.compile(r'\b\w{4,}\b')


def read_transcript(path: Path) -> str:
    """
    Read a transcript file as UTF-8.

    Undecodable bytes are replaced rather than failing the read, with a
    warning to stderr.
    """
    raw = path.read_bytes()
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        print(f"Warning: Replacing undecodable bytes in {path} ({type(e).__name__} at byte {e.start})", file=sys.stderr)
        return raw.decode('utf-8', errors='replace')


def _check_expected_count(expected_count: Optional[int]) -> None:
    if expected_count is None:
        return
    if isinstance(expected_count, bool) or not isinstance(expected_count, int):
        raise TypeError(f"expected_count must be an int, got {type(expected_count).__name__}")
    if expected_count < 0:
        raise ValueError(f"expected_count must be non-negative, got {expected_count}")


def select_strategy(text: str, retry_edit: Optional[bool] = None) -> tuple[Strategy, Platform]:
    """
    Decide which strategy applies to text.

    Retry/Edit markers win regardless of platform; otherwise a detected
    claude/chatgpt platform selects the Labeled strategy, and anything
    else falls through to Generic.
    """
    use_retry_edit = has_retry_edit_format(text) if retry_edit is None else retry_edit
    if use_retry_edit:
        return Strategy.RETRY_EDIT, 'claude'

    platform = detect_platform(text)
    if platform in ('claude', 'chatgpt'):
        return Strategy.LABELED, platform
    return Strategy.GENERIC, 'other'


def _run_strategy(strategy: Strategy, text: str, platform: Platform, min_length: int) -> StrategyResult:
    if strategy is Strategy.RETRY_EDIT:
        return parse_retry_edit(text, min_length=min_length)
    if strategy is Strategy.LABELED:
        return parse_labeled(text, platform)
    return parse_generic(text)


def _empty_result(expected_count: Optional[int]) -> ParseResult:
    issues = ['No content found']
    if expected_count:
        issues.append(f"Parsed 0 messages, expected {expected_count}")

    detection = FormatDetection(
        format='unlabeled',
        platform='other',
        confidence=CONFIDENCE_FLOOR,
        message_count=0,
        detection_method='empty_text',
        issues=issues,
        suggestions=['Paste your conversation to begin analysis'],
    )
    return ParseResult(messages=[], format_detection=detection, metadata=extract_metadata('', []))


def parse_conversation(
    text: str,
    expected_count: Optional[int] = None,
    retry_edit: Optional[bool] = None,
    min_length: int = MIN_SPAN_LENGTH,
    validate: bool = True,
) -> ParseResult:
    """
    Parse raw transcript text into ordered, role-tagged messages.

    Never raises for malformed text: degradation shows up as lower
    confidence and entries in format_detection.issues.

    Args:
        text: Raw transcript text
        expected_count: Message count predicted upstream; a mismatch is reported as an issue
        retry_edit: Force (True) or disable (False) the Retry/Edit strategy; None auto-detects
        min_length: Noise threshold for Retry/Edit spans
        validate: Attach a MessageValidator result

    Raises:
        TypeError, ValueError: expected_count is not a non-negative int
    """
    _check_expected_count(expected_count)

    if not text or not text.strip():
        result = _empty_result(expected_count)
        if validate:
            result.validation = validate_messages(result.messages)
        return result

    issues: list[str] = []
    suggestions: list[str] = []
    patterns: list[str] = []

    for platform_name, names in matched_patterns(text).items():
        patterns.extend(f"{platform_name}:{name}" for name in names)

    strategy, platform = select_strategy(text, retry_edit)
    outcome = _run_strategy(strategy, text, platform, min_length)

    if strategy is Strategy.RETRY_EDIT and not outcome.messages:
        issues.append('Retry/Edit markers found but no messages could be extracted')
        strategy, platform = select_strategy(text, retry_edit=False)
        outcome = _run_strategy(strategy, text, platform, min_length)

    patterns.extend(outcome.patterns)
    messages = outcome.messages

    if strategy is Strategy.RETRY_EDIT:
        format_name = 'retry_edit'
    elif strategy is Strategy.LABELED:
        if outcome.inferred:
            format_name = 'mixed_format'
            issues.append('Inconsistent labeling detected')
            suggestions.append('Add missing "Human:" or "Assistant:" labels for better parsing')
        else:
            format_name = 'standard_labeled'

        user_count = sum(1 for m in messages if m.role == 'user')
        assistant_count = sum(1 for m in messages if m.role == 'assistant')
        if user_count and assistant_count:
            if min(user_count, assistant_count) / max(user_count, assistant_count) < MIN_ROLE_BALANCE:
                issues.append('Unbalanced user/assistant messages')
                suggestions.append('Check for missing labels or incomplete conversation')
    else:
        format_name = 'unlabeled'
        if outcome.method == 'paragraph_estimation':
            issues.append('No clear conversation labels found')
            suggestions.append('Add "Human:" before your messages and "Assistant:" before AI responses')
            suggestions.append("Use platform's native export format for best results")
        if len(messages) < 2:
            issues.append('Insufficient content for conversation analysis')
            suggestions.append('Paste a complete conversation with at least 2 messages')
        if is_technical(text):
            format_name = 'technical'
            patterns.extend(f"technical:{name}" for name in technical_indicators(text))
            patterns.append('Technical log format detected')
            suggestions.append('Consider adding "Human:" and "Assistant:" labels manually')

    detection_method = 'technical_content' if format_name == 'technical' else outcome.method

    if expected_count is not None and expected_count != len(messages):
        issues.append(f"Parsed {len(messages)} messages, expected {expected_count}")
        suggestions.append('Review the parsed messages and fix roles or content manually')

    detection = FormatDetection(
        format=format_name,
        platform=platform,
        confidence=outcome.confidence,
        message_count=len(messages),
        detection_method=detection_method,
        patterns=patterns,
        issues=issues,
        suggestions=suggestions,
    )

    result = ParseResult(
        messages=messages,
        format_detection=detection,
        metadata=extract_metadata(text, messages),
    )
    if validate:
        result.validation = validate_messages(messages)
    return result


def extract_metadata(text: str, messages: list[Message]) -> dict[str, Any]:
    """
    Summarize a parsed conversation.

    Returns dict with:
    - original_length, message_count
    - average/longest/shortest message length
    - user_messages, assistant_messages
    - likely_language: 'en' or 'unknown'
    - top_keywords: up to 10 most frequent words of 4+ characters
    """
    lengths = [len(m.content) for m in messages]
    words = _KEYWORD.findall(text.lower())

    return {
        'original_length': len(text),
        'message_count': len(messages),
        'average_message_length': sum(lengths) / len(lengths) if lengths else 0.0,
        'longest_message': max(lengths, default=0),
        'shortest_message': min(lengths, default=0),
        'user_messages': sum(1 for m in messages if m.role == 'user'),
        'assistant_messages': sum(1 for m in messages if m.role == 'assistant'),
        'likely_language': 'en' if len(_ENGLISH_WORDS.findall(text)) > 10 else 'unknown',
        'top_keywords': [word for word, _ in Counter(words).most_common(10)],
    }
