"""Sanity checks for parsed message lists."""

from .models import Message, ValidationIssue, ValidationResult


# A conversation needs at least one exchange
MIN_MESSAGES = 2
# Messages shorter than this count as very short
SHORT_MESSAGE_LENGTH = 10
# Warn when more than this fraction of messages is very short
MAX_SHORT_FRACTION = 0.3
# Messages longer than this count as very long
LONG_MESSAGE_LENGTH = 5000


def validate_messages(messages: list[Message]) -> ValidationResult:
    """
    Validate a parsed message list.

    Checks:
    - At least one message (error)
    - At least two messages (error)
    - Roles alternate across the whole sequence (warning, reported once)
    - No more than 30% of messages under 10 characters (warning)
    - No message over 5000 characters (warning)

    Only errors make the result invalid; warnings are advisory.
    """
    issues: list[ValidationIssue] = []

    if len(messages) == 0:
        issues.append(ValidationIssue(
            issue_type='empty',
            description='No messages found',
            severity='error'
        ))

    if len(messages) < MIN_MESSAGES:
        issues.append(ValidationIssue(
            issue_type='too_short',
            description=f'Conversation too short (minimum {MIN_MESSAGES} messages required)',
            severity='error'
        ))

    if any(messages[i].role == messages[i - 1].role for i in range(1, len(messages))):
        issues.append(ValidationIssue(
            issue_type='non_alternating',
            description='Non-alternating conversation detected',
            severity='warning'
        ))

    too_short = [m for m in messages if len(m.content) < SHORT_MESSAGE_LENGTH]
    if len(too_short) > len(messages) * MAX_SHORT_FRACTION:
        issues.append(ValidationIssue(
            issue_type='short_messages',
            description='Many messages are very short',
            severity='warning'
        ))

    if any(len(m.content) > LONG_MESSAGE_LENGTH for m in messages):
        issues.append(ValidationIssue(
            issue_type='long_messages',
            description='Some messages are very long',
            severity='warning'
        ))

    return ValidationResult(
        valid=not any(issue.severity == 'error' for issue in issues),
        issues=issues,
    )


def format_validation_report(result: ValidationResult, messages: list[Message]) -> str:
    """
    Format validation results as a human-readable report.
    """
    lines = []

    lines.append("Conversation Validation Report")
    lines.append("=" * 50)
    lines.append("")
    lines.append(f"Messages: {len(messages)}")
    lines.append(f"  User: {sum(1 for m in messages if m.role == 'user')}")
    lines.append(f"  Assistant: {sum(1 for m in messages if m.role == 'assistant')}")
    lines.append(f"Valid: {'yes' if result.valid else 'no'}")
    lines.append("")

    if not result.issues:
        lines.append("All checks passed!")
        return '\n'.join(lines)

    for severity, label in (('error', 'Errors'), ('warning', 'Warnings')):
        matching = [i for i in result.issues if i.severity == severity]
        if not matching:
            continue
        icon = "!" if severity == 'error' else "~"
        lines.append(f"{icon} {label} ({len(matching)})")
        lines.append("-" * 40)
        for issue in matching:
            lines.append(f"  {issue.description}")
        lines.append("")

    return '\n'.join(lines)
