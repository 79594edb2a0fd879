"""Data models for turnparse."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, NamedTuple, Optional


Role = Literal["user", "assistant", "system"]
Platform = Literal["claude", "chatgpt", "other"]
FormatName = Literal["retry_edit", "standard_labeled", "mixed_format", "unlabeled", "technical"]
Trend = Literal["improving", "declining", "stable"]

ROLES = ("user", "assistant", "system")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A single role-tagged turn of a conversation."""
    role: Role
    content: str
    index: int
    timestamp: datetime = field(default_factory=_now)
    editable: bool = False


@dataclass(frozen=True)
class FormatDetection:
    """How a transcript was recognised, and how sure the parser is about it."""
    format: FormatName
    platform: Platform
    confidence: float
    message_count: int
    detection_method: str
    patterns: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class ValidationIssue:
    """A problem found in a parsed message list."""
    issue_type: Literal["empty", "too_short", "non_alternating", "short_messages", "long_messages"]
    description: str
    severity: Literal["warning", "error"] = "warning"

    @property
    def message(self) -> str:
        if self.severity == 'warning':
            return f"Warning: {self.description}"
        return self.description


@dataclass
class ValidationResult:
    """Outcome of validate_messages; warnings never make it invalid."""
    valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == 'warning']


@dataclass
class ParseResult:
    """Messages produced from a transcript plus the detection that produced them."""
    messages: list[Message]
    format_detection: FormatDetection
    validation: Optional[ValidationResult] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Score:
    """An externally produced score for one message."""
    overall: float
    dimensions: dict[str, float] = field(default_factory=dict)
    classification: Optional[str] = None
    confidence: Optional[float] = None
    index: Optional[int] = None


@dataclass(frozen=True)
class ComputedStats:
    """Aggregate view over a conversation's scores. Always derived, never edited."""
    average_score: float = 0.0
    best_score: float = 0.0
    worst_score: float = 0.0
    total_messages: int = 0
    completed_analysis: int = 0
    dimension_averages: dict[str, float] = field(default_factory=dict)
    trend: Trend = "stable"


class StatsUpdate(NamedTuple):
    """Result of a recompute: the current snapshot and whether it was replaced."""
    stats: ComputedStats
    changed: bool


# =============================================================================
# Plain-data conversion
# =============================================================================

def message_to_dict(message: Message) -> dict:
    return {
        'role': message.role,
        'content': message.content,
        'index': message.index,
        'timestamp': message.timestamp.isoformat(),
        'editable': message.editable,
    }


def message_from_dict(data: dict, index: Optional[int] = None) -> Message:
    """
    Build a Message from a plain dict.

    Missing index falls back to the given position; missing timestamp to now.
    Raises ValueError for an unknown role.
    """
    role = data.get('role', 'user')
    if role not in ROLES:
        raise ValueError(f"Unknown message role: {role!r}")

    timestamp = data.get('timestamp')
    if isinstance(timestamp, str):
        try:
            timestamp = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
        except ValueError:
            timestamp = None
    if not isinstance(timestamp, datetime):
        timestamp = _now()

    return Message(
        role=role,
        content=str(data.get('content', '')),
        index=data.get('index', index if index is not None else 0),
        timestamp=timestamp,
        editable=bool(data.get('editable', False)),
    )


def score_to_dict(score: Score) -> dict:
    return {
        'overall': score.overall,
        'dimensions': dict(score.dimensions),
        'classification': score.classification,
        'confidence': score.confidence,
        'index': score.index,
    }


def score_from_dict(data: dict) -> Score:
    return Score(
        overall=float(data['overall']),
        dimensions={k: float(v) for k, v in (data.get('dimensions') or {}).items()},
        classification=data.get('classification'),
        confidence=data.get('confidence'),
        index=data.get('index'),
    )


def detection_to_dict(detection: FormatDetection) -> dict:
    return {
        'format': detection.format,
        'platform': detection.platform,
        'confidence': detection.confidence,
        'message_count': detection.message_count,
        'detection_method': detection.detection_method,
        'patterns': list(detection.patterns),
        'issues': list(detection.issues),
        'suggestions': list(detection.suggestions),
    }


def stats_to_dict(stats: ComputedStats) -> dict:
    return {
        'average_score': stats.average_score,
        'best_score': stats.best_score,
        'worst_score': stats.worst_score,
        'total_messages': stats.total_messages,
        'completed_analysis': stats.completed_analysis,
        'dimension_averages': dict(stats.dimension_averages),
        'trend': stats.trend,
    }


def parse_result_to_dict(result: ParseResult) -> dict:
    data = {
        'messages': [message_to_dict(m) for m in result.messages],
        'format_detection': detection_to_dict(result.format_detection),
        'metadata': dict(result.metadata),
    }
    if result.validation is not None:
        data['validation'] = {
            'valid': result.validation.valid,
            'errors': result.validation.errors,
        }
    return data
