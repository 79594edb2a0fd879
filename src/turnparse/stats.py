"""Aggregate statistics over scored messages."""

import math
import threading
from typing import Sequence

from .models import ComputedStats, Message, Score, StatsUpdate, Trend


DEFAULT_DIMENSIONS = ('strategic', 'tactical', 'cognitive', 'innovation')

# Trend looks at this many most recent scores
TREND_WINDOW = 3
# Points the last score must move past the first in the window
TREND_THRESHOLD = 5.0


def _ordered(scores: Sequence[Score]) -> list[Score]:
    """Scores in message order: by explicit index when every score has one, else list order."""
    if scores and all(s.index is not None for s in scores):
        return sorted(scores, key=lambda s: s.index)
    return list(scores)


def calculate_trend(
    scores: Sequence[Score],
    window: int = TREND_WINDOW,
    threshold: float = TREND_THRESHOLD,
) -> Trend:
    """
    Classify recent score movement.

    Compares the first and last overall score of the trailing window;
    fewer than two scores is always stable.
    """
    if len(scores) < 2:
        return 'stable'

    recent = _ordered(scores)[-window:]
    diff = recent[-1].overall - recent[0].overall
    if diff > threshold:
        return 'improving'
    if diff < -threshold:
        return 'declining'
    return 'stable'


def calculate_dimension_averages(
    scores: Sequence[Score],
    dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
) -> dict[str, float]:
    """Mean per dimension key, each over the scores that carry that key."""
    if not scores:
        return {key: 0.0 for key in dimensions}

    values: dict[str, list[float]] = {}
    for score in scores:
        for key, value in score.dimensions.items():
            values.setdefault(key, []).append(value)

    # Independent of score order
    return {key: math.fsum(v) / len(v) for key, v in values.items()}


def calculate_stats(
    messages: Sequence[Message],
    scores: Sequence[Score],
    dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
    window: int = TREND_WINDOW,
    threshold: float = TREND_THRESHOLD,
) -> ComputedStats:
    """
    Compute aggregate statistics from the current messages and scores.

    Pure function of its inputs. With no scores every numeric score field is
    zero and the trend is stable; total_messages always counts the messages.
    """
    if not scores:
        return ComputedStats(
            total_messages=len(messages),
            dimension_averages=calculate_dimension_averages([], dimensions),
        )

    overall = [s.overall for s in scores]
    return ComputedStats(
        average_score=math.fsum(overall) / len(overall),
        best_score=max(overall),
        worst_score=min(overall),
        total_messages=len(messages),
        completed_analysis=len(scores),
        dimension_averages=calculate_dimension_averages(scores, dimensions),
        trend=calculate_trend(scores, window, threshold),
    )


class StatsAggregator:
    """
    Holds the current ComputedStats snapshot for one conversation.

    recompute() replaces the snapshot only when the new value differs from
    the cached one, so an unchanged result keeps the same object and
    reports changed=False.
    """

    def __init__(
        self,
        dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
        window: int = TREND_WINDOW,
        threshold: float = TREND_THRESHOLD,
    ):
        self.dimensions = tuple(dimensions)
        self.window = window
        self.threshold = threshold
        self._lock = threading.RLock()
        self._snapshot = calculate_stats([], [], self.dimensions, window, threshold)

    @property
    def snapshot(self) -> ComputedStats:
        with self._lock:
            return self._snapshot

    def recompute(self, messages: Sequence[Message], scores: Sequence[Score]) -> StatsUpdate:
        with self._lock:
            new_stats = calculate_stats(messages, scores, self.dimensions, self.window, self.threshold)
            if new_stats == self._snapshot:
                return StatsUpdate(self._snapshot, False)
            self._snapshot = new_stats
            return StatsUpdate(new_stats, True)

