"""Tests for stats module."""

import random
import threading

import pytest

from turnparse import stats as stats_module
from turnparse.models import ComputedStats, Score
from turnparse.stats import (
    StatsAggregator,
    calculate_dimension_averages,
    calculate_stats,
    calculate_trend,
)


class TestCalculateTrend:
    """Tests for calculate_trend function."""

    @pytest.mark.parametrize("overalls,expected", [
        ([60, 65, 70], 'improving'),
        ([70, 65, 60], 'declining'),
        ([70, 71, 69], 'stable'),
    ])
    def test_direction(self, make_scores, overalls, expected):
        """Direction follows first vs last of the window."""
        assert calculate_trend(make_scores(*overalls)) == expected

    def test_threshold_is_exclusive(self, make_scores):
        """Moving exactly five points is still stable."""
        assert calculate_trend(make_scores(60, 62, 65)) == 'stable'
        assert calculate_trend(make_scores(65, 62, 60)) == 'stable'

    def test_too_few_scores(self, make_scores):
        """Zero or one score is stable."""
        assert calculate_trend([]) == 'stable'
        assert calculate_trend(make_scores(90)) == 'stable'

    def test_two_scores(self, make_scores):
        """Two scores are enough for a direction."""
        assert calculate_trend(make_scores(50, 80)) == 'improving'

    def test_only_last_three_count(self, make_scores):
        """Older scores fall out of the window."""
        assert calculate_trend(make_scores(95, 60, 65, 70)) == 'improving'

    def test_ordered_by_index(self):
        """Explicit indices define order, not list position."""
        scores = [Score(70, index=2), Score(60, index=0), Score(65, index=1)]
        assert calculate_trend(scores) == 'improving'


class TestDimensionAverages:
    """Tests for calculate_dimension_averages function."""

    def test_empty_has_configured_keys(self):
        """No scores gives zero for every configured dimension."""
        assert calculate_dimension_averages([]) == {
            'strategic': 0.0, 'tactical': 0.0, 'cognitive': 0.0, 'innovation': 0.0,
        }

    def test_mean_per_key(self):
        """Each key averages over the scores that carry it."""
        scores = [
            Score(60, {'strategic': 50, 'tactical': 80}),
            Score(70, {'strategic': 70}),
        ]
        assert calculate_dimension_averages(scores) == {'strategic': 60.0, 'tactical': 80.0}

    def test_order_independent(self, make_scores):
        """Shuffling scores does not change averages."""
        scores = make_scores(40, 55, 70, 85, 100)
        shuffled = list(scores)
        random.Random(7).shuffle(shuffled)

        assert calculate_dimension_averages(shuffled) == calculate_dimension_averages(scores)


class TestCalculateStats:
    """Tests for calculate_stats function."""

    def test_no_scores(self, make_messages):
        """Unscored conversation has zeroed scores but counts messages."""
        stats = calculate_stats(make_messages("first message", "second message"), [])

        assert stats.average_score == 0.0
        assert stats.best_score == 0.0
        assert stats.worst_score == 0.0
        assert stats.completed_analysis == 0
        assert stats.total_messages == 2
        assert stats.trend == 'stable'

    def test_aggregates(self, make_messages, make_scores):
        """Average, best, worst and count reflect the scores."""
        messages = make_messages("a message", "b message", "c message", "d message")
        stats = calculate_stats(messages, make_scores(60, 65, 70))

        assert stats.average_score == 65.0
        assert stats.best_score == 70
        assert stats.worst_score == 60
        assert stats.total_messages == 4
        assert stats.completed_analysis == 3
        assert stats.trend == 'improving'
        assert stats.dimension_averages['strategic'] == 65.0

    def test_pure(self, make_messages, make_scores):
        """Same inputs give equal stats."""
        messages = make_messages("a message", "b message")
        scores = make_scores(50, 75)
        assert calculate_stats(messages, scores) == calculate_stats(messages, scores)


class TestStatsAggregator:
    """Tests for StatsAggregator class."""

    def test_initial_snapshot(self):
        """A new aggregator starts at zero."""
        assert StatsAggregator().snapshot == ComputedStats(
            dimension_averages={'strategic': 0.0, 'tactical': 0.0, 'cognitive': 0.0, 'innovation': 0.0},
        )

    def test_unchanged_recompute_keeps_snapshot(self, make_messages, make_scores):
        """Recomputing identical inputs reports no change and keeps the same object."""
        aggregator = StatsAggregator()
        messages = make_messages("a message", "b message")

        first = aggregator.recompute(messages, make_scores(60, 70))
        second = aggregator.recompute(messages, make_scores(60, 70))

        assert first.changed
        assert not second.changed
        assert second.stats is first.stats
        assert aggregator.snapshot is first.stats

    def test_changed_recompute_replaces_snapshot(self, make_messages, make_scores):
        """A different result replaces the snapshot."""
        aggregator = StatsAggregator()
        messages = make_messages("a message", "b message")

        first = aggregator.recompute(messages, make_scores(60))
        second = aggregator.recompute(messages, make_scores(60, 90))

        assert second.changed
        assert second.stats is not first.stats
        assert aggregator.snapshot.best_score == 90

    def test_custom_dimensions(self):
        """Configured dimensions shape the empty averages."""
        aggregator = StatsAggregator(dimensions=('clarity',))
        assert aggregator.snapshot.dimension_averages == {'clarity': 0.0}

    def test_recompute_holds_lock(self, monkeypatch, make_messages):
        """Computing and replacing the snapshot happen under the aggregator lock."""
        aggregator = StatsAggregator()
        real_calculate = stats_module.calculate_stats
        lock_free = []

        def calculate_checking_lock(*args, **kwargs):
            attempt = []
            other = threading.Thread(target=lambda: attempt.append(aggregator._lock.acquire(blocking=False)))
            other.start()
            other.join()
            lock_free.append(attempt[0])
            return real_calculate(*args, **kwargs)

        monkeypatch.setattr(stats_module, 'calculate_stats', calculate_checking_lock)
        aggregator.recompute(make_messages("a message"), [])

        assert lock_free == [False]

    def test_reordered_scores_are_unchanged(self, make_messages):
        """The same scores in a different order do not replace the snapshot."""
        aggregator = StatsAggregator()
        messages = make_messages("a message", "b message", "c message")
        scores = [
            Score(0.1, {'strategic': 0.1}, index=0),
            Score(0.2, {'strategic': 0.2}, index=1),
            Score(0.3, {'strategic': 0.3}, index=2),
        ]

        first = aggregator.recompute(messages, scores)
        second = aggregator.recompute(messages, list(reversed(scores)))

        assert not second.changed
        assert second.stats is first.stats
