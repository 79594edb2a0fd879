"""A conversation under review: messages, their scores, and live statistics."""

import dataclasses
import threading
from typing import Callable, Optional, Sequence

from .models import ROLES, ComputedStats, Message, ParseResult, Score, StatsUpdate
from .stats import DEFAULT_DIMENSIONS, StatsAggregator
from .strategies import clean_content


StatsListener = Callable[[ComputedStats], None]


class Conversation:
    """
    Owns an ordered message list and the scores attached to it.

    Every mutation runs under one lock together with the stats recompute,
    so readers never observe messages and stats out of step. Listeners are
    notified only when the stats snapshot actually changes.
    """

    def __init__(
        self,
        messages: Optional[Sequence[Message]] = None,
        dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
    ):
        self._lock = threading.RLock()
        self._messages: list[Message] = []
        self._scores: list[Score] = []
        self._listeners: list[StatsListener] = []
        self.aggregator = StatsAggregator(dimensions)
        if messages:
            self.set_messages(messages)

    @classmethod
    def from_parse(cls, result: ParseResult, dimensions: Sequence[str] = DEFAULT_DIMENSIONS) -> 'Conversation':
        return cls(result.messages, dimensions)

    @property
    def messages(self) -> list[Message]:
        with self._lock:
            return list(self._messages)

    @property
    def scores(self) -> list[Score]:
        with self._lock:
            return list(self._scores)

    @property
    def stats(self) -> ComputedStats:
        return self.aggregator.snapshot

    def subscribe(self, listener: StatsListener) -> Callable[[], None]:
        """Register a listener for stats changes; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _recompute(self) -> StatsUpdate:
        update = self.aggregator.recompute(self._messages, self._scores)
        if update.changed:
            for listener in list(self._listeners):
                listener(update.stats)
        return update

    def _check_index(self, index: int, items: Sequence) -> None:
        if not 0 <= index < len(items):
            raise IndexError(f"Index {index} out of range for {len(items)} items")

    # -------------------------------------------------------------------------
    # Message mutations
    # -------------------------------------------------------------------------

    def set_messages(self, messages: Sequence[Message]) -> StatsUpdate:
        """Replace all messages; existing scores no longer apply and are cleared."""
        with self._lock:
            self._messages = [
                dataclasses.replace(m, index=i) for i, m in enumerate(messages)
            ]
            self._scores = []
            return self._recompute()

    def add_message(self, message: Message) -> StatsUpdate:
        with self._lock:
            self._messages.append(dataclasses.replace(message, index=len(self._messages)))
            return self._recompute()

    def update_message(self, index: int, **changes) -> StatsUpdate:
        """
        Edit a message in place (content edit, role flip, editable flag).

        Raises:
            IndexError: index is out of range
            ValueError: an unknown role, or an attempt to change the index
        """
        with self._lock:
            self._check_index(index, self._messages)
            if 'index' in changes:
                raise ValueError("Message index is positional and cannot be updated")
            if 'role' in changes and changes['role'] not in ROLES:
                raise ValueError(f"Unknown message role: {changes['role']!r}")
            if 'content' in changes:
                changes['content'] = clean_content(changes['content'])

            self._messages[index] = dataclasses.replace(self._messages[index], **changes)
            return self._recompute()

    def switch_role(self, index: int) -> StatsUpdate:
        """Flip a message between user and assistant."""
        with self._lock:
            self._check_index(index, self._messages)
            role = self._messages[index].role
            return self.update_message(index, role='assistant' if role == 'user' else 'user')

    def remove_message(self, index: int) -> StatsUpdate:
        """Remove a message and its score, re-indexing everything after it."""
        with self._lock:
            self._check_index(index, self._messages)
            del self._messages[index]
            self._messages = [
                dataclasses.replace(m, index=i) for i, m in enumerate(self._messages)
            ]

            kept: list[Score] = []
            for score in self._scores:
                if score.index == index:
                    continue
                if score.index > index:
                    score = dataclasses.replace(score, index=score.index - 1)
                kept.append(score)
            self._scores = kept
            return self._recompute()

    # -------------------------------------------------------------------------
    # Score mutations
    # -------------------------------------------------------------------------

    def set_scores(self, scores: Sequence[Score]) -> StatsUpdate:
        """Replace all scores; scores without an index take their list position."""
        with self._lock:
            self._scores = [
                s if s.index is not None else dataclasses.replace(s, index=i)
                for i, s in enumerate(scores)
            ]
            return self._recompute()

    def add_score(self, score: Score) -> StatsUpdate:
        """Attach a score; without an explicit index it belongs to the next unscored position."""
        with self._lock:
            if score.index is None:
                taken = {s.index for s in self._scores}
                score = dataclasses.replace(score, index=next(i for i in range(len(taken) + 1) if i not in taken))
            self._scores = [s for s in self._scores if s.index != score.index]
            self._scores.append(score)
            self._scores.sort(key=lambda s: s.index)
            return self._recompute()

    def update_score(self, index: int, score: Score) -> StatsUpdate:
        """Replace the score at list position index."""
        with self._lock:
            self._check_index(index, self._scores)
            if score.index is None:
                score = dataclasses.replace(score, index=self._scores[index].index)
            self._scores[index] = score
            return self._recompute()

    def clear(self) -> StatsUpdate:
        with self._lock:
            self._messages = []
            self._scores = []
            return self._recompute()
