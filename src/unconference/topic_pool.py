"""Occurrence budgets and per-round topic selection."""

from __future__ import annotations

from collections import Counter
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Sequence

from .preferences import PreferenceIndex


class TopicPool:
    """Tracks how often each topic may still be scheduled across the event.

    A topic counts one occurrence per round it is realized in, even when the
    round splits it into several groups.  By default the budget is the number
    of rounds, i.e. bounded only by the rounds that remain.
    """

    def __init__(
        self,
        topic_ids: Sequence[str],
        preferences: PreferenceIndex,
        *,
        number_of_rounds: int,
        demand_depth: int,
        max_occurrences: Optional[int] = None,
    ) -> None:
        self._topic_ids = list(dict.fromkeys(topic_ids))
        self._preferences = preferences
        self._number_of_rounds = number_of_rounds
        limit = number_of_rounds if max_occurrences is None else min(max_occurrences, number_of_rounds)
        self._budget: Dict[str, int] = {topic_id: limit for topic_id in self._topic_ids}
        self._used: Dict[str, int] = {topic_id: 0 for topic_id in self._topic_ids}
        self._aggregate: Dict[str, int] = {
            topic_id: preferences.demand(topic_id, demand_depth) for topic_id in self._topic_ids
        }

    @property
    def topic_ids(self) -> List[str]:
        return list(self._topic_ids)

    def remaining(self, topic_id: str) -> int:
        return self._budget[topic_id] - self._used[topic_id]

    def occurrences(self, topic_id: str) -> int:
        return self._used[topic_id]

    def aggregate_demand(self, topic_id: str) -> int:
        return self._aggregate[topic_id]

    def available(self) -> List[str]:
        return [topic_id for topic_id in self._topic_ids if self.remaining(topic_id) > 0]

    def pending_demand(
        self,
        participant_ids: Iterable[str],
        history: Mapping[str, AbstractSet[str]],
    ) -> Counter:
        """Participants who rank a topic highly and have not been assigned it yet."""

        pending: Counter = Counter()
        for participant_id in participant_ids:
            seen = history.get(participant_id, frozenset())
            for topic_id in self._preferences.top(participant_id, self._number_of_rounds):
                if topic_id not in seen:
                    pending[topic_id] += 1
        return pending

    def select(
        self,
        count: int,
        participant_ids: Iterable[str],
        history: Mapping[str, AbstractSet[str]],
    ) -> List[str]:
        pending = self.pending_demand(participant_ids, history)
        candidates = self.available()
        candidates.sort(
            key=lambda topic_id: (
                -pending[topic_id],
                self._used[topic_id],
                -self._aggregate[topic_id],
                topic_id,
            )
        )
        return candidates[: max(count, 0)]

    def record(self, topic_ids: Iterable[str]) -> None:
        for topic_id in dict.fromkeys(topic_ids):
            if topic_id in self._used:
                self._used[topic_id] += 1
