"""Normalised topic preferences for the participants of one generation run."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .logging import logger
from .models import TopicRanking


class PreferenceIndex:
    """Ordered, eligible-only topic preferences keyed by participant id.

    Rankings may mention topics that are no longer eligible (for example a
    topic rejected after participants ranked it); those entries are dropped
    while the relative order of the rest is kept.  Participants without any
    usable ranking simply have an empty preference list.
    """

    def __init__(
        self,
        rankings: Iterable[TopicRanking],
        topic_ids: Iterable[str],
        *,
        participant_ids: Optional[Iterable[str]] = None,
    ) -> None:
        eligible_topics = set(topic_ids)
        allowed = set(participant_ids) if participant_ids is not None else None

        self._rankings: Dict[str, List[str]] = {}
        self._preferences: Dict[str, List[str]] = {}
        self._ranks: Dict[str, Dict[str, int]] = {}

        for ranking in rankings:
            participant_id = ranking.participant_id
            if allowed is not None and participant_id not in allowed:
                continue
            if participant_id in self._rankings:
                logger.debug("Duplicate ranking for participant {}; keeping the latest", participant_id)
            ranked = list(dict.fromkeys(ranking.ranked_topic_ids))
            preferences = [topic_id for topic_id in ranked if topic_id in eligible_topics]
            self._rankings[participant_id] = ranked
            self._preferences[participant_id] = preferences
            self._ranks[participant_id] = {
                topic_id: position for position, topic_id in enumerate(preferences, start=1)
            }

    def preferences(self, participant_id: str) -> List[str]:
        return list(self._preferences.get(participant_id, ()))

    def ranked_topics(self, participant_id: str) -> List[str]:
        """Raw ranking, including topics that are no longer eligible."""

        return list(self._rankings.get(participant_id, ()))

    def rank(self, participant_id: str, topic_id: str) -> Optional[int]:
        return self._ranks.get(participant_id, {}).get(topic_id)

    def has_preferences(self, participant_id: str) -> bool:
        return bool(self._preferences.get(participant_id))

    def top(self, participant_id: str, count: int) -> List[str]:
        return self._preferences.get(participant_id, [])[: max(count, 0)]

    def unranked(self, participant_ids: Iterable[str]) -> List[str]:
        return [pid for pid in participant_ids if not self.has_preferences(pid)]

    def demand(self, topic_id: str, depth: int) -> int:
        """Number of participants ranking ``topic_id`` within their first ``depth`` choices."""

        return sum(
            1 for ranks in self._ranks.values() if ranks.get(topic_id, depth + 1) <= depth
        )

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._rankings

    def __len__(self) -> int:
        return len(self._rankings)
