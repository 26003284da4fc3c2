"""Quality statistics for a generated set of assignments."""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .models import (
    Assignment,
    AssignmentStatistics,
    Event,
    Participant,
    PreferredChoiceDistribution,
    RoundStatistics,
    SortedChoiceDistribution,
    Topic,
    TopicOccurrence,
    TopicOccurrenceDistribution,
    TopicRanking,
)
from .preferences import PreferenceIndex

UNKNOWN_TOPIC_TITLE = "Unknown Topic"


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values) if values else 0.0


class StatisticsCalculator:
    """Derives :class:`AssignmentStatistics` from assignments and preferences.

    The calculation has no side effects, so it can be re-run on stored
    assignments as well as on the output of a fresh generation.
    """

    def __init__(
        self,
        event: Event,
        participants: Iterable[Participant],
        topics: Iterable[Topic],
        rankings: Iterable[TopicRanking],
        *,
        default_min_topics_to_rank: int = 6,
    ) -> None:
        self._event = event
        self._participants = list(participants)
        self._topics = list(topics)
        participant_ids = [participant.id for participant in self._participants]
        self._preferences = PreferenceIndex(
            rankings,
            [topic.id for topic in self._topics],
            participant_ids=participant_ids,
        )
        self._min_topics_to_rank = event.min_topics_to_rank or default_min_topics_to_rank

    def calculate(self, assignments: Sequence[Assignment]) -> AssignmentStatistics:
        seats = Counter(assignment.participant_id for assignment in assignments)
        rounds = self._event.number_of_rounds
        fully = partially = not_assigned = 0
        for participant in self._participants:
            count = seats.get(participant.id, 0)
            if count >= rounds:
                fully += 1
            elif count > 0:
                partially += 1
            else:
                not_assigned += 1

        groups = self._group_sizes(assignments)
        assigned_topics = self._assigned_topics(assignments)

        return AssignmentStatistics(
            total_participants=len(self._participants),
            total_assignments=len(assignments),
            participants_fully_assigned=fully,
            participants_partially_assigned=partially,
            participants_not_assigned=not_assigned,
            topics_used=len({assignment.topic_id for assignment in assignments}),
            average_group_size=_mean(list(groups.values())),
            round_statistics=self._round_statistics(assignments, groups),
            preferred_choice_distribution=self._preferred_choice_distribution(assigned_topics),
            sorted_choice_distribution=self._sorted_choice_distribution(assigned_topics),
            topic_occurrence_distribution=self._topic_occurrence_distribution(assignments),
        )

    @staticmethod
    def _group_sizes(assignments: Iterable[Assignment]) -> Dict[Tuple[int, int], int]:
        sizes: Counter = Counter()
        for assignment in assignments:
            sizes[(assignment.round_number, assignment.group_number)] += 1
        return dict(sorted(sizes.items()))

    @staticmethod
    def _assigned_topics(assignments: Iterable[Assignment]) -> Dict[str, List[str]]:
        topics: Dict[str, List[str]] = defaultdict(list)
        for assignment in assignments:
            topics[assignment.participant_id].append(assignment.topic_id)
        return topics

    def _round_statistics(
        self,
        assignments: Sequence[Assignment],
        groups: Dict[Tuple[int, int], int],
    ) -> List[RoundStatistics]:
        topics_by_round: Dict[int, Set[str]] = defaultdict(set)
        seated_by_round: Counter = Counter()
        for assignment in assignments:
            topics_by_round[assignment.round_number].add(assignment.topic_id)
            seated_by_round[assignment.round_number] += 1

        result = []
        for round_number in range(1, self._event.number_of_rounds + 1):
            sizes = [size for (rnd, _), size in groups.items() if rnd == round_number]
            result.append(
                RoundStatistics(
                    round_number=round_number,
                    topics_scheduled=len(topics_by_round.get(round_number, ())),
                    participants_assigned=seated_by_round.get(round_number, 0),
                    group_sizes=sizes,
                    average_group_size=_mean(sizes),
                )
            )
        return result

    def _empty_distribution(self) -> Dict[int, int]:
        return {count: 0 for count in range(self._event.number_of_rounds + 1)}

    def _preferred_choice_distribution(
        self, assigned_topics: Dict[str, List[str]]
    ) -> PreferredChoiceDistribution:
        distribution = self._empty_distribution()
        with_rankings = 0
        for participant in self._participants:
            if not self._preferences.has_preferences(participant.id):
                continue
            with_rankings += 1
            top = set(self._preferences.top(participant.id, self._event.number_of_rounds))
            matches = sum(1 for topic_id in assigned_topics.get(participant.id, ()) if topic_id in top)
            distribution[matches] = distribution.get(matches, 0) + 1
        return PreferredChoiceDistribution(
            distribution=distribution,
            total_participants_with_rankings=with_rankings,
        )

    def _sorted_choice_distribution(
        self, assigned_topics: Dict[str, List[str]]
    ) -> SortedChoiceDistribution:
        distribution = self._empty_distribution()
        with_rankings = 0
        for participant in self._participants:
            ranked = self._preferences.ranked_topics(participant.id)
            if not ranked:
                continue
            with_rankings += 1
            considered = set(ranked[: self._min_topics_to_rank])
            matches = sum(
                1 for topic_id in assigned_topics.get(participant.id, ()) if topic_id in considered
            )
            distribution[matches] = distribution.get(matches, 0) + 1
        return SortedChoiceDistribution(
            distribution=distribution,
            total_participants_with_rankings=with_rankings,
            min_topics_to_rank=self._min_topics_to_rank,
        )

    def _topic_occurrence_distribution(
        self, assignments: Iterable[Assignment]
    ) -> TopicOccurrenceDistribution:
        titles = {topic.id: topic.title for topic in self._topics}
        sessions: Dict[str, Set[Tuple[int, int]]] = defaultdict(set)
        for assignment in assignments:
            sessions[assignment.topic_id].add((assignment.round_number, assignment.group_number))

        details = sorted(
            (
                TopicOccurrence(
                    topic_id=topic_id,
                    topic_title=titles.get(topic_id, UNKNOWN_TOPIC_TITLE),
                    occurrences=len(groups),
                )
                for topic_id, groups in sessions.items()
            ),
            key=lambda detail: (-detail.occurrences, detail.topic_id),
        )
        return TopicOccurrenceDistribution(
            total_topics_planned=sum(detail.occurrences for detail in details),
            topic_details=details,
        )


def calculate_statistics(
    event: Event,
    participants: Iterable[Participant],
    topics: Iterable[Topic],
    rankings: Iterable[TopicRanking],
    assignments: Sequence[Assignment],
    *,
    default_min_topics_to_rank: int = 6,
) -> AssignmentStatistics:
    return StatisticsCalculator(
        event,
        participants,
        topics,
        rankings,
        default_min_topics_to_rank=default_min_topics_to_rank,
    ).calculate(assignments)
