"""High level driver running the allocator across every round of an event."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set

from .allocator import RoundAllocator, RoundContext
from .config import Settings, get_settings
from .exceptions import ValidationError
from .logging import logger
from .models import (
    Assignment,
    AssignmentInput,
    AssignmentResult,
    Event,
    Participant,
    Topic,
    TopicRanking,
    TopicStatus,
    UserRole,
)
from .preferences import PreferenceIndex
from .statistics import StatisticsCalculator
from .topic_pool import TopicPool


class AssignmentOrchestrator:
    """Produces a complete seating plan for one event snapshot.

    The orchestrator owns the per-participant history (topics already
    assigned and seats received) and hands it to every round through a
    :class:`RoundContext`.  Nothing is kept between calls.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def generate(self, data: AssignmentInput) -> AssignmentResult:
        event = data.event
        log = logger.bind(event_id=event.id)
        warnings: List[str] = []

        if not data.participants:
            raise ValidationError("Cannot generate assignments: no participants")
        if not data.topics:
            raise ValidationError("Cannot generate assignments: no approved topics")

        participants = self.eligible_participants(data)
        if not participants:
            raise ValidationError(
                "Cannot generate assignments: no active participants "
                "(after filtering admins and organizers)"
            )

        topics = self.eligible_topics(data.topics)
        if not topics:
            raise ValidationError("Cannot generate assignments: no approved topics")

        if len(topics) < event.discussions_per_round:
            warnings.append(
                f"Only {len(topics)} approved topics available for "
                f"{event.discussions_per_round} discussions per round. "
                "Some topics will be repeated."
            )

        participant_ids = [participant.id for participant in participants]
        topic_ids = [topic.id for topic in topics]
        preferences = PreferenceIndex(data.rankings, topic_ids, participant_ids=participant_ids)
        unranked = preferences.unranked(participant_ids)
        if unranked:
            log.info("{} of {} participants have no usable ranking", len(unranked), len(participant_ids))

        pool = TopicPool(
            topic_ids,
            preferences,
            number_of_rounds=event.number_of_rounds,
            demand_depth=self._min_topics_to_rank(event),
            max_occurrences=self.settings.max_topic_occurrences,
        )
        allocator = RoundAllocator(event, preferences, pool, topics)

        history: Dict[str, Set[str]] = {pid: set() for pid in participant_ids}
        seats: Dict[str, int] = {pid: 0 for pid in participant_ids}
        assignments: List[Assignment] = []

        for round_number in range(1, event.number_of_rounds + 1):
            context = RoundContext(
                round_number=round_number,
                participant_ids=participant_ids,
                topic_history=history,
                seats_taken=seats,
            )
            plan = allocator.allocate(context)
            if not plan.topic_ids and not plan.unseated:
                warnings.append(f"Round {round_number}: No topics scheduled")
                continue

            for assignment in plan.assignments:
                history[assignment.participant_id].add(assignment.topic_id)
                seats[assignment.participant_id] += 1
            assignments.extend(plan.assignments)
            warnings.extend(plan.warnings)
            log.debug(
                "Round {} seated {} participants in {} groups",
                round_number,
                plan.participants_assigned,
                len(plan.group_sizes),
            )

        statistics = StatisticsCalculator(
            event,
            participants,
            topics,
            data.rankings,
            default_min_topics_to_rank=self.settings.default_min_topics_to_rank,
        ).calculate(assignments)

        log.info(
            "Generated {} assignments for {} participants across {} rounds",
            len(assignments),
            len(participants),
            event.number_of_rounds,
        )
        for warning in warnings:
            log.warning(warning)

        return AssignmentResult(
            assignments=assignments,
            statistics=statistics,
            warnings=warnings,
            unranked_participant_ids=unranked,
        )

    def eligible_participants(self, data: AssignmentInput) -> List[Participant]:
        active = set(self.settings.active_participant_statuses)
        excluded_roles = set(self.settings.excluded_user_roles)
        organizer_ids = data.organizer_ids or set()
        users: Dict[str, UserRole] = data.users or {}

        eligible: List[Participant] = []
        seen: Set[str] = set()
        for participant in data.participants:
            if participant.status not in active or participant.id in seen:
                continue
            if self.settings.exclude_staff:
                if participant.id in organizer_ids:
                    continue
                if participant.user_id and users.get(participant.user_id) in excluded_roles:
                    continue
            seen.add(participant.id)
            eligible.append(participant)
        return eligible

    @staticmethod
    def eligible_topics(topics: Iterable[Topic]) -> List[Topic]:
        eligible: Dict[str, Topic] = {}
        for topic in topics:
            if topic.status == TopicStatus.approved:
                eligible.setdefault(topic.id, topic)
        return list(eligible.values())

    def _min_topics_to_rank(self, event: Event) -> int:
        return event.min_topics_to_rank or self.settings.default_min_topics_to_rank


def generate_assignments(
    event: Event,
    participants: Iterable[Participant],
    topics: Iterable[Topic],
    rankings: Iterable[TopicRanking],
    *,
    users: Optional[Dict[str, UserRole]] = None,
    organizer_ids: Optional[Iterable[str]] = None,
    settings: Optional[Settings] = None,
) -> AssignmentResult:
    """Shortcut for a one-off run of :class:`AssignmentOrchestrator`."""

    data = AssignmentInput(
        event=event,
        participants=list(participants),
        topics=list(topics),
        rankings=list(rankings),
        users=users,
        organizer_ids=set(organizer_ids) if organizer_ids is not None else None,
    )
    return AssignmentOrchestrator(settings).generate(data)
