"""Seating for a single round.

Each round moves through a fixed sequence of stages:

* ``SELECT_TOPICS`` asks the :class:`~unconference.topic_pool.TopicPool`
  which topics play this round.
* ``BUILD_DEMAND`` orders participants by the strength of their best
  remaining preference.
* ``GREEDY_FILL`` seats everybody in that order.
* ``REPAIR_UNDERSIZED`` merges, dissolves or tops up groups below the
  minimum size.
* ``FINALIZE`` splits topics into numbered groups and emits assignments.

The allocator never mutates the cross-round history it is given; the
orchestrator owns that state and updates it from the returned plan.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List, Mapping, Optional, Sequence, Tuple

from .logging import logger
from .models import Assignment, Event, Topic
from .preferences import PreferenceIndex
from .topic_pool import TopicPool


class AllocationStage(str, enum.Enum):
    select_topics = "SELECT_TOPICS"
    build_demand = "BUILD_DEMAND"
    greedy_fill = "GREEDY_FILL"
    repair_undersized = "REPAIR_UNDERSIZED"
    finalize = "FINALIZE"


@dataclass(slots=True, frozen=True)
class GroupBounds:
    minimum: int
    ideal: int
    maximum: int

    @classmethod
    def from_event(cls, event: Event) -> "GroupBounds":
        return cls(event.min_group_size, event.ideal_group_size, event.max_group_size)


def split_group_sizes(count: int, slots: int, bounds: GroupBounds) -> List[int]:
    """Split ``count`` members of one topic into at most ``slots`` groups.

    The number of groups is the smallest count that respects ``maximum`` up to
    ``slots``; counts that keep every group at ``minimum`` or above win, then
    the one whose average is closest to ``ideal``.  The remainder is handed
    out one per group starting from the first.
    """

    if count <= 0:
        return []
    lower = max(1, math.ceil(count / bounds.maximum))
    upper = max(lower, slots)
    options = [groups for groups in range(lower, upper + 1) if count >= groups * bounds.minimum]
    if not options:
        options = [lower]
    groups = min(options, key=lambda n: (abs(count / n - bounds.ideal), n))
    base, remainder = divmod(count, groups)
    return [base + 1 if index < remainder else base for index in range(groups)]


@dataclass
class RoundContext:
    """Cross-round state handed to the allocator for one round."""

    round_number: int
    participant_ids: Sequence[str]
    topic_history: Mapping[str, AbstractSet[str]] = field(default_factory=dict)
    seats_taken: Mapping[str, int] = field(default_factory=dict)

    def history(self, participant_id: str) -> AbstractSet[str]:
        return self.topic_history.get(participant_id, frozenset())

    def seats(self, participant_id: str) -> int:
        return self.seats_taken.get(participant_id, 0)


@dataclass
class RoundPlan:
    round_number: int
    assignments: List[Assignment] = field(default_factory=list)
    group_sizes: List[int] = field(default_factory=list)
    topic_ids: List[str] = field(default_factory=list)
    unseated: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def participants_assigned(self) -> int:
        return len(self.assignments)


@dataclass
class _Table:
    """All seats of one topic in the current round."""

    topic: Topic
    order: int
    slots: int = 1
    members: List[str] = field(default_factory=list)
    closed: bool = False

    def capacity(self, size: int) -> int:
        return self.slots * size

    def load(self) -> float:
        return len(self.members) / self.slots


_Tables = Dict[str, _Table]


class RoundAllocator:
    def __init__(
        self,
        event: Event,
        preferences: PreferenceIndex,
        pool: TopicPool,
        topics: Sequence[Topic],
    ) -> None:
        self._event = event
        self._bounds = GroupBounds.from_event(event)
        self._preferences = preferences
        self._pool = pool
        self._topics = {topic.id: topic for topic in topics}

    @property
    def bounds(self) -> GroupBounds:
        return self._bounds

    def allocate(self, context: RoundContext) -> RoundPlan:
        plan = RoundPlan(round_number=context.round_number)
        tables = self._select_topics(context)
        if not tables:
            logger.debug("Round {} has no topics left to schedule", context.round_number)
            return plan
        order = self._build_demand(context, tables)
        unseated = self._greedy_fill(context, tables, order)
        unseated = self._repair_undersized(context, tables, unseated)
        self._finalize(context, tables, unseated, plan)
        return plan

    # -- stages -----------------------------------------------------------

    def _select_topics(self, context: RoundContext) -> _Tables:
        self._enter(AllocationStage.select_topics, context)
        slots = self._event.discussions_per_round
        selected = self._pool.select(slots, context.participant_ids, context.topic_history)
        tables: _Tables = {
            topic_id: _Table(topic=self._topics[topic_id], order=index)
            for index, topic_id in enumerate(selected)
        }

        # Fewer topics than discussion slots: open extra groups of the
        # selected topics while seats are short.
        ordered = list(tables.values())
        spare = slots - len(ordered)
        needed = len(context.participant_ids)
        index = 0
        while ordered and spare > 0:
            if sum(table.capacity(self._bounds.maximum) for table in ordered) >= needed:
                break
            ordered[index % len(ordered)].slots += 1
            index += 1
            spare -= 1
        return tables

    def _build_demand(self, context: RoundContext, tables: _Tables) -> List[str]:
        self._enter(AllocationStage.build_demand, context)
        ranked: List[Tuple[int, int, str]] = []
        unranked: List[Tuple[int, str]] = []
        for participant_id in context.participant_ids:
            choices = self._remaining_choices(participant_id, context, tables)
            seats = context.seats(participant_id)
            if choices:
                best_rank = self._preferences.rank(participant_id, choices[0])
                ranked.append((best_rank, seats, participant_id))
            else:
                unranked.append((seats, participant_id))
        ranked.sort()
        unranked.sort()
        return [pid for *_, pid in ranked] + [pid for _, pid in unranked]

    def _greedy_fill(self, context: RoundContext, tables: _Tables, order: Sequence[str]) -> List[str]:
        self._enter(AllocationStage.greedy_fill, context)
        unseated: List[str] = []
        for participant_id in order:
            table = self._place(participant_id, context, tables)
            if table is None:
                unseated.append(participant_id)
            else:
                table.members.append(participant_id)
        return unseated

    def _repair_undersized(
        self,
        context: RoundContext,
        tables: _Tables,
        unseated: List[str],
    ) -> List[str]:
        self._enter(AllocationStage.repair_undersized, context)
        attempted: set[str] = set()
        while True:
            undersized = [
                table
                for table in tables.values()
                if not table.closed and self._undersized(table) and table.topic.id not in attempted
            ]
            if not undersized:
                break
            table = min(undersized, key=lambda t: (len(t.members), t.order))
            attempted.add(table.topic.id)
            if self._merge(table, context, tables):
                continue
            if self._dissolve(table, context, tables):
                continue
            if self._top_up(table, context, tables):
                continue
            logger.debug(
                "Round {}: no alternative for undersized topic {}",
                context.round_number,
                table.topic.id,
            )

        remaining: List[str] = []
        for participant_id in unseated:
            table = self._place(participant_id, context, tables)
            if table is None:
                remaining.append(participant_id)
            else:
                table.members.append(participant_id)
        return remaining

    def _finalize(
        self,
        context: RoundContext,
        tables: _Tables,
        unseated: Sequence[str],
        plan: RoundPlan,
    ) -> None:
        self._enter(AllocationStage.finalize, context)
        round_number = context.round_number
        group_number = 0
        for table in tables.values():
            if table.closed or not table.members:
                continue
            cursor = 0
            for size in split_group_sizes(len(table.members), table.slots, self._bounds):
                group_number += 1
                members = table.members[cursor : cursor + size]
                cursor += size
                plan.group_sizes.append(size)
                plan.topic_ids.append(table.topic.id)
                if size < self._bounds.minimum:
                    plan.warnings.append(
                        f"Topic '{table.topic.title}' round {round_number} below minimum "
                        f"group size ({size} < {self._bounds.minimum})"
                    )
                for participant_id in members:
                    plan.assignments.append(
                        Assignment(
                            participant_id=participant_id,
                            event_id=self._event.id,
                            topic_id=table.topic.id,
                            round_number=round_number,
                            group_number=group_number,
                        )
                    )

        for participant_id in unseated:
            plan.unseated.append(participant_id)
            plan.warnings.append(
                f"Round {round_number}: unable to seat participant {participant_id}, "
                "all groups are full"
            )
        self._pool.record(plan.topic_ids)

    # -- repair strategies ------------------------------------------------

    def _merge(self, table: _Table, context: RoundContext, tables: _Tables) -> bool:
        movers = list(table.members)
        targets = [
            other
            for other in tables.values()
            if other is not table
            and not other.closed
            and other.members
            and len(other.members) + len(movers) <= other.capacity(self._bounds.maximum)
            and not any(other.topic.id in context.history(pid) for pid in movers)
        ]
        if not targets:
            return False
        target = min(
            targets,
            key=lambda t: (
                sum(self._preference_cost(pid, t.topic.id) for pid in movers),
                len(t.members),
                t.order,
            ),
        )
        target.members.extend(movers)
        table.members = []
        table.closed = True
        logger.debug(
            "Round {}: merged topic {} into {}",
            context.round_number,
            table.topic.id,
            target.topic.id,
        )
        return True

    def _dissolve(self, table: _Table, context: RoundContext, tables: _Tables) -> bool:
        snapshot = self._snapshot(tables)
        movers = sorted(
            table.members,
            key=lambda pid: (self._best_rank(pid, context, tables, skip=table), context.seats(pid), pid),
        )
        # Movers only join tables that already have members.
        receivers = {
            topic_id: other
            for topic_id, other in tables.items()
            if other is not table and other.members
        }
        table.members = []
        table.closed = True
        for participant_id in movers:
            target = self._place(participant_id, context, receivers)
            if target is None:
                self._restore(tables, snapshot)
                return False
            target.members.append(participant_id)
        logger.debug("Round {}: dissolved topic {}", context.round_number, table.topic.id)
        return True

    def _top_up(self, table: _Table, context: RoundContext, tables: _Tables) -> bool:
        snapshot = self._snapshot(tables)
        topic_id = table.topic.id
        while self._undersized(table):
            best: Optional[Tuple[tuple, _Table, str]] = None
            for donor in tables.values():
                if donor is table or donor.closed:
                    continue
                if len(donor.members) <= donor.capacity(self._bounds.minimum):
                    continue
                for position, participant_id in enumerate(donor.members):
                    if topic_id in context.history(participant_id):
                        continue
                    key = (
                        self._preference_cost(participant_id, topic_id),
                        -donor.load(),
                        donor.order,
                        -position,
                    )
                    if best is None or key < best[0]:
                        best = (key, donor, participant_id)
            if best is None:
                self._restore(tables, snapshot)
                return False
            _, donor, participant_id = best
            donor.members.remove(participant_id)
            table.members.append(participant_id)
        logger.debug("Round {}: topped up topic {}", context.round_number, topic_id)
        return True

    # -- helpers ----------------------------------------------------------

    def _enter(self, stage: AllocationStage, context: RoundContext) -> None:
        logger.debug("Round {} -> {}", context.round_number, stage.value)

    def _undersized(self, table: _Table) -> bool:
        """True when some group of the table would end up below the minimum."""

        sizes = split_group_sizes(len(table.members), table.slots, self._bounds)
        return bool(sizes) and min(sizes) < self._bounds.minimum

    def _remaining_choices(self, participant_id: str, context: RoundContext, tables: _Tables) -> List[str]:
        seen = context.history(participant_id)
        return [
            topic_id
            for topic_id in self._preferences.preferences(participant_id)
            if topic_id in tables and topic_id not in seen
        ]

    def _place(self, participant_id: str, context: RoundContext, tables: _Tables) -> Optional[_Table]:
        """Best open table for a participant: remaining preferences, then the fallback."""

        for topic_id in self._remaining_choices(participant_id, context, tables):
            table = tables[topic_id]
            if not table.closed and len(table.members) < table.capacity(self._bounds.maximum):
                return table
        return self._fallback(participant_id, context, tables)

    def _fallback(self, participant_id: str, context: RoundContext, tables: _Tables) -> Optional[_Table]:
        seen = context.history(participant_id)
        open_tables = [table for table in tables.values() if not table.closed]
        fresh = [table for table in open_tables if table.topic.id not in seen]
        repeated = [table for table in open_tables if table.topic.id in seen]
        for candidates in (fresh, repeated):
            for limit in (self._bounds.ideal, self._bounds.maximum):
                roomy = [table for table in candidates if len(table.members) < table.capacity(limit)]
                if roomy:
                    return min(roomy, key=lambda t: (t.load(), t.order))
        return None

    def _best_rank(
        self,
        participant_id: str,
        context: RoundContext,
        tables: _Tables,
        *,
        skip: Optional[_Table] = None,
    ) -> int:
        ranks = [
            self._preference_cost(participant_id, topic_id)
            for topic_id in self._remaining_choices(participant_id, context, tables)
            if skip is None or topic_id != skip.topic.id
        ]
        return min(ranks, default=self._unranked_cost)

    def _preference_cost(self, participant_id: str, topic_id: str) -> int:
        rank = self._preferences.rank(participant_id, topic_id)
        return self._unranked_cost if rank is None else rank

    @property
    def _unranked_cost(self) -> int:
        return len(self._topics) + 1

    @staticmethod
    def _snapshot(tables: _Tables) -> Dict[str, Tuple[List[str], bool]]:
        return {topic_id: (list(table.members), table.closed) for topic_id, table in tables.items()}

    @staticmethod
    def _restore(tables: _Tables, snapshot: Mapping[str, Tuple[List[str], bool]]) -> None:
        for topic_id, (members, closed) in snapshot.items():
            tables[topic_id].members = list(members)
            tables[topic_id].closed = closed
