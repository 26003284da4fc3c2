"""Generation workflow on top of caller-supplied event storage."""

from __future__ import annotations

import threading
import weakref
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol, Sequence

from .exceptions import AutoAssignmentDisabledError, EventNotFoundError
from .logging import logger
from .models import (
    Assignment,
    AssignmentInput,
    AssignmentResult,
    AssignmentStatistics,
    Event,
    Participant,
    Topic,
    TopicRanking,
    UserRole,
)
from .orchestrator import AssignmentOrchestrator


class EventStore(Protocol):
    """Persistence operations the generation workflow relies on."""

    def get_event(self, event_id: str) -> Optional[Event]: ...

    def list_participants(self, event_id: str) -> Sequence[Participant]: ...

    def list_topics(self, event_id: str) -> Sequence[Topic]: ...

    def list_rankings(self, event_id: str) -> Sequence[TopicRanking]: ...

    def replace_assignments(self, event_id: str, assignments: Sequence[Assignment]) -> None: ...

    def save_statistics(self, event_id: str, statistics: AssignmentStatistics) -> None: ...


class AssignmentGenerationService:
    """Runs generation for stored events, one run per event at a time."""

    def __init__(
        self,
        store: EventStore,
        orchestrator: Optional[AssignmentOrchestrator] = None,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator or AssignmentOrchestrator()
        # Entries disappear once no run holds the lock.
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, event_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = self._locks[event_id] = threading.Lock()
            return lock

    def generate(
        self,
        event_id: str,
        *,
        users: Optional[dict[str, UserRole]] = None,
        organizer_ids: Optional[Iterable[str]] = None,
    ) -> AssignmentResult:
        with self._lock_for(event_id):
            event = self.store.get_event(event_id)
            if event is None:
                raise EventNotFoundError(f"Event {event_id} not found")
            if not event.enable_auto_assignment:
                raise AutoAssignmentDisabledError(
                    f"Automatic assignment is not enabled for event {event_id}"
                )

            data = AssignmentInput(
                event=event,
                participants=list(self.store.list_participants(event_id)),
                topics=list(self.store.list_topics(event_id)),
                rankings=list(self.store.list_rankings(event_id)),
                users=users,
                organizer_ids=set(organizer_ids) if organizer_ids is not None else None,
            )
            result = self.orchestrator.generate(data)

            self.store.replace_assignments(event_id, result.assignments)
            statistics = result.statistics.model_copy(
                update={"generated_at": datetime.now(timezone.utc)}
            )
            self.store.save_statistics(event_id, statistics)

            logger.bind(event_id=event_id).info(
                "Stored {} assignments with {} warnings",
                len(result.assignments),
                len(result.warnings),
            )
            return result.model_copy(update={"statistics": statistics})
