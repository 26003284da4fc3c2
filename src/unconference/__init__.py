"""Discussion group assignment for unconference events."""

from .allocator import GroupBounds, RoundAllocator, RoundContext, RoundPlan, split_group_sizes
from .exceptions import (
    AutoAssignmentDisabledError,
    EventNotFoundError,
    UnconferenceError,
    ValidationError,
)
from .models import (
    Assignment,
    AssignmentInput,
    AssignmentResult,
    AssignmentStatistics,
    Event,
    EventSettings,
    Participant,
    ParticipantStatus,
    Topic,
    TopicRanking,
    TopicStatus,
    UserRole,
)
from .orchestrator import AssignmentOrchestrator, generate_assignments
from .preferences import PreferenceIndex
from .service import AssignmentGenerationService, EventStore
from .statistics import StatisticsCalculator, calculate_statistics
from .topic_pool import TopicPool

__all__ = [
    "Assignment",
    "AssignmentGenerationService",
    "AssignmentInput",
    "AssignmentOrchestrator",
    "AssignmentResult",
    "AssignmentStatistics",
    "AutoAssignmentDisabledError",
    "Event",
    "EventNotFoundError",
    "EventSettings",
    "EventStore",
    "GroupBounds",
    "Participant",
    "ParticipantStatus",
    "PreferenceIndex",
    "RoundAllocator",
    "RoundContext",
    "RoundPlan",
    "StatisticsCalculator",
    "Topic",
    "TopicPool",
    "TopicRanking",
    "TopicStatus",
    "UnconferenceError",
    "UserRole",
    "ValidationError",
    "calculate_statistics",
    "generate_assignments",
    "split_group_sizes",
]
