"""Data models describing events, participants, topics and assignments."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base for records exchanged with the event data services."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


class ParticipantStatus(str, enum.Enum):
    invited = "invited"
    registered = "registered"
    confirmed = "confirmed"
    checked_in = "checked-in"
    cancelled = "cancelled"


class TopicStatus(str, enum.Enum):
    proposed = "proposed"
    approved = "approved"
    scheduled = "scheduled"
    completed = "completed"
    rejected = "rejected"


class AssignmentMethod(str, enum.Enum):
    manual = "manual"
    automatic = "automatic"
    self_selected = "self-selected"


class AssignmentStatus(str, enum.Enum):
    assigned = "assigned"
    confirmed = "confirmed"
    declined = "declined"
    completed = "completed"


class UserRole(str, enum.Enum):
    admin = "Admin"
    organizer = "Organizer"
    participant = "Participant"


class RoundStatistics(RecordModel):
    round_number: int
    topics_scheduled: int = 0
    participants_assigned: int = 0
    group_sizes: list[int] = Field(default_factory=list)
    average_group_size: float = 0.0


class PreferredChoiceDistribution(RecordModel):
    """How many participants got X of their top N preferred topics (N = rounds)."""

    distribution: dict[int, int] = Field(default_factory=dict)
    total_participants_with_rankings: int = 0


class SortedChoiceDistribution(RecordModel):
    """How many participants got X of the first ``min_topics_to_rank`` topics they ranked."""

    distribution: dict[int, int] = Field(default_factory=dict)
    total_participants_with_rankings: int = 0
    min_topics_to_rank: int


class TopicOccurrence(RecordModel):
    topic_id: str
    topic_title: str
    occurrences: int


class TopicOccurrenceDistribution(RecordModel):
    total_topics_planned: int = 0
    topic_details: list[TopicOccurrence] = Field(default_factory=list)


class AssignmentStatistics(RecordModel):
    total_participants: int
    total_assignments: int
    participants_fully_assigned: int
    participants_partially_assigned: int
    participants_not_assigned: int
    topics_used: int
    average_group_size: float
    round_statistics: list[RoundStatistics] = Field(default_factory=list)
    preferred_choice_distribution: Optional[PreferredChoiceDistribution] = None
    sorted_choice_distribution: Optional[SortedChoiceDistribution] = None
    topic_occurrence_distribution: Optional[TopicOccurrenceDistribution] = None
    generated_at: Optional[datetime] = None


class EventSettings(RecordModel):
    enable_topic_ranking: Optional[bool] = None
    enable_auto_assignment: bool = False
    min_topics_to_rank: Optional[int] = Field(default=None, ge=1)
    last_assignment_statistics: Optional[AssignmentStatistics] = None


class Event(RecordModel):
    """Event configuration relevant to generating assignments."""

    id: str
    name: str = ""
    number_of_rounds: int = Field(ge=1)
    discussions_per_round: int = Field(ge=1)
    ideal_group_size: int = Field(ge=1)
    min_group_size: int = Field(ge=1)
    max_group_size: int = Field(ge=1)
    settings: EventSettings = Field(default_factory=EventSettings)

    @model_validator(mode="after")
    def _check_group_sizes(self) -> "Event":
        if not self.min_group_size <= self.ideal_group_size <= self.max_group_size:
            raise ValueError(
                "Group sizes must follow: minGroupSize <= idealGroupSize <= maxGroupSize"
            )
        return self

    @property
    def min_topics_to_rank(self) -> Optional[int]:
        return self.settings.min_topics_to_rank

    @property
    def enable_auto_assignment(self) -> bool:
        return self.settings.enable_auto_assignment


class Participant(RecordModel):
    id: str
    event_id: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    status: ParticipantStatus = ParticipantStatus.registered


class Topic(RecordModel):
    id: str
    event_id: str
    title: str
    description: Optional[str] = None
    proposed_by: Optional[str] = None
    status: TopicStatus = TopicStatus.proposed


class TopicRanking(RecordModel):
    """A participant's topic ids in order of preference (index 0 = most preferred)."""

    participant_id: str
    event_id: str
    ranked_topic_ids: list[str] = Field(default_factory=list)
    min_topics_at_last_ranking: Optional[int] = None

    @property
    def topic_count(self) -> int:
        return len(self.ranked_topic_ids)


class Assignment(RecordModel):
    participant_id: str
    event_id: str
    topic_id: str
    round_number: int = Field(ge=1)
    group_number: int = Field(ge=1)
    assignment_method: AssignmentMethod = AssignmentMethod.automatic
    status: AssignmentStatus = AssignmentStatus.assigned


class AssignmentInput(RecordModel):
    """Snapshot of everything a generation run reads."""

    event: Event
    participants: list[Participant] = Field(default_factory=list)
    topics: list[Topic] = Field(default_factory=list)
    rankings: list[TopicRanking] = Field(default_factory=list)
    users: Optional[dict[str, UserRole]] = None
    organizer_ids: Optional[set[str]] = None


class AssignmentResult(RecordModel):
    assignments: list[Assignment] = Field(default_factory=list)
    statistics: AssignmentStatistics
    warnings: list[str] = Field(default_factory=list)
    unranked_participant_ids: list[str] = Field(default_factory=list)
