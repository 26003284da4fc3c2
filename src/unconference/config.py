from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ParticipantStatus, UserRole


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="UNCONFERENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    active_participant_statuses: list[ParticipantStatus] = Field(
        default_factory=lambda: [
            ParticipantStatus.registered,
            ParticipantStatus.confirmed,
            ParticipantStatus.checked_in,
        ]
    )
    exclude_staff: bool = True
    excluded_user_roles: list[UserRole] = Field(
        default_factory=lambda: [UserRole.admin, UserRole.organizer]
    )
    default_min_topics_to_rank: int = Field(default=6, ge=1)
    max_topic_occurrences: Optional[int] = Field(default=None, ge=1)
    log_file: Optional[str] = None
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
