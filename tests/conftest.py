from __future__ import annotations

from typing import Callable, Sequence

import pytest

from unconference import (
    Event,
    EventSettings,
    Participant,
    Topic,
    TopicRanking,
    TopicStatus,
)

EVENT_ID = "evt-1"


@pytest.fixture
def make_event() -> Callable[..., Event]:
    def factory(**overrides) -> Event:
        values = {
            "id": EVENT_ID,
            "name": "Open Space Spring",
            "number_of_rounds": 1,
            "discussions_per_round": 3,
            "ideal_group_size": 3,
            "min_group_size": 2,
            "max_group_size": 4,
            "settings": EventSettings(enable_auto_assignment=True),
        }
        values.update(overrides)
        return Event(**values)

    return factory


@pytest.fixture
def make_participants() -> Callable[..., list[Participant]]:
    def factory(count: int, **fields) -> list[Participant]:
        return [
            Participant(id=f"p{index:02d}", event_id=EVENT_ID, **fields)
            for index in range(1, count + 1)
        ]

    return factory


@pytest.fixture
def make_topics() -> Callable[..., list[Topic]]:
    def factory(*topic_ids: str, status: TopicStatus = TopicStatus.approved) -> list[Topic]:
        return [
            Topic(id=topic_id, event_id=EVENT_ID, title=f"Topic {topic_id}", status=status)
            for topic_id in topic_ids
        ]

    return factory


@pytest.fixture
def make_ranking() -> Callable[[str, Sequence[str]], TopicRanking]:
    def factory(participant_id: str, topic_ids: Sequence[str]) -> TopicRanking:
        return TopicRanking(
            participant_id=participant_id,
            event_id=EVENT_ID,
            ranked_topic_ids=list(topic_ids),
        )

    return factory
