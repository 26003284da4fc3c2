from __future__ import annotations

import random
from collections import Counter

import pydantic
import pytest

from unconference import (
    AssignmentInput,
    AssignmentOrchestrator,
    EventSettings,
    ParticipantStatus,
    TopicStatus,
    UserRole,
    ValidationError,
    generate_assignments,
)
from unconference.config import Settings


def _group_sizes(result) -> Counter:
    return Counter((a.round_number, a.group_number) for a in result.assignments)


def _assert_invariants(event, result) -> None:
    pairs = [(a.participant_id, a.round_number) for a in result.assignments]
    assert len(pairs) == len(set(pairs))

    sizes = _group_sizes(result)
    assert all(0 <= size <= event.max_group_size for size in sizes.values())
    undersized = sum(1 for size in sizes.values() if size < event.min_group_size)
    assert undersized == sum("below minimum group size" in warning for warning in result.warnings)

    stats = result.statistics
    assert sum(r.participants_assigned for r in stats.round_statistics) <= (
        stats.total_participants * event.number_of_rounds
    )
    assert (
        stats.participants_fully_assigned
        + stats.participants_partially_assigned
        + stats.participants_not_assigned
        == stats.total_participants
    )


def test_unranked_participants_fill_balanced_groups(make_event, make_participants, make_topics) -> None:
    event = make_event(
        number_of_rounds=1,
        discussions_per_round=3,
        ideal_group_size=3,
        min_group_size=2,
        max_group_size=4,
    )

    result = generate_assignments(event, make_participants(9), make_topics("t1", "t2", "t3"), [])

    assert result.warnings == []
    assert result.statistics.round_statistics[0].group_sizes == [3, 3, 3]
    assert result.statistics.topics_used == 3
    assert result.statistics.participants_fully_assigned == 9
    _assert_invariants(event, result)


def test_single_topic_below_minimum_is_kept_with_one_warning(
    make_event, make_participants, make_topics
) -> None:
    event = make_event(
        discussions_per_round=1,
        ideal_group_size=6,
        min_group_size=6,
        max_group_size=8,
    )

    result = generate_assignments(event, make_participants(5), make_topics("t1"), [])

    assert len(result.warnings) == 1
    assert "below minimum group size" in result.warnings[0]
    assert len(result.assignments) == 5
    assert {a.group_number for a in result.assignments} == {1}
    _assert_invariants(event, result)


def test_full_ranking_honoured_across_rounds(
    make_event, make_participants, make_topics, make_ranking
) -> None:
    event = make_event(
        number_of_rounds=3,
        discussions_per_round=3,
        ideal_group_size=2,
        min_group_size=1,
        max_group_size=3,
    )
    participants = make_participants(6)
    rankings = [make_ranking("p01", ["t1", "t2", "t3"])]

    result = generate_assignments(event, participants, make_topics("t1", "t2", "t3"), rankings)

    mine = sorted((a.round_number, a.topic_id) for a in result.assignments if a.participant_id == "p01")
    assert mine == [(1, "t1"), (2, "t2"), (3, "t3")]
    preferred = result.statistics.preferred_choice_distribution
    assert preferred.distribution[3] == 1
    assert preferred.total_participants_with_rankings == 1
    _assert_invariants(event, result)


def test_participant_without_ranking_is_still_seated(
    make_event, make_participants, make_topics, make_ranking
) -> None:
    event = make_event(number_of_rounds=2, discussions_per_round=2, min_group_size=1)
    participants = make_participants(4)
    rankings = [
        make_ranking("p01", ["t1", "t2"]),
        make_ranking("p02", ["t2", "t1"]),
        make_ranking("p03", ["t1"]),
    ]

    result = generate_assignments(event, participants, make_topics("t1", "t2"), rankings)

    stats = result.statistics
    assert stats.preferred_choice_distribution.total_participants_with_rankings == 3
    assert stats.sorted_choice_distribution.total_participants_with_rankings == 3
    assert result.unranked_participant_ids == ["p04"]
    assert {a.round_number for a in result.assignments if a.participant_id == "p04"} == {1, 2}
    _assert_invariants(event, result)


def test_topics_are_not_repeated_while_alternatives_exist(
    make_event, make_participants, make_topics
) -> None:
    event = make_event(
        number_of_rounds=3,
        discussions_per_round=3,
        ideal_group_size=3,
        min_group_size=2,
        max_group_size=4,
    )

    result = generate_assignments(event, make_participants(9), make_topics("t1", "t2", "t3"), [])

    topics_by_participant: dict[str, list[str]] = {}
    for assignment in result.assignments:
        topics_by_participant.setdefault(assignment.participant_id, []).append(assignment.topic_id)
    assert all(sorted(topics) == ["t1", "t2", "t3"] for topics in topics_by_participant.values())
    _assert_invariants(event, result)


def test_generation_is_deterministic(make_event, make_participants, make_topics, make_ranking) -> None:
    event = make_event(number_of_rounds=3, discussions_per_round=3, min_group_size=2)
    participants = make_participants(14)
    topics = make_topics("t1", "t2", "t3", "t4", "t5")
    rng = random.Random(7)
    rankings = [
        make_ranking(p.id, rng.sample([t.id for t in topics], k=rng.randint(0, 5)))
        for p in participants
    ]

    first = generate_assignments(event, participants, topics, rankings)
    second = generate_assignments(event, participants, topics, rankings)

    assert first.model_dump() == second.model_dump()


@pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
def test_invariants_hold_for_varied_inputs(
    seed, make_event, make_participants, make_topics, make_ranking
) -> None:
    rng = random.Random(seed)
    minimum = rng.randint(1, 3)
    ideal = minimum + rng.randint(0, 2)
    event = make_event(
        number_of_rounds=rng.randint(1, 4),
        discussions_per_round=rng.randint(1, 4),
        min_group_size=minimum,
        ideal_group_size=ideal,
        max_group_size=ideal + rng.randint(0, 2),
    )
    participants = make_participants(rng.randint(1, 30))
    topics = make_topics(*[f"t{index}" for index in range(1, rng.randint(1, 6) + 1)])
    topic_ids = [t.id for t in topics]
    rankings = [
        make_ranking(p.id, rng.sample(topic_ids, k=rng.randint(0, len(topic_ids))))
        for p in participants
        if rng.random() < 0.8
    ]

    result = generate_assignments(event, participants, topics, rankings)

    _assert_invariants(event, result)
    assert len(result.statistics.round_statistics) == event.number_of_rounds


def test_fewer_topics_than_discussions_warns(make_event, make_participants, make_topics) -> None:
    event = make_event(discussions_per_round=3)

    result = generate_assignments(event, make_participants(6), make_topics("t1", "t2"), [])

    assert result.warnings[0].startswith("Only 2 approved topics available for 3 discussions")


def test_staff_and_inactive_participants_are_excluded(
    make_event, make_participants, make_topics
) -> None:
    event = make_event(discussions_per_round=1, min_group_size=1)
    participants = make_participants(4)
    participants[0] = participants[0].model_copy(update={"user_id": "u-admin"})
    participants[1] = participants[1].model_copy(update={"status": ParticipantStatus.cancelled})

    result = generate_assignments(
        event,
        participants,
        make_topics("t1"),
        [],
        users={"u-admin": UserRole.admin},
        organizer_ids={"p03"},
    )

    assert {a.participant_id for a in result.assignments} == {"p04"}
    assert result.statistics.total_participants == 1


def test_staff_kept_when_exclusion_disabled(make_event, make_participants, make_topics) -> None:
    event = make_event(discussions_per_round=1, min_group_size=1)
    settings = Settings(exclude_staff=False)

    result = generate_assignments(
        event,
        make_participants(2),
        make_topics("t1"),
        [],
        organizer_ids={"p01"},
        settings=settings,
    )

    assert result.statistics.total_participants == 2


def test_unapproved_topics_are_ignored(make_event, make_participants, make_topics) -> None:
    event = make_event(discussions_per_round=1, min_group_size=1)
    topics = make_topics("t1") + make_topics("t2", status=TopicStatus.rejected)

    result = generate_assignments(event, make_participants(3), topics, [])

    assert {a.topic_id for a in result.assignments} == {"t1"}


def test_occurrence_budget_leaves_later_rounds_empty(make_event, make_participants, make_topics) -> None:
    event = make_event(number_of_rounds=2, discussions_per_round=1, min_group_size=1)
    settings = Settings(max_topic_occurrences=1)

    result = generate_assignments(
        event, make_participants(3), make_topics("t1"), [], settings=settings
    )

    assert result.warnings == ["Round 2: No topics scheduled"]
    assert result.statistics.participants_partially_assigned == 3


@pytest.mark.parametrize(
    ("participants", "topics", "message"),
    [
        (0, ("t1",), "no participants"),
        (3, (), "no approved topics"),
    ],
)
def test_missing_input_is_rejected(
    participants, topics, message, make_event, make_participants, make_topics
) -> None:
    with pytest.raises(ValidationError, match=message):
        generate_assignments(make_event(), make_participants(participants), make_topics(*topics), [])


def test_no_active_participants_is_rejected(make_event, make_participants, make_topics) -> None:
    with pytest.raises(ValidationError, match="no active participants"):
        generate_assignments(
            make_event(),
            make_participants(3, status=ParticipantStatus.invited),
            make_topics("t1"),
            [],
        )


def test_no_approved_topics_is_rejected(make_event, make_participants, make_topics) -> None:
    with pytest.raises(ValidationError, match="no approved topics"):
        generate_assignments(
            make_event(),
            make_participants(3),
            make_topics("t1", status=TopicStatus.proposed),
            [],
        )


@pytest.mark.parametrize(
    "overrides",
    [
        {"min_group_size": 4, "ideal_group_size": 3, "max_group_size": 5},
        {"ideal_group_size": 5, "max_group_size": 4},
        {"number_of_rounds": 0},
        {"discussions_per_round": 0},
    ],
)
def test_invalid_event_configuration_is_rejected(overrides, make_event) -> None:
    with pytest.raises(pydantic.ValidationError):
        make_event(**overrides)


def test_input_accepts_camel_case_records() -> None:
    data = AssignmentInput.model_validate(
        {
            "event": {
                "id": "evt-9",
                "numberOfRounds": 1,
                "discussionsPerRound": 1,
                "idealGroupSize": 2,
                "minGroupSize": 1,
                "maxGroupSize": 3,
                "status": "active",
                "settings": {"enableAutoAssignment": True, "minTopicsToRank": 2},
            },
            "participants": [
                {"id": "a", "eventId": "evt-9", "status": "checked-in"},
                {"id": "b", "eventId": "evt-9", "status": "confirmed"},
            ],
            "topics": [{"id": "x", "eventId": "evt-9", "title": "X", "status": "approved"}],
            "rankings": [{"participantId": "a", "eventId": "evt-9", "rankedTopicIds": ["x"]}],
        }
    )

    result = AssignmentOrchestrator(Settings()).generate(data)

    payload = result.model_dump(by_alias=True)
    assert payload["assignments"][0]["assignmentMethod"] == "automatic"
    assert payload["statistics"]["sortedChoiceDistribution"]["minTopicsToRank"] == 2
    assert data.event.settings == EventSettings(enable_auto_assignment=True, min_topics_to_rank=2)


def test_topics_repeat_only_after_every_fresh_topic_is_used(
    make_event, make_participants, make_topics
) -> None:
    event = make_event(
        number_of_rounds=3,
        discussions_per_round=2,
        ideal_group_size=2,
        min_group_size=2,
        max_group_size=2,
    )

    result = generate_assignments(event, make_participants(4), make_topics("t1", "t2"), [])

    assert result.warnings == []
    assert result.statistics.participants_fully_assigned == 4
    by_participant: dict[str, list[str]] = {}
    for assignment in sorted(result.assignments, key=lambda a: a.round_number):
        by_participant.setdefault(assignment.participant_id, []).append(assignment.topic_id)
    for topic_ids in by_participant.values():
        assert len(topic_ids) == 3
        assert set(topic_ids[:2]) == {"t1", "t2"}
        assert topic_ids[2] in topic_ids[:2]
    _assert_invariants(event, result)
