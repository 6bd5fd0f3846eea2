"""Tests for automated participants: challenge assignment and turn generation."""

import asyncio
import threading
from datetime import timedelta

import pytest

from debate_engine.exceptions import DebateNotFoundError
from debate_engine.models import Debate, DebateCreateRequest, User
from debate_engine.types import AIPersonality, DebateStatus, NotificationType
from matchmaking import TurnResponseResult, build_loads, distribute_challenges
from tests.conftest import START, add_user


def bot(user_id: str, personality=AIPersonality.BALANCED, total_debates=0, delay=None) -> User:
    return User(
        id=user_id,
        username=user_id,
        is_ai=True,
        ai_personality=personality,
        ai_response_delay_seconds=delay,
        total_debates=total_debates,
    )


def challenge(challenge_id: str, challenger_id: str = "human", created_at=START) -> Debate:
    return Debate(id=challenge_id, topic=challenge_id, challenger_id=challenger_id, created_at=created_at)


PREFERENCE = ["BALANCED", "SMART", "ANALYTICAL", "CALM", "WITTY", "AGGRESSIVE"]


@pytest.mark.unit
def test_least_loaded_participant_takes_each_challenge():
    users = [bot("a"), bot("b", total_debates=5), bot("c", total_debates=1)]
    loads = build_loads(users, {"a": 2}, PREFERENCE)
    challenges = [challenge("one"), challenge("two"), challenge("three")]

    plan = distribute_challenges(loads, challenges, 2, START + timedelta(hours=1), 0)

    assert [(a.debate.id, a.participant.id) for a in plan] == [("one", "c"), ("two", "b"), ("three", "c")]


@pytest.mark.unit
def test_per_sweep_cap_and_own_challenges():
    loads = build_loads([bot("a")], {}, PREFERENCE)
    challenges = [challenge("mine", challenger_id="a"), challenge("one"), challenge("two")]

    plan = distribute_challenges(loads, challenges, 1, START + timedelta(hours=1), 0)

    assert [(a.debate.id, a.participant.id) for a in plan] == [("one", "a")]


@pytest.mark.unit
def test_personality_preference_breaks_ties_and_delay_is_respected():
    users = [bot("smart", AIPersonality.SMART), bot("balanced", AIPersonality.BALANCED, delay=7200)]
    loads = build_loads(users, {}, PREFERENCE)

    plan = distribute_challenges(loads, [challenge("one")], 5, START + timedelta(hours=1), 0)
    assert [a.participant.id for a in plan] == ["smart"]

    loads = build_loads(users, {}, PREFERENCE)
    plan = distribute_challenges(loads, [challenge("one")], 5, START + timedelta(hours=3), 0)
    assert [a.participant.id for a in plan] == ["balanced"]


def open_challenge(engine, user, topic="Remote work beats the office"):
    return engine.create_debate(DebateCreateRequest(topic=topic, challenger_id=user.id, total_rounds=3))


def test_sweep_accepts_open_challenge(engine, clock, dispatcher):
    alice = add_user(engine, "alice")
    veteran = add_user(engine, "veteran", is_ai=True, total_debates=3)
    rookie = add_user(engine, "rookie", is_ai=True)
    debate = open_challenge(engine, alice)
    clock.advance(minutes=1)

    summary = asyncio.run(engine.sweep_ai_tasks())

    assert summary.advanced == 1
    accepted = engine.db.get_debate(debate.id)
    assert accepted.status == DebateStatus.ACTIVE
    assert accepted.opponent_id == rookie.id
    assert accepted.round_deadline == clock() + timedelta(seconds=accepted.round_duration_seconds)
    assert veteran.id not in accepted.side_ids
    assert dispatcher.names == [f"turn:{debate.id}"]
    notices = engine.db.list_notifications(user_id=alice.id, notification_type=NotificationType.DEBATE_ACCEPTED)
    assert "rookie" in notices[0].message


def test_sweep_skips_when_disabled(engine, clock):
    alice = add_user(engine, "alice")
    add_user(engine, "bot", is_ai=True)
    debate = open_challenge(engine, alice)
    engine.config.matchmaking.auto_accept_enabled = False
    clock.advance(minutes=1)

    assert engine.assignment.auto_accept_open_challenges().processed == 0
    assert engine.db.get_debate(debate.id).status == DebateStatus.WAITING


def test_automated_side_answers_on_its_turn(engine, clock, dispatcher, responder):
    alice = add_user(engine, "alice")
    machine = add_user(engine, "machine", is_ai=True)
    debate = open_challenge(engine, alice)
    clock.advance(minutes=1)
    engine.assignment.auto_accept_open_challenges()

    assert asyncio.run(engine.assignment.generate_turn_response(debate.id)) == TurnResponseResult.NOT_AI_TURN

    asyncio.run(engine.turns.submit_argument(debate.id, alice.id, "Commutes waste hours every week."))
    asyncio.run(dispatcher.run_all())

    # The automated side answers round 1, then opens round 2 as the side that went second
    fresh = engine.db.get_debate(debate.id)
    assert fresh.current_round == 2
    assert responder.calls == [(machine.id, 1), (machine.id, 2)]
    rounds = [(s.author_id, s.round) for s in engine.db.get_statements(debate.id)]
    assert rounds == [(alice.id, 1), (machine.id, 1), (machine.id, 2)]
    assert engine.db.get_user(machine.id).total_statements == 2

    assert asyncio.run(engine.assignment.generate_turn_response(debate.id)) == TurnResponseResult.NOT_AI_TURN


def test_failed_generation_is_reported(engine, clock, responder):
    alice = add_user(engine, "alice")
    add_user(engine, "machine", is_ai=True)
    debate = open_challenge(engine, alice)
    clock.advance(minutes=1)
    engine.assignment.auto_accept_open_challenges()
    asyncio.run(engine.turns.submit_argument(debate.id, alice.id, "Offices build culture."))
    responder.fail = True

    summary = asyncio.run(engine.assignment.sweep_ai_turns())

    assert summary.processed == 1
    assert summary.errors == [{"id": debate.id, "error": "generation failed"}]
    assert len(engine.db.get_statements(debate.id)) == 1


def test_turn_response_for_missing_or_finished_debates(engine):
    with pytest.raises(DebateNotFoundError):
        asyncio.run(engine.assignment.generate_turn_response("missing"))

    alice = add_user(engine, "alice")
    debate = open_challenge(engine, alice)
    assert asyncio.run(engine.assignment.generate_turn_response(debate.id)) == TurnResponseResult.INACTIVE


@pytest.mark.slow
def test_overlapping_sweeps_accept_each_challenge_once(engine, clock, dispatcher):
    alice = add_user(engine, "alice")
    bots = [add_user(engine, f"bot{i}", is_ai=True) for i in range(2)]
    debates = [open_challenge(engine, alice, topic=f"Topic {i}") for i in range(4)]
    clock.advance(minutes=1)

    barrier = threading.Barrier(2)
    summaries = []

    def worker():
        barrier.wait()
        summaries.append(engine.assignment.auto_accept_open_challenges())

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(s.advanced for s in summaries) == 4
    assert all(s.errors == [] for s in summaries)
    for debate in debates:
        accepted = engine.db.get_debate(debate.id)
        assert accepted.status == DebateStatus.ACTIVE
        assert accepted.opponent_id in {b.id for b in bots}
        assert dispatcher.history.count(f"turn:{debate.id}") == 1
