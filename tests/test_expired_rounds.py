"""Tests for the expired-round sweep."""

import asyncio
from datetime import timedelta

from debate_engine.models import DebateCreateRequest
from debate_engine.types import ChallengeType, DebateStatus, NotificationType
from tests.conftest import add_user, start_debate


def submit(engine, debate_id, author):
    return asyncio.run(engine.turns.submit_argument(debate_id, author.id, "My argument stands on evidence."))


def test_round_one_without_submissions_cancels(engine, clock):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob)

    clock.advance(days=1, seconds=1)
    summary = engine.sweep_expired()

    assert summary.cancelled == 1
    assert engine.db.get_debate(debate.id).status == DebateStatus.CANCELLED
    cancelled = engine.db.list_notifications(debate_id=debate.id, notification_type=NotificationType.DEBATE_CANCELLED)
    assert {n.user_id for n in cancelled} == {alice.id, bob.id}


def test_missing_side_gets_placeholder_and_round_advances(engine, clock):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob, total_rounds=5)
    submit(engine, debate.id, alice)

    now = clock.advance(days=1, seconds=1)
    summary = engine.sweep_expired()

    assert summary.advanced == 1
    fresh = engine.db.get_debate(debate.id)
    assert fresh.current_round == 2
    assert fresh.round_deadline == now + timedelta(seconds=fresh.round_duration_seconds)

    placeholders = [s for s in engine.db.get_statements(debate.id) if s.is_placeholder]
    assert [(s.author_id, s.round) for s in placeholders] == [(bob.id, 1)]
    assert placeholders[0].content == engine.config.rules.expired_submission_text
    expired = engine.db.list_notifications(user_id=bob.id, notification_type=NotificationType.ROUND_EXPIRED)
    assert len(expired) == 1


def test_missed_round_at_halfway_completes_debate(engine, clock, dispatcher):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob, total_rounds=4)
    submit(engine, debate.id, alice)
    submit(engine, debate.id, bob)
    submit(engine, debate.id, alice)

    clock.advance(days=1, seconds=1)
    summary = engine.sweep_expired()

    assert summary.completed == 1
    assert engine.db.get_debate(debate.id).status == DebateStatus.COMPLETED
    assert dispatcher.names == [f"verdict:{debate.id}"]


def test_sweep_is_idempotent(engine, clock):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob, total_rounds=5)
    submit(engine, debate.id, alice)

    clock.advance(days=1, seconds=1)
    first = engine.sweep_expired()
    second = engine.sweep_expired()

    assert first.advanced == 1
    assert second.processed == 0
    assert engine.db.get_debate(debate.id).current_round == 2
    assert len(engine.db.get_statements(debate.id)) == 2


def test_rounds_before_deadline_are_untouched(engine, clock):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob)

    clock.advance(hours=23)
    summary = engine.sweep_expired()

    assert summary.processed == 0
    assert engine.db.get_debate(debate.id).status == DebateStatus.ACTIVE


def test_stale_challenges_are_cancelled(engine, clock):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    open_challenge = engine.create_debate(DebateCreateRequest(topic="Open topic", challenger_id=alice.id))
    direct = engine.create_debate(
        DebateCreateRequest(
            topic="Direct topic",
            challenger_id=alice.id,
            challenge_type=ChallengeType.DIRECT,
            opponent_id=bob.id,
        )
    )

    clock.advance(days=1, seconds=1)
    summary = engine.sweep_expired()
    assert summary.cancelled == 1
    assert engine.db.get_debate(direct.id).status == DebateStatus.CANCELLED
    assert engine.db.get_debate(open_challenge.id).status == DebateStatus.WAITING

    clock.advance(days=7)
    assert engine.sweep_expired().cancelled == 1
    assert engine.db.get_debate(open_challenge.id).status == DebateStatus.CANCELLED
