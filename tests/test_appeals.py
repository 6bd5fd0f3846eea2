"""Tests for filing and resolving verdict appeals."""

import asyncio

import pytest

from debate_engine.exceptions import AppealError, InvalidStateError, InvalidSubmissionError, NotParticipantError
from debate_engine.types import AppealStatus, DebateStatus, Decision, NotificationType
from tests.conftest import add_user, start_debate


def judged_debate(engine, dispatcher):
    """A one-round debate the panel awarded to the challenger."""
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob, total_rounds=1)
    for user in (alice, bob):
        asyncio.run(engine.turns.submit_argument(debate.id, user.id, f"{user.username} argues well."))
    asyncio.run(dispatcher.run_all())
    return engine.db.get_debate(debate.id), alice, bob


def test_overturned_appeal_swaps_ratings(engine, dispatcher, judge_script):
    debate, alice, bob = judged_debate(engine, dispatcher)
    first_panel = {v.judge_id for v in engine.db.get_verdicts(debate.id)}
    assert engine.db.get_user(alice.id).elo_rating == 1216

    appealed = engine.appeals.file_appeal(debate.id, bob.id, "The judges ignored my rebuttal")
    assert appealed.status == DebateStatus.APPEALED
    assert appealed.appeal_status == AppealStatus.PENDING
    assert dispatcher.names == [f"appeal:{debate.id}"]

    judge_script.decision = Decision.OPPONENT_WINS
    asyncio.run(dispatcher.run_all())

    resolved = engine.db.get_debate(debate.id)
    assert resolved.appeal_status == AppealStatus.RESOLVED
    assert resolved.winner_id == bob.id
    assert resolved.original_winner_id == alice.id
    assert resolved.rated_round == 1

    appeal_votes = engine.db.get_verdicts(debate.id, appeal_round=1)
    assert len(appeal_votes) == 3
    assert not first_panel & {v.judge_id for v in appeal_votes}
    assert len(engine.db.get_verdicts(debate.id, appeal_round=0)) == 3

    challenger = engine.db.get_user(alice.id)
    opponent = engine.db.get_user(bob.id)
    assert (challenger.elo_rating, challenger.debates_won, challenger.debates_lost) == (1184, 0, 1)
    assert (opponent.elo_rating, opponent.debates_won, opponent.debates_lost) == (1216, 1, 0)
    assert challenger.total_debates == 1

    notices = engine.db.list_notifications(debate_id=debate.id, notification_type=NotificationType.APPEAL_RESOLVED)
    assert {n.user_id for n in notices} == {alice.id, bob.id}
    assert "overturned" in notices[0].message


def test_upheld_appeal_keeps_ratings(engine, dispatcher):
    debate, alice, bob = judged_debate(engine, dispatcher)

    engine.appeals.file_appeal(debate.id, bob.id)
    asyncio.run(dispatcher.run_all())

    resolved = engine.db.get_debate(debate.id)
    assert resolved.appeal_status == AppealStatus.RESOLVED
    assert resolved.winner_id == alice.id
    assert engine.db.get_user(alice.id).elo_rating == 1216


def test_appeal_with_only_failed_judges_is_denied(engine, dispatcher, judge_script):
    debate, alice, bob = judged_debate(engine, dispatcher)

    engine.appeals.file_appeal(debate.id, bob.id)
    judge_script.failing = {j.name for j in engine.db.list_judges()}
    asyncio.run(dispatcher.run_all())

    denied = engine.db.get_debate(debate.id)
    assert denied.appeal_status == AppealStatus.DENIED
    assert denied.winner_id == alice.id
    assert engine.db.get_user(bob.id).elo_rating == 1184


def test_appeal_rules(engine, dispatcher, clock):
    debate, alice, bob = judged_debate(engine, dispatcher)
    carol = add_user(engine, "carol")

    with pytest.raises(AppealError):
        engine.appeals.file_appeal(debate.id, alice.id)
    with pytest.raises(NotParticipantError):
        engine.appeals.file_appeal(debate.id, carol.id)
    with pytest.raises(InvalidSubmissionError):
        engine.appeals.file_appeal(debate.id, bob.id, statement_ids=["not-a-statement"])

    engine.appeals.file_appeal(debate.id, bob.id)
    with pytest.raises(AppealError):
        engine.appeals.file_appeal(debate.id, bob.id)

    asyncio.run(dispatcher.run_all())
    clock.advance(hours=engine.config.judging.appeal_window_hours, seconds=1)
    with pytest.raises(AppealError):
        engine.appeals.file_appeal(debate.id, bob.id)


def test_appeal_requires_a_verdict(engine):
    alice = add_user(engine, "alice")
    bob = add_user(engine, "bob")
    debate = start_debate(engine, alice, bob)

    with pytest.raises(InvalidStateError):
        engine.appeals.file_appeal(debate.id, bob.id)


def test_pending_appeal_sweep_redispatches(engine, dispatcher):
    debate, _, bob = judged_debate(engine, dispatcher)
    engine.appeals.file_appeal(debate.id, bob.id)
    dispatcher.clear()

    summary = engine.sweep_verdicts()

    assert summary.processed == 1
    assert dispatcher.names == [f"appeal:{debate.id}"]
    asyncio.run(dispatcher.run_all())
    assert engine.db.get_debate(debate.id).appeal_status == AppealStatus.RESOLVED
