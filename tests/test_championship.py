"""Tests for Championship tournaments: position groups and score-based round 1."""

from datetime import datetime, timezone

import pytest

from debate_engine.exceptions import InvalidStateError, InvalidSubmissionError
from debate_engine.types import Decision, Position
from tests.conftest import add_user
from tests.test_tournaments import play_round
from tournaments import (
    ParticipantStatus,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentStatus,
    championship,
)
from tournaments.championship import RoundOneResult

REGISTERED = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.mark.unit
@pytest.mark.parametrize("players, expected", [(4, 2), (6, 2), (8, 3), (16, 4)])
def test_total_rounds(players, expected):
    assert championship.total_rounds(players) == expected


def result(user_id, position, score, won=False, differential=0.0, elo=1200, seed=None):
    return RoundOneResult(
        user_id=user_id,
        position=position,
        score=score,
        differential=differential,
        won=won,
        elo_at_start=elo,
        registered_at=REGISTERED,
        seed=seed,
    )


@pytest.mark.unit
def test_equal_scores_fall_back_to_match_result_then_margin_then_rating():
    ranked = championship.rank(
        [
            result("no-verdict", Position.FOR, None, won=True),
            result("lost", Position.FOR, 70.0),
            result("won-small", Position.FOR, 70.0, won=True, differential=5.0),
            result("won-big", Position.FOR, 70.0, won=True, differential=10.0),
            result("rated", Position.FOR, 70.0, won=True, differential=10.0, elo=1400),
            result("top", Position.FOR, 90.0),
        ]
    )
    assert [r.user_id for r in ranked] == ["top", "rated", "won-big", "won-small", "lost", "no-verdict"]


@pytest.mark.unit
def test_select_advancers_takes_top_half_of_each_position():
    advancing, eliminated = championship.select_advancers(
        [
            result("f1", Position.FOR, 60.0),
            result("f2", Position.FOR, 80.0),
            result("a1", Position.AGAINST, 75.0),
            result("a2", Position.AGAINST, None),
        ]
    )
    assert advancing == ["f2", "a1"]
    assert sorted(eliminated) == ["a2", "f1"]


def championship_tournament(engine, players: int = 8):
    """Seed k is rated 1600 - 50k; odd seeds argue FOR, even seeds AGAINST."""
    tournament = engine.tournaments.create_tournament(
        TournamentCreateRequest(
            name="Championship", format=TournamentFormat.CHAMPIONSHIP, max_participants=players, debate_rounds=1
        )
    )
    users = [add_user(engine, f"speaker{seed}", elo=1600 - 50 * seed) for seed in range(1, players + 1)]
    for seed, user in enumerate(users, start=1):
        position = Position.FOR if seed % 2 else Position.AGAINST
        engine.tournaments.register_participant(tournament.id, user.id, position)
    return tournament, users


@pytest.mark.integration
def test_round_one_advances_on_score_not_match_wins(engine, dispatcher, judge_script):
    tournament, users = championship_tournament(engine)
    u1, u2, u3, u4, u5, u6, u7, u8 = users

    started = engine.tournaments.start_tournament(tournament.id)
    assert started.total_rounds == 3
    first_round = engine.tournament_db.get_matches(tournament.id, 1)
    assert [(m.participant1_id, m.participant2_id) for m in first_round] == [
        (u1.id, u2.id),
        (u3.id, u4.id),
        (u5.id, u6.id),
        (u7.id, u8.id),
    ]
    opening = engine.db.get_debate(first_round[0].debate_id)
    assert opening.challenger_id == u1.id
    assert opening.challenger_position == Position.FOR

    # Challenger scores 80/55/70 and opponent 60/75/70 for a win, a loss and a tie
    judge_script.debate_decisions = {
        first_round[0].debate_id: Decision.CHALLENGER_WINS,
        first_round[1].debate_id: Decision.OPPONENT_WINS,
        first_round[2].debate_id: Decision.TIE,
        first_round[3].debate_id: Decision.CHALLENGER_WINS,
    }
    play_round(engine, dispatcher, tournament.id)
    summary = engine.sweep_tournaments()
    assert (summary.advanced, summary.errors) == (1, [])

    matches = engine.tournament_db.get_matches(tournament.id, 1)
    assert matches[2].winner_id == u5.id  # tie goes to the better seed

    participants = {p.user_id: p for p in engine.tournament_db.get_tournament_participants(tournament.id)}
    for user in (u3, u5, u2, u8):
        assert participants[user.id].status == ParticipantStatus.ELIMINATED
        assert participants[user.id].elimination_reason == championship.ELIMINATION_REASON
    # Lost the match but outscored the other AGAINST players
    assert participants[u6.id].status == ParticipantStatus.ACTIVE
    assert participants[u6.id].losses == 1

    second_round = engine.tournament_db.get_matches(tournament.id, 2)
    assert [(m.participant1_id, m.participant2_id) for m in second_round] == [(u1.id, u4.id), (u7.id, u6.id)]

    judge_script.debate_decisions = {}
    play_round(engine, dispatcher, tournament.id)
    assert engine.sweep_tournaments().advanced == 1
    play_round(engine, dispatcher, tournament.id)
    assert engine.sweep_tournaments().completed == 1

    finished = engine.tournaments.get_tournament(tournament.id)
    assert finished.status == TournamentStatus.COMPLETED
    assert finished.winner_id == u1.id


def test_registration_needs_a_position_with_room(engine):
    tournament = engine.tournaments.create_tournament(
        TournamentCreateRequest(name="Small", format=TournamentFormat.CHAMPIONSHIP, max_participants=4)
    )
    alice, bob, carol, dave = (add_user(engine, name) for name in ("alice", "bob", "carol", "dave"))

    with pytest.raises(InvalidSubmissionError):
        engine.tournaments.register_participant(tournament.id, alice.id)

    registered = engine.tournaments.register_participant(tournament.id, alice.id, Position.FOR)
    assert registered.selected_position == Position.FOR
    engine.tournaments.register_participant(tournament.id, bob.id, Position.FOR)
    with pytest.raises(InvalidStateError):
        engine.tournaments.register_participant(tournament.id, carol.id, Position.FOR)

    engine.tournaments.register_participant(tournament.id, carol.id, Position.AGAINST)
    with pytest.raises(InvalidStateError):
        engine.tournaments.start_tournament(tournament.id)

    engine.tournaments.register_participant(tournament.id, dave.id, Position.AGAINST)
    stored = {p.user_id: p.selected_position for p in engine.tournament_db.get_tournament_participants(tournament.id)}
    assert stored == {
        alice.id: Position.FOR,
        bob.id: Position.FOR,
        carol.id: Position.AGAINST,
        dave.id: Position.AGAINST,
    }
    assert engine.tournaments.start_tournament(tournament.id).total_rounds == 2


def test_capacity_must_split_into_positions(engine):
    for capacity in (2, 5):
        with pytest.raises(InvalidSubmissionError):
            engine.tournaments.create_tournament(
                TournamentCreateRequest(name="Odd", format=TournamentFormat.CHAMPIONSHIP, max_participants=capacity)
            )


def test_other_formats_ignore_positions(engine):
    tournament = engine.tournaments.create_tournament(TournamentCreateRequest(name="Open"))
    alice = add_user(engine, "alice")
    registered = engine.tournaments.register_participant(tournament.id, alice.id, Position.AGAINST)
    assert registered.selected_position is None
