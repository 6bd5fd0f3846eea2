"""Tests for King of the Hill group rounds."""

import asyncio

import pytest

from debate_engine.types import ChallengeType, DebateStatus
from tests.conftest import add_user
from tournaments import (
    ParticipantStatus,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentStatus,
    king_of_the_hill,
)


@pytest.mark.unit
@pytest.mark.parametrize("players, expected", [(2, 1), (3, 1), (4, 1), (8, 2), (12, 3)])
def test_elimination_count(players, expected):
    assert king_of_the_hill.elimination_count(players) == expected


@pytest.mark.unit
@pytest.mark.parametrize("players, expected", [(2, 1), (3, 2), (5, 3), (8, 5)])
def test_total_rounds(players, expected):
    assert king_of_the_hill.total_rounds(players) == expected


@pytest.mark.unit
def test_split_standings():
    assert king_of_the_hill.split_standings(["a", "b", "c", "d", "e"]) == (["a", "b", "c"], ["d", "e"])
    assert king_of_the_hill.split_standings(["a", "b"]) == (["a", "b"], [])
    assert king_of_the_hill.split_standings(["a"]) == (["a"], [])


def hill(engine, players: int):
    tournament = engine.tournaments.create_tournament(
        TournamentCreateRequest(name="Hill", format=TournamentFormat.KING_OF_THE_HILL)
    )
    users = [add_user(engine, f"climber{seed}", elo=1600 - 50 * seed) for seed in range(1, players + 1)]
    for user in users:
        engine.tournaments.register_participant(tournament.id, user.id)
    return engine.tournaments.start_tournament(tournament.id), users


def group_debate(engine, tournament_id):
    tournament = engine.tournaments.get_tournament(tournament_id)
    match = engine.tournament_db.get_matches(tournament_id, tournament.current_round)[0]
    return engine.db.get_debate(match.debate_id)


def submit(engine, debate_id, user):
    return asyncio.run(engine.turns.submit_argument(debate_id, user.id, f"{user.username} holds the hill."))


@pytest.mark.integration
def test_hill_run_to_champion(engine, clock, dispatcher, judge_script):
    tournament, users = hill(engine, 5)
    p1, p2, p3, p4, p5 = users
    judge_script.group_scores = {p1.id: 90.0, p2.id: 80.0, p3.id: 70.0, p4.id: 60.0}

    assert tournament.total_rounds == 3
    first = group_debate(engine, tournament.id)
    assert first.challenge_type == ChallengeType.GROUP
    assert first.challenger_id == p1.id

    # Round 1: the fifth player never submits
    for user in (p1, p2, p3, p4):
        submit(engine, first.id, user)
    clock.advance(days=1, seconds=1)
    assert engine.sweep_expired().completed == 1
    asyncio.run(dispatcher.run_all())

    scores = [s for s in engine.db.get_verdict_scores(first.id) if s.user_id == p5.id]
    assert scores and all(s.score == 0.0 and s.reasoning == "No submission" for s in scores)

    assert engine.sweep_tournaments().advanced == 1
    participants = {p.user_id: p for p in engine.tournament_db.get_tournament_participants(tournament.id)}
    assert participants[p5.id].elimination_reason == "No submission"
    assert participants[p4.id].status == ParticipantStatus.ELIMINATED
    assert participants[p3.id].status == ParticipantStatus.ACTIVE

    # Round 2: three submit, the lowest goes out and two reach the final
    second = group_debate(engine, tournament.id)
    for user in (p3, p1, p2):
        submit(engine, second.id, user)
    asyncio.run(dispatcher.run_all())
    assert engine.db.get_debate(second.id).status == DebateStatus.VERDICT_READY
    assert engine.sweep_tournaments().advanced == 1

    final = group_debate(engine, tournament.id)
    assert final.challenge_type == ChallengeType.TOURNAMENT
    assert (final.challenger_id, final.opponent_id) == (p1.id, p2.id)
    assert final.total_rounds == king_of_the_hill.FINAL_DEBATE_ROUNDS
    for _ in range(final.total_rounds):
        submit(engine, final.id, p1)
        submit(engine, final.id, p2)
    asyncio.run(dispatcher.run_all())

    assert engine.sweep_tournaments().completed == 1
    finished = engine.tournaments.get_tournament(tournament.id)
    assert finished.status == TournamentStatus.COMPLETED
    assert finished.winner_id == p1.id

    participants = {p.user_id: p for p in engine.tournament_db.get_tournament_participants(tournament.id)}
    assert participants[p2.id].elimination_reason == "Lost in the final"
    champion = participants[p1.id]
    assert champion.status == ParticipantStatus.CHAMPION
    # Own 270 + 270 + 240, plus everything the eliminated players scored
    assert champion.cumulative_score == pytest.approx(780.0 + 660.0 + 420.0 + 180.0)


def test_round_without_submissions_cancels_the_hill(engine, clock, dispatcher):
    tournament, users = hill(engine, 3)
    debate = group_debate(engine, tournament.id)

    clock.advance(days=1, seconds=1)
    engine.sweep_expired()
    asyncio.run(dispatcher.run_all())
    summary = engine.sweep_tournaments()

    assert summary.cancelled == 1
    assert engine.db.get_debate(debate.id).winner_id is None
    assert engine.tournaments.get_tournament(tournament.id).status == TournamentStatus.CANCELLED
    participants = engine.tournament_db.get_tournament_participants(tournament.id)
    assert {p.elimination_reason for p in participants} == {"No submission"}
