"""Tests for single-elimination tournament progression."""

import asyncio
import threading

import pytest

from debate_engine.exceptions import InvalidStateError, InvalidSubmissionError, TournamentNotFoundError
from debate_engine.types import DebateStatus, Decision, NotificationType
from tests.conftest import add_user
from tournaments import (
    MatchStatus,
    ParticipantStatus,
    ReseedMethod,
    TournamentCreateRequest,
    TournamentStatus,
    bracket_order,
)


def create_tournament(engine, players: int, **kwargs):
    """Create a tournament and register ``players`` users; seed k is rated 1600 - 50k."""
    tournament = engine.tournaments.create_tournament(
        TournamentCreateRequest(name=kwargs.pop("name", "Spring Open"), debate_rounds=1, **kwargs)
    )
    users = [add_user(engine, f"player{seed}", elo=1600 - 50 * seed) for seed in range(1, players + 1)]
    for user in users:
        engine.tournaments.register_participant(tournament.id, user.id)
    return tournament, users


def play_round(engine, dispatcher, tournament_id: str) -> None:
    """Both sides argue every running match debate, then verdicts are generated."""
    tournament = engine.tournaments.get_tournament(tournament_id)
    for match in engine.tournament_db.get_matches(tournament_id, tournament.current_round):
        if match.status != MatchStatus.IN_PROGRESS:
            continue
        debate = engine.db.get_debate(match.debate_id)
        for _ in range(debate.total_rounds):
            for user_id in debate.side_ids:
                asyncio.run(engine.turns.submit_argument(debate.id, user_id, "A round of argument."))
    asyncio.run(dispatcher.run_all())


@pytest.mark.unit
def test_bracket_order():
    assert bracket_order(2) == [1, 2]
    assert bracket_order(4) == [1, 4, 2, 3]
    assert bracket_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]


@pytest.mark.integration
def test_sixteen_player_bracket_crowns_top_seed(engine, dispatcher, prizes):
    tournament, users = create_tournament(engine, 16, prize_pool=500.0)
    started = engine.tournaments.start_tournament(tournament.id)

    assert started.status == TournamentStatus.IN_PROGRESS
    assert started.total_rounds == 4
    first_round = engine.tournament_db.get_matches(tournament.id, 1)
    assert len(first_round) == 8
    assert all(m.status == MatchStatus.IN_PROGRESS and m.debate_id for m in first_round)
    assert (first_round[0].participant1_id, first_round[0].participant2_id) == (users[0].id, users[15].id)
    assert (first_round[1].participant1_id, first_round[1].participant2_id) == (users[7].id, users[8].id)

    for round_number in range(1, 5):
        play_round(engine, dispatcher, tournament.id)
        summary = engine.sweep_tournaments()
        assert summary.errors == []
        if round_number < 4:
            assert summary.advanced == 1
            assert len(engine.tournament_db.get_matches(tournament.id, round_number + 1)) == 8 // 2**round_number

    final = engine.tournaments.get_tournament(tournament.id)
    assert final.status == TournamentStatus.COMPLETED
    assert final.winner_id == users[0].id
    assert final.prizes_distributed
    assert prizes.paid == [tournament.id]

    final_match = engine.tournament_db.get_matches(tournament.id, 4)[0]
    assert {final_match.participant1_id, final_match.participant2_id} == {users[0].id, users[1].id}

    participants = {p.user_id: p for p in engine.tournament_db.get_tournament_participants(tournament.id)}
    assert participants[users[0].id].status == ParticipantStatus.CHAMPION
    assert participants[users[0].id].wins == 4
    assert participants[users[1].id].elimination_reason == "Lost in the final"
    assert participants[users[15].id].eliminated_in_round == 1
    won = engine.db.list_notifications(user_id=users[0].id, notification_type=NotificationType.TOURNAMENT_WON)
    assert won[0].title == "Tournament Victory!"

    assert engine.sweep_tournaments().processed == 0


def test_top_seeds_receive_byes(engine):
    tournament, users = create_tournament(engine, 6)
    started = engine.tournaments.start_tournament(tournament.id)

    assert started.total_rounds == 3
    matches = engine.tournament_db.get_matches(tournament.id, 1)
    byes = [m for m in matches if m.status == MatchStatus.BYE]
    assert sorted(m.winner_id for m in byes) == sorted([users[0].id, users[1].id])
    assert all(m.debate_id is None for m in byes)
    assert len([m for m in matches if m.status == MatchStatus.IN_PROGRESS]) == 2


def test_elo_reseed_reorders_winners(engine, dispatcher, judge_script):
    tournament, users = create_tournament(
        engine, 8, reseed_method=ReseedMethod.ELO_BASED, reseed_after_round=True
    )
    engine.tournaments.start_tournament(tournament.id)

    judge_script.decision = Decision.OPPONENT_WINS
    play_round(engine, dispatcher, tournament.id)
    engine.sweep_tournaments()

    second_round = engine.tournament_db.get_matches(tournament.id, 2)
    pairs = [(m.participant1_id, m.participant2_id) for m in second_round]
    assert pairs == [(users[4].id, users[5].id), (users[6].id, users[7].id)]


def test_without_reseed_bracket_order_is_kept(engine, dispatcher, judge_script):
    tournament, users = create_tournament(engine, 8)
    engine.tournaments.start_tournament(tournament.id)

    judge_script.decision = Decision.OPPONENT_WINS
    play_round(engine, dispatcher, tournament.id)
    engine.sweep_tournaments()

    second_round = engine.tournament_db.get_matches(tournament.id, 2)
    pairs = [(m.participant1_id, m.participant2_id) for m in second_round]
    assert pairs == [(users[7].id, users[4].id), (users[6].id, users[5].id)]


def test_tied_match_goes_to_better_seed(engine, dispatcher, judge_script):
    tournament, users = create_tournament(engine, 2)
    engine.tournaments.start_tournament(tournament.id)
    judge_script.decision = Decision.TIE

    play_round(engine, dispatcher, tournament.id)
    summary = engine.sweep_tournaments()

    assert summary.completed == 1
    assert engine.tournaments.get_tournament(tournament.id).winner_id == users[0].id


def test_cancelled_match_debate_advances_better_seed(engine, clock):
    tournament, users = create_tournament(engine, 2)
    engine.tournaments.start_tournament(tournament.id)
    match = engine.tournament_db.get_matches(tournament.id, 1)[0]

    clock.advance(days=1, seconds=1)
    engine.sweep_expired()
    assert engine.db.get_debate(match.debate_id).status == DebateStatus.CANCELLED

    engine.sweep_tournaments()
    assert engine.tournaments.get_tournament(tournament.id).winner_id == users[0].id


def test_pending_appeal_holds_the_match(engine, dispatcher, judge_script):
    tournament, users = create_tournament(engine, 2)
    engine.tournaments.start_tournament(tournament.id)
    play_round(engine, dispatcher, tournament.id)

    match = engine.tournament_db.get_matches(tournament.id, 1)[0]
    engine.appeals.file_appeal(match.debate_id, users[1].id)
    assert engine.sweep_tournaments().completed == 0

    judge_script.decision = Decision.OPPONENT_WINS
    asyncio.run(dispatcher.run_all())
    engine.sweep_tournaments()

    assert engine.tournaments.get_tournament(tournament.id).winner_id == users[1].id


def test_failed_prize_payout_is_retried(engine, dispatcher, prizes):
    tournament, _ = create_tournament(engine, 2)
    engine.tournaments.start_tournament(tournament.id)
    prizes.fail = True
    play_round(engine, dispatcher, tournament.id)

    assert engine.sweep_tournaments().completed == 1
    assert not engine.tournaments.get_tournament(tournament.id).prizes_distributed

    retry = engine.sweep_tournaments()
    assert retry.errors == [{"id": tournament.id, "error": "prize distribution failed"}]

    prizes.fail = False
    assert engine.sweep_tournaments().completed == 1
    assert engine.tournaments.get_tournament(tournament.id).prizes_distributed
    assert engine.sweep_tournaments().processed == 0


def test_registration_rules(engine):
    tournament = engine.tournaments.create_tournament(TournamentCreateRequest(name="Tiny", max_participants=2))
    alice, bob, carol = (add_user(engine, name) for name in ("alice", "bob", "carol"))

    engine.tournaments.register_participant(tournament.id, alice.id)
    with pytest.raises(InvalidStateError):
        engine.tournaments.register_participant(tournament.id, alice.id)
    with pytest.raises(InvalidStateError):
        engine.tournaments.start_tournament(tournament.id)
    with pytest.raises(InvalidSubmissionError):
        engine.tournaments.register_participant(tournament.id, "nobody")

    engine.tournaments.register_participant(tournament.id, bob.id)
    with pytest.raises(InvalidStateError):
        engine.tournaments.register_participant(tournament.id, carol.id)

    engine.tournaments.start_tournament(tournament.id)
    with pytest.raises(InvalidStateError):
        engine.tournaments.start_tournament(tournament.id)
    with pytest.raises(TournamentNotFoundError):
        engine.tournaments.get_tournament("missing")


def play_match(engine, dispatcher, match) -> None:
    debate = engine.db.get_debate(match.debate_id)
    for _ in range(debate.total_rounds):
        for user_id in debate.side_ids:
            asyncio.run(engine.turns.submit_argument(debate.id, user_id, "A round of argument."))
    asyncio.run(dispatcher.run_all())


def test_unresolved_match_holds_the_round(engine, dispatcher):
    tournament, _ = create_tournament(engine, 4)
    engine.tournaments.start_tournament(tournament.id)
    first, second = engine.tournament_db.get_matches(tournament.id, 1)
    play_match(engine, dispatcher, first)

    for _ in range(3):
        summary = engine.sweep_tournaments()
        assert (summary.advanced, summary.completed, summary.errors) == (0, 0, [])

    assert engine.tournaments.get_tournament(tournament.id).current_round == 1
    assert engine.tournament_db.get_matches(tournament.id, 2) == []
    matches = engine.tournament_db.get_matches(tournament.id, 1)
    assert [m.status for m in matches] == [MatchStatus.COMPLETED, MatchStatus.IN_PROGRESS]
    assert matches[1].debate_id == second.debate_id


def test_sweep_before_next_round_resolves_changes_nothing(engine, dispatcher):
    tournament, users = create_tournament(engine, 4)
    engine.tournaments.start_tournament(tournament.id)
    play_round(engine, dispatcher, tournament.id)
    assert engine.sweep_tournaments().advanced == 1

    before_matches = engine.tournament_db.get_matches(tournament.id, 2)
    before_participants = engine.tournament_db.get_tournament_participants(tournament.id)
    notifications = len(engine.db.list_notifications())

    summary = engine.sweep_tournaments()

    assert (summary.advanced, summary.completed, summary.cancelled) == (0, 0, 0)
    assert engine.tournaments.get_tournament(tournament.id).current_round == 2
    assert engine.tournament_db.get_matches(tournament.id, 2) == before_matches
    assert engine.tournament_db.get_tournament_participants(tournament.id) == before_participants
    assert len(engine.db.list_notifications()) == notifications
    assert engine.tournament_db.get_matches(tournament.id, 3) == []


@pytest.mark.slow
def test_overlapping_sweeps_advance_the_round_once(engine, dispatcher):
    tournament, users = create_tournament(engine, 4)
    engine.tournaments.start_tournament(tournament.id)
    play_round(engine, dispatcher, tournament.id)

    barrier = threading.Barrier(3)
    summaries = []

    def worker():
        barrier.wait()
        summaries.append(engine.tournaments.sweep_tournaments())

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(s.advanced for s in summaries) == 1
    assert all(s.errors == [] for s in summaries)
    assert engine.tournaments.get_tournament(tournament.id).current_round == 2
    final = engine.tournament_db.get_matches(tournament.id, 2)
    assert len(final) == 1
    assert final[0].debate_id is not None
    assert dispatcher.history.count(f"turn:{final[0].debate_id}") == 1
    losers = [p for p in engine.tournament_db.get_tournament_participants(tournament.id) if p.losses]
    assert len(losers) == 2
    assert all(p.losses == 1 for p in losers)
