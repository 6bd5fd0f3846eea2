"""Tournament management and bracket progression."""

import logging
import math
import random
import sqlite3
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

from config.settings import TournamentConfig
from debate_engine.exceptions import ArenaError, InvalidStateError, InvalidSubmissionError, TournamentNotFoundError
from debate_engine.models import Debate, Participant, SweepSummary, Verdict
from debate_engine.notifications import NotificationEmitter
from debate_engine.tasks import TaskDispatcher
from debate_engine.types import AppealStatus, ChallengeType, DebateStatus, NotificationType, Position
from debate_engine.utils import new_id, utc_now
from judges.consensus import VerdictConsensusEngine
from . import championship, king_of_the_hill
from .database import TournamentDatabaseManager
from .models import (
    BracketData,
    MatchStatus,
    ParticipantStatus,
    ReseedMethod,
    Tournament,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentMatch,
    TournamentParticipant,
    TournamentStatus,
)
from .prizes import LoggingPrizeDistributor, PrizeDistributor

logger = logging.getLogger(__name__)

# Default debate topics for tournament matches
DEFAULT_TOPICS = [
    "Technology companies should be broken up to prevent monopolies",
    "Universal basic income should be implemented globally",
    "Space exploration deserves more public funding than it receives",
    "Artificial intelligence development should be regulated by government",
    "Nuclear energy is essential for achieving carbon neutrality",
    "Social media platforms should be treated as public utilities",
    "Remote work improves society more than it harms it",
    "Genetic engineering should be used to enhance human capabilities",
    "Autonomous vehicles should be mandated once they are safer than human drivers",
    "Privacy is more important than security in digital systems",
    "Economic growth is compatible with environmental sustainability",
    "Standardized testing should be abolished in schools",
    "Scientific research funded by the public should be open access",
    "Cities should ban private cars from their centres",
    "Healthcare should be a human right regardless of cost",
    "Competition drives human progress more than cooperation",
    "Individual freedom should never be sacrificed for the collective good",
    "Globalization benefits developing countries more than developed ones",
    "Meritocracy is achievable in modern society",
    "Cultural diversity strengthens rather than weakens society",
]


def bracket_order(size: int) -> list[int]:
    """Seed positions of a power-of-two bracket, so adjacent matches meet next.

    ``bracket_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]``: seed i meets seed
    size + 1 - i, and the top two seeds can only meet in the final.
    """
    order = [1]
    while len(order) < size:
        mirror = 2 * len(order) + 1
        order = [seed for top in order for seed in (top, mirror - top)]
    return order


class TournamentManager:
    """Manages tournament creation, progression, and bracket generation."""

    def __init__(
        self,
        db: TournamentDatabaseManager,
        consensus: VerdictConsensusEngine,
        notifier: NotificationEmitter,
        dispatcher: TaskDispatcher,
        config: TournamentConfig,
        prize_distributor: PrizeDistributor | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.consensus = consensus
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.config = config
        self.prize_distributor = prize_distributor or LoggingPrizeDistributor()
        self.rng = rng or random.Random()
        self.clock = clock
        # Wired by the engine to start automated turns in newly created match debates
        self.on_match_started: Callable[[str], Awaitable[Any]] | None = None

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def create_tournament(self, request: TournamentCreateRequest) -> Tournament:
        """Create an UPCOMING tournament open for registration."""
        logger.info(f"Creating tournament: {request.name} ({request.format.value})")
        if request.format == TournamentFormat.CHAMPIONSHIP and (
            request.max_participants < 2 * championship.MIN_PER_POSITION or request.max_participants % 2
        ):
            raise InvalidSubmissionError("Championship tournaments need an even capacity of at least 4")
        tournament = Tournament(
            id=new_id(),
            name=request.name,
            format=request.format,
            status=TournamentStatus.UPCOMING,
            max_participants=request.max_participants,
            total_rounds=self._calculate_rounds(request.format, request.max_participants),
            reseed_method=request.reseed_method or ReseedMethod(self.config.default_reseed_method),
            reseed_after_round=request.reseed_after_round,
            debate_rounds=request.debate_rounds or self.config.debate_rounds,
            round_duration_seconds=request.round_duration_seconds or self.config.round_duration_seconds,
            prize_pool=request.prize_pool,
            start_date=request.start_date,
            created_at=self.clock(),
        )
        return self.db.create_tournament(tournament)

    def register_participant(
        self, tournament_id: str, user_id: str, position: Position | None = None
    ) -> TournamentParticipant:
        """Register a user; Championship tournaments also need the position they will argue."""
        tournament = self.get_tournament(tournament_id)
        if tournament.status != TournamentStatus.UPCOMING:
            raise InvalidStateError(tournament_id, TournamentStatus.UPCOMING, tournament.status)
        if self.db.get_user(user_id) is None:
            raise InvalidSubmissionError(f"User {user_id} does not exist")

        position_capacity = None
        if tournament.format == TournamentFormat.CHAMPIONSHIP:
            if position is None:
                raise InvalidSubmissionError("Championship registration requires a FOR or AGAINST position")
            position_capacity = tournament.max_participants // 2
        else:
            position = None

        participant = TournamentParticipant(
            id=new_id(),
            tournament_id=tournament_id,
            user_id=user_id,
            registered_at=self.clock(),
            selected_position=position,
        )
        try:
            registered = self.db.register_participant(participant, tournament.max_participants, position_capacity)
        except sqlite3.IntegrityError as e:
            raise InvalidStateError(tournament_id, "unregistered user", "already registered", detail=user_id) from e
        if not registered:
            if position_capacity is None:
                full, capacity = "tournament full", tournament.max_participants
            else:
                full, capacity = f"{position.value} position full", position_capacity
            raise InvalidStateError(tournament_id, "open registration", full, detail=f"capacity {capacity}")

        logger.info(f"Registered {user_id} for tournament {tournament_id}")
        return participant

    def start_tournament(self, tournament_id: str) -> Tournament:
        """Seed participants by rating and create the first round."""
        tournament = self.get_tournament(tournament_id)
        if tournament.status != TournamentStatus.UPCOMING:
            raise InvalidStateError(tournament_id, TournamentStatus.UPCOMING, tournament.status)

        now = self.clock()
        with self.db.transaction() as conn:
            participants = self.db.get_tournament_participants(tournament_id, conn=conn)
            if len(participants) < 2:
                raise InvalidStateError(
                    tournament_id, "at least 2 participants", f"{len(participants)} registered"
                )

            ratings = {}
            for participant in participants:
                user = self.db.get_user(participant.user_id, conn)
                ratings[participant.user_id] = user.elo_rating if user else 0
            seeded = [
                p.user_id
                for p in sorted(participants, key=lambda p: (-ratings[p.user_id], p.registered_at, p.user_id))
            ]

            if tournament.format == TournamentFormat.CHAMPIONSHIP:
                positions = {p.user_id: p.selected_position for p in participants}
                groups = {
                    position: [uid for uid in seeded if positions[uid] == position] for position in Position
                }
                sizes = {len(group) for group in groups.values()}
                if len(sizes) != 1 or min(sizes) < championship.MIN_PER_POSITION:
                    raise InvalidStateError(
                        tournament_id,
                        f"equal FOR and AGAINST groups of at least {championship.MIN_PER_POSITION}",
                        f"{len(groups[Position.FOR])} FOR, {len(groups[Position.AGAINST])} AGAINST",
                    )

            total_rounds = self._calculate_rounds(tournament.format, len(seeded))
            if not self.db.transition_tournament(
                conn,
                tournament_id,
                TournamentStatus.UPCOMING,
                TournamentStatus.IN_PROGRESS,
                total_rounds=total_rounds,
                current_round=1,
                start_date=now,
            ):
                raise InvalidStateError(tournament_id, TournamentStatus.UPCOMING, "already started")

            self.db.seed_participants(
                conn, tournament_id, [(uid, seed, ratings[uid]) for seed, uid in enumerate(seeded, start=1)]
            )

            if tournament.format == TournamentFormat.KING_OF_THE_HILL:
                matches = [self._group_match(tournament_id, 1, seeded[0])]
            elif tournament.format == TournamentFormat.CHAMPIONSHIP:
                matches = self._position_matches(tournament_id, groups[Position.FOR], groups[Position.AGAINST])
            else:
                matches = self._first_round_matches(tournament_id, seeded, now)
            self.db.insert_matches(conn, matches)

        logger.info(
            f"Started tournament {tournament_id} with {len(seeded)} participants "
            f"over {total_rounds} rounds"
        )
        started = self.get_tournament(tournament_id)
        self._start_pending_matches(started)
        return started

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.db.get_tournament(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)
        return tournament

    def get_bracket_view(self, tournament_id: str) -> BracketData:
        """Get bracket visualization data."""
        bracket = self.db.get_bracket_data(tournament_id)
        if bracket is None:
            raise TournamentNotFoundError(tournament_id)
        return bracket

    def _calculate_rounds(self, tournament_format: TournamentFormat, players: int) -> int:
        """Calculate total rounds needed for the number of players."""
        if tournament_format == TournamentFormat.KING_OF_THE_HILL:
            return king_of_the_hill.total_rounds(players, self.config.elimination_ratio)
        if tournament_format == TournamentFormat.CHAMPIONSHIP:
            return championship.total_rounds(players)
        return max(1, math.ceil(math.log2(players)))

    @staticmethod
    def _position_matches(tournament_id: str, for_side: list[str], against_side: list[str]) -> list[TournamentMatch]:
        """Pair the i-th FOR seed with the i-th AGAINST seed, FOR as challenger."""
        return [
            TournamentMatch(
                id=new_id(),
                tournament_id=tournament_id,
                round_number=1,
                match_number=number,
                participant1_id=pro,
                participant2_id=con,
            )
            for number, (pro, con) in enumerate(zip(for_side, against_side), start=1)
        ]

    def _first_round_matches(self, tournament_id: str, seeded: list[str], now: datetime) -> list[TournamentMatch]:
        """Pair seed i with seed n + 1 - i; missing low seeds become byes for the top seeds."""
        size = 1 << (len(seeded) - 1).bit_length()
        order = bracket_order(size)

        matches = []
        for number, (top, bottom) in enumerate(zip(order[::2], order[1::2]), start=1):
            player = seeded[top - 1]
            opponent = seeded[bottom - 1] if bottom <= len(seeded) else None
            if opponent is None:
                matches.append(
                    TournamentMatch(
                        id=new_id(),
                        tournament_id=tournament_id,
                        round_number=1,
                        match_number=number,
                        participant1_id=player,
                        winner_id=player,
                        status=MatchStatus.BYE,
                        completed_at=now,
                    )
                )
            else:
                matches.append(
                    TournamentMatch(
                        id=new_id(),
                        tournament_id=tournament_id,
                        round_number=1,
                        match_number=number,
                        participant1_id=player,
                        participant2_id=opponent,
                    )
                )
        return matches

    def _pair_round(
        self, tournament_id: str, round_number: int, players: list[str], now: datetime
    ) -> list[TournamentMatch]:
        """Pair 1v2, 3v4 and so on; an odd player out gets a bye."""
        matches = []
        for index in range(0, len(players), 2):
            pair = players[index : index + 2]
            if len(pair) == 2:
                matches.append(
                    TournamentMatch(
                        id=new_id(),
                        tournament_id=tournament_id,
                        round_number=round_number,
                        match_number=index // 2 + 1,
                        participant1_id=pair[0],
                        participant2_id=pair[1],
                    )
                )
            else:
                matches.append(
                    TournamentMatch(
                        id=new_id(),
                        tournament_id=tournament_id,
                        round_number=round_number,
                        match_number=index // 2 + 1,
                        participant1_id=pair[0],
                        winner_id=pair[0],
                        status=MatchStatus.BYE,
                        completed_at=now,
                    )
                )
        return matches

    @staticmethod
    def _group_match(tournament_id: str, round_number: int, top_player: str) -> TournamentMatch:
        return TournamentMatch(
            id=new_id(),
            tournament_id=tournament_id,
            round_number=round_number,
            match_number=1,
            participant1_id=top_player,
        )

    # ------------------------------------------------------------------
    # Match debates
    # ------------------------------------------------------------------

    def _start_pending_matches(self, tournament: Tournament, matches: list[TournamentMatch] | None = None) -> int:
        """Create debates for current-round matches that do not have one yet."""
        if matches is None:
            matches = self.db.get_matches(tournament.id, tournament.current_round)
        started = 0
        for match in matches:
            if match.status == MatchStatus.PENDING and match.debate_id is None:
                if self._start_match_debate(tournament, match):
                    started += 1
        return started

    def _start_match_debate(self, tournament: Tournament, match: TournamentMatch) -> Debate | None:
        """Start a debate for a tournament match."""
        now = self.clock()
        topic = self.rng.choice(DEFAULT_TOPICS)
        group_round = match.participant2_id is None

        if group_round:
            players = [
                p.user_id
                for p in self.db.get_tournament_participants(tournament.id, ParticipantStatus.ACTIVE)
            ]
            debate = Debate(
                id=new_id(),
                topic=topic,
                category="TOURNAMENT",
                description=f"{tournament.name}: King of the Hill round {match.round_number}",
                challenge_type=ChallengeType.GROUP,
                status=DebateStatus.ACTIVE,
                challenger_id=match.participant1_id,
                total_rounds=king_of_the_hill.GROUP_DEBATE_ROUNDS,
                round_duration_seconds=tournament.round_duration_seconds,
                round_deadline=now + timedelta(seconds=tournament.round_duration_seconds),
                created_at=now,
                started_at=now,
            )
        else:
            players = [match.participant1_id, match.participant2_id]
            if tournament.format == TournamentFormat.KING_OF_THE_HILL:
                rounds = king_of_the_hill.FINAL_DEBATE_ROUNDS
            else:
                rounds = tournament.debate_rounds
            debate = Debate(
                id=new_id(),
                topic=topic,
                category="TOURNAMENT",
                description=f"{tournament.name}: round {match.round_number}, match {match.match_number}",
                challenge_type=ChallengeType.TOURNAMENT,
                status=DebateStatus.ACTIVE,
                challenger_id=match.participant1_id,
                opponent_id=match.participant2_id,
                challenger_position=Position.FOR,
                opponent_position=Position.AGAINST,
                total_rounds=rounds,
                round_duration_seconds=tournament.round_duration_seconds,
                round_deadline=now + timedelta(seconds=tournament.round_duration_seconds),
                created_at=now,
                started_at=now,
            )

        with self.db.transaction() as conn:
            current = self.db.get_match(match.id, conn)
            if current is None or current.debate_id is not None:
                logger.debug(f"Match {match.id} already has a debate")
                return None

            self.db.create_debate(debate, conn)
            if group_round:
                for user_id in players:
                    self.db.add_participant(Participant(id=new_id(), debate_id=debate.id, user_id=user_id), conn)
            self.db.link_match_debate(conn, match.id, debate.id)

            for user_id in players:
                self.notifier.emit(
                    user_id,
                    NotificationType.TOURNAMENT_ROUND,
                    f"Tournament Round {match.round_number}",
                    f'Your {tournament.name} debate has started: "{topic}"',
                    debate_id=debate.id,
                    tournament_id=tournament.id,
                    conn=conn,
                )

        logger.info(f"Started debate {debate.id} for match {match.id} (round {match.round_number})")
        if self.on_match_started is not None:
            hook = self.on_match_started
            self.dispatcher.dispatch(f"turn:{debate.id}", lambda: hook(debate.id))
        return debate

    # ------------------------------------------------------------------
    # Progression
    # ------------------------------------------------------------------

    def sweep_tournaments(self, now: datetime | None = None) -> SweepSummary:
        """Advance every in-progress tournament whose current round is resolved."""
        summary = SweepSummary()
        for tournament in self.db.list_tournaments(TournamentStatus.IN_PROGRESS):
            summary.processed += 1
            try:
                self._progress(tournament, summary, now or self.clock())
            except (ArenaError, sqlite3.Error) as e:
                logger.error(f"Failed to progress tournament {tournament.id}: {e}")
                summary.record_error(tournament.id, e)

        logger.info(
            f"Tournament sweep: processed={summary.processed} advanced={summary.advanced} "
            f"completed={summary.completed} errors={len(summary.errors)}"
        )
        return summary

    def _progress(self, tournament: Tournament, summary: SweepSummary, now: datetime) -> None:
        round_number = tournament.current_round
        matches = self.db.get_matches(tournament.id, round_number)
        if not matches:
            logger.warning(f"Tournament {tournament.id} has no matches in round {round_number}")
            return

        if self._record_results(tournament, matches, now):
            matches = self.db.get_matches(tournament.id, round_number)
        self._start_pending_matches(tournament, matches)

        resolved = [m for m in matches if m.is_resolved]
        if len(resolved) < len(matches):
            logger.info(
                f"Tournament {tournament.id} round {round_number}: "
                f"{len(resolved)}/{len(matches)} matches complete"
            )
            return

        if tournament.format == TournamentFormat.KING_OF_THE_HILL:
            self._progress_king_of_the_hill(tournament, matches, summary, now)
        elif round_number >= tournament.total_rounds:
            self._complete_tournament(tournament, matches[-1], summary, now)
        else:
            self._advance_bracket(tournament, summary, now)

    def _record_results(self, tournament: Tournament, matches: list[TournamentMatch], now: datetime) -> int:
        """Store winners derivable from adjudicated match debates."""
        seeds = {p.user_id: p.seed for p in self.db.get_tournament_participants(tournament.id)}
        recorded = 0
        for match in matches:
            if match.status != MatchStatus.IN_PROGRESS or match.debate_id is None:
                continue
            debate = self.db.get_debate(match.debate_id)
            if debate is None:
                continue

            if debate.status == DebateStatus.CANCELLED:
                scores: dict[str, float] = {}
                if debate.challenge_type == ChallengeType.GROUP:
                    winner_id = None
                else:
                    winner_id = self._better_seed(debate.side_ids, seeds)
            elif debate.status in (DebateStatus.VERDICT_READY, DebateStatus.APPEALED):
                if debate.appeal_status in (AppealStatus.PENDING, AppealStatus.PROCESSING):
                    continue
                if debate.challenge_type == ChallengeType.GROUP:
                    standings = self.consensus.group_standings(debate.id)
                    scores = dict(standings)
                    winner_id = standings[0][0] if standings else None
                else:
                    scores = self._judge_totals(debate)
                    winner_id = debate.winner_id or self._break_tie(debate, scores, seeds)
            else:
                continue

            with self.db.transaction() as conn:
                if not self.db.record_match_winner(match.id, winner_id, now, conn=conn):
                    continue
                self.db.add_tournament_scores(conn, tournament.id, scores)
            recorded += 1
            logger.info(
                f"Tournament {tournament.id} match {match.round_number}.{match.match_number} won by {winner_id}"
            )
        return recorded

    def _latest_panel(self, debate: Debate) -> list[Verdict]:
        verdicts = self.db.get_verdicts(debate.id)
        if not verdicts:
            return []
        latest = max(v.appeal_round for v in verdicts)
        return [v for v in verdicts if v.appeal_round == latest]

    def _judge_means(self, debate: Debate) -> dict[str, float]:
        panel = self._latest_panel(debate)
        return {uid: total / len(panel) for uid, total in self._judge_totals(debate, panel).items()}

    def _judge_totals(self, debate: Debate, panel: list[Verdict] | None = None) -> dict[str, float]:
        """Total judge score per side from the most recent panel."""
        if panel is None:
            panel = self._latest_panel(debate)
        if not panel:
            return {}
        totals = {debate.challenger_id: sum(v.challenger_score or 0.0 for v in panel)}
        if debate.opponent_id:
            totals[debate.opponent_id] = sum(v.opponent_score or 0.0 for v in panel)
        return totals

    def _break_tie(self, debate: Debate, scores: dict[str, float], seeds: dict[str, int | None]) -> str:
        """A tied match goes to the higher total judge score, then to the better seed."""
        challenger, opponent = debate.challenger_id, debate.opponent_id
        if scores.get(challenger, 0.0) != scores.get(opponent, 0.0):
            winner = max((challenger, opponent), key=lambda uid: scores.get(uid, 0.0))
            reason = "judge score"
        else:
            winner = self._better_seed(debate.side_ids, seeds)
            reason = "seed"
        logger.info(f"Tied debate {debate.id} broken by {reason} in favour of {winner}")
        return winner

    @staticmethod
    def _better_seed(user_ids: list[str], seeds: dict[str, int | None]) -> str:
        return min(user_ids, key=lambda uid: (seeds.get(uid) or math.inf, uid))

    def _advance_bracket(self, tournament: Tournament, summary: SweepSummary, now: datetime) -> None:
        round_number = tournament.current_round
        with self.db.transaction() as conn:
            matches = self.db.get_matches(tournament.id, round_number, conn=conn)
            if not all(m.is_resolved for m in matches):
                return
            if not self.db.advance_tournament_round(conn, tournament.id, round_number):
                logger.debug(f"Tournament {tournament.id} round {round_number} was already advanced")
                summary.conflicts += 1
                return

            winners = [m.winner_id for m in matches]
            losers = []
            for match in matches:
                if match.participant2_id is None:
                    continue
                loser = match.participant2_id if match.winner_id == match.participant1_id else match.participant1_id
                losers.append(loser)
                self.db.record_participant_result(conn, tournament.id, match.winner_id, won=True)
                self.db.record_participant_result(conn, tournament.id, loser, won=False)

            if tournament.format == TournamentFormat.CHAMPIONSHIP and round_number == 1:
                winners, losers = self._championship_advancers(conn, tournament, matches)
                reason = championship.ELIMINATION_REASON
            else:
                reason = f"Lost in round {round_number}"

            self._eliminate(conn, tournament, losers, round_number, reason)
            ordered = self._reseed(conn, tournament, winners)
            self.db.insert_matches(conn, self._pair_round(tournament.id, round_number + 1, ordered, now))

        summary.advanced += 1
        logger.info(f"Advanced tournament {tournament.id} to round {round_number + 1} with {len(winners)} players")
        self._start_pending_matches(self.get_tournament(tournament.id))

    def _championship_advancers(
        self, conn: sqlite3.Connection, tournament: Tournament, matches: list[TournamentMatch]
    ) -> tuple[list[str], list[str]]:
        """Rank round-1 players inside their position group by their own judge score."""
        participants = {p.user_id: p for p in self.db.get_tournament_participants(tournament.id, conn=conn)}
        results = []
        for match in matches:
            debate = self.db.get_debate(match.debate_id, conn) if match.debate_id else None
            if debate is None or debate.status == DebateStatus.CANCELLED:
                means = {}
            else:
                means = self._judge_means(debate)

            for user_id, other_id in (
                (match.participant1_id, match.participant2_id),
                (match.participant2_id, match.participant1_id),
            ):
                if user_id is None:
                    continue
                score, other = means.get(user_id), means.get(other_id)
                participant = participants[user_id]
                results.append(
                    championship.RoundOneResult(
                        user_id=user_id,
                        position=participant.selected_position,
                        score=score,
                        differential=score - other if score is not None and other is not None else 0.0,
                        won=match.winner_id == user_id,
                        elo_at_start=participant.elo_at_start or 0,
                        registered_at=participant.registered_at,
                        seed=participant.seed,
                    )
                )

        advancing, eliminated = championship.select_advancers(results)
        logger.info(
            f"Championship {tournament.id} round 1: {len(advancing)} advance on score, {len(eliminated)} eliminated"
        )
        return advancing, eliminated

    def _reseed(self, conn: sqlite3.Connection, tournament: Tournament, winners: list[str]) -> list[str]:
        """Order round winners for pairing."""
        method = tournament.reseed_method if tournament.reseed_after_round else ReseedMethod.NONE
        if method == ReseedMethod.NONE:
            return winners

        participants = {
            p.user_id: p for p in self.db.get_tournament_participants(tournament.id, conn=conn)
        }

        def seed(uid: str) -> float:
            return participants[uid].seed or math.inf

        if method == ReseedMethod.ELO_BASED:
            ratings = {uid: self.db.get_user(uid, conn).elo_rating for uid in winners}
            return sorted(winners, key=lambda uid: (-ratings[uid], seed(uid)))
        return sorted(winners, key=lambda uid: (-participants[uid].wins, seed(uid)))

    def _progress_king_of_the_hill(
        self, tournament: Tournament, matches: list[TournamentMatch], summary: SweepSummary, now: datetime
    ) -> None:
        match = matches[0]
        if match.participant2_id is not None:
            self._complete_tournament(tournament, match, summary, now)
            return

        round_number = tournament.current_round
        standings = [uid for uid, _ in self.consensus.group_standings(match.debate_id)] if match.debate_id else []
        active = [p.user_id for p in self.db.get_tournament_participants(tournament.id, ParticipantStatus.ACTIVE)]
        standings = [uid for uid in standings if uid in active]
        non_submitters = [uid for uid in active if uid not in standings]
        survivors, eliminated = king_of_the_hill.split_standings(standings, self.config.elimination_ratio)

        if len(survivors) == 1:
            self._complete_tournament(
                tournament, match, summary, now, champion_id=survivors[0], no_submission=non_submitters
            )
            return

        with self.db.transaction() as conn:
            if not survivors:
                if not self.db.transition_tournament(
                    conn, tournament.id, TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED, end_date=now
                ):
                    return
                self._eliminate(conn, tournament, non_submitters, round_number, "No submission")
                summary.cancelled += 1
                logger.warning(f"Tournament {tournament.id} cancelled: nobody submitted in round {round_number}")
                return

            if not self.db.advance_tournament_round(conn, tournament.id, round_number):
                summary.conflicts += 1
                return

            self._eliminate(conn, tournament, non_submitters, round_number, "No submission")
            self._eliminate(
                conn, tournament, eliminated, round_number, f"Bottom of King of the Hill round {round_number}"
            )

            if len(survivors) == 2:
                seeds = {p.user_id: p.seed for p in self.db.get_tournament_participants(tournament.id, conn=conn)}
                first = self._better_seed(survivors, seeds)
                second = survivors[1] if first == survivors[0] else survivors[0]
                next_match = TournamentMatch(
                    id=new_id(),
                    tournament_id=tournament.id,
                    round_number=round_number + 1,
                    match_number=1,
                    participant1_id=first,
                    participant2_id=second,
                )
            else:
                next_match = self._group_match(tournament.id, round_number + 1, survivors[0])
            self.db.insert_matches(conn, [next_match])

        summary.advanced += 1
        logger.info(
            f"King of the Hill {tournament.id} round {round_number}: {len(survivors)} survive, "
            f"{len(eliminated) + len(non_submitters)} eliminated"
        )
        self._start_pending_matches(self.get_tournament(tournament.id))

    def _eliminate(
        self, conn: sqlite3.Connection, tournament: Tournament, user_ids: list[str], round_number: int, reason: str
    ) -> None:
        if not user_ids:
            return
        self.db.eliminate_tournament_participants(conn, tournament.id, user_ids, round_number, reason)
        for user_id in user_ids:
            self.notifier.emit(
                user_id,
                NotificationType.TOURNAMENT_ELIMINATED,
                "Eliminated",
                f"You were eliminated from {tournament.name} in round {round_number}: {reason}.",
                tournament_id=tournament.id,
                conn=conn,
            )

    def _complete_tournament(
        self,
        tournament: Tournament,
        final: TournamentMatch,
        summary: SweepSummary,
        now: datetime,
        champion_id: str | None = None,
        no_submission: list[str] | None = None,
    ) -> None:
        """Complete tournament and crown champion."""
        champion_id = champion_id or final.winner_id
        if champion_id is None:
            logger.error(f"Could not determine winner for tournament {tournament.id}")
            summary.record_error(tournament.id, "final has no winner")
            return

        with self.db.transaction() as conn:
            if not self.db.transition_tournament(
                conn,
                tournament.id,
                TournamentStatus.IN_PROGRESS,
                TournamentStatus.COMPLETED,
                winner_id=champion_id,
                end_date=now,
            ):
                summary.conflicts += 1
                return

            self._eliminate(conn, tournament, no_submission or [], tournament.current_round, "No submission")
            if final.participant2_id is not None:
                runner_up = final.participant2_id if champion_id == final.participant1_id else final.participant1_id
                self.db.record_participant_result(conn, tournament.id, champion_id, won=True)
                self.db.record_participant_result(conn, tournament.id, runner_up, won=False)
                self._eliminate(conn, tournament, [runner_up], tournament.current_round, "Lost in the final")

            absorbed = 0.0
            if tournament.format == TournamentFormat.KING_OF_THE_HILL:
                absorbed = sum(
                    p.cumulative_score
                    for p in self.db.get_tournament_participants(tournament.id, ParticipantStatus.ELIMINATED, conn=conn)
                )
            self.db.crown_champion(conn, tournament.id, champion_id, absorbed)

            self.notifier.emit(
                champion_id,
                NotificationType.TOURNAMENT_WON,
                "Tournament Victory!",
                f"Congratulations! You won {tournament.name}!",
                tournament_id=tournament.id,
                conn=conn,
            )

        summary.completed += 1
        logger.info(f"Tournament {tournament.id} completed, winner: {champion_id}")
        self._distribute_prizes(self.get_tournament(tournament.id))

    # ------------------------------------------------------------------
    # Prizes
    # ------------------------------------------------------------------

    def _distribute_prizes(self, tournament: Tournament) -> bool:
        try:
            self.prize_distributor.distribute(tournament)
        except Exception as e:
            logger.error(f"Prize distribution for tournament {tournament.id} failed: {e}", exc_info=True)
            return False
        self.db.mark_prizes_distributed(tournament.id)
        return True

    def retry_prize_distribution(self) -> SweepSummary:
        """Retry payouts that failed when their tournament completed."""
        summary = SweepSummary()
        for tournament in self.db.list_undistributed_prizes():
            summary.processed += 1
            if self._distribute_prizes(tournament):
                summary.completed += 1
            else:
                summary.record_error(tournament.id, "prize distribution failed")
        return summary
