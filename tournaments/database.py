"""Tournament database operations."""

import logging
import sqlite3
from datetime import datetime
from typing import Any, Iterable

from debate_engine.database import DatabaseManager
from debate_engine.types import Position
from debate_engine.utils import from_db_time, to_db_time
from .models import (
    BracketData,
    MatchStatus,
    ParticipantStatus,
    ReseedMethod,
    RoundStatus,
    Tournament,
    TournamentFormat,
    TournamentMatch,
    TournamentParticipant,
    TournamentStatus,
)

logger = logging.getLogger(__name__)


class TournamentDatabaseManager(DatabaseManager):
    """Tournament tables, sharing the debate database file and schema."""

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, tournament: Tournament) -> Tournament:
        """Create a new tournament."""
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO tournaments (
                    id, name, format, status, max_participants, total_rounds, current_round,
                    reseed_method, reseed_after_round, debate_rounds, round_duration_seconds,
                    prize_pool, start_date, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tournament.id,
                    tournament.name,
                    tournament.format.value,
                    tournament.status.value,
                    tournament.max_participants,
                    tournament.total_rounds,
                    tournament.current_round,
                    tournament.reseed_method.value,
                    int(tournament.reseed_after_round),
                    tournament.debate_rounds,
                    tournament.round_duration_seconds,
                    tournament.prize_pool,
                    to_db_time(tournament.start_date),
                    to_db_time(tournament.created_at),
                ),
            )
        logger.info(f"Created tournament {tournament.id}: {tournament.name}")
        return tournament

    def get_tournament(self, tournament_id: str, conn: sqlite3.Connection | None = None) -> Tournament | None:
        """Get tournament by ID."""
        with self._connection(conn) as c:
            row = c.execute("SELECT * FROM tournaments WHERE id = ?", (tournament_id,)).fetchone()
            return self._row_to_tournament(row) if row else None

    def list_tournaments(
        self, status: TournamentStatus | None = None, limit: int | None = None, offset: int = 0
    ) -> list[Tournament]:
        query = "SELECT * FROM tournaments"
        params: list[Any] = []
        if status:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY created_at"
        if limit:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        with self._connection() as conn:
            return [self._row_to_tournament(row) for row in conn.execute(query, params).fetchall()]

    def transition_tournament(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        expected: TournamentStatus,
        target: TournamentStatus,
        **fields: Any,
    ) -> bool:
        """Move a tournament between statuses if nobody else did first."""
        fields["status"] = target
        set_clause = ", ".join(f"{name} = ?" for name in fields)
        params = [self._to_db_value(value) for value in fields.values()]
        cursor = conn.execute(
            f"UPDATE tournaments SET {set_clause} WHERE id = ? AND status = ?",
            [*params, tournament_id, expected.value],
        )
        updated = cursor.rowcount > 0
        if updated:
            logger.info(f"Tournament {tournament_id}: {expected.value} -> {target.value}")
        return updated

    def advance_tournament_round(self, conn: sqlite3.Connection, tournament_id: str, from_round: int) -> bool:
        cursor = conn.execute(
            """
            UPDATE tournaments SET current_round = current_round + 1
            WHERE id = ? AND status = 'IN_PROGRESS' AND current_round = ?
            """,
            (tournament_id, from_round),
        )
        return cursor.rowcount > 0

    def mark_prizes_distributed(self, tournament_id: str) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                "UPDATE tournaments SET prizes_distributed = 1 WHERE id = ? AND prizes_distributed = 0",
                (tournament_id,),
            )
            return cursor.rowcount > 0

    def list_undistributed_prizes(self) -> list[Tournament]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM tournaments
                WHERE status = 'COMPLETED' AND prizes_distributed = 0 AND winner_id IS NOT NULL
                ORDER BY end_date
                """
            ).fetchall()
            return [self._row_to_tournament(row) for row in rows]

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def register_participant(
        self, participant: TournamentParticipant, max_participants: int, position_capacity: int | None = None
    ) -> bool:
        """Insert a registration while capacity remains; False when the tournament or position is full."""
        with self.transaction() as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM tournament_participants WHERE tournament_id = ?",
                (participant.tournament_id,),
            ).fetchone()[0]
            if count >= max_participants:
                return False
            if position_capacity is not None and participant.selected_position is not None:
                taken = conn.execute(
                    "SELECT COUNT(*) FROM tournament_participants WHERE tournament_id = ? AND selected_position = ?",
                    (participant.tournament_id, participant.selected_position.value),
                ).fetchone()[0]
                if taken >= position_capacity:
                    return False
            conn.execute(
                """
                INSERT INTO tournament_participants (
                    id, tournament_id, user_id, status, registered_at, selected_position
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    participant.id,
                    participant.tournament_id,
                    participant.user_id,
                    participant.status.value,
                    to_db_time(participant.registered_at),
                    self._to_db_value(participant.selected_position),
                ),
            )
        return True

    def get_tournament_participants(
        self,
        tournament_id: str,
        status: ParticipantStatus | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> list[TournamentParticipant]:
        """Get participants for a tournament, best seed first."""
        query = "SELECT * FROM tournament_participants WHERE tournament_id = ?"
        params: list[Any] = [tournament_id]
        if status:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY seed IS NULL, seed, registered_at, rowid"
        with self._connection(conn) as c:
            return [self._row_to_participant(row) for row in c.execute(query, params).fetchall()]

    def seed_participants(
        self, conn: sqlite3.Connection, tournament_id: str, seeds: list[tuple[str, int, int]]
    ) -> None:
        """Store (user_id, seed, elo_at_start) and activate the participants."""
        conn.executemany(
            """
            UPDATE tournament_participants SET seed = ?, elo_at_start = ?, status = 'ACTIVE'
            WHERE tournament_id = ? AND user_id = ?
            """,
            [(seed, elo, tournament_id, user_id) for user_id, seed, elo in seeds],
        )

    def record_participant_result(
        self, conn: sqlite3.Connection, tournament_id: str, user_id: str, won: bool
    ) -> None:
        column = "wins" if won else "losses"
        conn.execute(
            f"UPDATE tournament_participants SET {column} = {column} + 1 WHERE tournament_id = ? AND user_id = ?",
            (tournament_id, user_id),
        )

    def add_tournament_scores(self, conn: sqlite3.Connection, tournament_id: str, scores: dict[str, float]) -> None:
        conn.executemany(
            """
            UPDATE tournament_participants SET cumulative_score = cumulative_score + ?
            WHERE tournament_id = ? AND user_id = ?
            """,
            [(score, tournament_id, user_id) for user_id, score in scores.items()],
        )

    def eliminate_tournament_participants(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        user_ids: Iterable[str],
        round_number: int,
        reason: str,
    ) -> None:
        """Mark participants as eliminated in the given round."""
        conn.executemany(
            """
            UPDATE tournament_participants
            SET status = 'ELIMINATED', eliminated_in_round = ?, elimination_reason = ?
            WHERE tournament_id = ? AND user_id = ? AND status = 'ACTIVE'
            """,
            [(round_number, reason, tournament_id, uid) for uid in user_ids],
        )

    def crown_champion(self, conn: sqlite3.Connection, tournament_id: str, user_id: str, absorbed_score: float = 0.0) -> None:
        conn.execute(
            """
            UPDATE tournament_participants
            SET status = 'CHAMPION', cumulative_score = cumulative_score + ?
            WHERE tournament_id = ? AND user_id = ?
            """,
            (absorbed_score, tournament_id, user_id),
        )

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def insert_matches(self, conn: sqlite3.Connection, matches: list[TournamentMatch]) -> None:
        """Insert a round of matches; the UNIQUE round/match key rejects a second seeding."""
        conn.executemany(
            """
            INSERT INTO tournament_matches (
                id, tournament_id, round_number, match_number, participant1_id,
                participant2_id, debate_id, winner_id, status, completed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    m.id,
                    m.tournament_id,
                    m.round_number,
                    m.match_number,
                    m.participant1_id,
                    m.participant2_id,
                    m.debate_id,
                    m.winner_id,
                    m.status.value,
                    to_db_time(m.completed_at),
                )
                for m in matches
            ],
        )

    def get_matches(
        self,
        tournament_id: str,
        round_number: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> list[TournamentMatch]:
        """Get matches for tournament, optionally filtered by round."""
        query = "SELECT * FROM tournament_matches WHERE tournament_id = ?"
        params: list[Any] = [tournament_id]
        if round_number is not None:
            query += " AND round_number = ?"
            params.append(round_number)
        query += " ORDER BY round_number, match_number"
        with self._connection(conn) as c:
            return [self._row_to_match(row) for row in c.execute(query, params).fetchall()]

    def get_match(self, match_id: str, conn: sqlite3.Connection | None = None) -> TournamentMatch | None:
        with self._connection(conn) as c:
            row = c.execute("SELECT * FROM tournament_matches WHERE id = ?", (match_id,)).fetchone()
            return self._row_to_match(row) if row else None

    def link_match_debate(self, conn: sqlite3.Connection, match_id: str, debate_id: str) -> bool:
        cursor = conn.execute(
            """
            UPDATE tournament_matches SET debate_id = ?, status = 'IN_PROGRESS'
            WHERE id = ? AND debate_id IS NULL AND status = 'PENDING'
            """,
            (debate_id, match_id),
        )
        return cursor.rowcount > 0

    def record_match_winner(
        self,
        match_id: str,
        winner_id: str | None,
        completed_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """Store a match result unless one is already recorded."""
        with self._connection(conn) as c:
            cursor = c.execute(
                """
                UPDATE tournament_matches SET winner_id = ?, status = 'COMPLETED', completed_at = ?
                WHERE id = ? AND winner_id IS NULL AND status = 'IN_PROGRESS'
                """,
                (winner_id, to_db_time(completed_at), match_id),
            )
            return cursor.rowcount > 0

    def get_bracket_data(self, tournament_id: str) -> BracketData | None:
        """Get complete bracket data for visualization."""
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            return None

        return BracketData(
            tournament=tournament,
            participants=self.get_tournament_participants(tournament_id),
            matches=self.get_matches(tournament_id),
        )

    def get_round_status(self, tournament_id: str, round_number: int) -> RoundStatus:
        """Get status of all matches in a round."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT status, COUNT(*) as count
                FROM tournament_matches
                WHERE tournament_id = ? AND round_number = ?
                GROUP BY status
                """,
                (tournament_id, round_number),
            ).fetchall()

        status_counts = {row["status"]: row["count"] for row in rows}
        total_matches = sum(status_counts.values())
        completed_matches = status_counts.get("COMPLETED", 0) + status_counts.get("BYE", 0)

        return RoundStatus(
            round_number=round_number,
            total_matches=total_matches,
            completed_matches=completed_matches,
            pending_matches=status_counts.get("PENDING", 0),
            in_progress_matches=status_counts.get("IN_PROGRESS", 0),
            all_completed=completed_matches == total_matches and total_matches > 0,
        )

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_tournament(row: sqlite3.Row) -> Tournament:
        return Tournament(
            id=row["id"],
            name=row["name"],
            format=TournamentFormat(row["format"]),
            status=TournamentStatus(row["status"]),
            max_participants=row["max_participants"],
            total_rounds=row["total_rounds"],
            current_round=row["current_round"],
            reseed_method=ReseedMethod(row["reseed_method"]),
            reseed_after_round=bool(row["reseed_after_round"]),
            debate_rounds=row["debate_rounds"],
            round_duration_seconds=row["round_duration_seconds"],
            prize_pool=row["prize_pool"],
            prizes_distributed=bool(row["prizes_distributed"]),
            winner_id=row["winner_id"],
            start_date=from_db_time(row["start_date"]),
            end_date=from_db_time(row["end_date"]),
            created_at=from_db_time(row["created_at"]),
        )

    @staticmethod
    def _row_to_participant(row: sqlite3.Row) -> TournamentParticipant:
        return TournamentParticipant(
            id=row["id"],
            tournament_id=row["tournament_id"],
            user_id=row["user_id"],
            seed=row["seed"],
            elo_at_start=row["elo_at_start"],
            status=ParticipantStatus(row["status"]),
            wins=row["wins"],
            losses=row["losses"],
            cumulative_score=row["cumulative_score"],
            eliminated_in_round=row["eliminated_in_round"],
            elimination_reason=row["elimination_reason"],
            registered_at=from_db_time(row["registered_at"]),
            selected_position=Position(row["selected_position"]) if row["selected_position"] else None,
        )

    @staticmethod
    def _row_to_match(row: sqlite3.Row) -> TournamentMatch:
        return TournamentMatch(
            id=row["id"],
            tournament_id=row["tournament_id"],
            round_number=row["round_number"],
            match_number=row["match_number"],
            participant1_id=row["participant1_id"],
            participant2_id=row["participant2_id"],
            debate_id=row["debate_id"],
            winner_id=row["winner_id"],
            status=MatchStatus(row["status"]),
            completed_at=from_db_time(row["completed_at"]),
        )
