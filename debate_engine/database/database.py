"""SQLite database manager for debates, statements, verdicts and users."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator

from ..exceptions import InvalidStateError
from ..models import (
    Debate,
    Judge,
    Notification,
    Participant,
    Statement,
    User,
    Verdict,
    VerdictScore,
)
from ..types import (
    AIPersonality,
    AppealStatus,
    ChallengeType,
    DebateStatus,
    Decision,
    NotificationType,
    ParticipantStatus,
    Position,
    VerdictKind,
    can_transition,
)
from ..utils import from_db_time, to_db_time
from .schema import SchemaManager

logger = logging.getLogger(__name__)


class InsertResult(Enum):
    """Outcome of a guarded statement insert."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    STALE = "stale"  # debate no longer ACTIVE at the expected round


class DatabaseManager:
    """Manages SQLite connections and queries for the debate tables.

    Every write that races with another process is a conditional update
    keyed on previously read state; the boolean return value tells the
    caller whether its write took effect.
    """

    def __init__(self, db_path: str | Path = "arena.db", busy_timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.schema_manager = SchemaManager()
        self._init_database()

    def _init_database(self):
        """Initialize the database with required tables using schema manager."""
        if not self.schema_manager.validate_schema_files():
            raise RuntimeError("Database schema validation failed - missing schema files")

        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            cursor = conn.cursor()
            self.schema_manager.initialize_database_schema(cursor)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction that holds the database lock from the first read."""
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    @contextmanager
    def _connection(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Reuse a caller's transaction, or open and commit a fresh connection."""
        if conn is not None:
            yield conn
            return
        with self._get_connection() as own:
            yield own
            own.commit()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO users (
                    id, username, is_ai, ai_paused, ai_personality, ai_response_delay_seconds,
                    elo_rating, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.username,
                    int(user.is_ai),
                    int(user.ai_paused),
                    user.ai_personality.value if user.ai_personality else None,
                    user.ai_response_delay_seconds,
                    user.elo_rating,
                    to_db_time(user.created_at),
                ),
            )
        logger.info(f"Created user {user.id} ({user.username})")
        return user

    def get_user(self, user_id: str, conn: sqlite3.Connection | None = None) -> User | None:
        with self._connection(conn) as c:
            row = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_users(self, user_ids: Iterable[str]) -> dict[str, User]:
        ids = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        with self._connection() as conn:
            rows = conn.execute(f"SELECT * FROM users WHERE id IN ({placeholders})", ids).fetchall()
            return {row["id"]: self._row_to_user(row) for row in rows}

    def list_ai_users(self, include_paused: bool = False) -> list[User]:
        query = "SELECT * FROM users WHERE is_ai = 1"
        if not include_paused:
            query += " AND ai_paused = 0"
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY id").fetchall()
            return [self._row_to_user(row) for row in rows]

    def count_active_debates(self, user_ids: Iterable[str]) -> dict[str, int]:
        """Number of ACTIVE debates each user currently takes part in."""
        ids = list(user_ids)
        counts = {uid: 0 for uid in ids}
        if not ids:
            return counts
        placeholders = ",".join("?" for _ in ids)
        with self._connection() as conn:
            rows = conn.execute(
                f"""
                SELECT uid, COUNT(*) AS active FROM (
                    SELECT challenger_id AS uid FROM debates
                    WHERE status = 'ACTIVE' AND challenger_id IN ({placeholders})
                    UNION ALL
                    SELECT opponent_id AS uid FROM debates
                    WHERE status = 'ACTIVE' AND opponent_id IN ({placeholders})
                ) GROUP BY uid
                """,
                ids + ids,
            ).fetchall()
        for row in rows:
            counts[row["uid"]] = row["active"]
        return counts

    def record_statement_analytics(
        self, user_id: str, word_count: int, conn: sqlite3.Connection | None = None
    ) -> None:
        with self._connection(conn) as c:
            c.execute(
                """
                UPDATE users SET total_statements = total_statements + 1,
                                 total_words = total_words + ?
                WHERE id = ?
                """,
                (word_count, user_id),
            )

    def adjust_user_record(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        *,
        elo_delta: int = 0,
        won: int = 0,
        lost: int = 0,
        tied: int = 0,
        debates: int = 0,
        score: float = 0.0,
        max_score: float = 0.0,
    ) -> None:
        """Add deltas to a user's rating and lifetime counters (negative deltas reverse them)."""
        conn.execute(
            """
            UPDATE users SET
                elo_rating = elo_rating + ?,
                debates_won = debates_won + ?,
                debates_lost = debates_lost + ?,
                debates_tied = debates_tied + ?,
                total_debates = total_debates + ?,
                total_score = total_score + ?,
                total_max_score = total_max_score + ?
            WHERE id = ?
            """,
            (elo_delta, won, lost, tied, debates, score, max_score, user_id),
        )

    # ------------------------------------------------------------------
    # Debates
    # ------------------------------------------------------------------

    def create_debate(self, debate: Debate, conn: sqlite3.Connection | None = None) -> Debate:
        with self._connection(conn) as c:
            c.execute(
                """
                INSERT INTO debates (
                    id, topic, category, description, challenge_type, status,
                    challenger_id, opponent_id, challenger_position, opponent_position,
                    total_rounds, current_round, round_duration_seconds, round_deadline,
                    created_at, started_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    debate.id,
                    debate.topic,
                    debate.category,
                    debate.description,
                    debate.challenge_type.value,
                    debate.status.value,
                    debate.challenger_id,
                    debate.opponent_id,
                    debate.challenger_position.value,
                    debate.opponent_position.value,
                    debate.total_rounds,
                    debate.current_round,
                    debate.round_duration_seconds,
                    to_db_time(debate.round_deadline),
                    to_db_time(debate.created_at),
                    to_db_time(debate.started_at),
                ),
            )
        logger.info(f"Created debate {debate.id} ({debate.status.value}): {debate.topic}")
        return debate

    def get_debate(self, debate_id: str, conn: sqlite3.Connection | None = None) -> Debate | None:
        with self._connection(conn) as c:
            row = c.execute("SELECT * FROM debates WHERE id = ?", (debate_id,)).fetchone()
            return self._row_to_debate(row) if row else None

    def list_debates(self, status: DebateStatus | None = None, limit: int | None = None) -> list[Debate]:
        query = "SELECT * FROM debates"
        params: list[Any] = []
        if status:
            query += " WHERE status = ?"
            params.append(status.value)
        query += " ORDER BY created_at"
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        with self._connection() as conn:
            return [self._row_to_debate(row) for row in conn.execute(query, params).fetchall()]

    def list_open_challenges(self, created_before: datetime) -> list[Debate]:
        """WAITING open challenges from human challengers, oldest first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT d.* FROM debates d
                JOIN users u ON u.id = d.challenger_id
                WHERE d.status = 'WAITING'
                  AND d.challenge_type = 'OPEN'
                  AND d.opponent_id IS NULL
                  AND u.is_ai = 0
                  AND d.created_at <= ?
                ORDER BY d.created_at, d.id
                """,
                (to_db_time(created_before),),
            ).fetchall()
            return [self._row_to_debate(row) for row in rows]

    def list_stale_waiting_debates(self, created_before: datetime, now: datetime) -> list[Debate]:
        """WAITING debates past the acceptance window, or direct challenges past their deadline."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM debates
                WHERE status = 'WAITING'
                  AND (created_at < ?
                       OR (opponent_id IS NOT NULL AND round_deadline IS NOT NULL AND round_deadline <= ?))
                ORDER BY created_at
                """,
                (to_db_time(created_before), to_db_time(now)),
            ).fetchall()
            return [self._row_to_debate(row) for row in rows]

    def list_expired_active_debates(self, now: datetime) -> list[Debate]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM debates
                WHERE status = 'ACTIVE' AND round_deadline IS NOT NULL AND round_deadline <= ?
                ORDER BY round_deadline
                """,
                (to_db_time(now),),
            ).fetchall()
            return [self._row_to_debate(row) for row in rows]

    def list_active_debates_with_ai(self) -> list[Debate]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT d.* FROM debates d
                WHERE d.status = 'ACTIVE'
                  AND EXISTS (
                      SELECT 1 FROM users u
                      WHERE u.is_ai = 1 AND u.ai_paused = 0
                        AND (
                            (d.challenge_type != 'GROUP' AND d.opponent_id IS NOT NULL
                             AND u.id IN (d.challenger_id, d.opponent_id))
                            OR u.id IN (
                                SELECT p.user_id FROM debate_participants p
                                WHERE p.debate_id = d.id AND p.status = 'ACTIVE'
                            )
                        )
                  )
                ORDER BY d.round_deadline
                """
            ).fetchall()
            return [self._row_to_debate(row) for row in rows]

    def list_unadjudicated_debates(self, claimed_before: datetime) -> list[Debate]:
        """COMPLETED debates with no live verdict claim."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM debates
                WHERE status = 'COMPLETED'
                  AND (verdict_claimed_at IS NULL OR verdict_claimed_at < ?)
                ORDER BY ended_at
                """,
                (to_db_time(claimed_before),),
            ).fetchall()
            return [self._row_to_debate(row) for row in rows]

    def transition_debate(
        self,
        debate_id: str,
        expected: DebateStatus,
        target: DebateStatus,
        conn: sqlite3.Connection | None = None,
        where: dict[str, Any] | None = None,
        **fields: Any,
    ) -> bool:
        """Move a debate from ``expected`` to ``target`` if it is still in ``expected``.

        ``where`` adds equality guards (``None`` values become IS NULL), and
        ``fields`` are written alongside the status. Returns False when another
        writer changed the row first.
        """
        if not can_transition(expected, target):
            raise InvalidStateError(debate_id, expected, target, detail="illegal status transition")

        fields["status"] = target
        set_clause = ", ".join(f"{name} = ?" for name in fields)
        params = [self._to_db_value(value) for value in fields.values()]

        conditions = ["id = ?", "status = ?"]
        params.extend([debate_id, expected.value])
        for column, value in (where or {}).items():
            if value is None:
                conditions.append(f"{column} IS NULL")
            else:
                conditions.append(f"{column} = ?")
                params.append(self._to_db_value(value))

        with self._connection(conn) as c:
            cursor = c.execute(
                f"UPDATE debates SET {set_clause} WHERE {' AND '.join(conditions)}", params
            )
            changed = cursor.rowcount > 0

        if changed:
            logger.debug(f"Debate {debate_id}: {expected.value} -> {target.value}")
        return changed

    def claim_challenge(
        self, debate_id: str, opponent_id: str, started_at: datetime, round_deadline: datetime
    ) -> bool:
        """Accept a WAITING challenge only if nobody has claimed it yet."""
        return self.transition_debate(
            debate_id,
            DebateStatus.WAITING,
            DebateStatus.ACTIVE,
            where={"opponent_id": None},
            opponent_id=opponent_id,
            started_at=started_at,
            round_deadline=round_deadline,
        )

    def advance_round(
        self,
        debate_id: str,
        from_round: int,
        round_deadline: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        with self._connection(conn) as c:
            cursor = c.execute(
                """
                UPDATE debates SET current_round = current_round + 1, round_deadline = ?
                WHERE id = ? AND status = 'ACTIVE' AND current_round = ? AND current_round < total_rounds
                """,
                (to_db_time(round_deadline), debate_id, from_round),
            )
            return cursor.rowcount > 0

    def complete_debate(
        self,
        debate_id: str,
        at_round: int,
        ended_at: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        return self.transition_debate(
            debate_id,
            DebateStatus.ACTIVE,
            DebateStatus.COMPLETED,
            conn=conn,
            where={"current_round": at_round},
            ended_at=ended_at,
            round_deadline=None,
        )

    def claim_verdict(self, debate_id: str, now: datetime, stale_before: datetime) -> bool:
        """Take the right to adjudicate a COMPLETED debate."""
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE debates SET verdict_claimed_at = ?
                WHERE id = ? AND status = 'COMPLETED'
                  AND (verdict_claimed_at IS NULL OR verdict_claimed_at < ?)
                """,
                (to_db_time(now), debate_id, to_db_time(stale_before)),
            )
            return cursor.rowcount > 0

    def release_verdict_claim(self, debate_id: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE debates SET verdict_claimed_at = NULL WHERE id = ? AND status = 'COMPLETED'",
                (debate_id,),
            )

    def mark_ratings_applied(
        self,
        conn: sqlite3.Connection,
        debate_id: str,
        challenger_change: int | None,
        opponent_change: int | None,
        first_time: bool = True,
        rated_round: int = 0,
    ) -> bool:
        """Record the rating change; with ``first_time`` it only succeeds once per debate."""
        query = """
            UPDATE debates SET ratings_applied = 1, challenger_elo_change = ?, opponent_elo_change = ?,
                               rated_round = ?
            WHERE id = ?
        """
        if first_time:
            query += " AND ratings_applied = 0"
        cursor = conn.execute(query, (challenger_change, opponent_change, rated_round, debate_id))
        return cursor.rowcount > 0

    def flag_for_review(self, debate_id: str, reason: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "UPDATE debates SET needs_review = 1, review_reason = ? WHERE id = ?",
                (reason, debate_id),
            )
        logger.error(f"Debate {debate_id} flagged for manual review: {reason}")

    # ------------------------------------------------------------------
    # Appeals
    # ------------------------------------------------------------------

    def file_appeal(
        self,
        debate: Debate,
        appellant_id: str,
        reason: str | None,
        statement_ids: list[str],
        now: datetime,
    ) -> bool:
        """Open an appeal unless another one is already running."""
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE debates SET
                    status = 'APPEALED',
                    appeal_status = 'PENDING',
                    appealed_by = ?,
                    appeal_reason = ?,
                    appealed_at = ?,
                    appealed_statements = ?,
                    appeal_count = appeal_count + 1,
                    original_winner_id = winner_id
                WHERE id = ?
                  AND status IN ('VERDICT_READY', 'APPEALED')
                  AND appeal_count = ?
                  AND (appeal_status IS NULL OR appeal_status IN ('RESOLVED', 'DENIED'))
                """,
                (
                    appellant_id,
                    reason,
                    to_db_time(now),
                    json.dumps(statement_ids),
                    debate.id,
                    debate.appeal_count,
                ),
            )
            return cursor.rowcount > 0

    def claim_appeal(self, debate_id: str) -> bool:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE debates SET appeal_status = 'PROCESSING'
                WHERE id = ? AND status = 'APPEALED' AND appeal_status = 'PENDING'
                """,
                (debate_id,),
            )
            return cursor.rowcount > 0

    def release_appeal_claim(self, debate_id: str) -> None:
        """Hand a PROCESSING appeal back to PENDING after a failed resolution."""
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE debates SET appeal_status = 'PENDING'
                WHERE id = ? AND status = 'APPEALED' AND appeal_status = 'PROCESSING'
                """,
                (debate_id,),
            )

    def list_pending_appeals(self) -> list[Debate]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM debates
                WHERE status = 'APPEALED' AND appeal_status = 'PENDING'
                ORDER BY appealed_at
                """
            ).fetchall()
            return [self._row_to_debate(row) for row in rows]

    def close_appeal(
        self,
        conn: sqlite3.Connection,
        debate_id: str,
        outcome: AppealStatus,
        winner_id: str | None,
        now: datetime,
    ) -> bool:
        cursor = conn.execute(
            """
            UPDATE debates SET appeal_status = ?, winner_id = ?, verdict_date = ?
            WHERE id = ? AND status = 'APPEALED' AND appeal_status = 'PROCESSING'
            """,
            (outcome.value, winner_id, to_db_time(now), debate_id),
        )
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def insert_statement(
        self, statement: Statement, conn: sqlite3.Connection | None = None
    ) -> InsertResult:
        """Insert a statement only while its debate is ACTIVE in that round."""
        with self._connection(conn) as c:
            try:
                cursor = c.execute(
                    """
                    INSERT INTO statements (
                        id, debate_id, author_id, round, content, word_count, is_placeholder, created_at
                    )
                    SELECT ?, ?, ?, ?, ?, ?, ?, ?
                    WHERE EXISTS (
                        SELECT 1 FROM debates WHERE id = ? AND status = 'ACTIVE' AND current_round = ?
                    )
                    """,
                    (
                        statement.id,
                        statement.debate_id,
                        statement.author_id,
                        statement.round,
                        statement.content,
                        statement.word_count,
                        int(statement.is_placeholder),
                        to_db_time(statement.created_at),
                        statement.debate_id,
                        statement.round,
                    ),
                )
            except sqlite3.IntegrityError as e:
                if "UNIQUE" not in str(e):
                    raise
                logger.debug(
                    f"Duplicate statement for debate {statement.debate_id}, "
                    f"author {statement.author_id}, round {statement.round}"
                )
                return InsertResult.DUPLICATE
            return InsertResult.INSERTED if cursor.rowcount > 0 else InsertResult.STALE

    def get_statements(
        self,
        debate_id: str,
        round_number: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> list[Statement]:
        query = "SELECT * FROM statements WHERE debate_id = ?"
        params: list[Any] = [debate_id]
        if round_number is not None:
            query += " AND round = ?"
            params.append(round_number)
        query += " ORDER BY round, created_at, rowid"
        with self._connection(conn) as c:
            return [self._row_to_statement(row) for row in c.execute(query, params).fetchall()]

    # ------------------------------------------------------------------
    # Group debate participants
    # ------------------------------------------------------------------

    def add_participant(self, participant: Participant, conn: sqlite3.Connection | None = None) -> None:
        with self._connection(conn) as c:
            c.execute(
                """
                INSERT INTO debate_participants (id, debate_id, user_id, position, status, cumulative_score)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    participant.id,
                    participant.debate_id,
                    participant.user_id,
                    participant.position,
                    participant.status.value,
                    participant.cumulative_score,
                ),
            )

    def get_participants(
        self, debate_id: str, status: ParticipantStatus | None = None
    ) -> list[Participant]:
        query = "SELECT * FROM debate_participants WHERE debate_id = ?"
        params: list[Any] = [debate_id]
        if status:
            query += " AND status = ?"
            params.append(status.value)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY rowid", params).fetchall()
            return [
                Participant(
                    id=row["id"],
                    debate_id=row["debate_id"],
                    user_id=row["user_id"],
                    position=row["position"],
                    status=ParticipantStatus(row["status"]),
                    cumulative_score=row["cumulative_score"],
                )
                for row in rows
            ]

    def add_participant_scores(
        self, conn: sqlite3.Connection, debate_id: str, scores: dict[str, float]
    ) -> None:
        conn.executemany(
            """
            UPDATE debate_participants SET cumulative_score = cumulative_score + ?
            WHERE debate_id = ? AND user_id = ?
            """,
            [(score, debate_id, user_id) for user_id, score in scores.items()],
        )

    def eliminate_participants(
        self, conn: sqlite3.Connection, debate_id: str, user_ids: Iterable[str]
    ) -> None:
        conn.executemany(
            "UPDATE debate_participants SET status = 'ELIMINATED' WHERE debate_id = ? AND user_id = ?",
            [(debate_id, uid) for uid in user_ids],
        )

    # ------------------------------------------------------------------
    # Judges and verdicts
    # ------------------------------------------------------------------

    def create_judge(self, judge: Judge) -> bool:
        """Insert a judge; returns False if a judge with that name exists."""
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO judges (id, name, personality, emoji, description, system_prompt)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (judge.id, judge.name, judge.personality, judge.emoji, judge.description, judge.system_prompt),
            )
            return cursor.rowcount > 0

    def list_judges(self) -> list[Judge]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM judges ORDER BY name").fetchall()
            return [
                Judge(
                    id=row["id"],
                    name=row["name"],
                    personality=row["personality"],
                    emoji=row["emoji"],
                    description=row["description"],
                    system_prompt=row["system_prompt"],
                    debates_judged=row["debates_judged"],
                )
                for row in rows
            ]

    def insert_verdicts(self, conn: sqlite3.Connection, verdicts: list[Verdict]) -> None:
        conn.executemany(
            """
            INSERT INTO verdicts (
                id, debate_id, judge_id, kind, decision, winner_id, challenger_score,
                opponent_score, reasoning, is_fallback, appeal_round, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    v.id,
                    v.debate_id,
                    v.judge_id,
                    v.kind.value,
                    v.decision.value if v.decision else None,
                    v.winner_id,
                    v.challenger_score,
                    v.opponent_score,
                    v.reasoning,
                    int(v.is_fallback),
                    v.appeal_round,
                    to_db_time(v.created_at),
                )
                for v in verdicts
            ],
        )
        conn.executemany(
            "UPDATE judges SET debates_judged = debates_judged + 1 WHERE id = ?",
            [(v.judge_id,) for v in verdicts],
        )

    def insert_verdict_scores(self, conn: sqlite3.Connection, scores: list[VerdictScore]) -> None:
        conn.executemany(
            "INSERT INTO verdict_scores (verdict_id, user_id, score, reasoning) VALUES (?, ?, ?, ?)",
            [(s.verdict_id, s.user_id, s.score, s.reasoning) for s in scores],
        )

    def get_verdicts(self, debate_id: str, appeal_round: int | None = None) -> list[Verdict]:
        query = "SELECT * FROM verdicts WHERE debate_id = ?"
        params: list[Any] = [debate_id]
        if appeal_round is not None:
            query += " AND appeal_round = ?"
            params.append(appeal_round)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY appeal_round, created_at, rowid", params).fetchall()
            return [self._row_to_verdict(row) for row in rows]

    def get_verdict_scores(self, debate_id: str) -> list[VerdictScore]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT s.* FROM verdict_scores s
                JOIN verdicts v ON v.id = s.verdict_id
                WHERE v.debate_id = ?
                ORDER BY v.rowid, s.rowid
                """,
                (debate_id,),
            ).fetchall()
            return [
                VerdictScore(
                    verdict_id=row["verdict_id"],
                    user_id=row["user_id"],
                    score=row["score"],
                    reasoning=row["reasoning"],
                )
                for row in rows
            ]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def insert_notification(
        self, notification: Notification, conn: sqlite3.Connection | None = None
    ) -> None:
        with self._connection(conn) as c:
            c.execute(
                """
                INSERT INTO notifications (id, user_id, type, title, message, debate_id, tournament_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    notification.id,
                    notification.user_id,
                    notification.type.value,
                    notification.title,
                    notification.message,
                    notification.debate_id,
                    notification.tournament_id,
                    to_db_time(notification.created_at),
                ),
            )

    def list_notifications(
        self,
        user_id: str | None = None,
        notification_type: NotificationType | None = None,
        debate_id: str | None = None,
    ) -> list[Notification]:
        conditions = []
        params: list[Any] = []
        if user_id:
            conditions.append("user_id = ?")
            params.append(user_id)
        if notification_type:
            conditions.append("type = ?")
            params.append(notification_type.value)
        if debate_id:
            conditions.append("debate_id = ?")
            params.append(debate_id)
        query = "SELECT * FROM notifications"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY created_at, rowid", params).fetchall()
            return [
                Notification(
                    id=row["id"],
                    user_id=row["user_id"],
                    type=NotificationType(row["type"]),
                    title=row["title"],
                    message=row["message"],
                    debate_id=row["debate_id"],
                    tournament_id=row["tournament_id"],
                    created_at=from_db_time(row["created_at"]),
                )
                for row in rows
            ]

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_db_value(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return to_db_time(value)
        if isinstance(value, bool):
            return int(value)
        return value

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            is_ai=bool(row["is_ai"]),
            ai_paused=bool(row["ai_paused"]),
            ai_personality=AIPersonality(row["ai_personality"]) if row["ai_personality"] else None,
            ai_response_delay_seconds=row["ai_response_delay_seconds"],
            elo_rating=row["elo_rating"],
            debates_won=row["debates_won"],
            debates_lost=row["debates_lost"],
            debates_tied=row["debates_tied"],
            total_debates=row["total_debates"],
            total_score=row["total_score"],
            total_max_score=row["total_max_score"],
            total_statements=row["total_statements"],
            total_words=row["total_words"],
            created_at=from_db_time(row["created_at"]),
        )

    @staticmethod
    def _row_to_debate(row: sqlite3.Row) -> Debate:
        return Debate(
            id=row["id"],
            topic=row["topic"],
            category=row["category"],
            description=row["description"],
            challenge_type=ChallengeType(row["challenge_type"]),
            status=DebateStatus(row["status"]),
            challenger_id=row["challenger_id"],
            opponent_id=row["opponent_id"],
            challenger_position=Position(row["challenger_position"]),
            opponent_position=Position(row["opponent_position"]),
            total_rounds=row["total_rounds"],
            current_round=row["current_round"],
            round_duration_seconds=row["round_duration_seconds"],
            round_deadline=from_db_time(row["round_deadline"]),
            winner_id=row["winner_id"],
            challenger_elo_change=row["challenger_elo_change"],
            opponent_elo_change=row["opponent_elo_change"],
            ratings_applied=bool(row["ratings_applied"]),
            rated_round=row["rated_round"],
            verdict_claimed_at=from_db_time(row["verdict_claimed_at"]),
            verdict_date=from_db_time(row["verdict_date"]),
            appeal_status=AppealStatus(row["appeal_status"]) if row["appeal_status"] else None,
            appealed_by=row["appealed_by"],
            appeal_reason=row["appeal_reason"],
            appealed_at=from_db_time(row["appealed_at"]),
            appeal_count=row["appeal_count"],
            original_winner_id=row["original_winner_id"],
            appealed_statements=json.loads(row["appealed_statements"] or "[]"),
            needs_review=bool(row["needs_review"]),
            review_reason=row["review_reason"],
            created_at=from_db_time(row["created_at"]),
            started_at=from_db_time(row["started_at"]),
            ended_at=from_db_time(row["ended_at"]),
        )

    @staticmethod
    def _row_to_statement(row: sqlite3.Row) -> Statement:
        return Statement(
            id=row["id"],
            debate_id=row["debate_id"],
            author_id=row["author_id"],
            round=row["round"],
            content=row["content"],
            word_count=row["word_count"],
            is_placeholder=bool(row["is_placeholder"]),
            created_at=from_db_time(row["created_at"]),
        )

    @staticmethod
    def _row_to_verdict(row: sqlite3.Row) -> Verdict:
        return Verdict(
            id=row["id"],
            debate_id=row["debate_id"],
            judge_id=row["judge_id"],
            kind=VerdictKind(row["kind"]),
            decision=Decision(row["decision"]) if row["decision"] else None,
            winner_id=row["winner_id"],
            challenger_score=row["challenger_score"],
            opponent_score=row["opponent_score"],
            reasoning=row["reasoning"],
            is_fallback=bool(row["is_fallback"]),
            appeal_round=row["appeal_round"],
            created_at=from_db_time(row["created_at"]),
        )


def get_database_path(db_path: str | Path | None = None) -> Path:
    """Resolve the database location, defaulting to arena.db in the working directory."""
    return Path(db_path) if db_path else Path("arena.db")
