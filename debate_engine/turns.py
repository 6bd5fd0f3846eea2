"""Turn-based state machine for a single debate.

Round transitions are conditional updates keyed on the status and round that
were read, so a submission racing with another submission or with the
expired-round sweep changes the debate at most once. Side effects such as
verdict generation are dispatched only by the writer whose update matched.
"""

import logging
import sqlite3
from collections import Counter
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from config.settings import DebateRulesConfig
from .database import DatabaseManager, InsertResult
from .exceptions import (
    ArenaError,
    DataIntegrityError,
    DebateNotFoundError,
    InvalidStateError,
    InvalidSubmissionError,
    NotParticipantError,
    NotYourTurnError,
)
from .models import (
    Debate,
    RoundOutcome,
    Statement,
    SubmissionResult,
    SubmissionStatus,
    SweepSummary,
)
from .notifications import NotificationEmitter
from .tasks import TaskDispatcher
from .types import ChallengeType, DebateStatus, NotificationType, ParticipantStatus
from .utils import count_words, halfway_round, new_id, utc_now

logger = logging.getLogger(__name__)

DebateJob = Callable[[str], Awaitable[object]]


class TurnStateMachine:
    """Decides whose turn it is and advances, completes or cancels debates."""

    def __init__(
        self,
        db: DatabaseManager,
        notifier: NotificationEmitter,
        dispatcher: TaskDispatcher,
        rules: DebateRulesConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.rules = rules
        self.clock = clock
        # Wired by the engine: verdict generation and automated turn responses
        self.on_debate_completed: DebateJob | None = None
        self.on_turn_opened: DebateJob | None = None

    # ------------------------------------------------------------------
    # Turn order
    # ------------------------------------------------------------------

    def sides(self, debate: Debate) -> list[str]:
        """User ids expected to submit in each round."""
        if debate.challenge_type == ChallengeType.GROUP:
            return [p.user_id for p in self.db.get_participants(debate.id, ParticipantStatus.ACTIVE)]
        return debate.side_ids

    def whose_turn(self, debate: Debate, statements: list[Statement]) -> str | None:
        """Return the 1v1 side currently on turn, or None when nobody is.

        The challenger opens round 1. Later, the side that has not yet
        submitted is on turn; when neither has, the side that went second in
        the previous round opens.
        """
        if debate.status != DebateStatus.ACTIVE or debate.opponent_id is None:
            return None
        if debate.challenge_type == ChallengeType.GROUP:
            return None

        submitted = {s.author_id for s in statements if s.round == debate.current_round}
        pending = [uid for uid in debate.side_ids if uid not in submitted]
        if not pending:
            return None
        if len(pending) == 1:
            return pending[0]
        if debate.current_round == 1:
            return debate.challenger_id

        previous = [s for s in statements if s.round == debate.current_round - 1]
        if len(previous) == 2:
            return previous[-1].author_id
        return debate.challenger_id

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def submit_argument(self, debate_id: str, author_id: str, content: str) -> SubmissionResult:
        """Submit ``author_id``'s argument for the debate's current round."""
        content = (content or "").strip()
        if not content:
            raise InvalidSubmissionError("Argument content must not be empty")

        debate = self._load(debate_id)
        if debate.status != DebateStatus.ACTIVE:
            raise InvalidStateError(debate_id, DebateStatus.ACTIVE, debate.status)
        if author_id not in self.sides(debate):
            raise NotParticipantError(debate_id, author_id)

        snapshot = self._read_round(debate)
        if snapshot is None:
            raise self._round_moved_on(debate)
        debate, statements = snapshot

        round_number = debate.current_round
        if any(s.author_id == author_id and s.round == round_number for s in statements):
            logger.info(f"User {author_id} already submitted round {round_number} of debate {debate_id}")
            return SubmissionResult(SubmissionStatus.ALREADY_SUBMITTED, debate_id, round_number)

        if (
            debate.challenge_type != ChallengeType.GROUP
            and round_number == 1
            and author_id != debate.challenger_id
            and not any(s.author_id == debate.challenger_id and s.round == 1 for s in statements)
        ):
            raise NotYourTurnError(debate_id, "challenger opening statement", "opponent submission")

        return await self.record_statement(debate, author_id, content)

    async def record_statement(self, debate: Debate, author_id: str, content: str) -> SubmissionResult:
        """Write a statement for ``debate.current_round`` and resolve the round.

        Used by both human submissions and automated responses; the statement
        uniqueness constraint is the final duplicate guard.
        """
        round_number = debate.current_round
        statement = Statement(
            id=new_id(),
            debate_id=debate.id,
            author_id=author_id,
            round=round_number,
            content=content,
            word_count=count_words(content),
            created_at=self.clock(),
        )

        with self.db.transaction() as conn:
            inserted = self.db.insert_statement(statement, conn=conn)
            if inserted == InsertResult.INSERTED:
                self.db.record_statement_analytics(author_id, statement.word_count, conn=conn)

        if inserted == InsertResult.DUPLICATE:
            return SubmissionResult(SubmissionStatus.ALREADY_SUBMITTED, debate.id, round_number)
        if inserted == InsertResult.STALE:
            raise self._round_moved_on(debate)

        logger.info(
            f"Statement {statement.id} recorded for debate {debate.id} round {round_number} by {author_id}"
        )

        outcome = self.resolve_round(debate.id, round_number)
        if outcome == RoundOutcome.WAITING_FOR_OPPONENT and debate.challenge_type != ChallengeType.GROUP:
            other = debate.other_side(author_id)
            if other:
                self.notifier.your_turn(other, debate.id, debate.topic)
                self._dispatch_turn(debate.id, [other])

        return SubmissionResult(
            SubmissionStatus.ACCEPTED, debate.id, round_number, outcome=outcome, statement_id=statement.id
        )

    def resolve_round(self, debate_id: str, round_number: int) -> RoundOutcome:
        """Advance or complete the debate if every side has submitted ``round_number``."""
        debate = self._load(debate_id)
        if debate.status != DebateStatus.ACTIVE or debate.current_round != round_number:
            return RoundOutcome.UNCHANGED

        snapshot = self._read_round(debate)
        if snapshot is None:
            return RoundOutcome.UNCHANGED
        debate, statements = snapshot

        sides = self.sides(debate)
        submitted = {s.author_id for s in statements if s.round == round_number}
        if not sides or any(uid not in submitted for uid in sides):
            return RoundOutcome.WAITING_FOR_OPPONENT
        if debate.challenge_type != ChallengeType.GROUP and debate.opponent_id is None:
            return RoundOutcome.WAITING_FOR_OPPONENT

        outcome = self._close_round(debate, self.clock())
        self._after_round_change(debate_id, outcome)
        return outcome

    def _read_round(self, debate: Debate) -> tuple[Debate, list[Statement]] | None:
        """Load the statements and re-read the debate after them.

        Statements are only written for the round that is current at write
        time, so checking them against the later read never reports a
        statement from a round that another writer opened in between.
        Returns None when the status or round changed since ``debate`` was read.
        """
        statements = self.db.get_statements(debate.id)
        fresh = self._load(debate.id)
        if fresh.status != debate.status or fresh.current_round != debate.current_round:
            logger.info(
                f"Debate {debate.id} moved from round {debate.current_round} ({debate.status.value}) "
                f"to round {fresh.current_round} ({fresh.status.value}) while reading"
            )
            return None
        self.check_integrity(fresh, statements)
        return fresh, statements

    def _round_moved_on(self, debate: Debate) -> InvalidStateError:
        fresh = self._load(debate.id)
        if fresh.status != DebateStatus.ACTIVE:
            return InvalidStateError(debate.id, DebateStatus.ACTIVE, fresh.status)
        return InvalidStateError(
            debate.id, f"round {debate.current_round}", f"round {fresh.current_round}", detail="round moved on"
        )

    def check_integrity(self, debate: Debate, statements: list[Statement]) -> None:
        """Flag and raise when stored state breaks an invariant the engine relies on."""
        problem = None
        if debate.current_round > debate.total_rounds:
            problem = f"current round {debate.current_round} exceeds total rounds {debate.total_rounds}"
        else:
            per_author_round = Counter((s.author_id, s.round) for s in statements)
            duplicates = [key for key, count in per_author_round.items() if count > 1]
            ahead = [s.id for s in statements if s.round > debate.current_round]
            if duplicates:
                problem = f"duplicate statements for {duplicates}"
            elif ahead:
                problem = f"statements {ahead} are ahead of round {debate.current_round}"

        if problem:
            self.db.flag_for_review(debate.id, problem)
            raise DataIntegrityError(debate.id, problem)

    # ------------------------------------------------------------------
    # Expired-round sweep
    # ------------------------------------------------------------------

    def sweep_expired_rounds(self, now: datetime | None = None) -> SweepSummary:
        """Resolve debates whose round deadline passed and cancel stale challenges."""
        now = now or self.clock()
        summary = SweepSummary()

        cutoff = now - timedelta(days=self.rules.waiting_expiry_days)
        for debate in self.db.list_stale_waiting_debates(cutoff, now):
            summary.processed += 1
            if self.db.transition_debate(
                debate.id, DebateStatus.WAITING, DebateStatus.CANCELLED, where={"opponent_id": debate.opponent_id}, ended_at=now
            ):
                summary.cancelled += 1
                logger.info(f"Cancelled stale challenge {debate.id}")
            else:
                summary.conflicts += 1

        for debate in self.db.list_expired_active_debates(now):
            summary.processed += 1
            try:
                outcome = self._resolve_expired(debate, now)
            except (ArenaError, sqlite3.Error) as e:
                logger.error(f"Failed to resolve expired round for debate {debate.id}: {e}")
                summary.record_error(debate.id, e)
                continue

            if outcome == RoundOutcome.ADVANCED:
                summary.advanced += 1
            elif outcome == RoundOutcome.COMPLETED:
                summary.completed += 1
            elif outcome == RoundOutcome.CANCELLED:
                summary.cancelled += 1
            else:
                summary.conflicts += 1
            self._after_round_change(debate.id, outcome)

        logger.info(
            f"Expired-round sweep: processed={summary.processed} advanced={summary.advanced} "
            f"completed={summary.completed} cancelled={summary.cancelled} errors={len(summary.errors)}"
        )
        return summary

    def _resolve_expired(self, debate: Debate, now: datetime) -> RoundOutcome:
        notices: list[tuple[str, str]] = []
        cancelled_sides: list[str] = []

        with self.db.transaction() as conn:
            fresh = self.db.get_debate(debate.id, conn=conn)
            if (
                fresh is None
                or fresh.status != DebateStatus.ACTIVE
                or fresh.current_round != debate.current_round
                or fresh.round_deadline is None
                or fresh.round_deadline > now
            ):
                return RoundOutcome.UNCHANGED

            if fresh.challenge_type == ChallengeType.GROUP:
                # Group rounds are scored with whatever was submitted
                return self._close_round(fresh, now, conn=conn, force_complete=True)

            round_number = fresh.current_round
            submitted = {s.author_id for s in self.db.get_statements(fresh.id, round_number, conn=conn)}
            missing = [uid for uid in fresh.side_ids if uid not in submitted]

            if not missing:
                return self._close_round(fresh, now, conn=conn)

            if round_number == 1 and len(missing) == len(fresh.side_ids):
                if not self.db.transition_debate(
                    fresh.id,
                    DebateStatus.ACTIVE,
                    DebateStatus.CANCELLED,
                    conn=conn,
                    where={"current_round": round_number},
                    ended_at=now,
                    round_deadline=None,
                ):
                    return RoundOutcome.UNCHANGED
                cancelled_sides = fresh.side_ids
                self.notifier.debate_cancelled(cancelled_sides, fresh.id, fresh.topic, conn=conn)
                logger.info(f"Cancelled debate {fresh.id}: nobody submitted round 1")
                return RoundOutcome.CANCELLED

            for user_id in missing:
                placeholder = Statement(
                    id=new_id(),
                    debate_id=fresh.id,
                    author_id=user_id,
                    round=round_number,
                    content=self.rules.expired_submission_text,
                    is_placeholder=True,
                    created_at=now,
                )
                if self.db.insert_statement(placeholder, conn=conn) == InsertResult.INSERTED:
                    notices.append((user_id, f"You missed the deadline for round {round_number} of \"{fresh.topic}\"."))

            forfeit = round_number >= fresh.total_rounds or round_number >= halfway_round(fresh.total_rounds)
            outcome = self._close_round(fresh, now, conn=conn, force_complete=forfeit)

            for user_id, message in notices:
                self.notifier.emit(
                    user_id,
                    NotificationType.ROUND_EXPIRED,
                    "Round Time Expired",
                    message,
                    debate_id=fresh.id,
                    conn=conn,
                )

        logger.info(f"Expired round {debate.current_round} of debate {debate.id}: {outcome.value}")
        return outcome

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _close_round(
        self,
        debate: Debate,
        now: datetime,
        conn: sqlite3.Connection | None = None,
        force_complete: bool = False,
    ) -> RoundOutcome:
        """Complete on the final round (or when forced), otherwise advance."""
        if force_complete or debate.current_round >= debate.total_rounds:
            if self.db.complete_debate(debate.id, debate.current_round, now, conn=conn):
                logger.info(f"Debate {debate.id} completed after round {debate.current_round}")
                return RoundOutcome.COMPLETED
            return RoundOutcome.UNCHANGED

        deadline = now + timedelta(seconds=debate.round_duration_seconds)
        if self.db.advance_round(debate.id, debate.current_round, deadline, conn=conn):
            logger.info(f"Debate {debate.id} advanced to round {debate.current_round + 1}")
            return RoundOutcome.ADVANCED
        return RoundOutcome.UNCHANGED

    def _after_round_change(self, debate_id: str, outcome: RoundOutcome) -> None:
        if outcome == RoundOutcome.COMPLETED and self.on_debate_completed is not None:
            job = self.on_debate_completed
            self.dispatcher.dispatch(f"verdict:{debate_id}", lambda: job(debate_id))
        elif outcome == RoundOutcome.ADVANCED:
            debate = self.db.get_debate(debate_id)
            if debate is not None:
                self._dispatch_turn(debate_id, debate.side_ids)

    def _dispatch_turn(self, debate_id: str, candidates: list[str]) -> None:
        """Queue an automated response when one of ``candidates`` is an unpaused AI user."""
        if self.on_turn_opened is None:
            return
        users = self.db.get_users(candidates)
        if any(u.is_ai and not u.ai_paused for u in users.values()):
            job = self.on_turn_opened
            self.dispatcher.dispatch(f"turn:{debate_id}", lambda: job(debate_id))

    def _load(self, debate_id: str) -> Debate:
        debate = self.db.get_debate(debate_id)
        if debate is None:
            raise DebateNotFoundError(debate_id)
        return debate
