"""Appeals against head-to-head verdicts.

An appeal re-runs the panel with judges that have not judged the debate yet.
Earlier verdict rows stay untouched; the new votes are stored under the next
appeal round and the debate's winner is overwritten.
"""

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta

from config.settings import JudgingConfig
from debate_engine.database import DatabaseManager
from debate_engine.exceptions import (
    AppealError,
    ArenaError,
    DebateNotFoundError,
    InvalidStateError,
    InvalidSubmissionError,
    NotParticipantError,
)
from debate_engine.models import Debate, SweepSummary
from debate_engine.notifications import NotificationEmitter
from debate_engine.ratings import RatingUpdater
from debate_engine.tasks import TaskDispatcher
from debate_engine.types import AppealStatus, ChallengeType, DebateStatus, NotificationType
from debate_engine.utils import utc_now
from .consensus import VerdictConsensusEngine, aggregate_votes

logger = logging.getLogger(__name__)

APPEALABLE = (DebateStatus.VERDICT_READY, DebateStatus.APPEALED)


class AppealService:
    """Files and resolves verdict appeals."""

    def __init__(
        self,
        db: DatabaseManager,
        consensus: VerdictConsensusEngine,
        notifier: NotificationEmitter,
        dispatcher: TaskDispatcher,
        rating_updater: RatingUpdater,
        config: JudgingConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.consensus = consensus
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.rating_updater = rating_updater
        self.config = config
        self.clock = clock

    def file_appeal(
        self,
        debate_id: str,
        appellant_id: str,
        reason: str | None = None,
        statement_ids: list[str] | None = None,
    ) -> Debate:
        """Open an appeal and queue its resolution."""
        debate = self.db.get_debate(debate_id)
        if debate is None:
            raise DebateNotFoundError(debate_id)
        if debate.challenge_type == ChallengeType.GROUP:
            raise AppealError(debate_id, "head-to-head debate", "group round")
        if debate.status not in APPEALABLE:
            raise InvalidStateError(debate_id, set(APPEALABLE), debate.status)
        if not debate.is_side(appellant_id):
            raise NotParticipantError(debate_id, appellant_id)
        if debate.appeal_status in (AppealStatus.PENDING, AppealStatus.PROCESSING):
            raise AppealError(debate_id, "no appeal in progress", debate.appeal_status)
        if debate.winner_id == appellant_id:
            raise AppealError(debate_id, "appeal by the losing or tied side", "appellant won")

        now = self.clock()
        window = timedelta(hours=self.config.appeal_window_hours)
        if debate.verdict_date is None or now > debate.verdict_date + window:
            raise AppealError(
                debate_id, f"appeal within {self.config.appeal_window_hours}h of the verdict", "window closed"
            )

        statement_ids = list(statement_ids or [])
        if statement_ids:
            known = {s.id for s in self.db.get_statements(debate_id)}
            unknown = [sid for sid in statement_ids if sid not in known]
            if unknown:
                raise InvalidSubmissionError(f"Statements {unknown} do not belong to debate {debate_id}")

        if not self.db.file_appeal(debate, appellant_id, reason, statement_ids, now):
            raise AppealError(debate_id, "no appeal in progress", "appeal filed concurrently")

        logger.info(f"Appeal {debate.appeal_count + 1} filed on debate {debate_id} by {appellant_id}")
        self.dispatcher.dispatch(f"appeal:{debate_id}", lambda: self.resolve_appeal(debate_id))
        return self.db.get_debate(debate_id)

    async def resolve_appeal(self, debate_id: str) -> Debate | None:
        """Run the appeal panel; returns the updated debate or None if another worker owns it."""
        if not self.db.claim_appeal(debate_id):
            logger.debug(f"Appeal on debate {debate_id} is not pending")
            return None

        debate = self.db.get_debate(debate_id)
        try:
            appeal_round = debate.appeal_count
            previous_judges = {v.judge_id for v in self.db.get_verdicts(debate_id)}
            panel = self.consensus.select_panel(exclude=previous_judges)
            transcript = self.consensus.transcript_for(debate)
            votes = await self.consensus.evaluate_panel(panel, transcript)

            denied = all(v.decision.is_fallback for v in votes)
            previous_winner = debate.winner_id
            if denied:
                outcome, winner_id = AppealStatus.DENIED, previous_winner
            else:
                outcome = AppealStatus.RESOLVED
                winner_id = aggregate_votes(v.decision.decision for v in votes).winner_id(debate)

            with self.db.transaction() as conn:
                if not self.db.close_appeal(conn, debate_id, outcome, winner_id, self.clock()):
                    logger.info(f"Appeal on debate {debate_id} was closed by another worker")
                    return None

                self.consensus.store_votes(conn, debate, votes, appeal_round=appeal_round)

                if winner_id != previous_winner:
                    self._swap_ratings(conn, debate, winner_id, votes, appeal_round)

                self._notify(conn, debate, outcome, winner_id, previous_winner)
        except Exception:
            self.db.release_appeal_claim(debate_id)
            raise

        logger.info(
            f"Appeal on debate {debate_id} {outcome.value}: winner {previous_winner} -> {winner_id}"
        )
        return self.db.get_debate(debate_id)

    def _swap_ratings(self, conn: sqlite3.Connection, debate: Debate, winner_id, votes, appeal_round: int) -> None:
        if debate.ratings_applied:
            rated = self.db.get_verdicts(debate.id, debate.rated_round or 0)
            previous = self.consensus.rating_outcome_from_verdicts(debate, debate.winner_id, rated)
            self.rating_updater.reverse_outcome(conn, debate, previous)
        self.rating_updater.apply_outcome(
            conn,
            debate,
            self.consensus.rating_outcome(debate, winner_id, votes, appeal_round=appeal_round),
            first_time=not debate.ratings_applied,
        )

    def _notify(self, conn, debate: Debate, outcome: AppealStatus, winner_id, previous_winner) -> None:
        if outcome == AppealStatus.DENIED:
            title, message = "Appeal Denied", f'The appeal on "{debate.topic}" could not be judged; the original verdict stands.'
        elif winner_id == previous_winner:
            title, message = "Appeal Resolved", f'The appeal panel upheld the verdict on "{debate.topic}".'
        else:
            title, message = "Appeal Resolved", f'The appeal panel overturned the verdict on "{debate.topic}".'
        for user_id in debate.side_ids:
            self.notifier.emit(
                user_id, NotificationType.APPEAL_RESOLVED, title, message, debate_id=debate.id, conn=conn
            )

    def sweep_pending_appeals(self) -> SweepSummary:
        """Re-dispatch appeals left PENDING by a dropped background task."""
        summary = SweepSummary()
        for debate in self.db.list_pending_appeals():
            summary.processed += 1
            try:
                self.dispatcher.dispatch(
                    f"appeal:{debate.id}", lambda debate_id=debate.id: self.resolve_appeal(debate_id)
                )
            except (ArenaError, sqlite3.Error) as e:
                logger.error(f"Failed to dispatch appeal for debate {debate.id}: {e}")
                summary.record_error(debate.id, e)
        return summary
