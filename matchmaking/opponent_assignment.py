"""Automated participants: accepting open challenges and taking turns."""

import asyncio
import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum

from config.settings import MatchmakingConfig
from debate_engine.database import DatabaseManager
from debate_engine.exceptions import ArenaError, DebateNotFoundError, InvalidStateError, UpstreamFailure
from debate_engine.models import Debate, Statement, SubmissionStatus, SweepSummary, User
from debate_engine.notifications import NotificationEmitter
from debate_engine.tasks import TaskDispatcher
from debate_engine.turns import TurnStateMachine
from debate_engine.types import ChallengeType, DebateStatus
from debate_engine.utils import utc_now
from .load_balancer import build_loads, distribute_challenges
from .responder import DebateResponder

logger = logging.getLogger(__name__)


class TurnResponseResult(Enum):
    GENERATED = "generated"
    NOT_AI_TURN = "not_ai_turn"
    ALREADY_SUBMITTED = "already_submitted"
    INACTIVE = "inactive"
    FAILED = "failed"


class OpponentAssignmentService:
    """Matches open challenges with automated participants and writes their arguments."""

    def __init__(
        self,
        db: DatabaseManager,
        turns: TurnStateMachine,
        notifier: NotificationEmitter,
        dispatcher: TaskDispatcher,
        responder: DebateResponder,
        config: MatchmakingConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.turns = turns
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.responder = responder
        self.config = config
        self.clock = clock

    def auto_accept_open_challenges(self, now: datetime | None = None) -> SweepSummary:
        """Accept waiting open challenges on behalf of the least-loaded automated participants.

        ``advanced`` in the summary counts accepted challenges.
        """
        summary = SweepSummary()
        if not self.config.auto_accept_enabled:
            logger.info("Auto-accept is disabled")
            return summary

        now = now or self.clock()
        participants = self.db.list_ai_users()
        challenges = self.db.list_open_challenges(created_before=now)
        if not participants or not challenges:
            logger.debug(f"Auto-accept: {len(participants)} participants, {len(challenges)} open challenges")
            return summary

        loads = build_loads(
            participants,
            self.db.count_active_debates(u.id for u in participants),
            self.config.personality_preference,
        )
        plan = distribute_challenges(
            loads, challenges, self.config.per_sweep_cap, now, self.config.default_response_delay_seconds
        )

        for assignment in plan:
            debate, user = assignment.debate, assignment.participant
            summary.processed += 1
            try:
                claimed = self.db.claim_challenge(
                    debate.id, user.id, now, now + timedelta(seconds=debate.round_duration_seconds)
                )
                if not claimed:
                    logger.debug(f"Challenge {debate.id} was claimed by another sweep")
                    summary.conflicts += 1
                    continue

                self.notifier.challenge_accepted(debate.challenger_id, debate.id, debate.topic, user.username)
            except (ArenaError, sqlite3.Error) as e:
                logger.error(f"Failed to accept challenge {debate.id} for {user.username}: {e}")
                summary.record_error(debate.id, e)
                continue

            summary.advanced += 1
            logger.info(f"{user.username} accepted challenge {debate.id}: {debate.topic}")
            self.dispatcher.dispatch(
                f"turn:{debate.id}", lambda debate_id=debate.id: self.generate_turn_response(debate_id)
            )

        logger.info(
            f"Auto-accept sweep: {summary.advanced} accepted, {summary.conflicts} conflicts, "
            f"{len(summary.errors)} errors"
        )
        return summary

    async def generate_turn_response(self, debate_id: str) -> TurnResponseResult:
        """Write the argument for every automated participant currently on turn."""
        debate = self.db.get_debate(debate_id)
        if debate is None:
            raise DebateNotFoundError(debate_id)
        if debate.status != DebateStatus.ACTIVE:
            return TurnResponseResult.INACTIVE

        statements = self.db.get_statements(debate_id)
        users = self.db.get_users(self.turns.sides(debate))
        authors, already = self._authors_on_turn(debate, statements, users)
        if not authors:
            return TurnResponseResult.ALREADY_SUBMITTED if already else TurnResponseResult.NOT_AI_TURN

        results = [await self._respond(debate, author, statements, users) for author in authors]
        if TurnResponseResult.GENERATED in results:
            return TurnResponseResult.GENERATED
        return results[0]

    def _authors_on_turn(
        self, debate: Debate, statements: list[Statement], users: dict[str, User]
    ) -> tuple[list[User], bool]:
        """Automated participants to generate for, and whether one already submitted this round."""
        automated = {uid: u for uid, u in users.items() if u.is_ai and not u.ai_paused}
        submitted = {s.author_id for s in statements if s.round == debate.current_round}
        already = any(uid in submitted for uid in automated)

        if debate.challenge_type == ChallengeType.GROUP:
            pending = [u for uid, u in automated.items() if uid not in submitted]
            return pending, already

        on_turn = self.turns.whose_turn(debate, statements)
        if on_turn in automated:
            return [automated[on_turn]], already
        return [], already

    async def _respond(
        self, debate: Debate, author: User, statements: list[Statement], users: dict[str, User]
    ) -> TurnResponseResult:
        content = await self._generate_with_retry(debate, author, statements, users)
        if content is None:
            return TurnResponseResult.FAILED

        fresh = self.db.get_debate(debate.id)
        if fresh is None or fresh.status != DebateStatus.ACTIVE or fresh.current_round != debate.current_round:
            logger.info(f"Debate {debate.id} moved on while {author.username} was writing")
            return TurnResponseResult.INACTIVE
        current = self.db.get_statements(debate.id, fresh.current_round)
        if any(s.author_id == author.id for s in current):
            return TurnResponseResult.ALREADY_SUBMITTED

        try:
            result = await self.turns.record_statement(fresh, author.id, content)
        except InvalidStateError as e:
            logger.info(f"Discarded generated argument for debate {debate.id}: {e}")
            return TurnResponseResult.INACTIVE

        if result.status == SubmissionStatus.ALREADY_SUBMITTED:
            return TurnResponseResult.ALREADY_SUBMITTED
        logger.info(f"{author.username} submitted round {result.round} of debate {debate.id}")
        return TurnResponseResult.GENERATED

    async def _generate_with_retry(
        self, debate: Debate, author: User, statements: list[Statement], users: dict[str, User]
    ) -> str | None:
        for attempt in range(1 + self.config.generation_max_retries):
            try:
                return await asyncio.wait_for(
                    self.responder.respond(debate, author, statements, users),
                    timeout=self.config.generation_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Generation for {author.username} in debate {debate.id} timed out (attempt {attempt + 1})")
            except UpstreamFailure as e:
                logger.warning(f"Generation for {author.username} in debate {debate.id} failed (attempt {attempt + 1}): {e}")
        logger.error(f"Giving up on {author.username}'s argument for debate {debate.id}")
        return None

    async def sweep_ai_turns(self) -> SweepSummary:
        """Generate any automated argument that a missed trigger left outstanding.

        ``advanced`` counts generated arguments; failed generations are listed in ``errors``.
        """
        summary = SweepSummary()
        for debate in self.db.list_active_debates_with_ai():
            summary.processed += 1
            try:
                result = await self.generate_turn_response(debate.id)
            except (ArenaError, sqlite3.Error) as e:
                logger.error(f"AI turn for debate {debate.id} failed: {e}")
                summary.record_error(debate.id, e)
                continue

            if result == TurnResponseResult.GENERATED:
                summary.advanced += 1
            elif result == TurnResponseResult.FAILED:
                summary.record_error(debate.id, "generation failed")
            elif result in (TurnResponseResult.ALREADY_SUBMITTED, TurnResponseResult.INACTIVE):
                summary.conflicts += 1

        logger.info(
            f"AI turn sweep: processed={summary.processed} generated={summary.advanced} "
            f"errors={len(summary.errors)}"
        )
        return summary
