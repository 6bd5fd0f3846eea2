"""Composition root wiring the arena's components over one database."""

import logging
import random
from collections.abc import Callable
from datetime import datetime, timedelta

from config.settings import AppConfig
from judges.appeals import AppealService
from judges.consensus import VerdictConsensusEngine
from judges.factory import JudgeFactory, ai_judge_factory
from judges.personas import seed_judges
from matchmaking.opponent_assignment import OpponentAssignmentService
from matchmaking.responder import AIResponder, DebateResponder
from models.manager import ModelManager
from tournaments.database import TournamentDatabaseManager
from tournaments.manager import TournamentManager
from tournaments.prizes import PrizeDistributor
from .database import DatabaseManager
from .exceptions import DebateNotFoundError, InvalidStateError, InvalidSubmissionError, NotParticipantError
from .models import Debate, DebateCreateRequest, SweepSummary, User
from .notifications import NotificationEmitter
from .ratings import EloRatingUpdater, RatingUpdater
from .tasks import AsyncioTaskDispatcher, TaskDispatcher
from .turns import TurnStateMachine
from .types import AIPersonality, ChallengeType, DebateStatus
from .utils import new_id, utc_now

logger = logging.getLogger(__name__)


class ArenaEngine:
    """Builds every component from an ``AppConfig`` and exposes the scheduler sweeps.

    Collaborators that talk to the outside world (judges, argument
    generation, ratings, prize payout, background dispatch, the clock) can be
    injected; the defaults use the configured model provider and SQLite.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        judge_factory: JudgeFactory | None = None,
        responder: DebateResponder | None = None,
        rating_updater: RatingUpdater | None = None,
        prize_distributor: PrizeDistributor | None = None,
        dispatcher: TaskDispatcher | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.clock = clock

        system = config.system
        self.db = DatabaseManager(system.database_path, system.busy_timeout_seconds)
        self.tournament_db = TournamentDatabaseManager(system.database_path, system.busy_timeout_seconds)
        self.notifier = NotificationEmitter(self.db)
        self.dispatcher = dispatcher or AsyncioTaskDispatcher()
        self.model_manager = ModelManager(system)
        self.rating_updater = rating_updater or EloRatingUpdater(self.db, config.ratings.k_factor)

        self.consensus = VerdictConsensusEngine(
            self.db,
            self.notifier,
            self.dispatcher,
            judge_factory or ai_judge_factory(self.model_manager, config.judging),
            self.rating_updater,
            config.judging,
            rng=rng,
            clock=clock,
        )
        self.appeals = AppealService(
            self.db, self.consensus, self.notifier, self.dispatcher, self.rating_updater, config.judging, clock=clock
        )
        self.turns = TurnStateMachine(self.db, self.notifier, self.dispatcher, config.rules, clock=clock)
        self.assignment = OpponentAssignmentService(
            self.db,
            self.turns,
            self.notifier,
            self.dispatcher,
            responder or AIResponder(self.model_manager, config.matchmaking.debater_model),
            config.matchmaking,
            clock=clock,
        )
        self.tournaments = TournamentManager(
            self.tournament_db,
            self.consensus,
            NotificationEmitter(self.tournament_db),
            self.dispatcher,
            config.tournaments,
            prize_distributor=prize_distributor,
            rng=rng,
            clock=clock,
        )

        self.turns.on_debate_completed = self.consensus.finalize_debate
        self.turns.on_turn_opened = self.assignment.generate_turn_response
        self.tournaments.on_match_started = self.assignment.generate_turn_response

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        username: str,
        *,
        is_ai: bool = False,
        ai_personality: AIPersonality | None = None,
        ai_response_delay_seconds: int | None = None,
    ) -> User:
        user = User(
            id=new_id(),
            username=username,
            is_ai=is_ai,
            ai_personality=ai_personality or (AIPersonality.BALANCED if is_ai else None),
            ai_response_delay_seconds=ai_response_delay_seconds,
            elo_rating=self.config.ratings.initial_rating,
            created_at=self.clock(),
        )
        return self.db.create_user(user)

    # ------------------------------------------------------------------
    # Challenges
    # ------------------------------------------------------------------

    def create_debate(self, request: DebateCreateRequest) -> Debate:
        """Open a WAITING challenge; a direct challenge must be accepted before its deadline."""
        if request.challenge_type not in (ChallengeType.OPEN, ChallengeType.DIRECT):
            raise InvalidSubmissionError(f"{request.challenge_type.value} debates are created by tournaments")
        if request.challenge_type == ChallengeType.DIRECT and not request.opponent_id:
            raise InvalidSubmissionError("A direct challenge needs an opponent")
        if request.opponent_id == request.challenger_id:
            raise InvalidSubmissionError("A user cannot challenge themselves")
        if self.db.get_user(request.challenger_id) is None:
            raise InvalidSubmissionError(f"User {request.challenger_id} does not exist")

        now = self.clock()
        duration = request.round_duration_seconds or self.config.rules.round_duration_seconds
        direct = request.challenge_type == ChallengeType.DIRECT
        debate = Debate(
            id=new_id(),
            topic=request.topic,
            category=request.category,
            description=request.description,
            challenge_type=request.challenge_type,
            status=DebateStatus.WAITING,
            challenger_id=request.challenger_id,
            opponent_id=request.opponent_id if direct else None,
            challenger_position=request.challenger_position,
            opponent_position=request.challenger_position.opposite,
            total_rounds=request.total_rounds or self.config.rules.default_total_rounds,
            round_duration_seconds=duration,
            round_deadline=now + timedelta(seconds=duration) if direct else None,
            created_at=now,
        )
        return self.db.create_debate(debate)

    def accept_challenge(self, debate_id: str, user_id: str) -> Debate:
        """Accept an open challenge, or a direct challenge addressed to ``user_id``."""
        debate = self.db.get_debate(debate_id)
        if debate is None:
            raise DebateNotFoundError(debate_id)
        if debate.status != DebateStatus.WAITING:
            raise InvalidStateError(debate_id, DebateStatus.WAITING, debate.status)
        if debate.challenger_id == user_id:
            raise InvalidSubmissionError("A user cannot accept their own challenge")

        now = self.clock()
        deadline = now + timedelta(seconds=debate.round_duration_seconds)
        if debate.challenge_type == ChallengeType.DIRECT:
            if debate.opponent_id != user_id:
                raise NotParticipantError(debate_id, user_id)
            accepted = self.db.transition_debate(
                debate_id,
                DebateStatus.WAITING,
                DebateStatus.ACTIVE,
                where={"opponent_id": user_id},
                started_at=now,
                round_deadline=deadline,
            )
        else:
            accepted = self.db.claim_challenge(debate_id, user_id, now, deadline)

        if not accepted:
            raise InvalidStateError(debate_id, DebateStatus.WAITING, "accepted by someone else")

        user = self.db.get_user(user_id)
        self.notifier.challenge_accepted(debate.challenger_id, debate_id, debate.topic, user.username if user else user_id)
        logger.info(f"{user_id} accepted debate {debate_id}")
        return self.db.get_debate(debate_id)

    # ------------------------------------------------------------------
    # Scheduler sweeps
    # ------------------------------------------------------------------

    def sweep_expired(self, now: datetime | None = None) -> SweepSummary:
        return self.turns.sweep_expired_rounds(now)

    async def sweep_ai_tasks(self, now: datetime | None = None) -> SweepSummary:
        """Auto-accept open challenges, then fill in any outstanding automated turns."""
        accepted = self.assignment.auto_accept_open_challenges(now)
        turns = await self.assignment.sweep_ai_turns()
        return accepted.merge(turns)

    def sweep_tournaments(self, now: datetime | None = None) -> SweepSummary:
        progressed = self.tournaments.sweep_tournaments(now)
        return progressed.merge(self.tournaments.retry_prize_distribution())

    def sweep_verdicts(self, now: datetime | None = None) -> SweepSummary:
        """Recover verdict and appeal jobs lost by the background dispatcher."""
        verdicts = self.consensus.sweep_pending_verdicts(now)
        return verdicts.merge(self.appeals.sweep_pending_appeals())

    def seed_judges(self) -> int:
        return seed_judges(self.db)

    async def drain(self) -> None:
        """Wait for dispatched background work when the dispatcher supports it."""
        drain = getattr(self.dispatcher, "drain", None)
        if drain is not None:
            await drain()

    async def close(self) -> None:
        await self.drain()
        await self.model_manager.close()
        logger.info("Arena engine closed")
