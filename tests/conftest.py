"""Pytest configuration and shared fixtures.

This file is automatically loaded by pytest and provides:
- An engine wired to a temporary SQLite database
- Scripted stand-ins for the judge panel and the debater model
- A dispatcher that lets tests decide when background work runs

Learning notes:
- conftest.py is a special filename recognized by pytest
- Fixtures defined here are available to all tests without importing
- Nothing here talks to a real model endpoint; judges and debaters are fakes
"""

import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from config.settings import AppConfig, JudgingConfig, MatchmakingConfig, SchedulerConfig, SystemConfig
from debate_engine.core import ArenaEngine
from debate_engine.exceptions import GenerationError, JudgeEvaluationError
from debate_engine.models import Debate, DebateCreateRequest, Judge, Statement, User
from debate_engine.transcript import DebateTranscript
from debate_engine.types import AIPersonality, ChallengeType, Decision
from debate_engine.utils import new_id
from judges.base import BaseJudge, GroupJudgeDecision, JudgeDecision, ParticipantScore

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================


class FakeClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ManualDispatcher:
    """Queues background jobs until a test runs them.

    Learning notes:
    - The engine only needs ``dispatch(name, job)``
    - ``run_all`` also runs jobs queued by the jobs themselves
    """

    def __init__(self):
        self.queue: list[tuple[str, object]] = []
        self.history: list[str] = []

    def dispatch(self, name: str, job) -> None:
        self.queue.append((name, job))
        self.history.append(name)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.queue]

    async def run_all(self) -> None:
        while self.queue:
            _, job = self.queue.pop(0)
            await job()

    async def drain(self) -> None:
        await self.run_all()

    def clear(self) -> None:
        self.queue.clear()


class JudgeScript:
    """Shared instructions for every fake judge of one test."""

    def __init__(self):
        self.decision = Decision.CHALLENGER_WINS
        self.decisions: dict[str, Decision] = {}
        self.debate_decisions: dict[str, Decision] = {}
        self.failing: set[str] = set()
        self.group_scores: dict[str, float] = {}
        self.calls: list[str] = []

    def decision_for(self, judge_name: str, debate_id: str | None = None) -> Decision:
        if debate_id in self.debate_decisions:
            return self.debate_decisions[debate_id]
        return self.decisions.get(judge_name, self.decision)


class FakeJudge(BaseJudge):
    def __init__(self, judge: Judge, script: JudgeScript):
        self.judge = judge
        self.script = script

    @property
    def name(self) -> str:
        return self.judge.name

    @property
    def judge_id(self) -> str:
        return self.judge.id

    async def evaluate_debate(self, transcript: DebateTranscript) -> JudgeDecision:
        self.script.calls.append(self.name)
        if self.name in self.script.failing:
            raise JudgeEvaluationError(f"{self.name} is unavailable")
        decision = self.script.decision_for(self.name, transcript.debate_id)
        challenger, opponent = {
            Decision.CHALLENGER_WINS: (80.0, 60.0),
            Decision.OPPONENT_WINS: (55.0, 75.0),
            Decision.TIE: (70.0, 70.0),
        }[decision]
        return JudgeDecision(decision, challenger, opponent, f"{self.name} reasoning")

    async def evaluate_group(self, transcript: DebateTranscript) -> GroupJudgeDecision:
        self.script.calls.append(self.name)
        if self.name in self.script.failing:
            raise JudgeEvaluationError(f"{self.name} is unavailable")
        scores = {
            uid: ParticipantScore(uid, self.script.group_scores.get(uid, 50.0), "scored")
            for uid in transcript.submitted_user_ids()
        }
        return GroupJudgeDecision(scores=scores, reasoning="group reasoning")


class FakeResponder:
    """Debater model stand-in; writes a short argument or fails on request."""

    def __init__(self):
        self.calls: list[tuple[str, int]] = []
        self.fail = False

    async def respond(
        self, debate: Debate, author: User, statements: list[Statement], users: dict[str, User]
    ) -> str:
        self.calls.append((author.id, debate.current_round))
        if self.fail:
            raise GenerationError("model unavailable")
        return f"{author.username} makes a careful argument for round {debate.current_round}."


class RecordingPrizeDistributor:
    def __init__(self):
        self.paid: list[str] = []
        self.fail = False

    def distribute(self, tournament) -> None:
        if self.fail:
            raise RuntimeError("payment service down")
        self.paid.append(tournament.id)


# =============================================================================
# SHARED FIXTURES - Available to all test modules
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> ManualDispatcher:
    return ManualDispatcher()


@pytest.fixture
def judge_script() -> JudgeScript:
    return JudgeScript()


@pytest.fixture
def responder() -> FakeResponder:
    return FakeResponder()


@pytest.fixture
def prizes() -> RecordingPrizeDistributor:
    return RecordingPrizeDistributor()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    """Provide a configuration backed by a temporary database.

    Learning notes:
    - tmp_path is a built-in pytest fixture, unique per test
    - Zero retries keep failure paths short
    """
    return AppConfig(
        judging=JudgingConfig(panel_size=3, judge_timeout_seconds=5, judge_max_retries=0),
        matchmaking=MatchmakingConfig(default_response_delay_seconds=0, generation_max_retries=0),
        scheduler=SchedulerConfig(cron_secret="test-secret"),
        system=SystemConfig(database_path=str(tmp_path / "arena.db")),
    )


@pytest.fixture
def engine(config, clock, dispatcher, judge_script, responder, prizes) -> ArenaEngine:
    """Provide an engine with seeded judges and every outside call faked."""
    arena = ArenaEngine(
        config,
        judge_factory=lambda judge: FakeJudge(judge, judge_script),
        responder=responder,
        prize_distributor=prizes,
        dispatcher=dispatcher,
        rng=random.Random(7),
        clock=clock,
    )
    arena.seed_judges()
    return arena


# =============================================================================
# HELPERS
# =============================================================================


def add_user(
    engine: ArenaEngine,
    username: str,
    *,
    elo: int = 1200,
    is_ai: bool = False,
    personality: AIPersonality | None = None,
    delay: int | None = None,
    total_debates: int = 0,
) -> User:
    user = User(
        id=new_id(),
        username=username,
        is_ai=is_ai,
        ai_personality=personality or (AIPersonality.BALANCED if is_ai else None),
        ai_response_delay_seconds=delay,
        elo_rating=elo,
        total_debates=total_debates,
        created_at=engine.clock(),
    )
    return engine.db.create_user(user)


def start_debate(engine: ArenaEngine, challenger: User, opponent: User, total_rounds: int = 3, **kwargs) -> Debate:
    """Create a direct challenge and accept it."""
    debate = engine.create_debate(
        DebateCreateRequest(
            topic=kwargs.pop("topic", "Cities should ban private cars downtown"),
            challenger_id=challenger.id,
            challenge_type=ChallengeType.DIRECT,
            opponent_id=opponent.id,
            total_rounds=total_rounds,
            **kwargs,
        )
    )
    return engine.accept_challenge(debate.id, opponent.id)


# =============================================================================
# PYTEST CONFIGURATION HOOKS
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers.

    Learning notes:
    - Hooks allow customizing pytest behavior
    - Markers are used to categorize tests
    - Use with @pytest.mark.slow, etc.
    """
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
