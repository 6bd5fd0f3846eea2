"""Base classes and interfaces for judging systems."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from debate_engine.transcript import DebateTranscript
from debate_engine.types import Decision


@dataclass
class JudgeDecision:
    """One judge's head-to-head decision."""

    decision: Decision
    challenger_score: float  # 0 to 100
    opponent_score: float
    reasoning: str
    is_fallback: bool = False


@dataclass
class ParticipantScore:
    """Score for one participant of a group round."""

    user_id: str
    score: float  # 0 to 100
    reasoning: str = ""


@dataclass
class GroupJudgeDecision:
    """One judge's scores for every participant of a group round."""

    scores: dict[str, ParticipantScore] = field(default_factory=dict)
    reasoning: str = ""
    is_fallback: bool = False


class BaseJudge(ABC):
    """Abstract base class for all judges."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Judge name/identifier."""
        pass

    @property
    def judge_id(self) -> str:
        """Persisted judge id the verdict rows reference."""
        return self.name

    @abstractmethod
    async def evaluate_debate(self, transcript: DebateTranscript) -> JudgeDecision:
        """Evaluate a completed 1v1 debate and return a decision."""
        pass

    async def evaluate_group(self, transcript: DebateTranscript) -> GroupJudgeDecision:
        """Score every participant of a group round."""
        raise NotImplementedError(f"{self.name} does not score group rounds")
