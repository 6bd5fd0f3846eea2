"""Data models for the debate engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .types import (
    AIPersonality,
    AppealStatus,
    ChallengeType,
    DebateStatus,
    Decision,
    NotificationType,
    ParticipantStatus,
    Position,
    VerdictKind,
)


class User(BaseModel):
    """A human or automated debater with rating and lifetime counters."""

    id: str
    username: str
    is_ai: bool = False
    ai_paused: bool = False
    ai_personality: AIPersonality | None = None
    ai_response_delay_seconds: int | None = None
    elo_rating: int = 1200
    debates_won: int = 0
    debates_lost: int = 0
    debates_tied: int = 0
    total_debates: int = 0
    total_score: float = 0.0
    total_max_score: float = 0.0
    total_statements: int = 0
    total_words: int = 0
    created_at: datetime | None = None


class Debate(BaseModel):
    """A single argumentative exchange."""

    id: str
    topic: str
    category: str = "GENERAL"
    description: str | None = None
    challenge_type: ChallengeType = ChallengeType.OPEN
    status: DebateStatus = DebateStatus.WAITING
    challenger_id: str
    opponent_id: str | None = None
    challenger_position: Position = Position.FOR
    opponent_position: Position = Position.AGAINST
    total_rounds: int = 5
    current_round: int = 1
    round_duration_seconds: int = 86400
    round_deadline: datetime | None = None
    winner_id: str | None = None
    challenger_elo_change: int | None = None
    opponent_elo_change: int | None = None
    ratings_applied: bool = False
    rated_round: int | None = None
    verdict_claimed_at: datetime | None = None
    verdict_date: datetime | None = None
    appeal_status: AppealStatus | None = None
    appealed_by: str | None = None
    appeal_reason: str | None = None
    appealed_at: datetime | None = None
    appeal_count: int = 0
    original_winner_id: str | None = None
    appealed_statements: list[str] = Field(default_factory=list)
    needs_review: bool = False
    review_reason: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None

    @property
    def side_ids(self) -> list[str]:
        """Challenger then opponent, skipping an unassigned opponent."""
        return [uid for uid in (self.challenger_id, self.opponent_id) if uid]

    def is_side(self, user_id: str) -> bool:
        return user_id in self.side_ids

    def other_side(self, user_id: str) -> str | None:
        if user_id == self.challenger_id:
            return self.opponent_id
        if user_id == self.opponent_id:
            return self.challenger_id
        return None


class Statement(BaseModel):
    """One party's argument for one round."""

    id: str
    debate_id: str
    author_id: str
    round: int
    content: str
    word_count: int = 0
    is_placeholder: bool = False
    created_at: datetime | None = None


class Participant(BaseModel):
    """Member of a group (King of the Hill) debate."""

    id: str
    debate_id: str
    user_id: str
    position: str | None = None
    status: ParticipantStatus = ParticipantStatus.ACTIVE
    cumulative_score: float = 0.0


class Judge(BaseModel):
    """A named evaluation persona."""

    id: str
    name: str
    personality: str
    emoji: str = ""
    description: str = ""
    system_prompt: str
    debates_judged: int = 0


class Verdict(BaseModel):
    """One judge's opinion on one debate; never updated after insert."""

    id: str
    debate_id: str
    judge_id: str
    kind: VerdictKind = VerdictKind.HEAD_TO_HEAD
    decision: Decision | None = None
    winner_id: str | None = None
    challenger_score: float | None = None
    opponent_score: float | None = None
    reasoning: str = ""
    is_fallback: bool = False
    appeal_round: int = 0
    created_at: datetime | None = None


class VerdictScore(BaseModel):
    """Per-participant score attached to a group verdict."""

    verdict_id: str
    user_id: str
    score: float
    reasoning: str = ""


class Notification(BaseModel):
    """Recorded notification intent, delivered by an external mechanism."""

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    debate_id: str | None = None
    tournament_id: str | None = None
    created_at: datetime | None = None


class DebateCreateRequest(BaseModel):
    """Request to open a new debate challenge."""

    topic: str = Field(..., min_length=1)
    category: str = "GENERAL"
    description: str | None = None
    challenger_id: str
    challenger_position: Position = Position.FOR
    challenge_type: ChallengeType = ChallengeType.OPEN
    opponent_id: str | None = None
    total_rounds: int | None = Field(default=None, ge=1)
    round_duration_seconds: int | None = Field(default=None, gt=0)


class SubmissionStatus(Enum):
    ACCEPTED = "accepted"
    ALREADY_SUBMITTED = "already_submitted"


class RoundOutcome(Enum):
    """What happened to the round after a statement landed."""

    WAITING_FOR_OPPONENT = "waiting_for_opponent"
    ADVANCED = "advanced"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNCHANGED = "unchanged"


@dataclass
class SubmissionResult:
    """Result of submitting an argument."""

    status: SubmissionStatus
    debate_id: str
    round: int
    outcome: RoundOutcome = RoundOutcome.UNCHANGED
    statement_id: str | None = None


@dataclass
class SweepSummary:
    """JSON summary returned by every scheduler entry point."""

    processed: int = 0
    advanced: int = 0
    completed: int = 0
    cancelled: int = 0
    conflicts: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def record_error(self, item_id: str, error: Exception | str) -> None:
        self.errors.append({"id": item_id, "error": str(error)})

    def merge(self, other: "SweepSummary") -> "SweepSummary":
        return SweepSummary(
            processed=self.processed + other.processed,
            advanced=self.advanced + other.advanced,
            completed=self.completed + other.completed,
            cancelled=self.cancelled + other.cancelled,
            conflicts=self.conflicts + other.conflicts,
            errors=self.errors + other.errors,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "advanced": self.advanced,
            "completed": self.completed,
            "cancelled": self.cancelled,
            "conflicts": self.conflicts,
            "errors": list(self.errors),
        }
