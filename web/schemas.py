"""Request bodies and response helpers for the HTTP layer."""

from pydantic import BaseModel, Field

from debate_engine.models import SubmissionResult, SweepSummary
from debate_engine.types import AIPersonality, Position


class UserCreateRequest(BaseModel):
    """Request model for registering a debater."""

    username: str = Field(..., min_length=1)
    is_ai: bool = False
    ai_personality: AIPersonality | None = None
    ai_response_delay_seconds: int | None = Field(default=None, ge=0)


class AcceptChallengeRequest(BaseModel):
    user_id: str


class StatementRequest(BaseModel):
    """Request model for submitting an argument."""

    author_id: str
    content: str = Field(..., min_length=1)


class AppealRequest(BaseModel):
    """Request model for appealing a verdict."""

    appellant_id: str
    reason: str | None = None
    statement_ids: list[str] = Field(default_factory=list)


class RegistrationRequest(BaseModel):
    user_id: str
    position: Position | None = None  # required by Championship tournaments


def submission_response(result: SubmissionResult) -> dict:
    return {
        "status": result.status.value,
        "debate_id": result.debate_id,
        "round": result.round,
        "outcome": result.outcome.value,
        "statement_id": result.statement_id,
    }


def sweep_response(summary: SweepSummary) -> dict:
    return summary.to_dict()
