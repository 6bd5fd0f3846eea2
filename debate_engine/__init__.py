"""Debate lifecycle: turn order, persistence, ratings and notifications."""

from .types import ChallengeType, DebateStatus, Decision, NotificationType, Position
from .models import Debate, Statement, SubmissionResult, SubmissionStatus, SweepSummary, User
from .exceptions import (
    ArenaError,
    DataIntegrityError,
    DebateNotFoundError,
    InvalidStateError,
    InvalidSubmissionError,
    NotParticipantError,
    NotYourTurnError,
)

__all__ = [
    "ChallengeType",
    "DebateStatus",
    "Decision",
    "NotificationType",
    "Position",
    "Debate",
    "Statement",
    "SubmissionResult",
    "SubmissionStatus",
    "SweepSummary",
    "User",
    "ArenaError",
    "DataIntegrityError",
    "DebateNotFoundError",
    "InvalidStateError",
    "InvalidSubmissionError",
    "NotParticipantError",
    "NotYourTurnError",
]
