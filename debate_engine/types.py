"""Shared types and enums for the debate engine."""

from enum import Enum


class DebateStatus(Enum):
    """Lifecycle status of a debate."""

    WAITING = "WAITING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    VERDICT_READY = "VERDICT_READY"
    APPEALED = "APPEALED"
    CANCELLED = "CANCELLED"


# Every status change in the engine must appear here.
ALLOWED_TRANSITIONS: dict[DebateStatus, frozenset[DebateStatus]] = {
    DebateStatus.WAITING: frozenset({DebateStatus.ACTIVE, DebateStatus.CANCELLED}),
    DebateStatus.ACTIVE: frozenset({DebateStatus.COMPLETED, DebateStatus.CANCELLED}),
    DebateStatus.COMPLETED: frozenset({DebateStatus.VERDICT_READY}),
    DebateStatus.VERDICT_READY: frozenset({DebateStatus.APPEALED}),
    DebateStatus.APPEALED: frozenset({DebateStatus.APPEALED}),
    DebateStatus.CANCELLED: frozenset(),
}


def can_transition(current: DebateStatus, target: DebateStatus) -> bool:
    """Return True when ``current -> target`` is a legal debate transition."""
    return target in ALLOWED_TRANSITIONS[current]


class ChallengeType(Enum):
    """How a debate found (or will find) its opponent."""

    OPEN = "OPEN"
    DIRECT = "DIRECT"
    GROUP = "GROUP"
    TOURNAMENT = "TOURNAMENT"


class Position(Enum):
    """Declared side of a participant."""

    FOR = "FOR"
    AGAINST = "AGAINST"

    @property
    def opposite(self) -> "Position":
        return Position.AGAINST if self is Position.FOR else Position.FOR


class Decision(Enum):
    """A single judge's head-to-head decision."""

    CHALLENGER_WINS = "CHALLENGER_WINS"
    OPPONENT_WINS = "OPPONENT_WINS"
    TIE = "TIE"


class VerdictKind(Enum):
    HEAD_TO_HEAD = "HEAD_TO_HEAD"
    GROUP = "GROUP"


class AppealStatus(Enum):
    """Progress of an appeal against a verdict."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    RESOLVED = "RESOLVED"
    DENIED = "DENIED"


class ParticipantStatus(Enum):
    """Status of a participant in a group debate."""

    ACTIVE = "ACTIVE"
    ELIMINATED = "ELIMINATED"


class AIPersonality(Enum):
    """Argument styles available to automated participants."""

    BALANCED = "BALANCED"
    SMART = "SMART"
    AGGRESSIVE = "AGGRESSIVE"
    CALM = "CALM"
    WITTY = "WITTY"
    ANALYTICAL = "ANALYTICAL"


class NotificationType(Enum):
    """Kinds of notification intent recorded by the engine."""

    DEBATE_ACCEPTED = "DEBATE_ACCEPTED"
    YOUR_TURN = "YOUR_TURN"
    DEBATE_WON = "DEBATE_WON"
    DEBATE_LOST = "DEBATE_LOST"
    DEBATE_TIED = "DEBATE_TIED"
    DEBATE_CANCELLED = "DEBATE_CANCELLED"
    ROUND_EXPIRED = "ROUND_EXPIRED"
    APPEAL_RESOLVED = "APPEAL_RESOLVED"
    TOURNAMENT_ROUND = "TOURNAMENT_ROUND"
    TOURNAMENT_WON = "TOURNAMENT_WON"
    TOURNAMENT_ELIMINATED = "TOURNAMENT_ELIMINATED"
