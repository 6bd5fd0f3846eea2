"""Exception taxonomy for the arena engine.

Concurrency conflicts are deliberately absent: a guard that loses a race
returns a no-op result instead of raising.
"""


class ArenaError(Exception):
    """Base class for engine errors."""


class InvalidStateError(ArenaError):
    """An action was attempted against an entity in the wrong status."""

    def __init__(self, entity_id: str, expected: object, actual: object, detail: str | None = None):
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        message = f"{entity_id}: expected {_label(expected)}, found {_label(actual)}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class NotYourTurnError(InvalidStateError):
    """The author tried to submit out of turn."""


class AppealError(InvalidStateError):
    """An appeal violates the appeal rules."""


class DebateNotFoundError(ArenaError):
    def __init__(self, debate_id: str):
        self.debate_id = debate_id
        super().__init__(f"Debate {debate_id} not found")


class TournamentNotFoundError(ArenaError):
    def __init__(self, tournament_id: str):
        self.tournament_id = tournament_id
        super().__init__(f"Tournament {tournament_id} not found")


class NotParticipantError(ArenaError):
    def __init__(self, debate_id: str, user_id: str):
        self.debate_id = debate_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a participant of debate {debate_id}")


class InvalidSubmissionError(ArenaError):
    """Submitted content failed validation."""


class UpstreamFailure(ArenaError):
    """A judge or generation call failed or timed out."""


class JudgeEvaluationError(UpstreamFailure):
    pass


class GenerationError(UpstreamFailure):
    pass


class DataIntegrityError(ArenaError):
    """Stored state violates an engine invariant; the debate needs manual review."""

    def __init__(self, debate_id: str, detail: str):
        self.debate_id = debate_id
        self.detail = detail
        super().__init__(f"Integrity violation on debate {debate_id}: {detail}")


def _label(value: object) -> str:
    if isinstance(value, (set, frozenset, list, tuple)):
        return " or ".join(sorted(_label(v) for v in value))
    return getattr(value, "value", str(value))
