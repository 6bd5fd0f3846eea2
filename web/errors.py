"""Translation of engine errors into HTTP errors."""

import logging

from fastapi import HTTPException

from debate_engine.exceptions import (
    ArenaError,
    DataIntegrityError,
    DebateNotFoundError,
    InvalidStateError,
    InvalidSubmissionError,
    NotParticipantError,
    TournamentNotFoundError,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

STATUS_CODES: list[tuple[type[ArenaError], int]] = [
    (DebateNotFoundError, 404),
    (TournamentNotFoundError, 404),
    (NotParticipantError, 403),
    (InvalidStateError, 409),
    (InvalidSubmissionError, 422),
    (UpstreamFailure, 502),
    (DataIntegrityError, 500),
]


def to_http_exception(error: ArenaError) -> HTTPException:
    """Map an engine error onto the status code callers should see."""
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.error(f"{type(error).__name__}: {error}")
    return HTTPException(status_code=status_code, detail=str(error))
