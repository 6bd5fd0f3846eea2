"""Debate, challenge, and appeal endpoints."""

import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from debate_engine.core import ArenaEngine
from debate_engine.exceptions import ArenaError, DebateNotFoundError
from debate_engine.models import DebateCreateRequest
from debate_engine.types import DebateStatus
from web.dependencies import get_engine
from web.errors import to_http_exception
from web.schemas import (
    AcceptChallengeRequest,
    AppealRequest,
    StatementRequest,
    UserCreateRequest,
    submission_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post("/users")
async def create_user(request: UserCreateRequest, engine: ArenaEngine = Depends(get_engine)):
    """Register a human or automated debater."""
    try:
        user = engine.create_user(
            request.username,
            is_ai=request.is_ai,
            ai_personality=request.ai_personality,
            ai_response_delay_seconds=request.ai_response_delay_seconds,
        )
    except sqlite3.IntegrityError as e:
        raise HTTPException(status_code=409, detail=f"Username {request.username} is taken") from e
    return user.model_dump(mode="json")


@router.get("/users/{user_id}/notifications")
async def list_notifications(user_id: str, engine: ArenaEngine = Depends(get_engine)):
    notifications = engine.db.list_notifications(user_id=user_id)
    return {"notifications": [n.model_dump(mode="json") for n in notifications]}


@router.post("/debates")
async def create_debate(request: DebateCreateRequest, engine: ArenaEngine = Depends(get_engine)):
    """Create an open or direct challenge."""
    try:
        debate = engine.create_debate(request)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return debate.model_dump(mode="json")


@router.get("/debates")
async def list_debates(
    status: DebateStatus | None = None, limit: int = 50, engine: ArenaEngine = Depends(get_engine)
):
    debates = engine.db.list_debates(status=status, limit=limit)
    return {"debates": [d.model_dump(mode="json") for d in debates]}


@router.get("/debates/{debate_id}")
async def get_debate(debate_id: str, engine: ArenaEngine = Depends(get_engine)):
    """Get a debate with its statements and current verdicts."""
    debate = engine.db.get_debate(debate_id)
    if debate is None:
        raise to_http_exception(DebateNotFoundError(debate_id))
    statements = engine.db.get_statements(debate_id)
    return {
        "debate": debate.model_dump(mode="json"),
        "statements": [s.model_dump(mode="json") for s in statements],
        "participants": [p.model_dump(mode="json") for p in engine.db.get_participants(debate_id)],
        "verdicts": [v.model_dump(mode="json") for v in engine.db.get_verdicts(debate_id)],
    }


@router.post("/debates/{debate_id}/accept")
async def accept_challenge(
    debate_id: str, request: AcceptChallengeRequest, engine: ArenaEngine = Depends(get_engine)
):
    try:
        debate = engine.accept_challenge(debate_id, request.user_id)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return debate.model_dump(mode="json")


@router.post("/debates/{debate_id}/statements")
async def submit_statement(debate_id: str, request: StatementRequest, engine: ArenaEngine = Depends(get_engine)):
    """Submit an argument for the current round."""
    try:
        result = await engine.turns.submit_argument(debate_id, request.author_id, request.content)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return submission_response(result)


@router.post("/debates/{debate_id}/ai-response")
async def request_ai_response(debate_id: str, engine: ArenaEngine = Depends(get_engine)):
    """Generate the automated side's argument now instead of waiting for the sweep."""
    try:
        result = await engine.assignment.generate_turn_response(debate_id)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return {"debate_id": debate_id, "result": result.value}


@router.post("/debates/{debate_id}/appeal")
async def file_appeal(debate_id: str, request: AppealRequest, engine: ArenaEngine = Depends(get_engine)):
    """Appeal a verdict; a fresh judge panel re-evaluates in the background."""
    try:
        debate = engine.appeals.file_appeal(
            debate_id, request.appellant_id, request.reason, request.statement_ids
        )
    except ArenaError as e:
        raise to_http_exception(e) from e
    return debate.model_dump(mode="json")
