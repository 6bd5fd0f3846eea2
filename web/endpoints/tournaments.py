"""Tournament endpoints."""

import logging

from fastapi import APIRouter, Depends

from debate_engine.core import ArenaEngine
from debate_engine.exceptions import ArenaError
from tournaments.models import TournamentCreateRequest, TournamentStatus
from web.dependencies import get_engine
from web.errors import to_http_exception
from web.schemas import RegistrationRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tournaments")


@router.post("")
async def create_tournament(request: TournamentCreateRequest, engine: ArenaEngine = Depends(get_engine)):
    """Create a new tournament open for registration."""
    try:
        tournament = engine.tournaments.create_tournament(request)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return tournament.model_dump(mode="json")


@router.get("")
async def list_tournaments(
    status: TournamentStatus | None = None,
    limit: int = 50,
    offset: int = 0,
    engine: ArenaEngine = Depends(get_engine),
):
    tournaments = engine.tournament_db.list_tournaments(status=status, limit=limit, offset=offset)
    return {"tournaments": [t.model_dump(mode="json") for t in tournaments]}


@router.get("/{tournament_id}")
async def get_tournament(tournament_id: str, engine: ArenaEngine = Depends(get_engine)):
    """Get the tournament with its participants and every match so far."""
    try:
        bracket = engine.tournaments.get_bracket_view(tournament_id)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return bracket.model_dump(mode="json")


@router.post("/{tournament_id}/register")
async def register_participant(
    tournament_id: str, request: RegistrationRequest, engine: ArenaEngine = Depends(get_engine)
):
    try:
        participant = engine.tournaments.register_participant(tournament_id, request.user_id, request.position)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return participant.model_dump(mode="json")


@router.post("/{tournament_id}/start")
async def start_tournament(tournament_id: str, engine: ArenaEngine = Depends(get_engine)):
    """Seed the registered participants and open round one."""
    try:
        tournament = engine.tournaments.start_tournament(tournament_id)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return tournament.model_dump(mode="json")


@router.get("/{tournament_id}/rounds/{round_number}")
async def get_round_status(tournament_id: str, round_number: int, engine: ArenaEngine = Depends(get_engine)):
    try:
        engine.tournaments.get_tournament(tournament_id)
    except ArenaError as e:
        raise to_http_exception(e) from e
    return engine.tournament_db.get_round_status(tournament_id, round_number).model_dump(mode="json")
