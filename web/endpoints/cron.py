"""Scheduler entry points.

An external cron hits these routes; each one runs a single sweep and
returns its summary. They are idempotent, so overlapping or repeated calls
are safe.
"""

import logging

from fastapi import APIRouter, Depends

from debate_engine.core import ArenaEngine
from web.dependencies import get_engine, verify_cron_secret
from web.schemas import sweep_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cron", dependencies=[Depends(verify_cron_secret)])


@router.api_route("/process-expired", methods=["GET", "POST"])
async def process_expired(engine: ArenaEngine = Depends(get_engine)):
    """Resolve rounds whose deadline has passed and cancel stale challenges."""
    summary = engine.sweep_expired()
    logger.info(f"process-expired: {summary.to_dict()}")
    return sweep_response(summary)


@router.api_route("/ai-tasks", methods=["GET", "POST"])
async def ai_tasks(engine: ArenaEngine = Depends(get_engine)):
    """Auto-accept open challenges and generate outstanding automated turns."""
    summary = await engine.sweep_ai_tasks()
    logger.info(f"ai-tasks: {summary.to_dict()}")
    return sweep_response(summary)


@router.api_route("/tournament-progression", methods=["GET", "POST"])
async def tournament_progression(engine: ArenaEngine = Depends(get_engine)):
    summary = engine.sweep_tournaments()
    logger.info(f"tournament-progression: {summary.to_dict()}")
    return sweep_response(summary)


@router.api_route("/check-verdicts", methods=["GET", "POST"])
async def check_verdicts(engine: ArenaEngine = Depends(get_engine)):
    """Re-queue verdicts and appeals that were never resolved."""
    summary = engine.sweep_verdicts()
    logger.info(f"check-verdicts: {summary.to_dict()}")
    return sweep_response(summary)
