"""System health and judge roster endpoints."""

import logging

from fastapi import APIRouter, Depends

from debate_engine.core import ArenaEngine
from web.dependencies import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"isAlive": True}


@router.get("/judges")
async def list_judges(engine: ArenaEngine = Depends(get_engine)):
    """List the judge personas available for panels."""
    return {"judges": [j.model_dump(mode="json") for j in engine.db.list_judges()]}
