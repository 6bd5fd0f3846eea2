"""Shared FastAPI dependencies."""

import hmac
import logging

from fastapi import Depends, Header, HTTPException, Request

from debate_engine.core import ArenaEngine

logger = logging.getLogger(__name__)


def get_engine(request: Request) -> ArenaEngine:
    """Get the engine created by the application lifespan."""
    return request.app.state.engine


def verify_cron_secret(
    authorization: str | None = Header(default=None),
    engine: ArenaEngine = Depends(get_engine),
) -> None:
    """Require ``Authorization: Bearer <cron secret>`` on scheduler routes."""
    secret = engine.config.scheduler.cron_secret
    if not secret:
        logger.warning("Rejected scheduler call: no cron secret is configured")
        raise HTTPException(status_code=401, detail="Scheduler access is not configured")

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    if not hmac.compare_digest(token.encode(), secret.encode()):
        raise HTTPException(status_code=403, detail="Invalid bearer token")
