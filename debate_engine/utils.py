"""Utility functions for the debate engine."""

import math
import re
import uuid
from datetime import datetime, timezone

DB_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def to_db_time(value: datetime | None) -> str | None:
    """Serialize a datetime as fixed-width UTC text so SQL string comparison orders correctly."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DB_TIME_FORMAT)


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, DB_TIME_FORMAT).replace(tzinfo=timezone.utc)


def count_words(text: str) -> int:
    return len(re.findall(r"\S+", text))


def halfway_round(total_rounds: int) -> int:
    """Round at which a forfeit ends the debate instead of advancing it."""
    return math.ceil(total_rounds / 2)
