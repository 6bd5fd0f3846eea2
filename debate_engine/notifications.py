"""Notification intent recording.

The engine never delivers notifications; it stores what should be sent and
an external mechanism (push, email) picks the rows up.
"""

import logging
import sqlite3

from .database import DatabaseManager
from .models import Notification
from .types import NotificationType
from .utils import new_id, utc_now

logger = logging.getLogger(__name__)


class NotificationEmitter:
    """Records notification events for an external delivery mechanism."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def emit(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        debate_id: str | None = None,
        tournament_id: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Notification:
        """Record one notification, inside the caller's transaction when ``conn`` is given."""
        notification = Notification(
            id=new_id(),
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            debate_id=debate_id,
            tournament_id=tournament_id,
            created_at=utc_now(),
        )
        self.db.insert_notification(notification, conn=conn)
        logger.debug(f"Notification {notification_type.value} recorded for user {user_id}")
        return notification

    def your_turn(self, user_id: str, debate_id: str, topic: str) -> Notification:
        return self.emit(
            user_id,
            NotificationType.YOUR_TURN,
            "Your Turn",
            f'Your opponent has submitted their argument in "{topic}".',
            debate_id=debate_id,
        )

    def challenge_accepted(self, challenger_id: str, debate_id: str, topic: str, opponent_name: str) -> Notification:
        return self.emit(
            challenger_id,
            NotificationType.DEBATE_ACCEPTED,
            "Challenge Accepted",
            f'{opponent_name} has accepted your challenge: "{topic}"',
            debate_id=debate_id,
        )

    def debate_cancelled(
        self, user_ids: list[str], debate_id: str, topic: str, conn: sqlite3.Connection | None = None
    ) -> None:
        for user_id in user_ids:
            self.emit(
                user_id,
                NotificationType.DEBATE_CANCELLED,
                "Debate Cancelled",
                f'"{topic}" was cancelled because no arguments were submitted before the deadline.',
                debate_id=debate_id,
                conn=conn,
            )

    def outcome(
        self,
        user_id: str,
        winner_id: str | None,
        debate_id: str,
        topic: str,
        conn: sqlite3.Connection | None = None,
    ) -> Notification:
        """Record the won/lost/tied notification for one participant."""
        if winner_id is None:
            kind, title, message = NotificationType.DEBATE_TIED, "Debate Tied", f'"{topic}" ended in a tie.'
        elif winner_id == user_id:
            kind, title, message = NotificationType.DEBATE_WON, "You Won!", f'You won "{topic}".'
        else:
            kind, title, message = NotificationType.DEBATE_LOST, "You Lost", f'You lost "{topic}".'
        return self.emit(user_id, kind, title, message, debate_id=debate_id, conn=conn)
