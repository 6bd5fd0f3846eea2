"""ELO rating and lifetime record updates applied when a verdict is final."""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Protocol

from .database import DatabaseManager
from .models import Debate

logger = logging.getLogger(__name__)


@dataclass
class RatingOutcome:
    """Result of one adjudication as seen by the rating system."""

    challenger_id: str
    opponent_id: str
    winner_id: str | None
    challenger_score: float = 0.0
    opponent_score: float = 0.0
    max_score: float = 0.0
    appeal_round: int = 0

    def result_for(self, user_id: str) -> float:
        if self.winner_id is None:
            return 0.5
        return 1.0 if self.winner_id == user_id else 0.0


class RatingUpdater(Protocol):
    """Collaborator that turns a final outcome into rating and counter changes."""

    def apply_outcome(
        self, conn: sqlite3.Connection, debate: Debate, outcome: RatingOutcome, first_time: bool = True
    ) -> bool:
        ...

    def reverse_outcome(self, conn: sqlite3.Connection, debate: Debate, outcome: RatingOutcome) -> None:
        ...


def expected_score(player_rating: float, opponent_rating: float) -> float:
    return 1 / (1 + 10 ** ((opponent_rating - player_rating) / 400))


def calculate_elo_change(player_rating: float, opponent_rating: float, result: float, k_factor: int = 32) -> int:
    """Rating points gained (negative when lost) for one result in [0, 1]."""
    return round(k_factor * (result - expected_score(player_rating, opponent_rating)))


class EloRatingUpdater:
    """Applies ELO changes and won/lost/tied counters to the users table."""

    def __init__(self, db: DatabaseManager, k_factor: int = 32):
        self.db = db
        self.k_factor = k_factor

    def apply_outcome(
        self, conn: sqlite3.Connection, debate: Debate, outcome: RatingOutcome, first_time: bool = True
    ) -> bool:
        """Apply the outcome inside ``conn``; returns False if this debate was already rated."""
        challenger = self.db.get_user(outcome.challenger_id, conn=conn)
        opponent = self.db.get_user(outcome.opponent_id, conn=conn)
        if challenger is None or opponent is None:
            raise ValueError(f"Debate {debate.id} references a missing user")

        challenger_change = calculate_elo_change(
            challenger.elo_rating,
            opponent.elo_rating,
            outcome.result_for(challenger.id),
            self.k_factor,
        )
        opponent_change = -challenger_change

        if not self.db.mark_ratings_applied(
            conn, debate.id, challenger_change, opponent_change, first_time, outcome.appeal_round
        ):
            logger.info(f"Ratings for debate {debate.id} were already applied, skipping")
            return False

        for user_id, change, score in (
            (challenger.id, challenger_change, outcome.challenger_score),
            (opponent.id, opponent_change, outcome.opponent_score),
        ):
            self.db.adjust_user_record(
                conn,
                user_id,
                elo_delta=change,
                debates=1,
                score=score,
                max_score=outcome.max_score,
                **_result_counter(outcome, user_id, 1),
            )

        logger.info(
            f"Debate {debate.id} rated: challenger {challenger_change:+d}, opponent {opponent_change:+d}"
        )
        return True

    def reverse_outcome(self, conn: sqlite3.Connection, debate: Debate, outcome: RatingOutcome) -> None:
        """Undo a previously applied outcome using the changes stored on the debate."""
        changes = {
            outcome.challenger_id: debate.challenger_elo_change or 0,
            outcome.opponent_id: debate.opponent_elo_change or 0,
        }
        scores = {
            outcome.challenger_id: outcome.challenger_score,
            outcome.opponent_id: outcome.opponent_score,
        }
        for user_id, change in changes.items():
            self.db.adjust_user_record(
                conn,
                user_id,
                elo_delta=-change,
                debates=-1,
                score=-scores[user_id],
                max_score=-outcome.max_score,
                **_result_counter(outcome, user_id, -1),
            )
        logger.info(f"Reversed rating changes of debate {debate.id}")


def _result_counter(outcome: RatingOutcome, user_id: str, step: int) -> dict[str, int]:
    if outcome.winner_id is None:
        return {"tied": step}
    if outcome.winner_id == user_id:
        return {"won": step}
    return {"lost": step}
