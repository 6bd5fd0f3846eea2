"""Championship round-one advancement.

Players register for the FOR or AGAINST position and round 1 pairs the two
positions against each other. Who leaves round 1 is decided per position
group by each player's own judge score, not by the match result; from round
2 the advancers play an ordinary single-elimination bracket.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from itertools import zip_longest

from debate_engine.types import Position

MIN_PER_POSITION = 2
ELIMINATION_REASON = "Outscored in round 1"


@dataclass
class RoundOneResult:
    """A player's round-one record as used for ranking."""

    user_id: str
    position: Position
    score: float | None  # mean judge score; None when the debate has no verdict
    differential: float
    won: bool
    elo_at_start: int
    registered_at: datetime
    seed: int | None = None


def advancing_per_position(players_per_position: int) -> int:
    return max(1, players_per_position // 2)


def total_rounds(players: int) -> int:
    """Round 1 plus the bracket rounds its advancers need."""
    advancers = 2 * advancing_per_position(players // 2)
    return 1 + max(1, math.ceil(math.log2(advancers)))


def _rank_key(result: RoundOneResult) -> tuple:
    return (
        result.score is None,
        -(result.score or 0.0),
        not result.won,
        -result.differential,
        -result.elo_at_start,
        result.registered_at,
        result.seed or math.inf,
        result.user_id,
    )


def rank(results: list[RoundOneResult]) -> list[RoundOneResult]:
    """Best first: score, match won, differential, rating, registration, seed."""
    return sorted(results, key=_rank_key)


def select_advancers(results: list[RoundOneResult]) -> tuple[list[str], list[str]]:
    """Split round-one players into (advancing, eliminated).

    The top half of each position group advances. Advancers are interleaved
    FOR, AGAINST by rank so the next round pairs the two groups again.
    """
    leaders: dict[Position, list[str]] = {}
    eliminated: list[str] = []
    for position in Position:
        group = rank([r for r in results if r.position == position])
        count = advancing_per_position(len(group))
        leaders[position] = [r.user_id for r in group[:count]]
        eliminated.extend(r.user_id for r in group[count:])

    advancing = [
        user_id
        for pair in zip_longest(leaders[Position.FOR], leaders[Position.AGAINST])
        for user_id in pair
        if user_id is not None
    ]
    return advancing, eliminated
