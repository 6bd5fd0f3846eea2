"""King of the Hill elimination arithmetic.

Every round is one group debate with all remaining players. Players who do
not submit are dropped by the scorer; of the rest, the lowest-ranked quarter
(at least one) is eliminated. Two survivors meet in a head-to-head final.
"""

import math

FINAL_DEBATE_ROUNDS = 3
GROUP_DEBATE_ROUNDS = 1


def elimination_count(players: int, ratio: float = 0.25) -> int:
    """Players eliminated after a group round of ``players`` submitters."""
    return max(1, math.ceil(players * ratio))


def total_rounds(players: int, ratio: float = 0.25) -> int:
    """Group rounds needed to reach two players, plus the final."""
    rounds = 0
    while players > 2:
        players -= elimination_count(players, ratio)
        rounds += 1
    return rounds + 1


def split_standings(standings: list[str], ratio: float = 0.25) -> tuple[list[str], list[str]]:
    """Split ranked submitters into (survivors, eliminated).

    Two or fewer submitters all survive: they go to the final, or the only
    one left is champion.
    """
    if len(standings) <= 2:
        return list(standings), []
    cut = len(standings) - elimination_count(len(standings), ratio)
    return standings[:cut], standings[cut:]
