"""Prize payout hook for completed tournaments."""

import logging
from typing import Protocol

from .models import Tournament

logger = logging.getLogger(__name__)


class PrizeDistributor(Protocol):
    """Pays out a completed tournament's prize pool.

    Raising marks the payout as outstanding; it is retried by
    ``TournamentManager.retry_prize_distribution``.
    """

    def distribute(self, tournament: Tournament) -> None:
        ...


class LoggingPrizeDistributor:
    """Records the payout in the log; payment capture happens elsewhere."""

    def distribute(self, tournament: Tournament) -> None:
        logger.info(
            f"Prize pool {tournament.prize_pool:.2f} for tournament {tournament.id} "
            f"({tournament.name}) awarded to {tournament.winner_id}"
        )
