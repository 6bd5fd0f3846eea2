"""Tournament progression: single-elimination brackets, Championship and King of the Hill."""

from .database import TournamentDatabaseManager
from .manager import TournamentManager, bracket_order
from .models import (
    BracketData,
    MatchStatus,
    ParticipantStatus,
    ReseedMethod,
    RoundStatus,
    Tournament,
    TournamentCreateRequest,
    TournamentFormat,
    TournamentMatch,
    TournamentParticipant,
    TournamentStatus,
)
from .prizes import LoggingPrizeDistributor, PrizeDistributor

__all__ = [
    "TournamentManager",
    "TournamentDatabaseManager",
    "bracket_order",
    "BracketData",
    "MatchStatus",
    "ParticipantStatus",
    "ReseedMethod",
    "RoundStatus",
    "Tournament",
    "TournamentCreateRequest",
    "TournamentFormat",
    "TournamentMatch",
    "TournamentParticipant",
    "TournamentStatus",
    "LoggingPrizeDistributor",
    "PrizeDistributor",
]
