"""Tournament system data models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from debate_engine.types import Position


class TournamentFormat(Enum):
    """How a tournament eliminates participants."""

    BRACKET = "BRACKET"  # single elimination, 1v1 matches
    KING_OF_THE_HILL = "KING_OF_THE_HILL"  # group rounds, bottom quarter out
    CHAMPIONSHIP = "CHAMPIONSHIP"  # FOR and AGAINST groups, round 1 decided by score


class TournamentStatus(Enum):
    """Tournament execution status."""

    UPCOMING = "UPCOMING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ReseedMethod(Enum):
    """Ordering of winners before the next round is paired."""

    NONE = "NONE"
    ELO_BASED = "ELO_BASED"
    TOURNAMENT_WINS = "TOURNAMENT_WINS"


class ParticipantStatus(Enum):
    REGISTERED = "REGISTERED"
    ACTIVE = "ACTIVE"
    ELIMINATED = "ELIMINATED"
    CHAMPION = "CHAMPION"


class MatchStatus(Enum):
    """Individual match status."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BYE = "BYE"


class TournamentCreateRequest(BaseModel):
    """Request to create a new tournament."""

    name: str = Field(..., min_length=1, description="Tournament name")
    format: TournamentFormat = Field(default=TournamentFormat.BRACKET, description="Elimination format")
    max_participants: int = Field(default=16, ge=2, le=128, description="Registration capacity")
    reseed_method: ReseedMethod | None = Field(default=None, description="Defaults to the configured method")
    reseed_after_round: bool = Field(default=False, description="Reorder winners before pairing each round")
    debate_rounds: int | None = Field(default=None, ge=1, description="Rounds per match debate")
    round_duration_seconds: int | None = Field(default=None, gt=0, description="Time per debate round")
    prize_pool: float = Field(default=0.0, ge=0, description="Prize pool handed to the prize distributor")
    start_date: datetime | None = None


class Tournament(BaseModel):
    """Complete tournament information."""

    id: str
    name: str
    format: TournamentFormat = TournamentFormat.BRACKET
    status: TournamentStatus = TournamentStatus.UPCOMING
    max_participants: int
    total_rounds: int
    current_round: int = 1
    reseed_method: ReseedMethod = ReseedMethod.NONE
    reseed_after_round: bool = False
    debate_rounds: int = 3
    round_duration_seconds: int = 86400
    prize_pool: float = 0.0
    prizes_distributed: bool = False
    winner_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime | None = None


class TournamentParticipant(BaseModel):
    """Tournament participant (seeded user)."""

    id: str
    tournament_id: str
    user_id: str
    seed: int | None = None  # 1 is the strongest
    elo_at_start: int | None = None
    status: ParticipantStatus = ParticipantStatus.REGISTERED
    wins: int = 0
    losses: int = 0
    cumulative_score: float = 0.0
    eliminated_in_round: int | None = None  # NULL if still active
    elimination_reason: str | None = None
    registered_at: datetime | None = None
    selected_position: Position | None = None  # Championship only


class TournamentMatch(BaseModel):
    """Individual tournament match.

    King of the Hill group rounds are stored as one match per round whose
    debate holds every remaining player; ``participant2_id`` is then empty
    even though the match is not a bye.
    """

    id: str
    tournament_id: str
    round_number: int
    match_number: int  # Match within round
    participant1_id: str
    participant2_id: str | None = None  # NULL for bye and group matches
    debate_id: str | None = None
    winner_id: str | None = None  # NULL until the debate is adjudicated
    status: MatchStatus = MatchStatus.PENDING
    completed_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status in (MatchStatus.COMPLETED, MatchStatus.BYE)


class BracketData(BaseModel):
    """Tournament bracket visualization data."""

    tournament: Tournament
    participants: list[TournamentParticipant]
    matches: list[TournamentMatch]


class RoundStatus(BaseModel):
    """Status of all matches in a round."""

    round_number: int
    total_matches: int
    completed_matches: int
    pending_matches: int
    in_progress_matches: int
    all_completed: bool
