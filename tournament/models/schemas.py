"""
Pydantic models for API request/response validation.

Wire names are camelCase (``playerId``, ``finalPosition``); every model
also accepts the snake_case attribute names.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from urllib.parse import urlparse
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator, model_validator

from tournament.database.models import (
    GameMode,
    MatchStatus,
    PhaseFormat,
    PhaseStatus,
    PlayerStatus,
)
from tournament.utils.constants import (
    MIN_PLAYERS,
    MAX_PLAYERS,
    MIN_DURATION,
    MAX_DURATION,
    PLAYER_ID_MIN_LENGTH,
    PLAYER_ID_MAX_LENGTH,
    PLAYER_NAME_MIN_LENGTH,
    PLAYER_NAME_MAX_LENGTH,
    FAVORITE_STRATEGY_MAX_LENGTH,
    FAVORITE_CIVILIZATION_MAX_LENGTH,
)
from tournament.utils.datetime_utils import ensure_aware


def _check_avatar(value: Optional[str]) -> Optional[str]:
    """Avatar must be empty or an absolute URI."""
    if value is None or value == "":
        return value
    parsed = urlparse(value)
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        raise ValueError("avatar must be a valid URI")
    return value


# ============================================================================
# Players
# ============================================================================


class CreatePlayerRequest(BaseModel):
    """Request to register a new player."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        validation_alias=AliasChoices("playerId", "id"),
        min_length=PLAYER_ID_MIN_LENGTH,
        max_length=PLAYER_ID_MAX_LENGTH,
        pattern=r"^[A-Za-z0-9]+$",
    )
    name: str = Field(min_length=PLAYER_NAME_MIN_LENGTH, max_length=PLAYER_NAME_MAX_LENGTH)
    avatar: Optional[str] = ""
    favorite_strategy: Optional[str] = Field(
        default="", alias="favoriteStrategy", max_length=FAVORITE_STRATEGY_MAX_LENGTH
    )
    favorite_civilization: Optional[str] = Field(
        default="", alias="favoriteCivilization", max_length=FAVORITE_CIVILIZATION_MAX_LENGTH
    )
    status: PlayerStatus = PlayerStatus.ACTIVE

    @field_validator("avatar")
    @classmethod
    def validate_avatar(cls, value):
        return _check_avatar(value)


class UpdatePlayerRequest(BaseModel):
    """Request to edit a player profile. Statistics are not editable."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(
        default=None, min_length=PLAYER_NAME_MIN_LENGTH, max_length=PLAYER_NAME_MAX_LENGTH
    )
    avatar: Optional[str] = None
    favorite_strategy: Optional[str] = Field(
        default=None, alias="favoriteStrategy", max_length=FAVORITE_STRATEGY_MAX_LENGTH
    )
    favorite_civilization: Optional[str] = Field(
        default=None, alias="favoriteCivilization", max_length=FAVORITE_CIVILIZATION_MAX_LENGTH
    )
    status: Optional[PlayerStatus] = None

    @field_validator("avatar")
    @classmethod
    def validate_avatar(cls, value):
        return _check_avatar(value)


# ============================================================================
# Matches
# ============================================================================


class CategoryScores(BaseModel):
    """Per-category scores of one participant."""

    # strict: booleans and numeric strings are rejected
    military: int = Field(ge=0, strict=True)
    economy: int = Field(ge=0, strict=True)
    technology: int = Field(ge=0, strict=True)
    society: int = Field(ge=0, strict=True)


class MatchParticipantRequest(BaseModel):
    """One participant's result in a match submission."""

    model_config = ConfigDict(populate_by_name=True)

    player_id: str = Field(alias="playerId", min_length=1)
    player_name: str = Field(alias="playerName", min_length=1)
    scores: CategoryScores
    total_score: int = Field(alias="totalScore", ge=0, strict=True)
    final_position: int = Field(alias="finalPosition", ge=1, strict=True)


class CreateMatchRequest(BaseModel):
    """Request to record a finished match."""

    model_config = ConfigDict(populate_by_name=True)

    date: datetime
    duration: int = Field(ge=MIN_DURATION, le=MAX_DURATION)
    map: str = Field(min_length=2, max_length=50)
    game_mode: GameMode = Field(default=GameMode.FFA, alias="gameMode")
    players: List[MatchParticipantRequest] = Field(min_length=MIN_PLAYERS, max_length=MAX_PLAYERS)
    notes: Optional[str] = Field(default=None, max_length=500)
    phase_id: Optional[str] = Field(default=None, alias="phaseId")
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes", max_length=1000)
    created_by: str = Field(default="admin", alias="createdBy")

    @field_validator("map")
    @classmethod
    def strip_map(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("map must be at least 2 characters")
        return value


class UpdateMatchRequest(BaseModel):
    """Administrative edit of a recorded match."""

    model_config = ConfigDict(populate_by_name=True)

    status: Optional[MatchStatus] = None
    notes: Optional[str] = Field(default=None, max_length=500)
    admin_notes: Optional[str] = Field(default=None, alias="adminNotes", max_length=1000)


# ============================================================================
# Phases
# ============================================================================


class CreatePhaseRequest(BaseModel):
    """Request to create a tournament phase."""

    model_config = ConfigDict(populate_by_name=True)

    phase_id: str = Field(alias="phaseId", min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    start_date: datetime = Field(alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    status: PhaseStatus = PhaseStatus.UPCOMING
    rules: Optional[str] = Field(default=None, max_length=2000)
    max_players: Optional[int] = Field(default=None, alias="maxPlayers", ge=4, le=16)
    format: PhaseFormat = PhaseFormat.LEAGUE
    points_multiplier: float = Field(default=1.0, alias="pointsMultiplier", ge=0.5, le=3)

    @model_validator(mode="after")
    def validate_dates(self):
        """End date, when given, cannot precede the start date."""
        if self.end_date is not None and ensure_aware(self.end_date) < ensure_aware(self.start_date):
            raise ValueError("endDate must not be before startDate")
        return self


class UpdatePhaseRequest(BaseModel):
    """Request to edit a tournament phase."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    status: Optional[PhaseStatus] = None
    rules: Optional[str] = Field(default=None, max_length=2000)
    max_players: Optional[int] = Field(default=None, alias="maxPlayers", ge=4, le=16)
    format: Optional[PhaseFormat] = None
    points_multiplier: Optional[float] = Field(default=None, alias="pointsMultiplier", ge=0.5, le=3)


# ============================================================================
# Responses
# ============================================================================


class LeaderboardEntryResponse(BaseModel):
    """Global leaderboard row."""

    model_config = ConfigDict(populate_by_name=True)

    rank: int
    player_id: str = Field(alias="playerId")
    name: str
    avatar: str = ""
    points: int
    wins: int
    matches: int
    win_ratio: str = Field(alias="winRatio")


class DetailedLeaderboardEntryResponse(LeaderboardEntryResponse):
    """Global leaderboard row with losses and score averages."""

    losses: int
    total_average: float = Field(alias="totalAverage")
    category_averages: Dict[str, float] = Field(alias="categoryAverages")


class PhaseLeaderboardEntryResponse(BaseModel):
    """Per-phase leaderboard row."""

    model_config = ConfigDict(populate_by_name=True)

    rank: int
    player_id: str = Field(alias="playerId")
    player_name: str = Field(alias="playerName")
    matches: int
    wins: int
    points: int
    total_score: int = Field(alias="totalScore")
    win_ratio: str = Field(alias="winRatio")
    avg_score: int = Field(alias="avgScore")


class MapStatsResponse(BaseModel):
    """Aggregated statistics for one map."""

    model_config = ConfigDict(populate_by_name=True)

    map: str
    total_matches: int = Field(alias="totalMatches")
    avg_duration: int = Field(alias="avgDuration")
    avg_score: int = Field(alias="avgScore")


class PaginationResponse(BaseModel):
    """Pagination block attached to list responses."""

    page: int
    limit: int
    total: int
    pages: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: str
    uptime: float
    environment: Optional[str] = None


class ListResponse(BaseModel):
    """Envelope for paginated list endpoints."""

    success: bool = True
    data: List[Dict[str, Any]]
    pagination: PaginationResponse


class LeaderboardResponse(BaseModel):
    success: bool = True
    data: List[LeaderboardEntryResponse]


class DetailedLeaderboardResponse(BaseModel):
    success: bool = True
    data: List[DetailedLeaderboardEntryResponse]


class PhaseLeaderboardResponse(BaseModel):
    success: bool = True
    data: List[PhaseLeaderboardEntryResponse]


class MapStatsListResponse(BaseModel):
    success: bool = True
    data: List[MapStatsResponse]
