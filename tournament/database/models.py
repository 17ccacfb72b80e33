"""
SQLAlchemy ORM models for the tournament statistics system.
"""

from typing import Dict, List
import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    DateTime,
    Enum,
    ForeignKey,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tournament.database.db import Base
from tournament.utils.constants import CATEGORIES
from tournament.utils.datetime_utils import utcnow, ensure_aware

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


def _new_match_id() -> str:
    return uuid.uuid4().hex


def empty_category_stats() -> Dict[str, Dict[str, float]]:
    """Category stats for a player with no recorded matches."""
    return {category: {"worst": 0, "average": 0, "best": 0} for category in CATEGORIES}


class PlayerStatus(str, enum.Enum):
    """Player status enum."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class MatchStatus(str, enum.Enum):
    """Match status enum. Only completed matches count toward statistics."""

    COMPLETED = "completed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"


class GameMode(str, enum.Enum):
    """Game mode enum."""

    FFA = "FFA"
    TEAM = "Team"
    WONDER = "Wonder"


class PhaseStatus(str, enum.Enum):
    """Tournament phase status enum."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PhaseFormat(str, enum.Enum):
    """Tournament phase format enum."""

    LEAGUE = "league"
    ELIMINATION = "elimination"
    GROUP_STAGE = "group_stage"
    FINALS = "finals"


class Player(Base):
    """Player profiles with cumulative statistics."""

    __tablename__ = "players"

    id = Column(String(30), primary_key=True)  # lowercase alphanumeric handle
    name = Column(String(50), nullable=False)
    avatar = Column(String, nullable=False, default="")
    matches = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    join_date = Column(String, nullable=False, default="")
    favorite_strategy = Column(String(100), nullable=False, default="none")
    favorite_civilization = Column(String(50), nullable=False, default="none")
    status = Column(
        Enum(PlayerStatus, values_callable=_enum_values),
        default=PlayerStatus.ACTIVE,
        nullable=False,
    )
    category_stats = Column(JSONType, nullable=False, default=empty_category_stats)
    match_history = Column(JSONType, nullable=False, default=list)  # most recent first
    version = Column(Integer, nullable=False)  # optimistic concurrency counter
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("matches >= 0", name="ck_players_matches_non_negative"),
        CheckConstraint("wins >= 0 AND wins <= matches", name="ck_players_wins_le_matches"),
        CheckConstraint("points >= 0", name="ck_players_points_non_negative"),
        Index("idx_players_points", "points"),
        Index("idx_players_status", "status"),
    )

    @property
    def losses(self) -> int:
        return (self.matches or 0) - (self.wins or 0)

    @property
    def win_ratio(self) -> str:
        """Win percentage with one decimal, e.g. "66.7"."""
        if not self.matches:
            return "0.0"
        return f"{self.wins / self.matches * 100:.1f}"

    @property
    def total_average(self) -> float:
        """Mean of the four category averages."""
        stats = self.category_stats or empty_category_stats()
        return sum(stats[c]["average"] for c in CATEGORIES) / len(CATEGORIES)


class TournamentPhase(Base):
    """Named sub-periods of the tournament used to group matches."""

    __tablename__ = "tournament_phases"

    phase_id = Column(String, primary_key=True)  # slug, e.g. "fase1"
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(
        Enum(PhaseStatus, values_callable=_enum_values),
        default=PhaseStatus.UPCOMING,
        nullable=False,
    )
    rules = Column(Text, nullable=True)
    max_players = Column(Integer, nullable=True)
    format = Column(
        Enum(PhaseFormat, values_callable=_enum_values),
        default=PhaseFormat.LEAGUE,
        nullable=False,
    )
    points_multiplier = Column(Float, nullable=False, default=1.0)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    __table_args__ = (
        Index("idx_phases_status", "status"),
        Index("idx_phases_start_date", "start_date"),
    )

    @property
    def is_active(self) -> bool:
        """Active status and the current time falls within the phase dates."""
        now = utcnow()
        start = ensure_aware(self.start_date)
        end = ensure_aware(self.end_date)
        return (
            self.status == PhaseStatus.ACTIVE
            and start is not None
            and start <= now
            and (end is None or end >= now)
        )


class Match(Base):
    """Finished games with a snapshot of every participant's result."""

    __tablename__ = "matches"

    id = Column(String(32), primary_key=True, default=_new_match_id)
    phase_id = Column(String, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes
    map = Column(String(50), nullable=False)
    game_mode = Column(
        Enum(GameMode, values_callable=_enum_values), default=GameMode.FFA, nullable=False
    )
    total_players = Column(Integer, nullable=False)
    winner_player_id = Column(String, nullable=True)
    winner_player_name = Column(String, nullable=True)
    status = Column(
        Enum(MatchStatus, values_callable=_enum_values),
        default=MatchStatus.COMPLETED,
        nullable=False,
    )
    notes = Column(String(500), nullable=True)
    created_by = Column(String, nullable=False, default="system")
    admin_notes = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    # Relationships
    participants = relationship(
        "MatchPlayer",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchPlayer.final_position",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("duration >= 10 AND duration <= 300", name="ck_matches_duration"),
        CheckConstraint("total_players >= 4 AND total_players <= 8", name="ck_matches_total_players"),
        Index("idx_matches_date", "date"),
        Index("idx_matches_status", "status"),
        Index("idx_matches_phase", "phase_id"),
        Index("idx_matches_map", "map"),
        Index("idx_matches_created_at", "created_at"),
    )

    @property
    def formatted_duration(self) -> str:
        return f"{self.duration} min"

    @property
    def player_ids(self) -> List[str]:
        return [p.player_id for p in self.participants]

    @property
    def match_stats(self) -> Dict[str, float]:
        """Highest, lowest and mean total score across participants."""
        scores = [p.total_score for p in self.participants]
        if not scores:
            return {"highestScore": 0, "lowestScore": 0, "averageScore": 0}
        return {
            "highestScore": max(scores),
            "lowestScore": min(scores),
            "averageScore": sum(scores) / len(scores),
        }


class MatchPlayer(Base):
    """One participant's result within a match (name and scores are snapshots)."""

    __tablename__ = "match_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(String(32), ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(String(30), nullable=False)  # not a FK: snapshots outlive players
    player_name = Column(String, nullable=False)
    military = Column(Integer, nullable=False)
    economy = Column(Integer, nullable=False)
    technology = Column(Integer, nullable=False)
    society = Column(Integer, nullable=False)
    total_score = Column(Integer, nullable=False)
    final_position = Column(Integer, nullable=False)
    points_earned = Column(Integer, nullable=False)

    match = relationship("Match", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_players_player"),
        UniqueConstraint("match_id", "final_position", name="uq_match_players_position"),
        CheckConstraint("final_position >= 1", name="ck_match_players_position"),
        Index("idx_match_players_player", "player_id"),
        Index("idx_match_players_match", "match_id"),
    )

    @property
    def scores(self) -> Dict[str, int]:
        return {category: getattr(self, category) for category in CATEGORIES}
