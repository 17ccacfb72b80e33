"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2025-02-01 12:00:00.000000

Creates the tournament tables: players, tournament_phases, matches and
match_players, with their enum types, constraints and indexes.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

player_status = sa.Enum("active", "inactive", "suspended", name="playerstatus")
match_status = sa.Enum("completed", "disputed", "cancelled", name="matchstatus")
game_mode = sa.Enum("FFA", "Team", "Wonder", name="gamemode")
phase_status = sa.Enum("upcoming", "active", "completed", "cancelled", name="phasestatus")
phase_format = sa.Enum("league", "elimination", "group_stage", "finals", name="phaseformat")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.String(30), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("avatar", sa.String(), nullable=False, server_default=""),
        sa.Column("matches", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("join_date", sa.String(), nullable=False, server_default=""),
        sa.Column("favorite_strategy", sa.String(100), nullable=False, server_default="none"),
        sa.Column("favorite_civilization", sa.String(50), nullable=False, server_default="none"),
        sa.Column("status", player_status, nullable=False, server_default="active"),
        sa.Column("category_stats", JSONType, nullable=False),
        sa.Column("match_history", JSONType, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("matches >= 0", name="ck_players_matches_non_negative"),
        sa.CheckConstraint("wins >= 0 AND wins <= matches", name="ck_players_wins_le_matches"),
        sa.CheckConstraint("points >= 0", name="ck_players_points_non_negative"),
    )
    op.create_index("idx_players_points", "players", ["points"])
    op.create_index("idx_players_status", "players", ["status"])

    op.create_table(
        "tournament_phases",
        sa.Column("phase_id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", phase_status, nullable=False, server_default="upcoming"),
        sa.Column("rules", sa.Text(), nullable=True),
        sa.Column("max_players", sa.Integer(), nullable=True),
        sa.Column("format", phase_format, nullable=False, server_default="league"),
        sa.Column("points_multiplier", sa.Float(), nullable=False, server_default="1.0"),
        *_timestamps(),
    )
    op.create_index("idx_phases_status", "tournament_phases", ["status"])
    op.create_index("idx_phases_start_date", "tournament_phases", ["start_date"])

    op.create_table(
        "matches",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("phase_id", sa.String(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("map", sa.String(50), nullable=False),
        sa.Column("game_mode", game_mode, nullable=False, server_default="FFA"),
        sa.Column("total_players", sa.Integer(), nullable=False),
        sa.Column("winner_player_id", sa.String(), nullable=True),
        sa.Column("winner_player_name", sa.String(), nullable=True),
        sa.Column("status", match_status, nullable=False, server_default="completed"),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("created_by", sa.String(), nullable=False, server_default="system"),
        sa.Column("admin_notes", sa.String(1000), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("duration >= 10 AND duration <= 300", name="ck_matches_duration"),
        sa.CheckConstraint("total_players >= 4 AND total_players <= 8", name="ck_matches_total_players"),
    )
    op.create_index("idx_matches_date", "matches", ["date"])
    op.create_index("idx_matches_status", "matches", ["status"])
    op.create_index("idx_matches_phase", "matches", ["phase_id"])
    op.create_index("idx_matches_map", "matches", ["map"])
    op.create_index("idx_matches_created_at", "matches", ["created_at"])

    op.create_table(
        "match_players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "match_id",
            sa.String(32),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("player_id", sa.String(30), nullable=False),
        sa.Column("player_name", sa.String(), nullable=False),
        sa.Column("military", sa.Integer(), nullable=False),
        sa.Column("economy", sa.Integer(), nullable=False),
        sa.Column("technology", sa.Integer(), nullable=False),
        sa.Column("society", sa.Integer(), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("final_position", sa.Integer(), nullable=False),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.UniqueConstraint("match_id", "player_id", name="uq_match_players_player"),
        sa.UniqueConstraint("match_id", "final_position", name="uq_match_players_position"),
        sa.CheckConstraint("final_position >= 1", name="ck_match_players_position"),
    )
    op.create_index("idx_match_players_player", "match_players", ["player_id"])
    op.create_index("idx_match_players_match", "match_players", ["match_id"])


def downgrade() -> None:
    op.drop_table("match_players")
    op.drop_table("matches")
    op.drop_table("tournament_phases")
    op.drop_table("players")
    bind = op.get_bind()
    for enum_type in (phase_format, phase_status, game_mode, match_status, player_status):
        enum_type.drop(bind, checkfirst=True)
