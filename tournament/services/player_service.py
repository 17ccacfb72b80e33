"""
Player service layer.
Handles registration, profile edits, listing and per-player statistics.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.database import store
from tournament.database.models import Player, PlayerStatus, empty_category_stats
from tournament.models.schemas import CreatePlayerRequest, UpdatePlayerRequest
from tournament.services.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    store_errors,
)
from tournament.utils.constants import RECENT_MATCHES_LIMIT
from tournament.utils.datetime_utils import isoformat, utcnow
from tournament.utils.pagination import page_window

logger = logging.getLogger(__name__)

# API sort keys -> Player columns
PLAYER_SORT_FIELDS = {
    "points": "points",
    "wins": "wins",
    "matches": "matches",
    "name": "name",
    "id": "id",
    "playerId": "id",
    "joinDate": "join_date",
    "createdAt": "created_at",
}

# Profile fields a caller may edit (statistics are never edited directly)
EDITABLE_FIELDS = ("name", "avatar", "favorite_strategy", "favorite_civilization", "status")


def serialize_player(player: Player, include_history: bool = True) -> Dict:
    """Convert a Player row to its API representation."""
    data = {
        "id": player.id,
        "playerId": player.id,
        "name": player.name,
        "avatar": player.avatar or "",
        "matches": player.matches,
        "wins": player.wins,
        "losses": player.losses,
        "points": player.points,
        "joinDate": player.join_date,
        "favoriteStrategy": player.favorite_strategy,
        "favoriteCivilization": player.favorite_civilization,
        "status": player.status.value if player.status else None,
        "categoryStats": player.category_stats or empty_category_stats(),
        "winRatio": player.win_ratio,
        "totalAverage": player.total_average,
        "createdAt": isoformat(player.created_at),
        "updatedAt": isoformat(player.updated_at),
    }
    if include_history:
        data["matchHistory"] = list(player.match_history or [])
    return data


@store_errors("player_lookup")
async def get_player_model(session: AsyncSession, player_id: str) -> Player:
    """Load a Player row or raise NotFoundError."""
    player = await store.find_by_id(session, Player, player_id.lower())
    if player is None:
        raise NotFoundError(f"Player '{player_id}' not found", {"playerId": player_id})
    return player


@store_errors("player_insert")
async def create_player(session: AsyncSession, request: CreatePlayerRequest) -> Dict:
    """
    Register a new player with empty statistics.

    Args:
        session: Database session
        request: CreatePlayerRequest

    Returns:
        Player dict

    Raises:
        ConflictError: if a player with the same id already exists
    """
    player_id = request.id.strip().lower()
    existing = await store.find_by_id(session, Player, player_id)
    if existing is not None:
        raise ConflictError(f"A player with id '{player_id}' already exists", {"playerId": player_id})

    player = Player(
        id=player_id,
        name=request.name.strip(),
        avatar=request.avatar or "",
        favorite_strategy=request.favorite_strategy or "none",
        favorite_civilization=request.favorite_civilization or "none",
        status=request.status,
        matches=0,
        wins=0,
        points=0,
        join_date=utcnow().date().isoformat(),
        category_stats=empty_category_stats(),
        match_history=[],
    )
    try:
        await store.upsert(session, player)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to create player {player_id}: {e}", exc_info=True)
        raise PersistenceError(f"Could not save player '{player_id}'", stage="player_insert") from e

    logger.info(f"Registered player {player_id}")
    return serialize_player(player)


async def get_player(session: AsyncSession, player_id: str) -> Dict:
    """Get a single player."""
    return serialize_player(await get_player_model(session, player_id))


@store_errors("player_query")
async def list_players(
    session: AsyncSession,
    status: Optional[str] = None,
    sort_by: str = "points",
    order: str = "desc",
    limit: int = 50,
    page: int = 1,
) -> Tuple[List[Dict], int]:
    """
    List players with optional status filter, sorting and pagination.

    Returns:
        Tuple of (player dicts, total matching players)
    """
    if sort_by not in PLAYER_SORT_FIELDS:
        raise ValidationError(f"Cannot sort players by '{sort_by}'", field="sortBy")
    direction = "asc" if order == "asc" else "desc"

    filters = {}
    if status:
        try:
            filters["status"] = PlayerStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown player status '{status}'", field="status") from None

    limit, offset = page_window(page, limit)
    players = await store.find_many(
        session,
        Player,
        filters=filters,
        sort=[(PLAYER_SORT_FIELDS[sort_by], direction), ("id", "asc")],
        limit=limit,
        offset=offset,
    )
    total = await store.count(session, Player, filters=filters)
    return [serialize_player(p) for p in players], total


async def update_player(session: AsyncSession, player_id: str, request: UpdatePlayerRequest) -> Dict:
    """
    Edit a player's profile fields.

    Only fields present in the request are changed. Match snapshots keep
    the name the player had when the match was recorded.
    """
    player = await get_player_model(session, player_id)
    changes = request.model_dump(exclude_unset=True)
    for field in EDITABLE_FIELDS:
        if field in changes and changes[field] is not None:
            value = changes[field]
            setattr(player, field, value.strip() if isinstance(value, str) else value)

    try:
        await store.upsert(session, player)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update player {player.id}: {e}", exc_info=True)
        raise PersistenceError(f"Could not update player '{player.id}'", stage="player_update") from e
    return serialize_player(player)


async def delete_player(session: AsyncSession, player_id: str) -> bool:
    """
    Delete a player profile.

    Recorded matches keep their participant snapshots.
    """
    player = await get_player_model(session, player_id)
    try:
        await store.delete(session, Player, player.id)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to delete player {player.id}: {e}", exc_info=True)
        raise PersistenceError(f"Could not delete player '{player.id}'", stage="player_delete") from e
    logger.info(f"Deleted player {player.id}")
    return True


def build_player_stats(player: Player) -> Dict:
    """
    Detailed statistics for one player.

    bestMatch / worstMatch are the history entries with the highest and
    lowest total score (the most recent one wins ties).
    """
    history = list(player.match_history or [])
    best_match = None
    worst_match = None
    for entry in history:
        total = entry.get("totalScore", 0)
        if best_match is None or total > best_match.get("totalScore", 0):
            best_match = entry
        if worst_match is None or total < worst_match.get("totalScore", 0):
            worst_match = entry

    return {
        "basic": {
            "matches": player.matches,
            "wins": player.wins,
            "losses": player.losses,
            "points": player.points,
            "winRatio": player.win_ratio,
            "totalAverage": player.total_average,
        },
        "categories": player.category_stats or empty_category_stats(),
        "recentMatches": history[:RECENT_MATCHES_LIMIT],
        "bestMatch": best_match,
        "worstMatch": worst_match,
    }


async def get_player_stats(session: AsyncSession, player_id: str) -> Dict:
    """Get detailed statistics for a player."""
    return build_player_stats(await get_player_model(session, player_id))
