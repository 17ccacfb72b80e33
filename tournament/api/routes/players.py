"""Player registration, profile, listing and statistics route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.api.routes import RATE_LIMIT, internal_error, limiter
from tournament.database.db import get_db_session
from tournament.models.schemas import (
    CreatePlayerRequest,
    LeaderboardResponse,
    ListResponse,
    UpdatePlayerRequest,
)
from tournament.services import aggregation_service, player_service
from tournament.services.errors import TournamentError
from tournament.utils.pagination import pagination

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/players", response_model=ListResponse)
async def list_players(
    status: Optional[str] = None,
    sort_by: str = Query("points", alias="sortBy"),
    order: str = "desc",
    limit: int = 50,
    page: int = 1,
    session: AsyncSession = Depends(get_db_session),
):
    """
    List players.

    Query params:
        status: active | inactive | suspended
        sortBy: points (default), wins, matches, name, joinDate, ...
        order: asc | desc (default)
        limit / page: pagination (defaults 50 / 1)
    """
    try:
        players, total = await player_service.list_players(
            session, status=status, sort_by=sort_by, order=order, limit=limit, page=page
        )
        return {"success": True, "data": players, "pagination": pagination(page, limit, total)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading players", e)


@router.get("/api/players/leaderboard/ranking", response_model=LeaderboardResponse)
async def get_ranking(limit: int = 10, session: AsyncSession = Depends(get_db_session)):
    """Top active players in leaderboard order."""
    try:
        return {"success": True, "data": await aggregation_service.get_leaderboard(session, limit)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading leaderboard", e)


@router.get("/api/players/{player_id}")
async def get_player(player_id: str, session: AsyncSession = Depends(get_db_session)):
    try:
        return {"success": True, "data": await player_service.get_player(session, player_id)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading player", e)


@router.post("/api/players", status_code=201)
@limiter.limit(RATE_LIMIT)
async def create_player(
    request: Request,
    player_request: CreatePlayerRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Register a new player.

    Request body:
        {
            "playerId": "alice",          // 3-30 alphanumeric, stored lowercase
            "name": "Alice",
            "avatar": "https://...",      // Optional
            "favoriteStrategy": "boom",   // Optional
            "favoriteCivilization": "Franks"  // Optional
        }
    """
    try:
        player = await player_service.create_player(session, player_request)
        return {"success": True, "message": "Player registered", "data": player}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("creating player", e)


@router.put("/api/players/{player_id}")
@limiter.limit(RATE_LIMIT)
async def update_player(
    request: Request,
    player_id: str,
    player_request: UpdatePlayerRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        player = await player_service.update_player(session, player_id, player_request)
        return {"success": True, "message": "Player updated", "data": player}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("updating player", e)


@router.delete("/api/players/{player_id}")
@limiter.limit(RATE_LIMIT)
async def delete_player(
    request: Request,
    player_id: str,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await player_service.delete_player(session, player_id)
        return {"success": True, "message": "Player deleted"}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("deleting player", e)


@router.get("/api/players/{player_id}/stats")
async def get_player_stats(player_id: str, session: AsyncSession = Depends(get_db_session)):
    """Basic totals, category stats, recent matches and best/worst match."""
    try:
        return {"success": True, "data": await player_service.get_player_stats(session, player_id)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading player stats", e)
