"""Match submission, listing and administration route handlers."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.api.routes import RATE_LIMIT, internal_error, limiter
from tournament.database.db import get_db_session
from tournament.models.schemas import ListResponse, UpdateMatchRequest
from tournament.services import match_service, player_service
from tournament.services.errors import TournamentError
from tournament.utils.pagination import pagination

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/matches", response_model=ListResponse)
async def list_matches(
    status: Optional[str] = "completed",
    player_id: Optional[str] = Query(None, alias="playerId"),
    map_name: Optional[str] = Query(None, alias="map"),
    sort_by: str = Query("date", alias="sortBy"),
    order: str = "desc",
    limit: int = 20,
    page: int = 1,
    session: AsyncSession = Depends(get_db_session),
):
    """
    List matches.

    Query params:
        status: completed (default) | disputed | cancelled
        playerId: only matches this player took part in
        map: case-insensitive substring of the map name
        sortBy / order: defaults date / desc
        limit / page: pagination (defaults 20 / 1)
    """
    try:
        matches, total = await match_service.list_matches(
            session,
            status=status,
            player_id=player_id,
            map_name=map_name,
            sort_by=sort_by,
            order=order,
            limit=limit,
            page=page,
        )
        return {"success": True, "data": matches, "pagination": pagination(page, limit, total)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading matches", e)


@router.get("/api/matches/player/{player_id}", response_model=ListResponse)
async def get_player_matches(
    player_id: str,
    limit: int = 10,
    page: int = 1,
    session: AsyncSession = Depends(get_db_session),
):
    """Completed matches of one player, newest first."""
    try:
        await player_service.get_player_model(session, player_id)
        matches, total = await match_service.get_player_matches(session, player_id, limit, page)
        return {"success": True, "data": matches, "pagination": pagination(page, limit, total)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading player matches", e)


@router.get("/api/matches/{match_id}")
async def get_match(match_id: str, session: AsyncSession = Depends(get_db_session)):
    try:
        return {"success": True, "data": await match_service.get_match(session, match_id)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading match", e)


@router.post("/api/matches", status_code=201)
@limiter.limit(RATE_LIMIT)
async def create_match(
    request: Request,
    submission: Dict[str, Any] = Body(...),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Record a finished match and update every participant's statistics.

    The body is checked by the match validator, so field errors come back
    as 400 with the offending field rather than FastAPI's 422.

    Request body:
        {
            "date": "2025-02-10T20:00:00Z",
            "duration": 45,                 // minutes, 10-300
            "map": "Arabia",
            "gameMode": "FFA",              // FFA | Team | Wonder
            "phaseId": "fase2",             // Optional, defaults to the active phase
            "players": [                    // 4-8 entries
                {
                    "playerId": "alice",
                    "playerName": "Alice",
                    "scores": {"military": 10, "economy": 10, "technology": 10, "society": 10},
                    "totalScore": 40,
                    "finalPosition": 1
                },
                ...
            ],
            "notes": "..."                  // Optional
        }

    Returns:
        dict: {"match": ..., "playerUpdates": [...]}
    """
    try:
        result = await match_service.create_match(session, submission)
        return {"success": True, "message": "Match recorded", "data": result}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("creating match", e)


@router.put("/api/matches/{match_id}")
@limiter.limit(RATE_LIMIT)
async def update_match(
    request: Request,
    match_id: str,
    match_request: UpdateMatchRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Administrative edit: status, notes and adminNotes."""
    try:
        match = await match_service.update_match(session, match_id, match_request)
        return {"success": True, "message": "Match updated", "data": match}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("updating match", e)


@router.delete("/api/matches/{match_id}")
@limiter.limit(RATE_LIMIT)
async def delete_match(
    request: Request,
    match_id: str,
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a match; participants' statistics are rebuilt without it."""
    try:
        result = await match_service.delete_match(session, match_id)
        return {"success": True, "message": "Match deleted", "data": result}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("deleting match", e)
