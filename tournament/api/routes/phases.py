"""Tournament phase route handlers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.api.routes import RATE_LIMIT, internal_error, limiter
from tournament.database.db import get_db_session
from tournament.models.schemas import (
    CreatePhaseRequest,
    ListResponse,
    PhaseLeaderboardResponse,
    UpdatePhaseRequest,
)
from tournament.services import aggregation_service, match_service, phase_service
from tournament.services.errors import TournamentError
from tournament.utils.pagination import pagination

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/phases")
async def list_phases(
    status: Optional[str] = None,
    sort_by: str = Query("startDate", alias="sortBy"),
    order: str = "asc",
    session: AsyncSession = Depends(get_db_session),
):
    try:
        phases = await phase_service.list_phases(session, status=status, sort_by=sort_by, order=order)
        return {"success": True, "data": phases}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading phases", e)


@router.get("/api/phases/{phase_id}")
async def get_phase(phase_id: str, session: AsyncSession = Depends(get_db_session)):
    """Phase details with completed match count and active player count."""
    try:
        return {"success": True, "data": await phase_service.get_phase(session, phase_id)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading phase", e)


@router.post("/api/phases", status_code=201)
@limiter.limit(RATE_LIMIT)
async def create_phase(
    request: Request,
    phase_request: CreatePhaseRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        phase = await phase_service.create_phase(session, phase_request)
        return {"success": True, "message": "Phase created", "data": phase}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("creating phase", e)


@router.put("/api/phases/{phase_id}")
@limiter.limit(RATE_LIMIT)
async def update_phase(
    request: Request,
    phase_id: str,
    phase_request: UpdatePhaseRequest,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        phase = await phase_service.update_phase(session, phase_id, phase_request)
        return {"success": True, "message": "Phase updated", "data": phase}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("updating phase", e)


@router.get("/api/phases/{phase_id}/leaderboard", response_model=PhaseLeaderboardResponse)
async def get_phase_leaderboard(
    phase_id: str,
    limit: int = 50,
    session: AsyncSession = Depends(get_db_session),
):
    """Standings computed from the completed matches of the phase."""
    try:
        leaderboard = await aggregation_service.get_phase_leaderboard(session, phase_id, limit)
        return {"success": True, "data": leaderboard}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading phase leaderboard", e)


@router.get("/api/phases/{phase_id}/matches", response_model=ListResponse)
async def get_phase_matches(
    phase_id: str,
    limit: int = 20,
    page: int = 1,
    session: AsyncSession = Depends(get_db_session),
):
    try:
        matches, total = await match_service.list_matches(
            session, phase_id=phase_id, limit=limit, page=page
        )
        return {"success": True, "data": matches, "pagination": pagination(page, limit, total)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading phase matches", e)
