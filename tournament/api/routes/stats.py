"""Tournament-wide statistics route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.api.routes import internal_error
from tournament.database.db import get_db_session
from tournament.models.schemas import DetailedLeaderboardResponse, MapStatsListResponse
from tournament.services import aggregation_service
from tournament.services.errors import TournamentError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/stats/tournament")
async def get_tournament_stats(session: AsyncSession = Depends(get_db_session)):
    """Totals, current leader, best win ratio, category leaders and match durations."""
    try:
        return {"success": True, "data": await aggregation_service.get_tournament_summary(session)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading tournament stats", e)


@router.get("/api/stats/leaderboard", response_model=DetailedLeaderboardResponse)
async def get_leaderboard(limit: int = 50, session: AsyncSession = Depends(get_db_session)):
    try:
        return {
            "success": True,
            "data": await aggregation_service.get_detailed_leaderboard(session, limit),
        }
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading leaderboard", e)


@router.get("/api/stats/maps", response_model=MapStatsListResponse)
async def get_map_stats(session: AsyncSession = Depends(get_db_session)):
    try:
        return {"success": True, "data": await aggregation_service.get_map_stats(session)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading map stats", e)


@router.get("/api/stats/recent-activity")
async def get_recent_activity(limit: int = 10, session: AsyncSession = Depends(get_db_session)):
    try:
        return {"success": True, "data": await aggregation_service.get_recent_activity(session, limit)}
    except TournamentError:
        raise
    except Exception as e:
        raise internal_error("loading recent activity", e)
