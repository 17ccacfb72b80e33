"""
Tournament phase service layer.

Phases only group matches; they carry no statistics of their own.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.database import store
from tournament.database.models import (
    Match,
    MatchStatus,
    Player,
    PlayerStatus,
    PhaseStatus,
    TournamentPhase,
)
from tournament.models.schemas import CreatePhaseRequest, UpdatePhaseRequest
from tournament.services.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
    store_errors,
)
from tournament.utils.constants import DEFAULT_PHASE_ID
from tournament.utils.datetime_utils import ensure_aware, isoformat

logger = logging.getLogger(__name__)

PHASE_SORT_FIELDS = {
    "startDate": "start_date",
    "endDate": "end_date",
    "name": "name",
    "phaseId": "phase_id",
    "status": "status",
}

NULLABLE_PHASE_FIELDS = ("description", "end_date", "rules", "max_players")


def serialize_phase(phase: TournamentPhase) -> Dict:
    """Convert a TournamentPhase row to its API representation."""
    return {
        "phaseId": phase.phase_id,
        "name": phase.name,
        "description": phase.description,
        "startDate": isoformat(phase.start_date),
        "endDate": isoformat(phase.end_date),
        "status": phase.status.value if phase.status else None,
        "rules": phase.rules,
        "maxPlayers": phase.max_players,
        "format": phase.format.value if phase.format else None,
        "pointsMultiplier": phase.points_multiplier,
        "isActive": phase.is_active,
        "createdAt": isoformat(phase.created_at),
        "updatedAt": isoformat(phase.updated_at),
    }


async def get_phase_model(session: AsyncSession, phase_id: str) -> TournamentPhase:
    phase = await store.find_by_id(session, TournamentPhase, phase_id)
    if phase is None:
        raise NotFoundError(f"Phase '{phase_id}' not found", {"phaseId": phase_id})
    return phase


async def get_current_phase_id(session: AsyncSession) -> str:
    """
    Phase a new match belongs to when the submitter names none.

    The active phase with the latest start date, falling back to
    DEFAULT_PHASE_ID when no phase is active.
    """
    active = await store.find_many(
        session,
        TournamentPhase,
        filters={"status": PhaseStatus.ACTIVE},
        sort=[("start_date", "desc")],
        limit=1,
    )
    if active:
        return active[0].phase_id
    return DEFAULT_PHASE_ID


@store_errors("phase_insert")
async def create_phase(session: AsyncSession, request: CreatePhaseRequest) -> Dict:
    """
    Create a tournament phase.

    Raises:
        ConflictError: if the phase id is taken
    """
    phase_id = request.phase_id.strip()
    if await store.find_by_id(session, TournamentPhase, phase_id) is not None:
        raise ConflictError(f"A phase with id '{phase_id}' already exists", {"phaseId": phase_id})

    phase = TournamentPhase(
        phase_id=phase_id,
        name=request.name.strip(),
        description=request.description,
        start_date=request.start_date,
        end_date=request.end_date,
        status=request.status,
        rules=request.rules,
        max_players=request.max_players,
        format=request.format,
        points_multiplier=request.points_multiplier,
    )
    try:
        await store.upsert(session, phase)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to create phase {phase_id}: {e}", exc_info=True)
        raise PersistenceError(f"Could not save phase '{phase_id}'", stage="phase_insert") from e

    logger.info(f"Created phase {phase_id}")
    return serialize_phase(phase)


@store_errors("phase_query")
async def list_phases(
    session: AsyncSession,
    status: Optional[str] = None,
    sort_by: str = "startDate",
    order: str = "asc",
) -> List[Dict]:
    """List phases, optionally filtered by status."""
    if sort_by not in PHASE_SORT_FIELDS:
        raise ValidationError(f"Cannot sort phases by '{sort_by}'", field="sortBy")
    filters = {}
    if status:
        try:
            filters["status"] = PhaseStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown phase status '{status}'", field="status") from None

    phases = await store.find_many(
        session,
        TournamentPhase,
        filters=filters,
        sort=[(PHASE_SORT_FIELDS[sort_by], "asc" if order == "asc" else "desc")],
    )
    return [serialize_phase(p) for p in phases]


@store_errors("phase_lookup")
async def get_phase(session: AsyncSession, phase_id: str) -> Dict:
    """Get a phase with its completed-match count and the active player count."""
    phase = await get_phase_model(session, phase_id)
    total_matches = await store.count(
        session, Match, filters={"phase_id": phase.phase_id, "status": MatchStatus.COMPLETED}
    )
    total_players = await store.count(session, Player, filters={"status": PlayerStatus.ACTIVE})

    data = serialize_phase(phase)
    data["stats"] = {"totalMatches": total_matches, "totalPlayers": total_players}
    return data


@store_errors("phase_update")
async def update_phase(session: AsyncSession, phase_id: str, request: UpdatePhaseRequest) -> Dict:
    """Edit a phase. Only fields present in the request change."""
    phase = await get_phase_model(session, phase_id)
    changes = request.model_dump(exclude_unset=True)

    start = ensure_aware(changes.get("start_date", phase.start_date))
    end = ensure_aware(changes.get("end_date", phase.end_date))
    if start is not None and end is not None and end < start:
        raise ValidationError("endDate must not be before startDate", field="endDate")

    for field, value in changes.items():
        if value is None and field not in NULLABLE_PHASE_FIELDS:
            continue
        setattr(phase, field, value)

    try:
        await store.upsert(session, phase)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to update phase {phase_id}: {e}", exc_info=True)
        raise PersistenceError(f"Could not update phase '{phase_id}'", stage="phase_update") from e
    return serialize_phase(phase)
