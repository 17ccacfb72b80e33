#!/usr/bin/env python3
"""
Initialize default database values.
Run on startup: seeds the two tournament phases when no phase exists yet.
"""

import asyncio
import logging
from datetime import datetime

import pytz

from tournament.database import store
from tournament.database.db import AsyncSessionLocal
from tournament.database.models import PhaseFormat, PhaseStatus, TournamentPhase

logger = logging.getLogger(__name__)


def default_phases():
    """The phases a fresh tournament starts with."""
    return [
        TournamentPhase(
            phase_id="fase1",
            name="Phase 1",
            description="Opening league phase",
            start_date=datetime(2025, 1, 1, tzinfo=pytz.UTC),
            end_date=datetime(2025, 1, 31, 23, 59, 59, tzinfo=pytz.UTC),
            status=PhaseStatus.COMPLETED,
            format=PhaseFormat.LEAGUE,
            points_multiplier=1.0,
        ),
        TournamentPhase(
            phase_id="fase2",
            name="Phase 2",
            description="Second league phase",
            start_date=datetime(2025, 2, 1, tzinfo=pytz.UTC),
            end_date=None,
            status=PhaseStatus.ACTIVE,
            format=PhaseFormat.LEAGUE,
            points_multiplier=1.2,
        ),
    ]


async def seed_phases(session) -> int:
    """Insert the default phases if the table is empty. Returns the number inserted."""
    if await store.count(session, TournamentPhase) > 0:
        return 0
    phases = default_phases()
    for phase in phases:
        await store.upsert(session, phase)
    await session.commit()
    return len(phases)


async def init_defaults():
    """Initialize default database values."""
    async with AsyncSessionLocal() as session:
        inserted = await seed_phases(session)
    if inserted:
        logger.info(f"Seeded {inserted} default phases")
    else:
        logger.info("Phases already present, nothing to seed")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(init_defaults())
