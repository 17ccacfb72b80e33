"""
Shared pytest configuration for tournament tests.

Uses an in-memory SQLite database (aiosqlite) by default. TEST_DATABASE_URL
can point at PostgreSQL instead.

SAFETY: for non-SQLite URLs this module REFUSES to run against any database
whose name does not contain the substring "test", so a misconfigured
environment can never drop the development or production tables.
"""

import os

# Must be set before the API package is imported (disables rate limiting)
os.environ.setdefault("ENV", "test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool, StaticPool  # noqa: E402

from tournament.database.db import Base  # noqa: E402
from tournament.database.models import Player, PlayerStatus, empty_category_stats  # noqa: E402


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks."""
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    if url.startswith("sqlite"):
        return url

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../{db_name}_test\n"
            f"{'=' * 70}"
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Fresh schema per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection, otherwise every connection gets its own empty :memory: db
        engine = create_async_engine(
            TEST_DATABASE_URL,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        # NullPool avoids "Future attached to different loop" errors across tests
        engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """Database session bound to the per-test engine."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    Session factory whose sessions each get their own connection, for tests
    that run two transactions side by side. SQLite uses a file database.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        url = f"sqlite+aiosqlite:///{tmp_path / 'tournament_test.db'}"
    else:
        url = TEST_DATABASE_URL
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def make_player():
    """Factory for unsaved Player rows with empty statistics."""
    def _make(player_id: str, name: str = None, **overrides) -> Player:
        values = dict(
            id=player_id,
            name=name or player_id.capitalize(),
            avatar="",
            matches=0,
            wins=0,
            points=0,
            join_date="2025-01-01",
            status=PlayerStatus.ACTIVE,
            category_stats=empty_category_stats(),
            match_history=[],
        )
        values.update(overrides)
        return Player(**values)
    return _make


@pytest_asyncio.fixture
async def four_players(db_session, make_player):
    """alice, bob, carol and dave registered with no matches."""
    players = [make_player(pid) for pid in ("alice", "bob", "carol", "dave")]
    db_session.add_all(players)
    await db_session.commit()
    return players


def build_match_payload(
    positions=(1, 2, 3, 4),
    player_ids=("alice", "bob", "carol", "dave"),
    scores=None,
    **overrides,
):
    """
    Build a match submission. Each participant gets equal category scores
    (``scores[i]`` per category, default 40 - 10*i) with a matching total.
    """
    players = []
    for index, (player_id, position) in enumerate(zip(player_ids, positions)):
        value = scores[index] if scores else 40 - 10 * index
        players.append({
            "playerId": player_id,
            "playerName": player_id.capitalize(),
            "scores": {"military": value, "economy": value, "technology": value, "society": value},
            "totalScore": value * 4,
            "finalPosition": position,
        })
    payload = {
        "date": "2025-02-10T20:00:00Z",
        "duration": 45,
        "map": "Arabia",
        "gameMode": "FFA",
        "players": players,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def match_payload():
    """Builder for valid match submissions; see build_match_payload."""
    return build_match_payload
