"""
Entity store: the persistence operations the tournament core depends on.

Every function takes the injected AsyncSession as its first argument, so
callers (routes, tests, scripts) decide which database the core talks to.

Filters are a mapping of column name to value. A list, tuple or set value
matches by membership (IN); None matches IS NULL; anything else is equality.
Sort is a sequence of (column name, "asc" | "desc") pairs.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import select, func, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from tournament.database.db import Base

Filters = Optional[Dict[str, Any]]
Sort = Optional[Sequence[Tuple[str, str]]]


def _column(model: Type[Base], name: str):
    column = getattr(model, name, None)
    if column is None or not hasattr(column, "property"):
        raise ValueError(f"{model.__name__} has no column '{name}'")
    return column


def _where_clauses(model: Type[Base], filters: Filters) -> List:
    clauses = []
    for name, value in (filters or {}).items():
        column = _column(model, name)
        if isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(column.in_(list(value)))
        elif value is None:
            clauses.append(column.is_(None))
        else:
            clauses.append(column == value)
    return clauses


def _order_by(model: Type[Base], sort: Sort) -> List:
    ordering = []
    for name, direction in sort or ():
        column = _column(model, name)
        if direction not in ("asc", "desc"):
            raise ValueError(f"Invalid sort direction '{direction}' for '{name}'")
        ordering.append(column.desc() if direction == "desc" else column.asc())
    return ordering


async def find_by_id(session: AsyncSession, model: Type[Base], entity_id: Any) -> Optional[Base]:
    """Get an entity by primary key, or None."""
    return await session.get(model, entity_id)


async def find_many(
    session: AsyncSession,
    model: Type[Base],
    filters: Filters = None,
    sort: Sort = None,
    limit: Optional[int] = None,
    offset: int = 0,
    extra_clauses: Iterable = (),
) -> List[Base]:
    """
    Query entities with filtering, sorting and pagination.

    Args:
        session: Database session
        model: ORM class to query
        filters: Column equality / membership filters
        sort: (column, direction) pairs applied in order
        limit: Maximum rows to return (None for all)
        offset: Rows to skip
        extra_clauses: Additional SQLAlchemy where-clauses (e.g. ILIKE)

    Returns:
        List of ORM instances
    """
    query = select(model).where(*_where_clauses(model, filters), *extra_clauses)
    ordering = _order_by(model, sort)
    if ordering:
        query = query.order_by(*ordering)
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def count(
    session: AsyncSession,
    model: Type[Base],
    filters: Filters = None,
    extra_clauses: Iterable = (),
) -> int:
    """Count entities matching the filters."""
    query = select(func.count()).select_from(model).where(
        *_where_clauses(model, filters), *extra_clauses
    )
    result = await session.execute(query)
    return result.scalar_one()


async def upsert(session: AsyncSession, entity: Base) -> Base:
    """
    Insert or update a single entity and flush it.

    Instances loaded through this session are already tracked and are
    simply flushed; new instances are added and detached ones are merged
by primary key.
    Player rows carry a version counter, so a concurrent writer makes the
    flush fail with StaleDataError instead of silently losing an update.
    """
    state = inspect(entity)
    if state.transient:
        session.add(entity)
    elif state.detached:
        entity = await session.merge(entity)
    await session.flush()
    return entity


async def delete(session: AsyncSession, model: Type[Base], entity_id: Any) -> bool:
    """Delete an entity by primary key. Returns False if it did not exist."""
    entity = await session.get(model, entity_id)
    if entity is None:
        return False
    await session.delete(entity)
    await session.flush()
    return True

