"""Dialect-aware ``INSERT ... ON CONFLICT DO UPDATE`` helper."""

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase


async def upsert(
    session: AsyncSession,
    model: type[DeclarativeBase],
    values: Mapping[str, Any],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
) -> None:
    """Insert *values* into *model*'s table, updating *update_columns* on conflict.

    Uses the store's native primitive so concurrent callers never race
    between a read and a write on the unique key.
    """
    dialect = session.bind.dialect.name if session.bind else "postgresql"
    if dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values)
    elif dialect == "postgresql":
        stmt = postgresql.insert(model).values(**values)
    else:
        raise NotImplementedError(f"Upsert not supported for dialect: {dialect}")

    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_columns),
        set_={column: stmt.excluded[column] for column in update_columns},
    )
    await session.execute(stmt)
