"""Create-if-absent helper for per-user rows."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from streamquest.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


async def get_or_create(
    db: AsyncSession,
    model: type[ModelT],
    *,
    lock: bool = False,
    defaults: dict[str, Any] | None = None,
    **lookup: Any,
) -> ModelT:
    """Fetch the row matching ``lookup`` or insert it.

    The insert runs in a savepoint. If a concurrent transaction inserted the
    same key first, the savepoint is rolled back and the winner's row is
    fetched once. There is exactly one retry. An integrity error that leaves
    no row behind (a foreign-key violation) is re-raised.
    """
    stmt = select(model).filter_by(**lookup)
    if lock:
        stmt = stmt.with_for_update()

    row = (await db.execute(stmt)).scalar_one_or_none()
    if row is not None:
        return row

    try:
        async with db.begin_nested():
            row = model(**lookup, **(defaults or {}))
            db.add(row)
    except IntegrityError:
        # Only a unique-key race leaves a row to fetch; anything else is real.
        row = (await db.execute(stmt)).scalar_one_or_none()
        if row is None:
            raise
    return row
