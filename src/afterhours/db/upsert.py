"""Insert-if-absent on top of a unique constraint.

The insert runs inside a SAVEPOINT so a duplicate only rolls back the one
row, not the caller's surrounding transaction. Works the same on
PostgreSQL and SQLite, unlike dialect-specific ON CONFLICT clauses.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.db.base import Base


async def insert_if_absent(db: AsyncSession, row: Base) -> bool:
    """Insert ``row``. Returns True if inserted, False if a unique key already existed."""
    try:
        async with db.begin_nested():
            db.add(row)
    except IntegrityError:
        return False
    return True
