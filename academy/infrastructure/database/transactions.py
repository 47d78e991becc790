# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Atomic unit of work for invariant-checking mutations.

Every read that decides whether a mutation is allowed happens inside the
``atomic()`` block together with the write. The block commits on success
and rolls back on any exception, translating store failures into the core
error taxonomy:

- StaleDataError / IntegrityError / lock and serialization failures
  -> ConflictError (the caller lost a concurrent race)
- any other SQLAlchemyError -> DatabaseError

Example:
    async with atomic(self.db):
        result = await self.db.execute(conditional_update)
        if result.rowcount == 0:
            raise CapacityExceededError(...)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from academy.core.exceptions import ConflictError, DatabaseError

logger = logging.getLogger(__name__)

# SQLSTATE codes reported by PostgreSQL when a transaction loses a race
_CONTENTION_SQLSTATES = frozenset({
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
})

_CONTENTION_MESSAGES = ("database is locked", "database table is locked")


def is_contention_error(error: SQLAlchemyError) -> bool:
    """Check whether a store error means another transaction won a race.

    Args:
        error: Error raised by SQLAlchemy.

    Returns:
        True for serialization, deadlock, and lock-timeout failures.
    """
    if isinstance(error, (StaleDataError, IntegrityError)):
        return True

    orig = getattr(error, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True

    if isinstance(error, OperationalError):
        message = str(orig or error).lower()
        return any(fragment in message for fragment in _CONTENTION_MESSAGES)

    return False


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run a block as one transaction on the given session.

    Args:
        session: Session owned by the current operation.

    Yields:
        The same session.

    Raises:
        ConflictError: If the store reports a write conflict.
        DatabaseError: If the store fails for another reason.
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        if is_contention_error(e):
            logger.warning("Transaction lost a concurrent race: %s", e)
            raise ConflictError(
                "Operation conflicted with a concurrent update",
                original_error=e,
            ) from e
        raise DatabaseError("Database operation failed", e) from e
    except BaseException:
        await session.rollback()
        raise
