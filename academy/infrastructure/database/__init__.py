# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the persistent store.

Example:
    from academy.infrastructure.database import Database, atomic

    database = Database.from_settings(settings.database)
    async with database.session() as session:
        async with atomic(session):
            ...
"""

from academy.infrastructure.database.connection import (
    Database,
    build_engine,
    build_sessionmaker,
)
from academy.infrastructure.database.transactions import atomic, is_contention_error

__all__ = [
    "Database",
    "build_engine",
    "build_sessionmaker",
    "atomic",
    "is_contention_error",
]
