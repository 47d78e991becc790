# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Service tests run against a file-backed SQLite database created per test,
so concurrent calls (one session each) contend on a real transactional
store.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.authorization import AuthorizationContext, Role
from academy.infrastructure.database import Database
from academy.infrastructure.database.models import Batch, Fee, FeePayment, Level, Student
from academy.infrastructure.events import EventBus, EventData
from academy.models.common import FeeStatus, PaymentStatus


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent callers"
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Create a fresh SQLite database with the full schema."""
    db = Database.from_url(f"sqlite+aiosqlite:///{tmp_path / 'academy.db'}")
    await db.create_schema()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Open a session on the test database."""
    async with database.session() as db_session:
        yield db_session


# =============================================================================
# Caller Fixtures
# =============================================================================


@pytest.fixture
def admin() -> AuthorizationContext:
    """Admin caller."""
    return AuthorizationContext(user_id=1, role=Role.ADMIN)


@pytest.fixture
def teacher() -> AuthorizationContext:
    """Teacher caller."""
    return AuthorizationContext(user_id=2, role=Role.TEACHER)


@pytest.fixture
def parent() -> AuthorizationContext:
    """Parent caller."""
    return AuthorizationContext(user_id=3, role=Role.PARENT)


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture
def event_bus() -> EventBus:
    """Provide a fresh event bus."""
    return EventBus()


@pytest.fixture
def published(event_bus: EventBus) -> list[EventData]:
    """Collect every event published on the bus."""
    events: list[EventData] = []

    async def collect(event: EventData) -> None:
        events.append(event)

    event_bus.subscribe("*", collect)
    return events


# =============================================================================
# Seed Data Factories
# =============================================================================


async def _insert(database: Database, row: Any) -> Any:
    async with database.session() as db_session:
        db_session.add(row)
        await db_session.commit()
    return row


@pytest.fixture
def make_level(database: Database) -> Callable[..., Awaitable[Level]]:
    """Factory inserting a Level; its id is the level number."""

    async def factory(level_id: int, passing_percent: float | None = None) -> Level:
        return await _insert(
            database,
            Level(id=level_id, name=f"Level {level_id}", passing_percent=passing_percent),
        )

    return factory


@pytest.fixture
def make_batch(database: Database) -> Callable[..., Awaitable[Batch]]:
    """Factory inserting a Batch."""

    async def factory(
        level_id: int = 1,
        capacity: int | None = None,
        name: str = "Batch A",
        enrolled_count: int = 0,
    ) -> Batch:
        return await _insert(
            database,
            Batch(
                name=name,
                level_id=level_id,
                capacity=capacity,
                enrolled_count=enrolled_count,
                days=["MON", "WED"],
            ),
        )

    return factory


@pytest.fixture
def make_student(database: Database) -> Callable[..., Awaitable[Student]]:
    """Factory inserting a Student."""

    async def factory(
        name: str = "Student",
        current_level: int = 1,
        status: str = "ACTIVE",
        parent_email: str | None = "parent@example.com",
    ) -> Student:
        return await _insert(
            database,
            Student(
                name=name,
                parent_name=f"Parent of {name}",
                parent_email=parent_email,
                current_level=current_level,
                status=status,
            ),
        )

    return factory


@pytest.fixture
def make_fee(database: Database) -> Callable[..., Awaitable[Fee]]:
    """Factory inserting a PENDING Fee."""
    counter = iter(range(1, 10_000))

    async def factory(student_id: int, amount: str = "100.00") -> Fee:
        return await _insert(
            database,
            Fee(
                student_id=student_id,
                invoice_number=f"TEST-{next(counter)}",
                amount=Decimal(amount),
                due_date=date(2025, 1, 31),
                paid_amount=Decimal("0"),
                status=FeeStatus.PENDING.value,
            ),
        )

    return factory


@pytest.fixture
def make_payment(database: Database) -> Callable[..., Awaitable[FeePayment]]:
    """Factory inserting a PENDING FeePayment."""

    async def factory(fee: Fee, amount: str) -> FeePayment:
        return await _insert(
            database,
            FeePayment(
                fee_id=fee.id,
                student_id=fee.student_id,
                amount=Decimal(amount),
                transaction_id=f"TXN-{fee.id}-{amount}",
                status=PaymentStatus.PENDING.value,
            ),
        )

    return factory
