# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Composition root for Academy Core.

The request layer builds one AcademyCore at startup, opens a session per
incoming operation, and asks the core for the service it needs:

    core = AcademyCore.from_settings(get_settings())
    await core.start()

    async with core.session() as session:
        result = await core.enrollment(session).assign_student_to_batch(
            auth, student_id=1, batch_id=2
        )

    await core.close()
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.authorization import AuthorizationContext
from academy.core.config.settings import Settings
from academy.domains.enrollment.service import EnrollmentService
from academy.domains.fees.service import FeeService
from academy.domains.scoring.service import ScoringService
from academy.infrastructure.database.connection import Database
from academy.infrastructure.events import EventBus
from academy.infrastructure.notifications import EmailChannel, ParentNotifier
from academy.utils.logging import bind_context, clear_context, get_logger, setup_logging

logger = get_logger(__name__)


class AcademyCore:
    """Owns the shared resources of one running core.

    Attributes:
        settings: Application settings.
        database: Engine and session factory.
        event_bus: Bus the services publish to.
        notifier: Parent notifier subscribed to the bus.
    """

    def __init__(self, settings: Settings, database: Database) -> None:
        self.settings = settings
        self.database = database
        self.event_bus = EventBus()
        self.notifier = ParentNotifier(EmailChannel(settings.smtp), database.sessionmaker)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AcademyCore":
        """Build a core from settings."""
        return cls(settings, Database.from_settings(settings.database, echo=settings.debug))

    async def start(self, create_schema: bool = False) -> None:
        """Configure logging, wire the notifier and check the store.

        Args:
            create_schema: Create missing tables (tests and local setups).
        """
        setup_logging(self.settings)
        self.notifier.register(self.event_bus)

        if create_schema:
            await self.database.create_schema()

        logger.info(
            "Academy Core started",
            environment=self.settings.environment,
            database_reachable=await self.database.check_connection(),
        )

    async def close(self) -> None:
        """Finish pending notifications, then release subscriptions and the pool."""
        await self.event_bus.drain()
        self.event_bus.clear()
        await self.database.close()
        logger.info("Academy Core stopped")

    @asynccontextmanager
    async def session(
        self,
        auth: AuthorizationContext | None = None,
    ) -> AsyncIterator[AsyncSession]:
        """Open a session for one operation.

        Args:
            auth: Caller; bound to every log line emitted inside the block.
        """
        if auth is not None:
            bind_context(user_id=auth.user_id, role=auth.role.value)
        try:
            async with self.database.session() as session:
                yield session
        finally:
            if auth is not None:
                clear_context()

    def enrollment(self, session: AsyncSession) -> EnrollmentService:
        """Enrollment service bound to a session."""
        return EnrollmentService(session, self.event_bus, self.settings.enrollment)

    def scoring(self, session: AsyncSession) -> ScoringService:
        """Scoring service bound to a session."""
        return ScoringService(session, self.event_bus, self.settings.scoring)

    def fees(self, session: AsyncSession) -> FeeService:
        """Fee service bound to a session."""
        return FeeService(session, self.event_bus, self.settings.fees)
