# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent notifier driven by domain events.

ParentNotifier subscribes to the event bus and emails the parent of the
student an event is about. It runs after the core operation has committed;
a failed delivery is logged and reported as a ChannelResult, never raised
back into the operation.

Usage:
    notifier = ParentNotifier(EmailChannel(settings.smtp), database.sessionmaker)
    notifier.register(bus)
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.infrastructure.database.models import FeePayment, Student
from academy.infrastructure.events import EventBus, EventData, EventTypes
from academy.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    NotificationPayload,
)

logger = logging.getLogger(__name__)


class ParentNotifier:
    """Turns domain events into parent notifications.

    Attributes:
        channel: Delivery channel.
        session_factory: Factory for the read-only lookup sessions.
    """

    def __init__(
        self,
        channel: BaseChannel,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self.channel = channel
        self.session_factory = session_factory

    def register(self, bus: EventBus) -> None:
        """Subscribe the notifier's handlers to the bus."""
        bus.subscribe(EventTypes.Assessment.TEST_RECORDED, self.on_test_recorded)
        bus.subscribe(EventTypes.Fees.PAYMENT_APPROVED, self.on_payment_approved)
        bus.subscribe(EventTypes.Fees.PAYMENT_REJECTED, self.on_payment_rejected)

    async def on_test_recorded(self, event: EventData) -> ChannelResult | None:
        """Tell the parent a new test result is available."""
        student = await self._student(event.payload["student_id"])
        if student is None:
            return None

        return await self._send(
            event,
            student,
            title="New test result",
            message=f"{student.name} scored {event.payload['percent']:.1f}% on a recent test.",
        )

    async def on_payment_approved(self, event: EventData) -> ChannelResult | None:
        """Confirm an approved payment to the parent."""
        student = await self._payment_student(event.payload["payment_id"])
        if student is None:
            return None

        return await self._send(
            event,
            student,
            title="Payment approved",
            message=(
                f"Your payment for {student.name} has been approved. "
                f"Fee status: {event.payload['new_fee_status']}."
            ),
        )

    async def on_payment_rejected(self, event: EventData) -> ChannelResult | None:
        """Tell the parent a payment was rejected and why."""
        student = await self._payment_student(event.payload["payment_id"])
        if student is None:
            return None

        return await self._send(
            event,
            student,
            title="Payment rejected",
            message=(
                f"Your payment for {student.name} was rejected. "
                f"Reason: {event.payload['reason']}"
            ),
        )

    async def _send(
        self,
        event: EventData,
        student: Student,
        title: str,
        message: str,
    ) -> ChannelResult:
        payload = NotificationPayload(
            notification_type=event.event_type,
            title=title,
            message=message,
            recipient_email=student.parent_email,
            student_id=student.id,
            student_name=student.name,
            data=event.payload,
        )
        result = await self.channel.send(payload)
        logger.debug(
            "Notification %s for student %s: %s",
            event.event_type,
            student.id,
            result.status.value,
        )
        return result

    async def _student(self, student_id: int) -> Student | None:
        async with self.session_factory() as session:
            student = await session.get(Student, student_id)
        if student is None:
            logger.warning("Cannot notify: student %s not found", student_id)
        return student

    async def _payment_student(self, payment_id: int) -> Student | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Student)
                .join(FeePayment, FeePayment.student_id == Student.id)
                .where(FeePayment.id == payment_id)
            )
            student = result.scalar_one_or_none()
        if student is None:
            logger.warning("Cannot notify: payment %s not found", payment_id)
        return student
