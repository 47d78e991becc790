# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain event names and payload contracts.

The contract with the external notifier is the event name plus the payload
shape. Names are constants on EventTypes; payloads are the pydantic models
below, each bound to its event name through ``event_type``.

Adding a new event:
1. Add the constant to the matching class in EventTypes
2. Add a DomainEvent subclass with the payload fields
"""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class EventTypes:
    """All event types in Academy Core organized by domain."""

    class Enrollment:
        """Enrollment and capacity events."""

        SUCCEEDED = "enrollment.succeeded"
        STUDENT_REMOVED = "enrollment.student_removed"
        CAPACITY_EXCEEDED = "enrollment.capacity_exceeded"

    class Assessment:
        """Scoring events."""

        TEST_RECORDED = "assessment.test_recorded"

    class Fees:
        """Fee payment workflow events."""

        PAYMENT_SUBMITTED = "fees.payment_submitted"
        PAYMENT_APPROVED = "fees.payment_approved"
        PAYMENT_REJECTED = "fees.payment_rejected"


class EventPatterns:
    """Wildcard patterns for subscribing to multiple events."""

    ALL_ENROLLMENT = "enrollment.*"
    ALL_ASSESSMENT = "assessment.*"
    ALL_FEES = "fees.*"
    ALL = "*"


class DomainEvent(BaseModel):
    """Base class for event payloads."""

    model_config = ConfigDict(frozen=True)

    event_type: ClassVar[str]


class EnrollmentSucceeded(DomainEvent):
    """A student was assigned to a batch."""

    event_type: ClassVar[str] = EventTypes.Enrollment.SUCCEEDED

    student_id: int
    batch_id: int


class StudentRemoved(DomainEvent):
    """A student was removed from a batch."""

    event_type: ClassVar[str] = EventTypes.Enrollment.STUDENT_REMOVED

    student_id: int
    batch_id: int


class CapacityExceeded(DomainEvent):
    """An assignment was refused because the batch is full."""

    event_type: ClassVar[str] = EventTypes.Enrollment.CAPACITY_EXCEEDED

    batch_id: int
    current_count: int
    max_capacity: int


class TestRecorded(DomainEvent):
    """A test was scored and stored."""

    __test__ = False

    event_type: ClassVar[str] = EventTypes.Assessment.TEST_RECORDED

    student_id: int
    test_id: int
    percent: float


class PaymentSubmitted(DomainEvent):
    """A parent submitted proof of payment."""

    event_type: ClassVar[str] = EventTypes.Fees.PAYMENT_SUBMITTED

    payment_id: int
    fee_id: int
    student_id: int
    amount: str


class PaymentApproved(DomainEvent):
    """A pending payment was approved and applied to its fee."""

    event_type: ClassVar[str] = EventTypes.Fees.PAYMENT_APPROVED

    payment_id: int
    fee_id: int
    new_fee_status: str


class PaymentRejected(DomainEvent):
    """A pending payment was rejected."""

    event_type: ClassVar[str] = EventTypes.Fees.PAYMENT_REJECTED

    payment_id: int
    reason: str
