# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event infrastructure for Academy Core.

Components:
- EventBus: In-memory pub/sub with pattern matching
- EventTypes: Centralized event type constants
- DomainEvent subclasses: Payload contracts for the notifier

Architecture:
    Service (after commit) -> EventBus.publish_event() -> ParentNotifier
"""

from academy.infrastructure.events.bus import EventBus, EventData, EventHandler
from academy.infrastructure.events.types import (
    CapacityExceeded,
    DomainEvent,
    EnrollmentSucceeded,
    EventPatterns,
    EventTypes,
    PaymentApproved,
    PaymentRejected,
    PaymentSubmitted,
    StudentRemoved,
    TestRecorded,
)

__all__ = [
    # Event Bus
    "EventBus",
    "EventData",
    "EventHandler",
    # Event Types
    "EventTypes",
    "EventPatterns",
    # Event Contracts
    "DomainEvent",
    "EnrollmentSucceeded",
    "StudentRemoved",
    "CapacityExceeded",
    "TestRecorded",
    "PaymentSubmitted",
    "PaymentApproved",
    "PaymentRejected",
]
