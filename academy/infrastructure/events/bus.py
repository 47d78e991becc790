# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory event bus for Academy Core.

Services publish domain events after their transaction commits; the
external notifier subscribes to them. Events are published and subscribed
to by event type strings.

The EventBus supports:
- Exact event type matching (e.g., "fees.payment_approved")
- Wildcard pattern matching (e.g., "fees.*", "*.capacity_exceeded")
- Async handlers, run as background tasks so publishers never wait on them
- Multiple handlers per event type

The bus is constructed by the application and passed into each service;
there is no process-wide instance.

Example:
    bus = EventBus()

    async def on_payment_approved(event: EventData) -> None:
        print(event.payload["new_fee_status"])

    bus.subscribe(EventTypes.Fees.PAYMENT_APPROVED, on_payment_approved)
    await bus.publish_event(PaymentApproved(payment_id=1, fee_id=2, new_fee_status="PAID"))
"""

import asyncio
import fnmatch
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable
from uuid import uuid4

from academy.utils.datetime import utc_now

if TYPE_CHECKING:
    from academy.infrastructure.events.types import DomainEvent

logger = logging.getLogger(__name__)


@dataclass
class EventData:
    """Container for event data with metadata.

    Attributes:
        event_type: The event type string.
        payload: The event payload data.
        event_id: Unique event identifier.
        timestamp: When the event was published.
    """

    event_type: str
    payload: dict[str, Any]
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)


# Type alias for event handlers
EventHandler = Callable[[EventData], Awaitable[None]]


class EventBus:
    """In-memory async event bus with pattern matching support.

    Handler failures are logged and never propagate to the publisher, so a
    broken notifier cannot fail a committed core operation.

    Attributes:
        _handlers: Dictionary mapping event types to handler lists.
        _pattern_handlers: Dictionary mapping patterns to handler lists.
    """

    def __init__(self) -> None:
        """Initialize the event bus."""
        self._handlers: dict[str, list[EventHandler]] = {}
        self._pattern_handlers: dict[str, list[EventHandler]] = {}
        self._event_count = 0
        self._tasks: set[asyncio.Task[None]] = set()
        logger.debug("EventBus initialized")

    def subscribe(
        self,
        event_type: str,
        handler: EventHandler,
    ) -> None:
        """Subscribe a handler to an event type or pattern.

        Args:
            event_type: Event type string or pattern with wildcards.
            handler: Async function to call when event is published.
        """
        if "*" in event_type or "?" in event_type:
            self._pattern_handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed pattern handler to: %s", event_type)
        else:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug("Subscribed handler to: %s", event_type)

    def unsubscribe(
        self,
        event_type: str,
        handler: EventHandler,
    ) -> bool:
        """Unsubscribe a handler from an event type or pattern.

        Args:
            event_type: Event type string or pattern.
            handler: The handler function to remove.

        Returns:
            True if handler was found and removed, False otherwise.
        """
        registry = (
            self._pattern_handlers
            if "*" in event_type or "?" in event_type
            else self._handlers
        )
        handlers = registry.get(event_type)
        if not handlers or handler not in handlers:
            return False

        handlers.remove(handler)
        if not handlers:
            del registry[event_type]
        return True

    async def publish(
        self,
        event_type: str,
        payload: dict[str, Any],
    ) -> EventData:
        """Publish an event to all matching subscribers.

        Each handler runs in its own task; the call returns once they are
        scheduled. Use drain() to wait for them.

        Args:
            event_type: The event type string.
            payload: Event data dictionary.

        Returns:
            EventData object with event metadata.
        """
        event = EventData(event_type=event_type, payload=payload)
        self._event_count += 1

        handlers_to_call: list[EventHandler] = list(self._handlers.get(event_type, []))
        for pattern, pattern_handlers in self._pattern_handlers.items():
            if fnmatch.fnmatch(event_type, pattern):
                handlers_to_call.extend(pattern_handlers)

        if not handlers_to_call:
            logger.debug("No handlers for event: %s", event_type)
            return event

        logger.debug(
            "Publishing event %s to %d handlers",
            event_type,
            len(handlers_to_call),
        )

        async def safe_call(handler: EventHandler) -> None:
            """Call handler with error handling."""
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "Handler error for event %s: %s",
                    event_type,
                    str(e),
                    exc_info=True,
                )

        for handler in handlers_to_call:
            task = asyncio.create_task(safe_call(handler))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return event

    async def publish_event(self, event: "DomainEvent") -> EventData:
        """Publish a typed domain event.

        Args:
            event: Domain event model; its class defines the event type.

        Returns:
            EventData object with event metadata.
        """
        return await self.publish(event.event_type, event.model_dump(mode="json"))

    async def drain(self) -> None:
        """Wait until every dispatched handler has finished.

        Handlers may publish further events, so this loops until no task is
        pending.
        """
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)

    def clear(self) -> None:
        """Remove all subscriptions."""
        self._handlers.clear()
        self._pattern_handlers.clear()
        logger.debug("EventBus cleared all subscriptions")

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics.

        Returns:
            Dictionary with subscription and event counts.
        """
        exact_count = sum(len(h) for h in self._handlers.values())
        pattern_count = sum(len(h) for h in self._pattern_handlers.values())

        return {
            "exact_subscriptions": len(self._handlers),
            "pattern_subscriptions": len(self._pattern_handlers),
            "total_handlers": exact_count + pattern_count,
            "events_published": self._event_count,
            "pending_handlers": len(self._tasks),
            "event_types": list(self._handlers.keys()),
            "patterns": list(self._pattern_handlers.keys()),
        }
