# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent notifications for Academy Core.

Key Components:
- ParentNotifier: Subscribes to domain events and notifies parents
- Channels: EmailChannel
- NotificationPayload: Data structure for notification content

Usage:
    from academy.infrastructure.notifications import EmailChannel, ParentNotifier

    notifier = ParentNotifier(EmailChannel(settings.smtp), database.sessionmaker)
    notifier.register(bus)
"""

from academy.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    EmailChannel,
    NotificationPayload,
)
from academy.infrastructure.notifications.notifier import ParentNotifier

__all__ = [
    "ParentNotifier",
    # Channel types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "NotificationPayload",
    # Channels
    "EmailChannel",
]
