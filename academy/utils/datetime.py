# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for Academy Core.

1. All timestamps are stored in UTC
2. All Python datetimes are timezone-aware (with timezone.utc)

Usage:
    from academy.utils.datetime import utc_now

    created_at = mapped_column(DateTime(timezone=True), default=utc_now)
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def invoice_timestamp() -> str:
    """Get a compact millisecond timestamp for generated invoice numbers."""
    return str(int(utc_now().timestamp() * 1000))
