# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared enums for Academy Core.

The enum values are what is stored in the database.
"""

from enum import Enum


class StudentStatus(str, Enum):
    """Student lifecycle status."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class FeeStatus(str, Enum):
    """Fee settlement status, derived from paid amount vs amount."""

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class PaymentStatus(str, Enum):
    """Fee payment approval status.

    PENDING is initial; APPROVED and REJECTED are terminal.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Advisory(str, Enum):
    """Non-blocking warnings returned alongside a successful result."""

    LEVEL_MISMATCH = "LevelMismatch"
