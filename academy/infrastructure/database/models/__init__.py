# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for Academy Core."""

from academy.infrastructure.database.models.assessment import Assessment
from academy.infrastructure.database.models.base import Base, TimestampMixin
from academy.infrastructure.database.models.enrollment import Batch, Level, Student
from academy.infrastructure.database.models.fees import Fee, FeePayment

__all__ = [
    "Base",
    "TimestampMixin",
    "Level",
    "Batch",
    "Student",
    "Assessment",
    "Fee",
    "FeePayment",
]
