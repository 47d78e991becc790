# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain services.

This module provides services for assigning students to capacity-limited
batches.
"""

from academy.domains.enrollment.service import EnrollmentService

__all__ = ["EnrollmentService"]
