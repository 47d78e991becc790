# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fee domain services."""

from academy.domains.fees.service import FeeService, derive_fee_status

__all__ = ["FeeService", "derive_fee_status"]
