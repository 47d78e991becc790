# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring domain services.

The calculator module holds the pure score arithmetic; the service
persists tests and builds summaries from stored data.
"""

from academy.domains.scoring.calculator import compute_totals, summarize_level
from academy.domains.scoring.service import ScoringService

__all__ = ["ScoringService", "compute_totals", "summarize_level"]
