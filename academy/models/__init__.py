# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic request and response models for the core operations.

Modules:
    common: Shared enums.
    enrollment: Batch assignment results and occupancy.
    scoring: Subject marks, tests, summaries and bulk grading.
    fees: Invoices, payments and approval decisions.
"""
