# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for Academy Core.

Each domain module provides a service that enforces its business rules
inside a single store transaction per operation.

Domains:
    enrollment: Batch assignment and capacity management.
    scoring: Test scoring and academic summaries.
    fees: Invoices and the payment approval workflow.
"""
