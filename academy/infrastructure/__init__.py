# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure adapters for Academy Core.

Subpackages:
    database: SQLAlchemy async persistence and the atomic unit of work.
    events: In-memory event bus and domain event contracts.
    notifications: Outbound parent notifications.
"""
