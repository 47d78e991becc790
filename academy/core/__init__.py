# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core building blocks shared by every domain.

Modules:
    config: Pydantic settings loaded from the environment.
    authorization: Caller roles and role guards.
    exceptions: Error taxonomy surfaced to callers.
    validation: Explicit input validators.
"""
