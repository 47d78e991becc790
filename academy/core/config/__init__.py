# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for Academy Core.

Example:
    >>> from academy.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.enrollment.level_mismatch_policy
    'advise'
"""

from academy.core.config.settings import (
    DatabaseSettings,
    EnrollmentSettings,
    FeeSettings,
    ScoringSettings,
    Settings,
    SMTPSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "EnrollmentSettings",
    "ScoringSettings",
    "FeeSettings",
    "SMTPSettings",
]
