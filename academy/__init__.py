"""Academy Core.

Business-rule core for an academy: batch enrollment under capacity limits,
assessment scoring, and fee payment approval.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
