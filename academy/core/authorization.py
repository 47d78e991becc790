# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Caller identity passed explicitly into every core operation.

Authentication happens in the request layer. It builds an
AuthorizationContext for the caller and hands it to the service call;
the core only checks roles.

Example:
    >>> auth = AuthorizationContext(user_id=7, role=Role.TEACHER)
    >>> require_roles(auth, Role.ADMIN, Role.TEACHER, operation="approve payment")
"""

from dataclasses import dataclass
from enum import Enum

from academy.core.exceptions import ForbiddenError


class Role(str, Enum):
    """Caller roles known to the core."""

    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"


# Role sets used by the services
STAFF_ROLES = (Role.ADMIN, Role.TEACHER)
ALL_ROLES = (Role.ADMIN, Role.TEACHER, Role.PARENT)


@dataclass(frozen=True)
class AuthorizationContext:
    """Authenticated caller.

    Attributes:
        user_id: Identifier of the calling user.
        role: Role of the calling user.
    """

    user_id: int
    role: Role

    def has_any_role(self, *roles: Role) -> bool:
        """Check if the caller has any of the specified roles."""
        return self.role in roles


def require_roles(auth: AuthorizationContext, *roles: Role, operation: str) -> None:
    """Ensure the caller holds one of the given roles.

    Args:
        auth: Caller context.
        roles: Roles allowed to perform the operation.
        operation: Human-readable operation name for the error.

    Raises:
        ForbiddenError: If the caller's role is not allowed.
    """
    if not auth.has_any_role(*roles):
        raise ForbiddenError(Role(auth.role).value, operation)
