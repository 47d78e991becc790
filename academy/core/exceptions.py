# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy for Academy Core.

Every error raised by a core operation derives from AcademyError and carries
a ``kind`` (the stable name the request layer maps to a response) plus a
``details`` dictionary with the ids and counts relevant to the failure.

- NotFoundError: Referenced entity absent
- ValidationError: Malformed input (field errors attached)
- CapacityExceededError: Batch is full
- InvalidCapacityError: Capacity reduced below current enrollment
- BatchNotEmptyError: Batch still has enrolled students
- InvalidStateTransitionError: Payment is no longer PENDING
- ConflictError: Lost a concurrent race at the store layer
- ForbiddenError: Caller role not allowed to perform the operation
- DatabaseError: Store failure that is not a contention conflict
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from academy.core.validation import FieldError


class AcademyError(Exception):
    """Base exception for all core errors.

    Attributes:
        kind: Taxonomy name of the error.
        message: Human-readable error description.
        details: Additional error context.
    """

    kind: ClassVar[str] = "AcademyError"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for the request layer."""
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AcademyError):
    """Raised when a referenced entity does not exist."""

    kind = "NotFound"

    def __init__(self, entity: str, entity_id: Any, message: str | None = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity} {entity_id} not found",
            {"entity": entity, "entity_id": entity_id},
        )


class ValidationError(AcademyError):
    """Raised when input is malformed.

    Attributes:
        errors: Field-level errors that caused the failure.
    """

    kind = "ValidationError"

    def __init__(
        self,
        message: str,
        errors: list[FieldError] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.errors = list(errors or [])
        merged = dict(details or {})
        if self.errors:
            merged["errors"] = [error.to_dict() for error in self.errors]
        super().__init__(message, merged)


class BulkValidationError(ValidationError):
    """Raised when one or more bulk entries fail validation.

    Nothing from the bulk call is persisted when this is raised.

    Attributes:
        entry_errors: Mapping of entry index to its field errors.
    """

    def __init__(self, entry_errors: dict[int, list[FieldError]]) -> None:
        self.entry_errors = entry_errors
        flattened = [
            error.with_prefix(f"entries[{index}]")
            for index, errors in sorted(entry_errors.items())
            for error in errors
        ]
        super().__init__(
            f"{len(entry_errors)} bulk entries failed validation",
            flattened,
            {"failed_entries": sorted(entry_errors)},
        )


class LevelMismatchError(ValidationError):
    """Raised when level mismatches are configured to block assignment."""

    def __init__(self, student_id: int, student_level: int, batch_level: int) -> None:
        super().__init__(
            f"Student level {student_level} does not match batch level {batch_level}",
            details={
                "student_id": student_id,
                "student_level": student_level,
                "batch_level": batch_level,
            },
        )


class OverpaymentError(ValidationError):
    """Raised when approving a payment would exceed the fee amount."""

    def __init__(self, payment_id: int, fee_id: int, outstanding: Any, amount: Any) -> None:
        super().__init__(
            f"Payment {payment_id} exceeds the outstanding balance of fee {fee_id}",
            details={
                "payment_id": payment_id,
                "fee_id": fee_id,
                "outstanding": str(outstanding),
                "amount": str(amount),
            },
        )


class CapacityExceededError(AcademyError):
    """Raised when a batch is already at its configured capacity."""

    kind = "CapacityExceeded"

    def __init__(self, batch_id: int, current_count: int, max_capacity: int) -> None:
        self.batch_id = batch_id
        self.current_count = current_count
        self.max_capacity = max_capacity
        super().__init__(
            f"Batch is at full capacity ({current_count}/{max_capacity})",
            {
                "batch_id": batch_id,
                "current_count": current_count,
                "max_capacity": max_capacity,
            },
        )


class InvalidCapacityError(AcademyError):
    """Raised when capacity would drop below the current enrollment."""

    kind = "InvalidCapacity"

    def __init__(self, batch_id: int, current_count: int, requested_capacity: int) -> None:
        self.batch_id = batch_id
        self.current_count = current_count
        self.requested_capacity = requested_capacity
        super().__init__(
            f"Cannot reduce capacity below current student count ({current_count})",
            {
                "batch_id": batch_id,
                "current_count": current_count,
                "requested_capacity": requested_capacity,
            },
        )


class BatchNotEmptyError(AcademyError):
    """Raised when deleting a batch that still has students."""

    kind = "BatchNotEmpty"

    def __init__(self, batch_id: int, current_count: int) -> None:
        self.batch_id = batch_id
        self.current_count = current_count
        super().__init__(
            "Cannot delete batch with enrolled students",
            {"batch_id": batch_id, "current_count": current_count},
        )


class InvalidStateTransitionError(AcademyError):
    """Raised when a payment decision targets a non-PENDING payment."""

    kind = "InvalidStateTransition"

    def __init__(self, payment_id: int, current_status: str, attempted: str) -> None:
        self.payment_id = payment_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Payment {payment_id} is {current_status}, cannot move to {attempted}",
            {
                "payment_id": payment_id,
                "current_status": current_status,
                "attempted": attempted,
            },
        )


class ConflictError(AcademyError):
    """Raised when an operation lost a concurrent race at the store layer.

    Attributes:
        original_error: The underlying store error, if any.
    """

    kind = "Conflict"

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.original_error = original_error
        super().__init__(message, details)


class ForbiddenError(AcademyError):
    """Raised when the caller's role may not perform an operation."""

    kind = "Forbidden"

    def __init__(self, role: str, operation: str) -> None:
        self.role = role
        self.operation = operation
        super().__init__(
            f"Role {role} is not allowed to {operation}",
            {"role": role, "operation": operation},
        )


class DatabaseError(AcademyError):
    """Raised when the store fails for a reason other than contention.

    The transaction has already been rolled back when this is raised.
    """

    kind = "DatabaseError"

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message
