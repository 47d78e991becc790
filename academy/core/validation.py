# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Explicit input validators.

Each validator returns a ValidationResult instead of raising, so callers can
collect errors across many inputs (bulk grading) before deciding to fail.
``raise_for_errors()`` converts a failed result into a ValidationError.

Example:
    >>> result = validate_subject_marks(request.subjects)
    >>> result.merge(validate_level(request.level)).raise_for_errors()
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from academy.core.exceptions import ValidationError


class SubjectMarkLike(Protocol):
    """Anything shaped like a subject mark."""

    name: str
    obtained: float
    total: float


@dataclass(frozen=True)
class FieldError:
    """A single invalid field.

    Attributes:
        field: Dotted path of the offending field.
        message: What is wrong with it.
    """

    field: str
    message: str

    def with_prefix(self, prefix: str) -> FieldError:
        """Return a copy whose field path is nested under prefix."""
        return FieldError(field=f"{prefix}.{self.field}", message=self.message)

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary representation."""
        return {"field": self.field, "message": self.message}


@dataclass
class ValidationResult:
    """Outcome of one or more validators.

    Attributes:
        errors: Field errors found; empty on success.
    """

    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no errors were found."""
        return not self.errors

    def add(self, field_name: str, message: str) -> None:
        """Record a field error."""
        self.errors.append(FieldError(field=field_name, message=message))

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Append another result's errors to this one and return self."""
        self.errors.extend(other.errors)
        return self

    def raise_for_errors(self, message: str = "Invalid input") -> None:
        """Raise ValidationError if any errors were collected.

        Raises:
            ValidationError: If the result is not ok.
        """
        if self.errors:
            raise ValidationError(message, self.errors)


def validate_subject_marks(subjects: Sequence[SubjectMarkLike]) -> ValidationResult:
    """Validate the subject list of a test.

    Every subject needs a name, a positive total and a non-negative
    obtained mark.

    Args:
        subjects: Subject marks to validate.

    Returns:
        ValidationResult with one error per offending field.
    """
    result = ValidationResult()
    if not subjects:
        result.add("subjects", "At least one subject is required")
        return result

    for index, subject in enumerate(subjects):
        path = f"subjects[{index}]"
        if not subject.name or not subject.name.strip():
            result.add(f"{path}.name", "Subject name is required")
        if subject.total is None or subject.total <= 0:
            result.add(f"{path}.total", "Total marks must be greater than zero")
        if subject.obtained is None or subject.obtained < 0:
            result.add(f"{path}.obtained", "Obtained marks cannot be negative")
    return result


def validate_level(level: Any, field_name: str = "level") -> ValidationResult:
    """Validate a curriculum level number (positive integer)."""
    result = ValidationResult()
    if isinstance(level, bool) or not isinstance(level, int) or level < 1:
        result.add(field_name, "Level must be a positive integer")
    return result


def validate_rejection_reason(reason: str | None) -> ValidationResult:
    """Validate that a rejection reason was given."""
    result = ValidationResult()
    if reason is None or not reason.strip():
        result.add("reason", "Rejection reason is required")
    return result


def validate_amount(amount: Decimal | None, field_name: str = "amount") -> ValidationResult:
    """Validate a monetary amount (strictly positive)."""
    result = ValidationResult()
    if amount is None or amount <= 0:
        result.add(field_name, "Amount must be greater than zero")
    return result


def validate_transaction_id(transaction_id: str | None) -> ValidationResult:
    """Validate that a payment transaction id was given."""
    result = ValidationResult()
    if transaction_id is None or not transaction_id.strip():
        result.add("transaction_id", "Transaction id is required")
    return result


def validate_capacity(capacity: int | None) -> ValidationResult:
    """Validate a batch capacity; None means unlimited."""
    result = ValidationResult()
    if capacity is not None and capacity < 0:
        result.add("capacity", "Capacity cannot be negative")
    return result
