# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment request and response models."""

from pydantic import BaseModel, ConfigDict, Field

from academy.models.common import Advisory, StudentStatus


class AssignmentResult(BaseModel):
    """Successful assignment of a student to a batch.

    Attributes:
        success: Always True; failures are raised as errors.
        student_id: Assigned student.
        batch_id: Batch the student now belongs to.
        previous_batch_id: Batch released by a reassignment, if any.
        advisory: Non-blocking warning, e.g. LevelMismatch.
        current_count: Batch enrollment after the assignment.
        max_capacity: Batch capacity, None when unlimited.
    """

    success: bool = True
    student_id: int
    batch_id: int
    previous_batch_id: int | None = None
    advisory: Advisory | None = None
    current_count: int
    max_capacity: int | None = None


class RemovalResult(BaseModel):
    """Outcome of removing a student from their batch."""

    student_id: int
    batch_id: int
    current_count: int


class CapacityInfo(BaseModel):
    """Batch occupancy snapshot."""

    batch_id: int
    has_capacity: bool
    current_count: int
    max_capacity: int | None = None


class BatchResponse(BaseModel):
    """Batch details."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    level_id: int
    teacher_id: int | None = None
    capacity: int | None = None
    enrolled_count: int


class StudentSummary(BaseModel):
    """Student as listed inside a batch."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    current_level: int
    status: StudentStatus
    batch_id: int | None = None


class BatchStudentsPage(BaseModel):
    """A page of students enrolled in a batch."""

    batch_id: int
    items: list[StudentSummary] = Field(default_factory=list)
    total: int
