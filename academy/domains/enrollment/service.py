# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for managing student batch assignments.

This module provides the EnrollmentService class for:
- Assigning (and reassigning) students to capacity-limited batches
- Removing students from their batch
- Changing batch capacity and deleting empty batches
- Occupancy and roster reads

Batch.enrolled_count only changes through conditional UPDATE statements
executed in the same transaction as the Student.batch_id write, so the
capacity check and the assignment can never be split by a concurrent caller.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.authorization import (
    ALL_ROLES,
    STAFF_ROLES,
    AuthorizationContext,
    Role,
    require_roles,
)
from academy.core.config.settings import EnrollmentSettings
from academy.core.exceptions import (
    BatchNotEmptyError,
    CapacityExceededError,
    ConflictError,
    InvalidCapacityError,
    LevelMismatchError,
    NotFoundError,
    ValidationError,
)
from academy.core.validation import FieldError, validate_capacity
from academy.infrastructure.database.models import Batch, Student
from academy.infrastructure.database.transactions import atomic
from academy.infrastructure.events import (
    CapacityExceeded,
    DomainEvent,
    EnrollmentSucceeded,
    EventBus,
    StudentRemoved,
)
from academy.models.common import Advisory
from academy.models.enrollment import (
    AssignmentResult,
    BatchResponse,
    BatchStudentsPage,
    CapacityInfo,
    RemovalResult,
    StudentSummary,
)

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Service for managing batch enrollments.

    Each instance works on one session, which the request layer opens per
    operation. Concurrent callers use separate instances and sessions.

    Attributes:
        db: Async database session.
        event_bus: Bus receiving enrollment events, if any.
        settings: Enrollment rules.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        settings: EnrollmentSettings | None = None,
    ) -> None:
        """Initialize enrollment service.

        Args:
            db: Async database session.
            event_bus: Bus receiving enrollment events.
            settings: Enrollment rules; defaults apply when omitted.
        """
        self.db = db
        self.event_bus = event_bus
        self.settings = settings or EnrollmentSettings()

    async def assign_student_to_batch(
        self,
        auth: AuthorizationContext,
        student_id: int,
        batch_id: int,
    ) -> AssignmentResult:
        """Assign a student to a batch, releasing any previous batch.

        Args:
            auth: Caller context (ADMIN or TEACHER).
            student_id: Student identifier.
            batch_id: Target batch identifier.

        Returns:
            Assignment result, with a LevelMismatch advisory when the
            student's level differs from the batch level.

        Raises:
            ForbiddenError: If the caller is not staff.
            NotFoundError: If the student or batch does not exist.
            ValidationError: If the student is inactive or already in the batch.
            LevelMismatchError: If levels differ and the policy is "block".
            CapacityExceededError: If the batch is full.
            ConflictError: If the student was reassigned concurrently.
        """
        require_roles(auth, *STAFF_ROLES, operation="assign student to batch")

        advisory: Advisory | None = None
        try:
            async with atomic(self.db):
                student = await self._get_student(student_id)
                if not student.is_active:
                    raise ValidationError(
                        "Inactive students cannot be assigned to a batch",
                        [FieldError("student_id", "Student is not active")],
                    )

                batch = await self._get_batch(batch_id)
                previous_batch_id = student.batch_id
                if previous_batch_id == batch.id:
                    raise ValidationError(
                        "Student is already assigned to this batch",
                        [FieldError("batch_id", "Student is already in this batch")],
                    )

                if student.current_level != batch.level_id:
                    if self.settings.level_mismatch_policy == "block":
                        raise LevelMismatchError(
                            student.id, student.current_level, batch.level_id
                        )
                    advisory = Advisory.LEVEL_MISMATCH

                await self._reserve_seat(batch.id)
                if previous_batch_id is not None:
                    await self._release_seat(previous_batch_id)
                await self._move_student(student.id, previous_batch_id, batch.id)

                batch = await self._get_batch(batch.id, refresh=True)
        except CapacityExceededError as exc:
            logger.warning(
                "Batch full: batch=%s, count=%d/%d, student=%s, by=%s",
                exc.batch_id,
                exc.current_count,
                exc.max_capacity,
                student_id,
                auth.user_id,
            )
            await self._publish(
                CapacityExceeded(
                    batch_id=exc.batch_id,
                    current_count=exc.current_count,
                    max_capacity=exc.max_capacity,
                )
            )
            raise

        if advisory is not None:
            logger.warning(
                "Level mismatch: student=%s (level %s) assigned to batch=%s (level %s)",
                student.id,
                student.current_level,
                batch.id,
                batch.level_id,
            )

        logger.info(
            "Assigned student: student=%s, batch=%s, previous=%s, count=%d, by=%s",
            student_id,
            batch_id,
            previous_batch_id,
            batch.enrolled_count,
            auth.user_id,
        )

        await self._publish(EnrollmentSucceeded(student_id=student_id, batch_id=batch_id))

        return AssignmentResult(
            student_id=student_id,
            batch_id=batch_id,
            previous_batch_id=previous_batch_id,
            advisory=advisory,
            current_count=batch.enrolled_count,
            max_capacity=batch.capacity,
        )

    async def remove_student_from_batch(
        self,
        auth: AuthorizationContext,
        student_id: int,
        batch_id: int | None = None,
    ) -> RemovalResult:
        """Remove a student from their batch.

        Args:
            auth: Caller context (ADMIN or TEACHER).
            student_id: Student identifier.
            batch_id: Optional batch the student is expected to be in.

        Returns:
            Removal result with the batch's new enrollment count.

        Raises:
            ForbiddenError: If the caller is not staff.
            NotFoundError: If the student does not exist or has no batch
                (or is not in the given batch).
            ConflictError: If the student was moved concurrently.
        """
        require_roles(auth, *STAFF_ROLES, operation="remove student from batch")

        async with atomic(self.db):
            student = await self._get_student(student_id)
            current_batch_id = student.batch_id
            if current_batch_id is None or (batch_id is not None and current_batch_id != batch_id):
                raise NotFoundError(
                    "Enrollment",
                    student_id,
                    f"Student {student_id} is not assigned to "
                    + (f"batch {batch_id}" if batch_id is not None else "a batch"),
                )

            await self._move_student(student.id, current_batch_id, None)
            await self._release_seat(current_batch_id)
            batch = await self._get_batch(current_batch_id, refresh=True)

        logger.info(
            "Removed student: student=%s, batch=%s, count=%d, by=%s",
            student_id,
            current_batch_id,
            batch.enrolled_count,
            auth.user_id,
        )

        await self._publish(StudentRemoved(student_id=student_id, batch_id=current_batch_id))

        return RemovalResult(
            student_id=student_id,
            batch_id=current_batch_id,
            current_count=batch.enrolled_count,
        )

    async def change_capacity(
        self,
        auth: AuthorizationContext,
        batch_id: int,
        new_capacity: int | None,
    ) -> BatchResponse:
        """Change a batch's capacity.

        Args:
            auth: Caller context (ADMIN only).
            batch_id: Batch identifier.
            new_capacity: New capacity, None for unlimited.

        Returns:
            Updated batch.

        Raises:
            ForbiddenError: If the caller is not an admin.
            ValidationError: If the capacity is negative.
            NotFoundError: If the batch does not exist.
            InvalidCapacityError: If new_capacity < current enrollment.
        """
        require_roles(auth, Role.ADMIN, operation="change batch capacity")
        validate_capacity(new_capacity).raise_for_errors("Invalid capacity")

        async with atomic(self.db):
            stmt = update(Batch).where(Batch.id == batch_id)
            if new_capacity is not None:
                stmt = stmt.where(Batch.enrolled_count <= new_capacity)
            result = await self.db.execute(
                stmt.values(capacity=new_capacity).execution_options(synchronize_session=False)
            )

            batch = await self._get_batch(batch_id, refresh=True)
            if result.rowcount == 0:
                raise InvalidCapacityError(batch.id, batch.enrolled_count, new_capacity)

        logger.info(
            "Changed capacity: batch=%s, capacity=%s, count=%d, by=%s",
            batch_id,
            new_capacity,
            batch.enrolled_count,
            auth.user_id,
        )

        return BatchResponse.model_validate(batch)

    async def delete_batch(self, auth: AuthorizationContext, batch_id: int) -> None:
        """Delete a batch that has no enrolled students.

        Args:
            auth: Caller context (ADMIN only).
            batch_id: Batch identifier.

        Raises:
            ForbiddenError: If the caller is not an admin.
            NotFoundError: If the batch does not exist.
            BatchNotEmptyError: If students are still enrolled.
        """
        require_roles(auth, Role.ADMIN, operation="delete batch")

        async with atomic(self.db):
            result = await self.db.execute(
                delete(Batch)
                .where(Batch.id == batch_id, Batch.enrolled_count == 0)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                batch = await self._get_batch(batch_id, refresh=True)
                raise BatchNotEmptyError(batch.id, batch.enrolled_count)

        logger.info("Deleted batch: batch=%s, by=%s", batch_id, auth.user_id)

    async def check_capacity(self, auth: AuthorizationContext, batch_id: int) -> CapacityInfo:
        """Report whether a batch can take another student.

        Args:
            auth: Caller context.
            batch_id: Batch identifier.

        Returns:
            Occupancy snapshot.

        Raises:
            NotFoundError: If the batch does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="check batch capacity")

        batch = await self._get_batch(batch_id, refresh=True)
        return CapacityInfo(
            batch_id=batch.id,
            has_capacity=batch.has_capacity,
            current_count=batch.enrolled_count,
            max_capacity=batch.capacity,
        )

    async def list_batch_students(
        self,
        auth: AuthorizationContext,
        batch_id: int,
        skip: int = 0,
        take: int = 50,
    ) -> BatchStudentsPage:
        """List students assigned to a batch, ordered by name.

        Args:
            auth: Caller context.
            batch_id: Batch identifier.
            skip: Rows to skip.
            take: Maximum rows to return.

        Returns:
            Page of students with the total count.

        Raises:
            NotFoundError: If the batch does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="list batch students")

        await self._get_batch(batch_id)

        total = await self.db.scalar(
            select(func.count()).select_from(Student).where(Student.batch_id == batch_id)
        )
        result = await self.db.execute(
            select(Student)
            .where(Student.batch_id == batch_id)
            .order_by(Student.name, Student.id)
            .offset(skip)
            .limit(take)
        )
        students = result.scalars().all()

        return BatchStudentsPage(
            batch_id=batch_id,
            items=[StudentSummary.model_validate(s) for s in students],
            total=total or 0,
        )

    async def _reserve_seat(self, batch_id: int) -> None:
        """Increment a batch's enrollment count if capacity allows.

        Raises:
            NotFoundError: If the batch vanished concurrently.
            CapacityExceededError: If the batch is full.
        """
        result = await self.db.execute(
            update(Batch)
            .where(
                Batch.id == batch_id,
                or_(Batch.capacity.is_(None), Batch.enrolled_count < Batch.capacity),
            )
            .values(enrolled_count=Batch.enrolled_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            batch = await self._get_batch(batch_id, refresh=True)
            raise CapacityExceededError(batch.id, batch.enrolled_count, batch.capacity)

    async def _release_seat(self, batch_id: int) -> None:
        """Decrement a batch's enrollment count, never below zero."""
        result = await self.db.execute(
            update(Batch)
            .where(Batch.id == batch_id, Batch.enrolled_count > 0)
            .values(enrolled_count=Batch.enrolled_count - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Enrollment count of batch %s already zero, not decremented", batch_id)

    async def _move_student(
        self,
        student_id: int,
        expected_batch_id: int | None,
        new_batch_id: int | None,
    ) -> None:
        """Point a student at a new batch if it still holds the expected one.

        Raises:
            ConflictError: If another operation moved the student first.
        """
        result = await self.db.execute(
            update(Student)
            .where(Student.id == student_id, Student.batch_id == expected_batch_id)
            .values(batch_id=new_batch_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                "Student assignment changed concurrently",
                {"student_id": student_id, "expected_batch_id": expected_batch_id},
            )

    async def _get_student(self, student_id: int) -> Student:
        """Get student by ID.

        Raises:
            NotFoundError: If not found.
        """
        result = await self.db.execute(
            select(Student)
            .where(Student.id == student_id)
            .execution_options(populate_existing=True)
        )
        student = result.scalar_one_or_none()
        if not student:
            raise NotFoundError("Student", student_id)
        return student

    async def _get_batch(self, batch_id: int, refresh: bool = False) -> Batch:
        """Get batch by ID.

        Args:
            batch_id: Batch identifier.
            refresh: Overwrite any stale copy held by the session.

        Raises:
            NotFoundError: If not found.
        """
        query = select(Batch).where(Batch.id == batch_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        batch = result.scalar_one_or_none()
        if not batch:
            raise NotFoundError("Batch", batch_id)
        return batch

    async def _publish(self, event: DomainEvent) -> None:
        """Publish an event if a bus is configured."""
        if self.event_bus is not None:
            await self.event_bus.publish_event(event)
