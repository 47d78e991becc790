# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring service for recorded tests and academic summaries.

This module provides the ScoringService class for:
- Recording, updating and deleting scored tests
- Grading a whole batch in one all-or-nothing call
- Per-level and cumulative academic summaries

Totals and percent are always recomputed from the subject list by
academy.domains.scoring.calculator; callers never supply them.
"""

import datetime as dt
import logging
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.authorization import (
    ALL_ROLES,
    STAFF_ROLES,
    AuthorizationContext,
    require_roles,
)
from academy.core.config.settings import ScoringSettings
from academy.core.exceptions import BulkValidationError, NotFoundError
from academy.core.validation import (
    FieldError,
    ValidationResult,
    validate_level,
    validate_subject_marks,
)
from academy.domains.scoring.calculator import compute_totals, summarize_level
from academy.infrastructure.database.models import Assessment, Batch, Level, Student
from academy.infrastructure.database.transactions import atomic
from academy.infrastructure.events import EventBus, TestRecorded
from academy.models.scoring import (
    AssessmentResponse,
    BulkGradeRequest,
    BulkGradeResponse,
    LevelSummary,
    RecordTestRequest,
    SubjectMark,
    UpdateTestRequest,
)

logger = logging.getLogger(__name__)


class ScoringService:
    """Service for scoring tests and summarizing results.

    Attributes:
        db: Async database session.
        event_bus: Bus receiving TestRecorded events, if any.
        settings: Scoring rules.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        settings: ScoringSettings | None = None,
    ) -> None:
        """Initialize scoring service.

        Args:
            db: Async database session.
            event_bus: Bus receiving scoring events.
            settings: Scoring rules; defaults apply when omitted.
        """
        self.db = db
        self.event_bus = event_bus
        self.settings = settings or ScoringSettings()

    async def record_test(
        self,
        auth: AuthorizationContext,
        request: RecordTestRequest,
    ) -> AssessmentResponse:
        """Score and store a single test.

        Args:
            auth: Caller context (ADMIN or TEACHER).
            request: Test content.

        Returns:
            The stored test with its derived totals.

        Raises:
            ForbiddenError: If the caller is not staff.
            ValidationError: If the level or any subject is invalid.
            NotFoundError: If the student or batch does not exist.
        """
        require_roles(auth, *STAFF_ROLES, operation="record test")

        validate_level(request.level).merge(
            validate_subject_marks(request.subjects)
        ).raise_for_errors("Invalid test")

        async with atomic(self.db):
            await self._ensure_student(request.student_id)
            await self._ensure_batch(request.batch_id)

            assessment = self._build_assessment(
                student_id=request.student_id,
                batch_id=request.batch_id,
                level=request.level,
                test_name=request.test_name,
                date=request.date,
                subjects=request.subjects,
            )
            self.db.add(assessment)
            await self.db.flush()

        logger.info(
            "Recorded test: id=%s, student=%s, level=%s, percent=%.2f, by=%s",
            assessment.id,
            assessment.student_id,
            assessment.level,
            assessment.percent,
            auth.user_id,
        )

        await self._publish_recorded(assessment)
        return AssessmentResponse.model_validate(assessment)

    async def update_test(
        self,
        auth: AuthorizationContext,
        test_id: int,
        request: UpdateTestRequest,
    ) -> AssessmentResponse:
        """Replace a test's name, date and subjects, recomputing totals.

        Raises:
            ForbiddenError: If the caller is not staff.
            ValidationError: If any subject is invalid.
            NotFoundError: If the test does not exist.
        """
        require_roles(auth, *STAFF_ROLES, operation="update test")

        totals = compute_totals(request.subjects)

        async with atomic(self.db):
            assessment = await self._get_assessment(test_id)
            assessment.test_name = request.test_name
            assessment.date = request.date
            assessment.subjects = [s.model_dump() for s in request.subjects]
            assessment.total_obtained = totals.total_obtained
            assessment.total_possible = totals.total_possible
            assessment.percent = totals.percent
            await self.db.flush()

        logger.info(
            "Updated test: id=%s, percent=%.2f, by=%s",
            test_id,
            assessment.percent,
            auth.user_id,
        )

        return AssessmentResponse.model_validate(assessment)

    async def delete_test(self, auth: AuthorizationContext, test_id: int) -> None:
        """Delete a recorded test.

        Raises:
            ForbiddenError: If the caller is not staff.
            NotFoundError: If the test does not exist.
        """
        require_roles(auth, *STAFF_ROLES, operation="delete test")

        async with atomic(self.db):
            assessment = await self._get_assessment(test_id)
            await self.db.delete(assessment)

        logger.info("Deleted test: id=%s, by=%s", test_id, auth.user_id)

    async def get_test(self, auth: AuthorizationContext, test_id: int) -> AssessmentResponse:
        """Get a recorded test.

        Raises:
            NotFoundError: If the test does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="view test")
        return AssessmentResponse.model_validate(await self._get_assessment(test_id))

    async def list_student_tests(
        self,
        auth: AuthorizationContext,
        student_id: int,
    ) -> list[AssessmentResponse]:
        """List a student's tests, newest first.

        Raises:
            NotFoundError: If the student does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="list student tests")
        await self._ensure_student(student_id)

        result = await self.db.execute(
            select(Assessment)
            .where(Assessment.student_id == student_id)
            .order_by(Assessment.date.desc(), Assessment.id.desc())
        )
        return [AssessmentResponse.model_validate(a) for a in result.scalars().all()]

    async def list_batch_tests(
        self,
        auth: AuthorizationContext,
        batch_id: int,
        date: dt.date,
    ) -> list[AssessmentResponse]:
        """List the tests recorded for a batch on one calendar day.

        Raises:
            NotFoundError: If the batch does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="list batch tests")
        await self._ensure_batch(batch_id)

        result = await self.db.execute(
            select(Assessment)
            .where(Assessment.batch_id == batch_id, Assessment.date == date)
            .order_by(Assessment.student_id, Assessment.id)
        )
        return [AssessmentResponse.model_validate(a) for a in result.scalars().all()]

    async def level_summary(
        self,
        auth: AuthorizationContext,
        student_id: int,
        level: int,
    ) -> LevelSummary:
        """Summarize a student's tests at one level.

        The passing threshold comes from the Level record, falling back to
        the configured default when the record or its threshold is missing.

        Args:
            auth: Caller context.
            student_id: Student identifier.
            level: Level number.

        Returns:
            Summary with all zeros when the student has no tests there.

        Raises:
            ValidationError: If level is not a positive integer.
            NotFoundError: If the student does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="view level summary")
        validate_level(level).raise_for_errors("Invalid level")
        await self._ensure_student(student_id)

        result = await self.db.execute(
            select(Assessment.percent).where(
                Assessment.student_id == student_id,
                Assessment.level == level,
            )
        )
        percents = list(result.scalars().all())
        thresholds = await self._passing_thresholds([level])

        return summarize_level(
            level,
            percents,
            thresholds[level],
            self.settings.percent_precision,
        )

    async def all_levels_summary(
        self,
        auth: AuthorizationContext,
        student_id: int,
    ) -> list[LevelSummary]:
        """Summarize every level from 1 up to the student's current level.

        Each level is computed independently, in ascending order.

        Raises:
            NotFoundError: If the student does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="view level summaries")
        student = await self._ensure_student(student_id)
        levels = list(range(1, student.current_level + 1))
        if not levels:
            return []

        result = await self.db.execute(
            select(Assessment.level, Assessment.percent).where(
                Assessment.student_id == student_id,
                Assessment.level.in_(levels),
            )
        )
        percents_by_level: dict[int, list[float]] = defaultdict(list)
        for row_level, percent in result.all():
            percents_by_level[row_level].append(percent)

        thresholds = await self._passing_thresholds(levels)

        return [
            summarize_level(
                level,
                percents_by_level.get(level, []),
                thresholds[level],
                self.settings.percent_precision,
            )
            for level in levels
        ]

    async def bulk_grade(
        self,
        auth: AuthorizationContext,
        request: BulkGradeRequest,
    ) -> BulkGradeResponse:
        """Record one test per entry for a batch, all or nothing.

        Every entry is validated before anything is written; any invalid
        entry (bad marks, bad level, unknown student) fails the whole call
        with one BulkValidationError listing every offending entry.

        Args:
            auth: Caller context (ADMIN or TEACHER).
            request: Batch, test name, date and per-student entries.

        Returns:
            The stored tests in entry order.

        Raises:
            ForbiddenError: If the caller is not staff.
            NotFoundError: If the batch does not exist.
            BulkValidationError: If any entry is invalid.
        """
        require_roles(auth, *STAFF_ROLES, operation="bulk grade")

        if not request.entries:
            result = ValidationResult()
            result.add("entries", "At least one entry is required")
            result.raise_for_errors("Invalid bulk grade request")

        async with atomic(self.db):
            await self._ensure_batch(request.batch_id)

            student_ids = {entry.student_id for entry in request.entries}
            found = await self.db.execute(select(Student.id).where(Student.id.in_(student_ids)))
            known_ids = set(found.scalars().all())

            entry_errors: dict[int, list[FieldError]] = {}
            for index, entry in enumerate(request.entries):
                check = validate_level(entry.level).merge(validate_subject_marks(entry.subjects))
                if entry.student_id not in known_ids:
                    check.add("student_id", f"Student {entry.student_id} not found")
                if not check.ok:
                    entry_errors[index] = check.errors

            if entry_errors:
                raise BulkValidationError(entry_errors)

            assessments = [
                self._build_assessment(
                    student_id=entry.student_id,
                    batch_id=request.batch_id,
                    level=entry.level,
                    test_name=request.test_name,
                    date=request.date,
                    subjects=entry.subjects,
                )
                for entry in request.entries
            ]
            self.db.add_all(assessments)
            await self.db.flush()

        logger.info(
            "Bulk graded batch: batch=%s, test=%s, recorded=%d, by=%s",
            request.batch_id,
            request.test_name,
            len(assessments),
            auth.user_id,
        )

        for assessment in assessments:
            await self._publish_recorded(assessment)

        results = [AssessmentResponse.model_validate(a) for a in assessments]
        return BulkGradeResponse(
            batch_id=request.batch_id,
            test_name=request.test_name,
            date=request.date,
            results=results,
            total_recorded=len(results),
        )

    def _build_assessment(
        self,
        *,
        student_id: int,
        batch_id: int,
        level: int,
        test_name: str,
        date: dt.date,
        subjects: list[SubjectMark],
    ) -> Assessment:
        """Create an Assessment row with totals derived from its subjects."""
        totals = compute_totals(subjects)
        return Assessment(
            student_id=student_id,
            batch_id=batch_id,
            level=level,
            test_name=test_name,
            date=date,
            subjects=[s.model_dump() for s in subjects],
            total_obtained=totals.total_obtained,
            total_possible=totals.total_possible,
            percent=totals.percent,
        )

    async def _passing_thresholds(self, levels: list[int]) -> dict[int, float]:
        """Passing percent per level, defaulted where no threshold is stored."""
        result = await self.db.execute(
            select(Level.id, Level.passing_percent).where(Level.id.in_(levels))
        )
        stored = {level_id: percent for level_id, percent in result.all() if percent is not None}
        default = self.settings.default_passing_percent
        return {level: stored.get(level, default) for level in levels}

    async def _publish_recorded(self, assessment: Assessment) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish_event(
                TestRecorded(
                    student_id=assessment.student_id,
                    test_id=assessment.id,
                    percent=assessment.percent,
                )
            )

    async def _get_assessment(self, test_id: int) -> Assessment:
        """Get test by ID.

        Raises:
            NotFoundError: If not found.
        """
        result = await self.db.execute(select(Assessment).where(Assessment.id == test_id))
        assessment = result.scalar_one_or_none()
        if not assessment:
            raise NotFoundError("Test", test_id)
        return assessment

    async def _ensure_student(self, student_id: int) -> Student:
        result = await self.db.execute(select(Student).where(Student.id == student_id))
        student = result.scalar_one_or_none()
        if not student:
            raise NotFoundError("Student", student_id)
        return student

    async def _ensure_batch(self, batch_id: int) -> Batch:
        result = await self.db.execute(select(Batch).where(Batch.id == batch_id))
        batch = result.scalar_one_or_none()
        if not batch:
            raise NotFoundError("Batch", batch_id)
        return batch
