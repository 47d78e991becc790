# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scoring request and response models.

Input models are deliberately loose: range checks live in
academy.core.validation so that failures surface as the core's
ValidationError with field paths, not as pydantic errors.
"""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class SubjectMark(BaseModel):
    """Marks for one subject of a test."""

    name: str
    obtained: float
    total: float


class ScoreTotals(BaseModel):
    """Totals derived from a subject list."""

    total_obtained: float
    total_possible: float
    percent: float


class RecordTestRequest(BaseModel):
    """Input for recording a single test."""

    student_id: int
    batch_id: int
    level: int
    test_name: str = "Test"
    date: dt.date
    subjects: list[SubjectMark]


class UpdateTestRequest(BaseModel):
    """Input for replacing the content of a recorded test."""

    test_name: str
    date: dt.date
    subjects: list[SubjectMark]


class AssessmentResponse(BaseModel):
    """A recorded test with its derived totals."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    batch_id: int | None = None
    level: int
    test_name: str
    date: dt.date
    subjects: list[SubjectMark]
    total_obtained: float
    total_possible: float
    percent: float


class LevelSummary(BaseModel):
    """Academic summary of one student at one level.

    Attributes:
        level: Level number.
        total_tests: Number of tests taken at the level.
        average_percent: Arithmetic mean of the tests' percent (0 when none).
        passing_tests: Tests with percent >= passing_percent.
        passing_percent: Threshold used; None when there are no tests.
    """

    level: int
    total_tests: int = 0
    average_percent: float = 0.0
    passing_tests: int = 0
    passing_percent: float | None = None


class BulkGradeEntry(BaseModel):
    """One student's marks inside a bulk grading call."""

    student_id: int
    level: int
    subjects: list[SubjectMark]


class BulkGradeRequest(BaseModel):
    """Input for grading a whole batch in one atomic call."""

    batch_id: int
    test_name: str
    date: dt.date
    entries: list[BulkGradeEntry] = Field(default_factory=list)


class BulkGradeResponse(BaseModel):
    """Tests created by a bulk grading call."""

    batch_id: int
    test_name: str
    date: dt.date
    results: list[AssessmentResponse] = Field(default_factory=list)
    total_recorded: int = 0
