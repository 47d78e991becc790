# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Score arithmetic.

Pure functions with no store access, so the same numbers come out whether
a test is being recorded, updated, or summarized.

Example:
    >>> compute_totals([SubjectMark(name="Math", obtained=45, total=50),
    ...                 SubjectMark(name="Reading", obtained=30, total=50)])
    ScoreTotals(total_obtained=75.0, total_possible=100.0, percent=75.0)
"""

from collections.abc import Sequence

from academy.core.validation import SubjectMarkLike, validate_subject_marks
from academy.models.scoring import LevelSummary, ScoreTotals


def compute_totals(subjects: Sequence[SubjectMarkLike]) -> ScoreTotals:
    """Derive totals and percent from a subject list.

    Args:
        subjects: Subject marks of one test.

    Returns:
        Sum of obtained marks, sum of totals, and obtained/possible x 100.

    Raises:
        ValidationError: If the list is empty or any subject is malformed.
    """
    validate_subject_marks(subjects).raise_for_errors("Invalid subject marks")

    total_obtained = float(sum(s.obtained for s in subjects))
    total_possible = float(sum(s.total for s in subjects))

    return ScoreTotals(
        total_obtained=total_obtained,
        total_possible=total_possible,
        percent=total_obtained / total_possible * 100,
    )


def summarize_level(
    level: int,
    percents: Sequence[float],
    passing_percent: float,
    precision: int | None = None,
) -> LevelSummary:
    """Summarize a student's tests at one level.

    Args:
        level: Level number.
        percents: Percent of each test taken at the level.
        passing_percent: Threshold a test must reach to count as passing.
        precision: Decimal places for the reported average, None to keep
            full precision.

    Returns:
        LevelSummary; all zeros when there are no tests.
    """
    if not percents:
        return LevelSummary(level=level)

    average = sum(percents) / len(percents)
    if precision is not None:
        average = round(average, precision)

    return LevelSummary(
        level=level,
        total_tests=len(percents),
        average_percent=average,
        passing_tests=sum(1 for p in percents if p >= passing_percent),
        passing_percent=passing_percent,
    )
