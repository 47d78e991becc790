# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Recorded tests (assessments) with their subject marks.

total_obtained, total_possible and percent are always written together with
subjects by the scoring service; they are never set independently.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import JSON, Date, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from academy.infrastructure.database.models.base import Base, TimestampMixin


class Assessment(Base, TimestampMixin):
    """A scored test taken by a student at a level."""

    __tablename__ = "assessments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    test_name: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    subjects: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_obtained: Mapped[float] = mapped_column(Float, nullable=False)
    total_possible: Mapped[float] = mapped_column(Float, nullable=False)
    percent: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return f"<Assessment {self.id} student={self.student_id} level={self.level}>"
