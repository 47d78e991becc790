# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Levels, batches and students.

Batch.enrolled_count is the maintained active enrollment count. It is only
changed by conditional UPDATE statements issued in the same transaction as
the Student.batch_id write (see EnrollmentService).
"""

from __future__ import annotations

from datetime import time

from sqlalchemy import JSON, CheckConstraint, Float, ForeignKey, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.infrastructure.database.models.base import Base, TimestampMixin
from academy.models.common import StudentStatus


class Level(Base, TimestampMixin):
    """A curriculum stage with its passing threshold."""

    __tablename__ = "levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    passing_percent: Mapped[float | None] = mapped_column(Float, nullable=True)

    def __repr__(self) -> str:
        return f"<Level {self.id} {self.name}>"


class Batch(Base, TimestampMixin):
    """A scheduled cohort of students with an optional capacity."""

    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("enrolled_count >= 0", name="ck_batches_enrolled_count_non_negative"),
        CheckConstraint(
            "capacity IS NULL OR enrolled_count <= capacity",
            name="ck_batches_enrolled_within_capacity",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    level_id: Mapped[int] = mapped_column(ForeignKey("levels.id"), nullable=False)
    teacher_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    days: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    enrolled_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    level: Mapped[Level] = relationship(lazy="raise")
    students: Mapped[list[Student]] = relationship(back_populates="batch", lazy="raise")

    @property
    def has_capacity(self) -> bool:
        """Whether another student fits."""
        return self.capacity is None or self.enrolled_count < self.capacity

    def __repr__(self) -> str:
        return f"<Batch {self.id} {self.name}>"


class Student(Base, TimestampMixin):
    """A student; belongs to at most one batch."""

    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    parent_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    parent_phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    parent_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    batch_id: Mapped[int | None] = mapped_column(
        ForeignKey("batches.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StudentStatus.ACTIVE.value
    )

    batch: Mapped[Batch | None] = relationship(back_populates="students", lazy="raise")

    @property
    def is_active(self) -> bool:
        """Check if the student is active."""
        return self.status == StudentStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<Student {self.id} {self.name}>"
