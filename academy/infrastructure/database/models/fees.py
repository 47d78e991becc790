# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fees and submitted fee payments."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from academy.infrastructure.database.models.base import Base, TimestampMixin
from academy.models.common import FeeStatus, PaymentStatus


class Fee(Base, TimestampMixin):
    """An amount owed by a student."""

    __tablename__ = "fees"
    __table_args__ = (
        CheckConstraint("paid_amount >= 0", name="ck_fees_paid_amount_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=FeeStatus.PENDING.value
    )
    paid_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    payments: Mapped[list[FeePayment]] = relationship(back_populates="fee", lazy="raise")

    def __repr__(self) -> str:
        return f"<Fee {self.invoice_number} {self.status}>"


class FeePayment(Base, TimestampMixin):
    """A submitted proof of payment awaiting a decision.

    Rows leave PENDING exactly once, through a conditional UPDATE.
    """

    __tablename__ = "fee_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fee_id: Mapped[int] = mapped_column(ForeignKey("fees.id"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("students.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    receipt_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approver_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    receipt_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    decision_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    fee: Mapped[Fee] = relationship(back_populates="payments", lazy="raise")

    def __repr__(self) -> str:
        return f"<FeePayment {self.id} {self.status}>"
