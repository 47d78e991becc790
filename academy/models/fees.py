# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fee and payment request and response models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from academy.models.common import FeeStatus, PaymentStatus


class CreateInvoiceRequest(BaseModel):
    """Input for raising a new fee against a student."""

    student_id: int
    amount: Decimal
    due_date: date
    invoice_number: str | None = None


class SubmitPaymentRequest(BaseModel):
    """Proof of payment submitted for a fee."""

    fee_id: int
    student_id: int
    amount: Decimal
    transaction_id: str | None = None
    receipt_ref: str | None = None
    payment_method: str | None = None
    notes: str | None = None


class FeeResponse(BaseModel):
    """Fee details."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    invoice_number: str
    amount: Decimal
    due_date: date
    paid_amount: Decimal
    status: FeeStatus
    paid_date: datetime | None = None


class PaymentResponse(BaseModel):
    """Fee payment details."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    fee_id: int
    student_id: int
    amount: Decimal
    transaction_id: str
    receipt_ref: str | None = None
    payment_method: str | None = None
    status: PaymentStatus
    rejection_reason: str | None = None
    approver_id: int | None = None
    decided_at: datetime | None = None
    receipt_number: str | None = None
    decision_note: str | None = None
    notes: str | None = None


class PaymentDecision(BaseModel):
    """Outcome of approving or rejecting a payment.

    fee_status and paid_amount are only set for approvals.
    """

    payment_id: int
    payment_status: PaymentStatus
    fee_id: int
    fee_status: FeeStatus | None = None
    paid_amount: Decimal | None = None
