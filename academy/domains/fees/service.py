# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fee service for invoices and the payment approval workflow.

Payments move PENDING -> APPROVED or PENDING -> REJECTED exactly once. The
transition is a conditional UPDATE on the payment's status, executed as the
first write of the transaction that also applies the amount to the fee, so
two approvers racing on one payment can never both apply it.
"""

import logging
import secrets
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.authorization import (
    ALL_ROLES,
    STAFF_ROLES,
    AuthorizationContext,
    Role,
    require_roles,
)
from academy.core.config.settings import FeeSettings
from academy.core.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from academy.core.validation import (
    FieldError,
    validate_amount,
    validate_rejection_reason,
    validate_transaction_id,
)
from academy.infrastructure.database.models import Fee, FeePayment, Student
from academy.infrastructure.database.transactions import atomic
from academy.infrastructure.events import (
    EventBus,
    PaymentApproved,
    PaymentRejected,
    PaymentSubmitted,
)
from academy.models.common import FeeStatus, PaymentStatus
from academy.models.fees import (
    CreateInvoiceRequest,
    FeeResponse,
    PaymentDecision,
    PaymentResponse,
    SubmitPaymentRequest,
)
from academy.utils.datetime import invoice_timestamp, utc_now

logger = logging.getLogger(__name__)


def derive_fee_status(paid_amount: Decimal, amount: Decimal) -> FeeStatus:
    """Fee status implied by how much has been paid.

    Args:
        paid_amount: Sum of approved payments.
        amount: Amount owed.

    Returns:
        PAID when fully covered, PARTIAL when partly covered, else PENDING.
    """
    if paid_amount >= amount:
        return FeeStatus.PAID
    if paid_amount > 0:
        return FeeStatus.PARTIAL
    return FeeStatus.PENDING


def generate_invoice_number(prefix: str) -> str:
    """Invoice number of the form PREFIX-<millis>-<6 hex>.

    The random suffix keeps numbers generated within the same millisecond
    distinct.
    """
    return f"{prefix}-{invoice_timestamp()}-{secrets.token_hex(3).upper()}"


class FeeService:
    """Service for fees and fee payments.

    Attributes:
        db: Async database session.
        event_bus: Bus receiving payment events, if any.
        settings: Fee workflow rules.
    """

    def __init__(
        self,
        db: AsyncSession,
        event_bus: EventBus | None = None,
        settings: FeeSettings | None = None,
    ) -> None:
        """Initialize fee service.

        Args:
            db: Async database session.
            event_bus: Bus receiving payment events.
            settings: Fee workflow rules; defaults apply when omitted.
        """
        self.db = db
        self.event_bus = event_bus
        self.settings = settings or FeeSettings()

    async def create_invoice(
        self,
        auth: AuthorizationContext,
        request: CreateInvoiceRequest,
    ) -> FeeResponse:
        """Raise a new fee against a student.

        Args:
            auth: Caller context (ADMIN only).
            request: Invoice details; the number is generated when omitted.

        Returns:
            The new fee, PENDING with nothing paid.

        Raises:
            ForbiddenError: If the caller is not an admin.
            ValidationError: If the amount is not positive.
            NotFoundError: If the student does not exist.
            ConflictError: If the invoice number is already taken.
        """
        require_roles(auth, Role.ADMIN, operation="create invoice")
        validate_amount(request.amount).raise_for_errors("Invalid invoice")

        invoice_number = request.invoice_number or generate_invoice_number(
            self.settings.invoice_prefix
        )

        async with atomic(self.db):
            await self._ensure_student(request.student_id)
            fee = Fee(
                student_id=request.student_id,
                invoice_number=invoice_number,
                amount=request.amount,
                due_date=request.due_date,
                paid_amount=Decimal("0"),
                status=FeeStatus.PENDING.value,
            )
            self.db.add(fee)
            await self.db.flush()

        logger.info(
            "Created invoice: fee=%s, number=%s, student=%s, amount=%s, by=%s",
            fee.id,
            invoice_number,
            fee.student_id,
            fee.amount,
            auth.user_id,
        )

        return FeeResponse.model_validate(fee)

    async def submit_payment(
        self,
        auth: AuthorizationContext,
        request: SubmitPaymentRequest,
    ) -> PaymentResponse:
        """Record a proof of payment awaiting approval.

        The owning fee is not changed until the payment is approved.

        Raises:
            ValidationError: If the amount or transaction id is invalid, or
                the student does not own the fee.
            NotFoundError: If the fee does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="submit payment")
        validate_amount(request.amount).merge(
            validate_transaction_id(request.transaction_id)
        ).raise_for_errors("Invalid payment")

        async with atomic(self.db):
            fee = await self._get_fee(request.fee_id)
            if fee.student_id != request.student_id:
                raise ValidationError(
                    "Fee does not belong to this student",
                    [FieldError("student_id", f"Fee {fee.id} belongs to another student")],
                )

            payment = FeePayment(
                fee_id=fee.id,
                student_id=request.student_id,
                amount=request.amount,
                transaction_id=request.transaction_id.strip(),
                receipt_ref=request.receipt_ref,
                payment_method=request.payment_method,
                notes=request.notes,
                status=PaymentStatus.PENDING.value,
            )
            self.db.add(payment)
            await self.db.flush()

        logger.info(
            "Submitted payment: payment=%s, fee=%s, amount=%s, by=%s",
            payment.id,
            payment.fee_id,
            payment.amount,
            auth.user_id,
        )

        if self.event_bus is not None:
            await self.event_bus.publish_event(
                PaymentSubmitted(
                    payment_id=payment.id,
                    fee_id=payment.fee_id,
                    student_id=payment.student_id,
                    amount=str(payment.amount),
                )
            )

        return PaymentResponse.model_validate(payment)

    async def approve_payment(
        self,
        auth: AuthorizationContext,
        payment_id: int,
        note: str | None = None,
        receipt_number: str | None = None,
    ) -> PaymentDecision:
        """Approve a pending payment and apply it to its fee.

        Args:
            auth: Caller context (ADMIN or TEACHER); auth.user_id is
                recorded as the approver.
            payment_id: Payment identifier.
            note: Optional approver note.
            receipt_number: Optional receipt number issued to the payer.

        Returns:
            The decision with the fee's new status and paid amount.

        Raises:
            ForbiddenError: If the caller is not staff.
            NotFoundError: If the payment does not exist.
            InvalidStateTransitionError: If the payment is not PENDING.
            OverpaymentError: If the policy is "reject" and the payment
                exceeds the fee's outstanding amount.
        """
        require_roles(auth, *STAFF_ROLES, operation="approve payment")
        decided_at = utc_now()

        async with atomic(self.db):
            await self._transition(
                payment_id,
                PaymentStatus.APPROVED,
                approver_id=auth.user_id,
                decided_at=decided_at,
                decision_note=note,
                receipt_number=receipt_number,
            )
            payment = await self._get_payment(payment_id, refresh=True)

            fee_update = update(Fee).where(Fee.id == payment.fee_id)
            if self.settings.overpayment_policy == "reject":
                fee_update = fee_update.where(Fee.paid_amount + payment.amount <= Fee.amount)
            result = await self.db.execute(
                fee_update.values(paid_amount=Fee.paid_amount + payment.amount)
                .execution_options(synchronize_session=False)
            )

            fee = await self._get_fee(payment.fee_id, refresh=True)
            if result.rowcount == 0:
                raise OverpaymentError(
                    payment.id,
                    fee.id,
                    fee.amount - fee.paid_amount,
                    payment.amount,
                )

            fee_status = derive_fee_status(fee.paid_amount, fee.amount)
            fee.status = fee_status.value
            if fee_status is FeeStatus.PAID and fee.paid_date is None:
                fee.paid_date = decided_at
            await self.db.flush()

        logger.info(
            "Approved payment: payment=%s, fee=%s, paid=%s/%s, status=%s, by=%s",
            payment_id,
            fee.id,
            fee.paid_amount,
            fee.amount,
            fee_status.value,
            auth.user_id,
        )

        if self.event_bus is not None:
            await self.event_bus.publish_event(
                PaymentApproved(
                    payment_id=payment_id,
                    fee_id=fee.id,
                    new_fee_status=fee_status.value,
                )
            )

        return PaymentDecision(
            payment_id=payment_id,
            payment_status=PaymentStatus.APPROVED,
            fee_id=fee.id,
            fee_status=fee_status,
            paid_amount=fee.paid_amount,
        )

    async def reject_payment(
        self,
        auth: AuthorizationContext,
        payment_id: int,
        reason: str,
    ) -> PaymentDecision:
        """Reject a pending payment; the fee is left untouched.

        Raises:
            ForbiddenError: If the caller is not staff.
            ValidationError: If the reason is empty.
            NotFoundError: If the payment does not exist.
            InvalidStateTransitionError: If the payment is not PENDING.
        """
        require_roles(auth, *STAFF_ROLES, operation="reject payment")
        validate_rejection_reason(reason).raise_for_errors("Invalid rejection")
        reason = reason.strip()

        async with atomic(self.db):
            await self._transition(
                payment_id,
                PaymentStatus.REJECTED,
                approver_id=auth.user_id,
                decided_at=utc_now(),
                rejection_reason=reason,
            )
            payment = await self._get_payment(payment_id, refresh=True)

        logger.info(
            "Rejected payment: payment=%s, fee=%s, by=%s",
            payment_id,
            payment.fee_id,
            auth.user_id,
        )

        if self.event_bus is not None:
            await self.event_bus.publish_event(
                PaymentRejected(payment_id=payment_id, reason=reason)
            )

        return PaymentDecision(
            payment_id=payment_id,
            payment_status=PaymentStatus.REJECTED,
            fee_id=payment.fee_id,
        )

    async def get_fee(self, auth: AuthorizationContext, fee_id: int) -> FeeResponse:
        """Get a fee.

        Raises:
            NotFoundError: If the fee does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="view fee")
        return FeeResponse.model_validate(await self._get_fee(fee_id, refresh=True))

    async def get_payment(self, auth: AuthorizationContext, payment_id: int) -> PaymentResponse:
        """Get a payment.

        Raises:
            NotFoundError: If the payment does not exist.
        """
        require_roles(auth, *ALL_ROLES, operation="view payment")
        return PaymentResponse.model_validate(await self._get_payment(payment_id, refresh=True))

    async def list_student_fees(
        self,
        auth: AuthorizationContext,
        student_id: int,
    ) -> list[FeeResponse]:
        """List a student's fees, latest due date first."""
        require_roles(auth, *ALL_ROLES, operation="list student fees")
        await self._ensure_student(student_id)

        result = await self.db.execute(
            select(Fee)
            .where(Fee.student_id == student_id)
            .order_by(Fee.due_date.desc(), Fee.id.desc())
        )
        return [FeeResponse.model_validate(f) for f in result.scalars().all()]

    async def list_pending_payments(self, auth: AuthorizationContext) -> list[PaymentResponse]:
        """List payments awaiting a decision, newest first."""
        require_roles(auth, *STAFF_ROLES, operation="list pending payments")

        result = await self.db.execute(
            select(FeePayment)
            .where(FeePayment.status == PaymentStatus.PENDING.value)
            .order_by(FeePayment.created_at.desc(), FeePayment.id.desc())
        )
        return [PaymentResponse.model_validate(p) for p in result.scalars().all()]

    async def list_student_payments(
        self,
        auth: AuthorizationContext,
        student_id: int,
    ) -> list[PaymentResponse]:
        """List every payment submitted for a student, newest first."""
        require_roles(auth, *ALL_ROLES, operation="list student payments")
        await self._ensure_student(student_id)

        result = await self.db.execute(
            select(FeePayment)
            .where(FeePayment.student_id == student_id)
            .order_by(FeePayment.created_at.desc(), FeePayment.id.desc())
        )
        return [PaymentResponse.model_validate(p) for p in result.scalars().all()]

    async def _transition(
        self,
        payment_id: int,
        target: PaymentStatus,
        **values: object,
    ) -> None:
        """Move a payment out of PENDING if it is still PENDING.

        Raises:
            NotFoundError: If the payment does not exist.
            InvalidStateTransitionError: If another decision got there first.
        """
        result = await self.db.execute(
            update(FeePayment)
            .where(
                FeePayment.id == payment_id,
                FeePayment.status == PaymentStatus.PENDING.value,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            payment = await self._get_payment(payment_id, refresh=True)
            logger.warning(
                "Payment %s is %s, cannot move to %s",
                payment_id,
                payment.status,
                target.value,
            )
            raise InvalidStateTransitionError(payment_id, payment.status, target.value)

    async def _get_payment(self, payment_id: int, refresh: bool = False) -> FeePayment:
        """Get payment by ID.

        Raises:
            NotFoundError: If not found.
        """
        query = select(FeePayment).where(FeePayment.id == payment_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment", payment_id)
        return payment

    async def _get_fee(self, fee_id: int, refresh: bool = False) -> Fee:
        """Get fee by ID.

        Raises:
            NotFoundError: If not found.
        """
        query = select(Fee).where(Fee.id == fee_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        fee = result.scalar_one_or_none()
        if not fee:
            raise NotFoundError("Fee", fee_id)
        return fee

    async def _ensure_student(self, student_id: int) -> None:
        result = await self.db.execute(select(Student.id).where(Student.id == student_id))
        if result.scalar_one_or_none() is None:
            raise NotFoundError("Student", student_id)
