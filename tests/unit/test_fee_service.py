# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Fee service and payment approval workflow."""

import asyncio
from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
import pytest_asyncio

from academy.core.config.settings import FeeSettings
from academy.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    OverpaymentError,
    ValidationError,
)
from academy.domains.fees import FeeService, derive_fee_status
from academy.infrastructure.database.models import Fee, FeePayment
from academy.infrastructure.events import EventTypes
from academy.models.common import FeeStatus, PaymentStatus
from academy.models.fees import CreateInvoiceRequest, PaymentDecision, SubmitPaymentRequest


@pytest_asyncio.fixture
async def student(make_student):
    """Create a student."""
    return await make_student(name="Alice")


@pytest.fixture
def fee_service(session, event_bus):
    """Create fee service on the test session."""
    return FeeService(db=session, event_bus=event_bus)


async def _load(database, model, row_id):
    async with database.session() as s:
        return await s.get(model, row_id)


class TestDeriveFeeStatus:
    """Tests for derive_fee_status."""

    @pytest.mark.parametrize(
        ("paid", "expected"),
        [
            ("0", FeeStatus.PENDING),
            ("40", FeeStatus.PARTIAL),
            ("100", FeeStatus.PAID),
            ("120", FeeStatus.PAID),
        ],
    )
    def test_status(self, paid, expected) -> None:
        """Test status follows paid amount against the fee amount."""
        assert derive_fee_status(Decimal(paid), Decimal("100")) is expected


class TestCreateInvoice:
    """Tests for raising invoices."""

    @pytest.mark.asyncio
    async def test_create_invoice_generates_number(self, fee_service, admin, student):
        """Test a generated invoice number carries the prefix."""
        fee = await fee_service.create_invoice(
            admin,
            CreateInvoiceRequest(
                student_id=student.id,
                amount=Decimal("250.00"),
                due_date=date(2025, 5, 1),
            ),
        )

        assert fee.invoice_number.startswith("INV-")
        assert fee.status == FeeStatus.PENDING
        assert fee.paid_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_generated_numbers_unique_within_one_millisecond(
        self, fee_service, admin, student
    ):
        """Test invoices created in the same millisecond get distinct numbers."""
        request = CreateInvoiceRequest(
            student_id=student.id, amount=Decimal("10.00"), due_date=date(2025, 5, 1)
        )

        with patch(
            "academy.domains.fees.service.invoice_timestamp", return_value="1700000000000"
        ):
            first = await fee_service.create_invoice(admin, request)
            second = await fee_service.create_invoice(admin, request)

        assert first.invoice_number != second.invoice_number
        assert first.invoice_number.startswith("INV-1700000000000-")
        assert len(second.invoice_number.rsplit("-", 1)[1]) == 6

    @pytest.mark.asyncio
    async def test_create_invoice_duplicate_number(self, fee_service, admin, student):
        """Test invoice numbers are unique."""
        request = CreateInvoiceRequest(
            student_id=student.id,
            amount=Decimal("10"),
            due_date=date(2025, 5, 1),
            invoice_number="INV-1",
        )
        await fee_service.create_invoice(admin, request)

        with pytest.raises(ConflictError):
            await fee_service.create_invoice(admin, request)

    @pytest.mark.asyncio
    async def test_create_invoice_requires_admin(self, fee_service, teacher, student):
        """Test only admins raise invoices."""
        with pytest.raises(ForbiddenError):
            await fee_service.create_invoice(
                teacher,
                CreateInvoiceRequest(
                    student_id=student.id,
                    amount=Decimal("10"),
                    due_date=date(2025, 5, 1),
                ),
            )

    @pytest.mark.asyncio
    async def test_create_invoice_non_positive_amount(self, fee_service, admin, student):
        """Test invoice amounts must be positive."""
        with pytest.raises(ValidationError):
            await fee_service.create_invoice(
                admin,
                CreateInvoiceRequest(
                    student_id=student.id,
                    amount=Decimal("0"),
                    due_date=date(2025, 5, 1),
                ),
            )

    @pytest.mark.asyncio
    async def test_list_student_fees_by_due_date(self, fee_service, admin, parent, student):
        """Test fees are listed latest due date first."""
        for due in [date(2025, 1, 1), date(2025, 3, 1)]:
            await fee_service.create_invoice(
                admin,
                CreateInvoiceRequest(
                    student_id=student.id,
                    amount=Decimal("10"),
                    due_date=due,
                    invoice_number=f"INV-{due.isoformat()}",
                ),
            )

        fees = await fee_service.list_student_fees(parent, student.id)

        assert [f.due_date for f in fees] == [date(2025, 3, 1), date(2025, 1, 1)]


class TestSubmitPayment:
    """Tests for submitting payments."""

    @pytest.mark.asyncio
    async def test_submit_leaves_fee_untouched(
        self, fee_service, database, parent, student, make_fee, event_bus, published
    ):
        """Test a submitted payment is PENDING and the fee is unchanged."""
        fee = await make_fee(student.id)

        payment = await fee_service.submit_payment(
            parent,
            SubmitPaymentRequest(
                fee_id=fee.id,
                student_id=student.id,
                amount=Decimal("40"),
                transaction_id="TXN-1",
                receipt_ref="receipts/1.png",
            ),
        )

        assert payment.status == PaymentStatus.PENDING
        stored_fee = await _load(database, Fee, fee.id)
        assert stored_fee.paid_amount == Decimal("0")
        assert stored_fee.status == FeeStatus.PENDING.value
        await event_bus.drain()
        assert published[0].event_type == EventTypes.Fees.PAYMENT_SUBMITTED

    @pytest.mark.asyncio
    async def test_submit_for_other_students_fee(
        self, fee_service, parent, student, make_student, make_fee
    ):
        """Test a payment must name the student who owns the fee."""
        other = await make_student(name="Other")
        fee = await make_fee(other.id)

        with pytest.raises(ValidationError):
            await fee_service.submit_payment(
                parent,
                SubmitPaymentRequest(
                    fee_id=fee.id,
                    student_id=student.id,
                    amount=Decimal("40"),
                    transaction_id="TXN-1",
                ),
            )

    @pytest.mark.asyncio
    async def test_submit_invalid_input(self, fee_service, parent, student, make_fee):
        """Test amount and transaction id are both validated."""
        fee = await make_fee(student.id)

        with pytest.raises(ValidationError) as exc_info:
            await fee_service.submit_payment(
                parent,
                SubmitPaymentRequest(
                    fee_id=fee.id,
                    student_id=student.id,
                    amount=Decimal("-1"),
                    transaction_id="  ",
                ),
            )

        assert {e.field for e in exc_info.value.errors} == {"amount", "transaction_id"}

    @pytest.mark.asyncio
    async def test_submit_unknown_fee(self, fee_service, parent, student):
        """Test submitting against an unknown fee fails."""
        with pytest.raises(NotFoundError):
            await fee_service.submit_payment(
                parent,
                SubmitPaymentRequest(
                    fee_id=999,
                    student_id=student.id,
                    amount=Decimal("1"),
                    transaction_id="TXN-1",
                ),
            )


class TestApprovePayment:
    """Tests for approving payments."""

    @pytest.mark.asyncio
    async def test_partial_then_paid(
        self, fee_service, database, teacher, student, make_fee, make_payment, event_bus, published
    ):
        """Test approvals accumulate into PARTIAL and then PAID."""
        fee = await make_fee(student.id, amount="100.00")
        first = await make_payment(fee, "40.00")
        second = await make_payment(fee, "60.00")

        partial = await fee_service.approve_payment(teacher, first.id)
        paid = await fee_service.approve_payment(
            teacher, second.id, note="Cash at desk", receipt_number="R-2"
        )

        assert partial.fee_status == FeeStatus.PARTIAL
        assert partial.paid_amount == Decimal("40.00")
        assert paid.fee_status == FeeStatus.PAID
        assert paid.paid_amount == Decimal("100.00")

        stored_fee = await _load(database, Fee, fee.id)
        assert stored_fee.paid_date is not None
        stored_payment = await _load(database, FeePayment, second.id)
        assert stored_payment.status == PaymentStatus.APPROVED.value
        assert stored_payment.approver_id == teacher.user_id
        assert stored_payment.decided_at is not None
        assert stored_payment.decision_note == "Cash at desk"
        assert stored_payment.receipt_number == "R-2"
        await event_bus.drain()
        assert [e.payload["new_fee_status"] for e in published] == ["PARTIAL", "PAID"]

    @pytest.mark.asyncio
    async def test_approve_twice(self, fee_service, database, admin, student, make_fee, make_payment):
        """Test a second approval fails and the fee is credited once."""
        fee = await make_fee(student.id)
        payment = await make_payment(fee, "30.00")
        await fee_service.approve_payment(admin, payment.id)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await fee_service.approve_payment(admin, payment.id)

        assert exc_info.value.current_status == PaymentStatus.APPROVED.value
        stored_fee = await _load(database, Fee, fee.id)
        assert stored_fee.paid_amount == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_overpayment_allowed_by_default(
        self, fee_service, admin, student, make_fee, make_payment
    ):
        """Test paid amount may exceed the fee amount and status stays PAID."""
        fee = await make_fee(student.id, amount="50.00")
        payment = await make_payment(fee, "80.00")

        decision = await fee_service.approve_payment(admin, payment.id)

        assert decision.fee_status == FeeStatus.PAID
        assert decision.paid_amount == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_overpayment_rejected_by_policy(
        self, session, database, admin, student, make_fee, make_payment
    ):
        """Test the reject policy refuses overpayments and leaves the payment PENDING."""
        service = FeeService(db=session, settings=FeeSettings(overpayment_policy="reject"))
        fee = await make_fee(student.id, amount="50.00")
        payment = await make_payment(fee, "80.00")

        with pytest.raises(OverpaymentError):
            await service.approve_payment(admin, payment.id)

        stored_payment = await _load(database, FeePayment, payment.id)
        assert stored_payment.status == PaymentStatus.PENDING.value
        stored_fee = await _load(database, Fee, fee.id)
        assert stored_fee.paid_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_reads_reflect_approval(
        self, fee_service, admin, parent, student, make_fee, make_payment
    ):
        """Test fee and payment reads return the approved state."""
        fee = await make_fee(student.id, amount="100.00")
        payment = await make_payment(fee, "100.00")
        await fee_service.get_payment(parent, payment.id)

        await fee_service.approve_payment(admin, payment.id, receipt_number="R-9")

        stored_fee = await fee_service.get_fee(parent, fee.id)
        stored_payment = await fee_service.get_payment(parent, payment.id)
        assert stored_fee.status == FeeStatus.PAID
        assert stored_fee.paid_amount == Decimal("100.00")
        assert stored_payment.status == PaymentStatus.APPROVED
        assert stored_payment.approver_id == admin.user_id
        assert stored_payment.receipt_number == "R-9"

    @pytest.mark.asyncio
    async def test_approve_unknown_payment(self, fee_service, admin):
        """Test approving an unknown payment fails."""
        with pytest.raises(NotFoundError):
            await fee_service.approve_payment(admin, 999)

    @pytest.mark.asyncio
    async def test_get_unknown_fee_and_payment(self, fee_service, parent):
        """Test reads of unknown rows fail with NotFound."""
        with pytest.raises(NotFoundError):
            await fee_service.get_fee(parent, 999)
        with pytest.raises(NotFoundError):
            await fee_service.get_payment(parent, 999)

    @pytest.mark.asyncio
    async def test_parent_cannot_approve(self, fee_service, parent, student, make_fee, make_payment):
        """Test parents may not approve payments."""
        fee = await make_fee(student.id)
        payment = await make_payment(fee, "10.00")

        with pytest.raises(ForbiddenError):
            await fee_service.approve_payment(parent, payment.id)


class TestRejectPayment:
    """Tests for rejecting payments."""

    @pytest.mark.asyncio
    async def test_reject_leaves_fee_untouched(
        self, fee_service, database, admin, student, make_fee, make_payment, event_bus, published
    ):
        """Test rejection stores the reason and does not credit the fee."""
        fee = await make_fee(student.id)
        payment = await make_payment(fee, "10.00")

        decision = await fee_service.reject_payment(admin, payment.id, "  Blurry receipt ")

        assert decision.payment_status == PaymentStatus.REJECTED
        stored_payment = await _load(database, FeePayment, payment.id)
        assert stored_payment.rejection_reason == "Blurry receipt"
        stored_fee = await _load(database, Fee, fee.id)
        assert stored_fee.paid_amount == Decimal("0")
        assert stored_fee.status == FeeStatus.PENDING.value
        await event_bus.drain()
        assert published[-1].payload == {"payment_id": payment.id, "reason": "Blurry receipt"}

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, fee_service, admin, student, make_fee, make_payment):
        """Test an empty reason is a validation error."""
        fee = await make_fee(student.id)
        payment = await make_payment(fee, "10.00")

        with pytest.raises(ValidationError):
            await fee_service.reject_payment(admin, payment.id, "   ")

    @pytest.mark.asyncio
    async def test_cannot_approve_rejected(
        self, fee_service, admin, student, make_fee, make_payment
    ):
        """Test terminal states cannot be left."""
        fee = await make_fee(student.id)
        payment = await make_payment(fee, "10.00")
        await fee_service.reject_payment(admin, payment.id, "Duplicate")

        with pytest.raises(InvalidStateTransitionError):
            await fee_service.approve_payment(admin, payment.id)

    @pytest.mark.asyncio
    async def test_pending_list_excludes_decided(
        self, fee_service, admin, student, make_fee, make_payment
    ):
        """Test only PENDING payments are listed for review."""
        fee = await make_fee(student.id)
        decided = await make_payment(fee, "10.00")
        waiting = await make_payment(fee, "20.00")
        await fee_service.reject_payment(admin, decided.id, "Duplicate")

        pending = await fee_service.list_pending_payments(admin)
        history = await fee_service.list_student_payments(admin, student.id)

        assert [p.id for p in pending] == [waiting.id]
        assert {p.id for p in history} == {decided.id, waiting.id}


@pytest.mark.concurrency
class TestConcurrentApproval:
    """Tests for approvers racing on one payment."""

    @staticmethod
    async def _approve(database, auth, payment_id):
        async with database.session() as s:
            return await FeeService(db=s).approve_payment(auth, payment_id)

    @pytest.mark.asyncio
    async def test_only_one_approval_applies(
        self, database, admin, teacher, student, make_fee, make_payment
    ):
        """Test two simultaneous approvals credit the fee exactly once."""
        fee = await make_fee(student.id, amount="100.00")
        payment = await make_payment(fee, "70.00")

        results = await asyncio.gather(
            self._approve(database, admin, payment.id),
            self._approve(database, teacher, payment.id),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], (InvalidStateTransitionError, ConflictError))

        stored_fee = await _load(database, Fee, fee.id)
        assert stored_fee.paid_amount == Decimal("70.00")
        assert stored_fee.status == FeeStatus.PARTIAL.value

    @staticmethod
    async def _reject(database, auth, payment_id):
        async with database.session() as s:
            return await FeeService(db=s).reject_payment(auth, payment_id, "Duplicate upload")

    @pytest.mark.asyncio
    async def test_approve_and_reject_race(
        self, database, admin, teacher, student, make_fee, make_payment
    ):
        """Test an approval racing a rejection leaves one decision and a consistent fee."""
        fee = await make_fee(student.id, amount="100.00")
        payment = await make_payment(fee, "40.00")

        approved, rejected = await asyncio.gather(
            self._approve(database, admin, payment.id),
            self._reject(database, teacher, payment.id),
            return_exceptions=True,
        )

        outcomes = [approved, rejected]
        assert len([r for r in outcomes if isinstance(r, PaymentDecision)]) == 1
        failures = [r for r in outcomes if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], (InvalidStateTransitionError, ConflictError))

        stored_payment = await _load(database, FeePayment, payment.id)
        stored_fee = await _load(database, Fee, fee.id)
        if isinstance(rejected, Exception):
            assert stored_payment.status == PaymentStatus.APPROVED.value
            assert stored_fee.paid_amount == Decimal("40.00")
            assert stored_fee.status == FeeStatus.PARTIAL.value
        else:
            assert stored_payment.status == PaymentStatus.REJECTED.value
            assert stored_fee.paid_amount == Decimal("0")
            assert stored_fee.status == FeeStatus.PENDING.value


class TestSlowSubscribers:
    """Tests for decisions while subscribers are still working."""

    @pytest.mark.asyncio
    async def test_approval_does_not_wait_for_subscribers(
        self, fee_service, event_bus, admin, student, make_fee, make_payment
    ):
        """Test a stalled subscriber does not hold up the approval."""
        release = asyncio.Event()
        delivered = []

        async def stalled_delivery(event):
            await release.wait()
            delivered.append(event.payload["payment_id"])

        event_bus.subscribe(EventTypes.Fees.PAYMENT_APPROVED, stalled_delivery)
        fee = await make_fee(student.id)
        payment = await make_payment(fee, "25.00")

        decision = await asyncio.wait_for(
            fee_service.approve_payment(admin, payment.id), timeout=1
        )

        assert decision.fee_status == FeeStatus.PARTIAL
        assert delivered == []
        release.set()
        await event_bus.drain()
        assert delivered == [payment.id]
