"""
Tests for the payment service.

Tests: gateway initialization, idempotent settlement, cash records,
partial and full refunds, callback signatures, visibility.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest
from sqlalchemy import select

from config import settings
from db_models import Payment
from domain.errors import (
    ValidationError, ConflictError, NotFoundError, PermissionDeniedError, UnauthorizedError,
)
from services import order_service, payment_service
from tests.conftest import create_account


@pytest.fixture
async def card_order(place_order):
    return await place_order(payment_method="card")


class TestInitialize:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_opens_pending_payment(self, db_session, customer_user, card_order):
        payment = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        assert payment.status == "pending"
        assert payment.method == "paystack"
        assert payment.amount == card_order.total_amount
        assert payment.currency == "NGN"
        assert payment.transaction_ref.startswith(f"FG-{card_order.order_number}-")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_references_are_unique(self, db_session, customer_user, card_order):
        first = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        second = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="flutterwave",
        )
        assert first.transaction_ref != second.transaction_ref

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cash_is_not_a_gateway(self, db_session, customer_user, card_order):
        with pytest.raises(ValidationError) as exc_info:
            await payment_service.initialize_payment(
                db_session, customer=customer_user, order_id=card_order.id, provider="cash",
            )
        assert exc_info.value.details["field"] == "provider"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_someone_elses_order(self, db_session, card_order):
        stranger = await create_account(
            db_session, role="customer", email="stranger@fuelgo.test", phone="+2348000000099",
        )
        with pytest.raises(NotFoundError):
            await payment_service.initialize_payment(
                db_session, customer=stranger, order_id=card_order.id, provider="paystack",
            )

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_paid_order_conflicts(self, db_session, customer_user, delivered_order):
        with pytest.raises(ConflictError) as exc_info:
            await payment_service.initialize_payment(
                db_session, customer=customer_user, order_id=delivered_order.id, provider="paystack",
            )
        assert exc_info.value.message == "Order is already paid"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_cancelled_order_conflicts(self, db_session, customer_user, card_order):
        await order_service.cancel_by_customer(db_session, customer=customer_user, order_id=card_order.id)
        with pytest.raises(ConflictError):
            await payment_service.initialize_payment(
                db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
            )


class TestSettle:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_success_marks_order_paid(self, db_session, customer_user, card_order):
        payment = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        payment, order, changed = await payment_service.settle_payment(
            db_session, reference=payment.transaction_ref, success=True, gateway_response={"status": "success"},
        )
        assert changed is True
        assert payment.status == "success"
        assert payment.paid_at is not None
        assert payment.gateway_response == {"status": "success"}
        assert order.payment_status == "paid"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_repeat_callback_is_a_no_op(self, db_session, customer_user, card_order):
        payment = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        await payment_service.settle_payment(db_session, reference=payment.transaction_ref, success=True)
        payment, order, changed = await payment_service.settle_payment(
            db_session, reference=payment.transaction_ref, success=False,
        )
        assert changed is False
        assert payment.status == "success"
        assert order.payment_status == "paid"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failure_marks_order_failed(self, db_session, customer_user, card_order):
        payment = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="flutterwave",
        )
        payment, order, changed = await payment_service.settle_payment(
            db_session, reference=payment.transaction_ref, success=False,
        )
        assert changed is True
        assert payment.status == "failed"
        assert order.payment_status == "failed"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_late_failure_keeps_paid_order(self, db_session, customer_user, card_order):
        """A second attempt failing after the first succeeded does not unpay the order."""
        first = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        second = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="flutterwave",
        )
        await payment_service.settle_payment(db_session, reference=first.transaction_ref, success=True)
        _, order, _ = await payment_service.settle_payment(
            db_session, reference=second.transaction_ref, success=False,
        )
        assert order.payment_status == "paid"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_late_failure_keeps_refunded_order(self, db_session, customer_user, card_order):
        first = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        second = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="flutterwave",
        )
        await payment_service.settle_payment(db_session, reference=first.transaction_ref, success=True)
        await payment_service.refund_order(db_session, order=card_order, reason="Customer changed their mind")
        _, order, changed = await payment_service.settle_payment(
            db_session, reference=second.transaction_ref, success=False,
        )
        assert changed is True
        assert order.payment_status == "refunded"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_reference(self, db_session):
        with pytest.raises(NotFoundError):
            await payment_service.settle_payment(db_session, reference="FG-NOPE-0000", success=True)


class TestRefunds:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_partial_refund_keeps_order_paid(self, db_session, delivered_order):
        res = await db_session.execute(select(Payment).where(Payment.order_id == delivered_order.id))
        payment = res.scalar_one()
        refunded, issued = await payment_service.refund_payment(
            db_session, payment_id=payment.id, reason="Short delivery", amount=1000.0,
        )
        assert issued == 1000.0
        assert refunded.status == "success"
        assert refunded.refund_amount == 1000.0
        assert refunded.refund_reason == "Short delivery"
        assert delivered_order.payment_status == "paid"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_partials_add_up_to_full_refund(self, db_session, delivered_order):
        res = await db_session.execute(select(Payment).where(Payment.order_id == delivered_order.id))
        payment = res.scalar_one()
        await payment_service.refund_payment(db_session, payment_id=payment.id, reason="Short delivery", amount=1000.0)

        with pytest.raises(ValidationError):
            await payment_service.refund_payment(
                db_session, payment_id=payment.id, reason="Too much", amount=payment.amount,
            )

        refunded, issued = await payment_service.refund_payment(db_session, payment_id=payment.id, reason="Complaint")
        assert issued == payment.amount - 1000.0
        assert refunded.refund_amount == payment.amount
        assert refunded.status == "refunded"
        assert delivered_order.payment_status == "refunded"

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, 100000])
    async def test_refund_amount_bounds(self, db_session, delivered_order, amount):
        res = await db_session.execute(select(Payment).where(Payment.order_id == delivered_order.id))
        payment = res.scalar_one()
        with pytest.raises(ValidationError):
            await payment_service.refund_payment(db_session, payment_id=payment.id, reason="x", amount=amount)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_only_successful_payments(self, db_session, customer_user, card_order):
        payment = await payment_service.initialize_payment(
            db_session, customer=customer_user, order_id=card_order.id, provider="paystack",
        )
        with pytest.raises(ConflictError):
            await payment_service.refund_payment(db_session, payment_id=payment.id, reason="x")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_refund_order_refunds_every_success(self, db_session, delivered_order):
        payments = await payment_service.refund_order(db_session, order=delivered_order, reason="Complaint")
        assert len(payments) == 1
        assert payments[0].refund_amount == delivered_order.total_amount
        assert delivered_order.payment_status == "refunded"


class TestVisibility:

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_customer_sees_own_admin_sees_all(self, db_session, customer_user, admin_user, delivered_order):
        stranger = await create_account(
            db_session, role="customer", email="stranger@fuelgo.test", phone="+2348000000099",
        )
        assert len(await payment_service.list_payments(db_session, user=customer_user)) == 1
        assert await payment_service.list_payments(db_session, user=stranger) == []
        assert len(await payment_service.list_payments(db_session, user=admin_user)) == 1
        assert len(await payment_service.list_payments(
            db_session, user=admin_user, order_id=delivered_order.id,
        )) == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_ensure_can_view(self, db_session, customer_user, admin_user, delivered_order):
        payments = await payment_service.list_order_payments(db_session, order=delivered_order)
        payment = payments[0]
        payment_service.ensure_can_view(customer_user, payment)
        payment_service.ensure_can_view(admin_user, payment)
        stranger = await create_account(
            db_session, role="customer", email="stranger@fuelgo.test", phone="+2348000000099",
        )
        with pytest.raises(PermissionDeniedError):
            payment_service.ensure_can_view(stranger, payment)


class TestCallbackSignature:

    @pytest.mark.unit
    def test_valid_signature(self):
        body = b'{"reference": "FG-1", "status": "success"}'
        signature = payment_service.sign_callback(body, settings.payment_webhook_secret)
        payment_service.verify_gateway_signature(body, signature)
        payment_service.verify_gateway_signature(body, signature.upper())

    @pytest.mark.unit
    @pytest.mark.parametrize("signature", [None, "", "deadbeef"])
    def test_bad_signature(self, signature):
        with pytest.raises(UnauthorizedError):
            payment_service.verify_gateway_signature(b"{}", signature)

    @pytest.mark.unit
    def test_tampered_body(self):
        signature = payment_service.sign_callback(b'{"status": "failed"}', settings.payment_webhook_secret)
        with pytest.raises(UnauthorizedError):
            payment_service.verify_gateway_signature(b'{"status": "success"}', signature)

    @pytest.mark.unit
    def test_rejects_everything_without_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "payment_webhook_secret", "")
        with pytest.raises(UnauthorizedError) as exc_info:
            payment_service.verify_gateway_signature(b"{}", payment_service.sign_callback(b"{}", "x"))
        assert exc_info.value.message == "Payment callbacks are not accepted"
