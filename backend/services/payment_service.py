"""
Payment service — gateway payments, cash-on-delivery records and refunds.

No gateway SDK is called from here: /api/payments/initialize hands the
client a reference to pay against, and the gateway callback
(/api/payments/verify) reports the outcome. Settling is idempotent, so a
repeated callback for the same reference changes nothing.

Callbacks are signed: the gateway sends a hex HMAC-SHA512 of the raw request
body keyed with PAYMENT_WEBHOOK_SECRET in the X-Payment-Signature header.
"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Payment, Order, User
from domain.enums import (
    PaymentStatus, PaymentRecordStatus, PaymentProvider, UserRole, OrderStatus,
)
from domain.errors import NotFoundError, ValidationError, ConflictError, PermissionDeniedError, UnauthorizedError

logger = logging.getLogger(__name__)

GATEWAY_PROVIDERS = {PaymentProvider.PAYSTACK.value, PaymentProvider.FLUTTERWAVE.value}


def sign_callback(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def verify_gateway_signature(body: bytes, signature: str | None) -> None:
    """401 unless `signature` is the HMAC of `body` under the webhook secret."""
    secret = settings.payment_webhook_secret
    if not secret:
        logger.error("Payment callback rejected: PAYMENT_WEBHOOK_SECRET is not configured")
        raise UnauthorizedError("Payment callbacks are not accepted")
    if not signature:
        raise UnauthorizedError("Missing payment signature")
    if not hmac.compare_digest(sign_callback(body, secret), signature.strip().lower()):
        logger.warning("Payment callback rejected: signature mismatch")
        raise UnauthorizedError("Invalid payment signature")


def new_reference(order: Order) -> str:
    return f"FG-{order.order_number}-{secrets.token_hex(4).upper()}"


def cash_reference(order: Order) -> str:
    return f"COD-{order.order_number}-{int(datetime.utcnow().timestamp())}"


async def get_payment_by_reference(db: AsyncSession, reference: str) -> Payment:
    res = await db.execute(select(Payment).where(Payment.transaction_ref == reference))
    payment = res.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment", reference)
    return payment


async def get_payment(db: AsyncSession, payment_id: str) -> Payment:
    res = await db.execute(select(Payment).where(Payment.id == payment_id))
    payment = res.scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment", payment_id)
    return payment


async def _get_order(db: AsyncSession, order_id: str) -> Order:
    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


async def initialize_payment(
    db: AsyncSession,
    *,
    customer: User,
    order_id: str,
    provider: str,
) -> Payment:
    """Open a pending gateway payment for the customer's own order."""
    if provider not in GATEWAY_PROVIDERS:
        raise ValidationError("Invalid payment provider", field="provider")

    order = await _get_order(db, order_id)
    if order.user_id != customer.id:
        raise NotFoundError("Order", order_id)
    if order.status == OrderStatus.CANCELLED.value:
        raise ConflictError("Cannot pay for a cancelled order")
    if order.payment_status in (PaymentStatus.PAID.value, PaymentStatus.REFUNDED.value):
        raise ConflictError(f"Order is already {order.payment_status}")

    payment = Payment(
        order_id=order.id,
        user_id=customer.id,
        amount=order.total_amount,
        currency=settings.currency,
        method=provider,
        status=PaymentRecordStatus.PENDING.value,
        transaction_ref=new_reference(order),
    )
    db.add(payment)
    await db.flush()
    logger.info(f"Payment {payment.transaction_ref} initialized for order {order.order_number}")
    return payment


async def settle_payment(
    db: AsyncSession,
    *,
    reference: str,
    success: bool,
    gateway_response: dict[str, Any] | None = None,
) -> tuple[Payment, Order, bool]:
    """
    Apply a gateway outcome.

    Returns (payment, order, changed). `changed` is False when the payment
    was already settled, so callers skip notifications.
    """
    payment = await get_payment_by_reference(db, reference)
    order = await _get_order(db, payment.order_id)

    if payment.status != PaymentRecordStatus.PENDING.value:
        return payment, order, False

    payment.gateway_response = gateway_response or {}
    payment.updated_at = datetime.utcnow()
    if success:
        payment.status = PaymentRecordStatus.SUCCESS.value
        payment.paid_at = datetime.utcnow()
        order.payment_status = PaymentStatus.PAID.value
    else:
        payment.status = PaymentRecordStatus.FAILED.value
        # a late failure never overrides a paid or refunded order
        if order.payment_status in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value):
            order.payment_status = PaymentStatus.FAILED.value
    order.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Payment {reference} settled as {payment.status}")
    return payment, order, True


async def record_cash_payment(db: AsyncSession, *, order: Order) -> Payment:
    """Cash collected at the door: successful cash payment plus order marked paid."""
    payment = Payment(
        order_id=order.id,
        user_id=order.user_id,
        amount=order.total_amount,
        currency=settings.currency,
        method=PaymentProvider.CASH.value,
        status=PaymentRecordStatus.SUCCESS.value,
        transaction_ref=cash_reference(order),
        paid_at=datetime.utcnow(),
        gateway_response={"collectedBy": order.driver_id},
    )
    db.add(payment)
    order.payment_status = PaymentStatus.PAID.value
    await db.flush()
    return payment


async def refund_order(
    db: AsyncSession,
    *,
    order: Order,
    reason: str,
) -> list[Payment]:
    """Refund every successful payment of an order in full."""
    if order.payment_status != PaymentStatus.PAID.value:
        raise ConflictError("Only paid orders can be refunded")

    res = await db.execute(
        select(Payment).where(
            Payment.order_id == order.id,
            Payment.status == PaymentRecordStatus.SUCCESS.value,
        )
    )
    payments = list(res.scalars().all())
    now = datetime.utcnow()
    for payment in payments:
        payment.status = PaymentRecordStatus.REFUNDED.value
        payment.refund_amount = payment.amount
        payment.refund_reason = reason
        payment.refunded_at = now
    order.payment_status = PaymentStatus.REFUNDED.value
    order.updated_at = now
    await db.flush()
    logger.info(f"Order {order.order_number} refunded ({len(payments)} payment record(s))")
    return payments


async def refund_payment(db: AsyncSession, *, payment_id: str, reason: str, amount: float | None = None) -> tuple[Payment, float]:
    """
    Refund part or all of a successful payment.

    Returns (payment, issued). Partial refunds accumulate in `refund_amount`;
    the payment and its order only become `refunded` once the whole amount
    has been returned.
    """
    payment = await get_payment(db, payment_id)
    if payment.status != PaymentRecordStatus.SUCCESS.value:
        raise ConflictError("Only successful payments can be refunded")
    already = payment.refund_amount or 0.0
    remaining = round(payment.amount - already, 2)
    if amount is not None and (amount <= 0 or amount > remaining):
        raise ValidationError("Refund amount must be between 0 and the unrefunded amount", field="amount")

    now = datetime.utcnow()
    order = await _get_order(db, payment.order_id)
    issued = amount if amount is not None else remaining
    payment.refund_amount = already + issued
    payment.refund_reason = reason
    payment.refunded_at = now
    payment.updated_at = now
    if payment.refund_amount >= payment.amount:
        payment.status = PaymentRecordStatus.REFUNDED.value
        order.payment_status = PaymentStatus.REFUNDED.value
        order.updated_at = now
    await db.flush()
    logger.info(f"Payment {payment.transaction_ref} refunded {payment.refund_amount} of {payment.amount}")
    return payment, issued


async def list_payments(
    db: AsyncSession,
    *,
    user: User,
    order_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Payment]:
    """Payments visible to the caller; admins see every record."""
    query = select(Payment)
    if user.role != UserRole.ADMIN.value:
        query = query.where(Payment.user_id == user.id)
    if order_id:
        query = query.where(Payment.order_id == order_id)
    res = await db.execute(query.order_by(Payment.created_at.desc()).limit(limit).offset(offset))
    return list(res.scalars().all())


async def list_order_payments(db: AsyncSession, *, order: Order) -> list[Payment]:
    res = await db.execute(
        select(Payment).where(Payment.order_id == order.id).order_by(Payment.created_at.desc())
    )
    return list(res.scalars().all())


def ensure_can_view(user: User, payment: Payment) -> None:
    if user.role != UserRole.ADMIN.value and payment.user_id != user.id:
        raise PermissionDeniedError("You cannot view this payment")
