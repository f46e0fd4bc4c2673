"""
Payment endpoints — gateway initialization, verification callback, history, refunds.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import require_customer, require_admin, get_current_user
from domain.enums import PaymentRecordStatus
from domain.errors import ValidationError
from domain.responses import success_response
from domain.serializers import payment_to_dict
from services import order_service, payment_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])

VERIFY_OUTCOMES = {PaymentRecordStatus.SUCCESS.value, PaymentRecordStatus.FAILED.value}


async def require_gateway_signature(
    request: Request,
    signature: str | None = Header(None, alias="X-Payment-Signature"),
) -> None:
    """Gateway callbacks must carry an HMAC of the raw body."""
    payment_service.verify_gateway_signature(await request.body(), signature)


class InitializeRequest(BaseModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    provider: str = "paystack"


class VerifyRequest(BaseModel):
    reference: str = Field(..., min_length=1, max_length=100)
    status: str
    gateway_response: dict[str, Any] | None = Field(default=None, alias="gatewayResponse")


class RefundRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)
    amount: float | None = Field(default=None, gt=0)


@router.post("/initialize")
async def initialize_payment(
    request: InitializeRequest,
    user: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    payment = await payment_service.initialize_payment(
        db, customer=user, order_id=request.order_id, provider=request.provider,
    )
    await db.commit()
    return success_response(
        data={
            "reference": payment.transaction_ref,
            "amount": payment.amount,
            "currency": payment.currency,
            "provider": payment.method,
            "payment": payment_to_dict(payment),
        }
    )


@router.post("/verify", dependencies=[Depends(require_gateway_signature)])
async def verify_payment(
    request: VerifyRequest,
    db: AsyncSession = Depends(get_db),
):
    """Signed gateway callback. Repeated callbacks for a settled reference are no-ops."""
    if request.status not in VERIFY_OUTCOMES:
        raise ValidationError("Status must be success or failed", field="status")

    payment, order, changed = await payment_service.settle_payment(
        db,
        reference=request.reference,
        success=request.status == PaymentRecordStatus.SUCCESS.value,
        gateway_response=request.gateway_response,
    )
    await db.commit()

    data = payment_to_dict(payment)
    amount, status = payment.amount, payment.status
    if changed:
        order = await order_service.load_order(db, order.id)
        event = order_service.order_event(order)
        await order_service.publish_payment_update(db, event, amount=amount, status=status)
    return success_response(data=data, meta={"alreadyProcessed": not changed})


@router.get("/order/{order_id}")
async def get_order_payments(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order_for_user(db, user=user, order_id=order_id)
    payments = await payment_service.list_order_payments(db, order=order)
    return success_response(data=[payment_to_dict(p) for p in payments])


@router.get("")
async def list_payments(
    order_id: str | None = Query(None, alias="orderId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payments = await payment_service.list_payments(
        db, user=user, order_id=order_id, limit=limit, offset=offset,
    )
    return success_response(data=[payment_to_dict(p) for p in payments])


@router.post("/{payment_id}/refund")
async def refund_payment(
    payment_id: str,
    request: RefundRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    payment, issued = await payment_service.refund_payment(
        db, payment_id=payment_id, reason=request.reason, amount=request.amount,
    )
    await db.commit()
    logger.info(f"Admin {admin.id} refunded payment {payment.transaction_ref}")

    data = payment_to_dict(payment)
    order = await order_service.load_order(db, payment.order_id)
    event = order_service.order_event(order)
    await order_service.publish_payment_update(
        db, event, amount=issued, status=PaymentRecordStatus.REFUNDED.value,
    )
    return success_response(data=data)
