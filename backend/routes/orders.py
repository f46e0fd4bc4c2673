"""
Order endpoints for customers, vendors and admins.

Each handler commits the business change first, snapshots the order and
builds its response, and only then notifies. A failing notification can
never undo or corrupt the order change.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User, Vendor
from deps import Pagination, pagination_params, require_customer, require_admin, get_current_user, get_current_vendor
from domain.constants import ADMIN_REASON_MIN, ADMIN_REASON_MAX
from domain.enums import PaymentRecordStatus, AdminOrderAction, ActivityType
from domain.errors import NotFoundError
from domain.responses import success_response, paginated_response
from domain.serializers import order_to_dict, order_brief
from services import activity_service, order_service, product_service
from utils.validators import validate_coordinates

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])
vendor_router = APIRouter(prefix="/vendor/orders", tags=["vendor-orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin-orders"])


class OrderItemRequest(BaseModel):
    product_id: str = Field(..., alias="productId", min_length=1)
    quantity: float = Field(..., gt=0)


class Coordinates(BaseModel):
    lat: float
    lng: float


class DeliveryAddress(BaseModel):
    street: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    coordinates: Coordinates | None = None


class OrderSummaryRequest(BaseModel):
    vendor_id: str = Field(..., alias="vendorId")
    items: list[OrderItemRequest] = Field(..., min_length=1)


class OrderCreateRequest(BaseModel):
    vendor_id: str = Field(..., alias="vendorId")
    items: list[OrderItemRequest] = Field(..., min_length=1)
    delivery_address: DeliveryAddress = Field(..., alias="deliveryAddress")
    delivery_instructions: str | None = Field(default=None, alias="deliveryInstructions", max_length=500)
    payment_method: str = Field("cash", alias="paymentMethod")
    is_emergency: bool = Field(False, alias="isEmergency")
    phone: str | None = None


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class StatusUpdateRequest(BaseModel):
    status: str
    reason: str | None = Field(default=None, max_length=500)


class AssignDriverRequest(BaseModel):
    driver_id: str = Field(..., alias="driverId", min_length=1)


class InterveneRequest(BaseModel):
    action: str
    reason: str = Field(..., min_length=ADMIN_REASON_MIN, max_length=ADMIN_REASON_MAX)
    driver_id: str | None = Field(default=None, alias="driverId")
    new_status: str | None = Field(default=None, alias="newStatus")


def _items(items: list[OrderItemRequest]) -> list[dict]:
    return [{"product_id": i.product_id, "quantity": i.quantity} for i in items]


def _orders_page(orders, total: int, page: Pagination) -> dict:
    return paginated_response(
        "orders",
        [order_to_dict(o) for o in orders],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


# ── Customer ────────────────────────────────────────────────────────

@router.post("/summary")
async def order_summary(
    request: OrderSummaryRequest,
    user: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    summary = await order_service.build_summary(db, vendor_id=request.vendor_id, items=_items(request.items))
    return success_response(data=summary)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    user: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    address = request.delivery_address
    lat = lng = None
    if address.coordinates is not None:
        lat, lng = validate_coordinates(address.coordinates.lat, address.coordinates.lng)

    order, low_stock = await order_service.create_order(
        db,
        customer=user,
        vendor_id=request.vendor_id,
        items=_items(request.items),
        delivery_street=address.street,
        delivery_city=address.city,
        delivery_state=address.state,
        delivery_latitude=lat,
        delivery_longitude=lng,
        delivery_instructions=request.delivery_instructions,
        payment_method=request.payment_method,
        is_emergency=request.is_emergency,
        phone=request.phone,
    )
    low_stock = product_service.low_stock_snapshot(low_stock)
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = {"message": "Order placed successfully", "order": order_brief(order)}

    await order_service.publish_order_update(
        db, event, customer_message=f"Your order #{event.order_number} has been placed"
    )
    if low_stock and event.vendor_user_id:
        await order_service.publish_low_stock(db, event.vendor_user_id, low_stock)
    return success_response(data=data)


@router.get("")
async def list_my_orders(
    status: str | None = None,
    date_range: str | None = Query(None, alias="dateRange"),
    search: str | None = None,
    page: Pagination = Depends(pagination_params),
    user: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_orders(
        db,
        customer_id=user.id,
        status=status,
        date_range=date_range,
        search=search,
        limit=page["limit"],
        offset=page["offset"],
    )
    return _orders_page(orders, total, page)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order_for_user(db, user=user, order_id=order_id)
    return success_response(data=order_to_dict(order))


@router.post("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    request: CancelRequest | None = None,
    user: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    reason = request.reason if request else None
    order = await order_service.cancel_by_customer(db, customer=user, order_id=order_id, reason=reason)
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = {"message": "Order cancelled successfully", "order": order_to_dict(order)}
    await order_service.publish_order_update(db, event, notify_driver=True)
    return success_response(data=data)


# ── Vendor ──────────────────────────────────────────────────────────

@vendor_router.get("")
async def list_vendor_orders(
    status: str | None = None,
    date_range: str | None = Query(None, alias="dateRange"),
    search: str | None = None,
    page: Pagination = Depends(pagination_params),
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_orders(
        db,
        vendor_id=vendor.id,
        status=status,
        date_range=date_range,
        search=search,
        limit=page["limit"],
        offset=page["offset"],
    )
    return _orders_page(orders, total, page)


@vendor_router.get("/{order_id}")
async def get_vendor_order(
    order_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.load_order(db, order_id)
    if order.vendor_id != vendor.id:
        raise NotFoundError("Order", order_id)
    return success_response(data=order_to_dict(order))


@vendor_router.patch("/{order_id}/status")
async def update_vendor_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    order, payment = await order_service.update_status_by_vendor(
        db, vendor=vendor, order_id=order_id, status=request.status, reason=request.reason,
    )
    amount = payment.amount if payment else None
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = order_to_dict(order)
    await order_service.publish_order_update(db, event, notify_vendor=False, notify_driver=True)
    if amount is not None:
        await order_service.publish_payment_update(
            db, event, amount=amount, status=PaymentRecordStatus.SUCCESS.value
        )
    return success_response(data=data)


@vendor_router.post("/{order_id}/assign-driver")
async def assign_driver(
    order_id: str,
    request: AssignDriverRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.assign_driver_by_vendor(
        db, vendor=vendor, order_id=order_id, driver_id=request.driver_id,
    )
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = {"message": "Driver assigned successfully", "order": order_to_dict(order)}
    await order_service.publish_driver_assignment(db, event)
    return success_response(data=data)


# ── Admin ───────────────────────────────────────────────────────────

@admin_router.get("")
async def list_all_orders(
    status: str | None = None,
    date_range: str | None = Query(None, alias="dateRange"),
    search: str | None = None,
    vendor_id: str | None = Query(None, alias="vendorId"),
    page: Pagination = Depends(pagination_params),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_orders(
        db,
        vendor_id=vendor_id,
        status=status,
        date_range=date_range,
        search=search,
        limit=page["limit"],
        offset=page["offset"],
    )
    return _orders_page(orders, total, page)


@admin_router.get("/analytics")
async def order_analytics(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await order_service.order_analytics(db))


@admin_router.get("/{order_id}")
async def admin_get_order(
    order_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.load_order(db, order_id)
    return success_response(data=order_to_dict(order))


@admin_router.post("/{order_id}/intervene")
async def intervene(
    order_id: str,
    request: InterveneRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    admin_id, admin_name = admin.id, admin.full_name
    order = await order_service.admin_intervene(
        db,
        admin=admin,
        order_id=order_id,
        action=request.action,
        reason=request.reason,
        driver_id=request.driver_id,
        new_status=request.new_status,
    )
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = {"message": f"Action {request.action} applied", "order": order_to_dict(order)}
    await activity_service.log_activity(
        db,
        user_id=admin_id,
        performed_by=admin_id,
        type=ActivityType.ORDER_INTERVENTION.value,
        details=f"{request.action} on order #{order.order_number}: {request.reason}",
        request=http_request,
    )
    await order_service.publish_admin_action(
        db, event, admin_name=admin_name, action=request.action, reason=request.reason,
    )
    if request.action == AdminOrderAction.ASSIGN_DRIVER.value:
        await order_service.publish_driver_assignment(db, event)
    return success_response(data=data)
