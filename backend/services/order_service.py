"""
Order service — pricing, placement, lifecycle, driver assignment and delivery.

Lifecycle (see domain/order_flow.py):
    pending → accepted → assigned → picked_up → in_transit → delivered
    pending / accepted → cancelled

Units of work (flushed here, committed once by the router):
    create_order       order + items + guarded stock decrement
    cancel             status + stock restore + driver release
    complete_delivery  status + driver release/stats + COD payment

Side effects (notifications, real-time events) go through
publish_order_update() after the router has committed.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Order, OrderItem, Product, Vendor, Driver, User, Payment
from domain.constants import (
    CANCELLABLE_STATUSES, ACTIVE_DELIVERY_STATUSES, DATE_RANGE_DAYS, order_room,
)
from domain.enums import (
    OrderStatus, PaymentStatus, PaymentMethod, ProductStatus, DriverStatus,
    UserRole, AdminOrderAction, NotificationType, NotificationPriority, RealtimeEvent,
)
from domain.errors import (
    NotFoundError, ValidationError, ConflictError, PermissionDeniedError, InvalidTransitionError,
)
from domain.order_flow import OrderFlow
from services import notification_service, payment_service, product_service, realtime_service
from services.auth_service import ensure_unique_contact
from utils.validators import normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class OrderLine:
    product: Product
    quantity: float

    @property
    def total(self) -> float:
        return round(self.quantity * self.product.price_per_unit, 2)


@dataclass
class OrderEvent:
    """Plain snapshot of an order used for notifications after commit."""
    order_id: str
    order_number: str
    status: str
    payment_status: str
    total_amount: float
    customer_id: str
    vendor_user_id: str | None
    driver_user_id: str | None
    driver_name: str | None

    def payload(self) -> dict[str, Any]:
        return {
            "orderId": self.order_id,
            "orderNumber": self.order_number,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "totalAmount": self.total_amount,
        }


def order_event(order: Order) -> OrderEvent:
    vendor_user_id = order.vendor.user_id if order.vendor else None
    driver = order.driver
    return OrderEvent(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        payment_status=order.payment_status,
        total_amount=order.total_amount,
        customer_id=order.user_id,
        vendor_user_id=vendor_user_id,
        driver_user_id=driver.user_id if driver else None,
        driver_name=driver.user.full_name if driver and driver.user else None,
    )


# ── Loading ─────────────────────────────────────────────────────────

async def load_order(db: AsyncSession, order_id: str) -> Order:
    """Fresh copy of an order with customer, vendor, driver and items loaded."""
    res = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = res.scalar_one_or_none()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


async def _vendor_for_user(db: AsyncSession, user_id: str) -> Vendor | None:
    res = await db.execute(select(Vendor).where(Vendor.user_id == user_id))
    return res.scalar_one_or_none()


async def _driver_for_user(db: AsyncSession, user_id: str) -> Driver | None:
    res = await db.execute(select(Driver).where(Driver.user_id == user_id))
    return res.scalar_one_or_none()


async def get_order_for_user(db: AsyncSession, *, user: User, order_id: str) -> Order:
    """
    Role-scoped lookup: customers see their own orders, vendors their shop's,
    drivers the ones assigned to them, admins everything. Anything else is 404.
    """
    order = await load_order(db, order_id)
    if user.role == UserRole.ADMIN.value:
        return order
    if user.role == UserRole.CUSTOMER.value and order.user_id == user.id:
        return order
    if user.role == UserRole.VENDOR.value:
        vendor = await _vendor_for_user(db, user.id)
        if vendor and order.vendor_id == vendor.id:
            return order
    if user.role == UserRole.DRIVER.value:
        driver = await _driver_for_user(db, user.id)
        if driver and order.driver_id == driver.id:
            return order
    raise NotFoundError("Order", order_id)


# ── Pricing ─────────────────────────────────────────────────────────

async def price_items(db: AsyncSession, *, vendor: Vendor, items: list[dict]) -> list[OrderLine]:
    """
    Validate cart lines against the vendor's catalogue.

    items: [{"product_id": str, "quantity": float}]
    """
    if not items:
        raise ValidationError("Order must contain at least one item", field="items")

    lines: list[OrderLine] = []
    seen: set[str] = set()
    for item in items:
        product_id, quantity = item["product_id"], item["quantity"]
        if product_id in seen:
            raise ValidationError(f"Product {product_id} appears more than once", field="items")
        seen.add(product_id)

        res = await db.execute(select(Product).where(Product.id == product_id))
        product = res.scalar_one_or_none()
        if not product:
            raise NotFoundError("Product", product_id)
        if product.vendor_id != vendor.id:
            raise ValidationError(f"Product {product.name} does not belong to this vendor")
        if product.status != ProductStatus.AVAILABLE.value:
            raise ValidationError(f"Product {product.name} is not available")
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0", field="quantity")
        if product.available_qty < quantity:
            raise ValidationError(
                f"Insufficient stock for {product.name}. Available: {product.available_qty:g} {product.unit}"
            )
        if quantity < product.min_order_qty:
            raise ValidationError(
                f"Minimum order quantity for {product.name} is {product.min_order_qty:g} {product.unit}"
            )
        if quantity > product.max_order_qty:
            raise ValidationError(
                f"Maximum order quantity for {product.name} is {product.max_order_qty:g} {product.unit}"
            )
        lines.append(OrderLine(product=product, quantity=quantity))
    return lines


async def _orderable_vendor(db: AsyncSession, vendor_id: str) -> Vendor:
    res = await db.execute(select(Vendor).where(Vendor.id == vendor_id))
    vendor = res.scalar_one_or_none()
    if not vendor:
        raise NotFoundError("Vendor", vendor_id)
    if not vendor.is_active or not vendor.is_verified:
        raise ValidationError("Vendor is not currently accepting orders")
    return vendor


async def build_summary(db: AsyncSession, *, vendor_id: str, items: list[dict]) -> dict[str, Any]:
    """Price a cart without persisting anything."""
    vendor = await _orderable_vendor(db, vendor_id)
    lines = await price_items(db, vendor=vendor, items=items)
    subtotal = round(sum(line.total for line in lines), 2)
    return {
        "vendorId": vendor.id,
        "items": [
            {
                "productId": line.product.id,
                "name": line.product.name,
                "type": line.product.type,
                "unit": line.product.unit,
                "quantity": line.quantity,
                "pricePerUnit": line.product.price_per_unit,
                "totalPrice": line.total,
            }
            for line in lines
        ],
        "subtotal": subtotal,
        "deliveryFee": vendor.delivery_fee,
        "total": round(subtotal + vendor.delivery_fee, 2),
        "minimumOrder": vendor.minimum_order,
        "meetsMinimum": subtotal >= vendor.minimum_order,
    }


# ── Placement ───────────────────────────────────────────────────────

async def _take_stock(db: AsyncSession, product: Product, quantity: float) -> None:
    """Conditional decrement; fails if a concurrent order drained the stock."""
    res = await db.execute(
        update(Product)
        .where(Product.id == product.id, Product.available_qty >= quantity)
        .values(available_qty=Product.available_qty - quantity, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        raise ConflictError(f"Insufficient stock for {product.name}")
    product.available_qty = product.available_qty - quantity
    product_service.sync_stock_status(product)


async def _restore_stock(db: AsyncSession, order: Order) -> None:
    for item in order.items:
        product = item.product
        if product is None:
            continue
        product.available_qty = product.available_qty + item.quantity
        product_service.sync_stock_status(product)
        product.updated_at = datetime.utcnow()


async def create_order(
    db: AsyncSession,
    *,
    customer: User,
    vendor_id: str,
    items: list[dict],
    delivery_street: str,
    delivery_city: str,
    delivery_state: str,
    delivery_latitude: float | None = None,
    delivery_longitude: float | None = None,
    delivery_instructions: str | None = None,
    payment_method: str = PaymentMethod.CASH.value,
    is_emergency: bool = False,
    phone: str | None = None,
) -> tuple[Order, list[Product]]:
    """
    Place an order. Returns (order, products now at or below the low-stock line).
    """
    vendor = await _orderable_vendor(db, vendor_id)
    try:
        payment_method = PaymentMethod(payment_method).value
    except ValueError:
        raise ValidationError("Invalid payment method", field="paymentMethod")
    if vendor.payment_methods and payment_method not in vendor.payment_methods:
        raise ValidationError(f"{vendor.business_name} does not accept {payment_method} payments")

    lines = await price_items(db, vendor=vendor, items=items)
    subtotal = round(sum(line.total for line in lines), 2)
    if subtotal < vendor.minimum_order:
        raise ValidationError(
            f"Minimum order amount is {settings.currency_symbol}{vendor.minimum_order:,.2f}",
            details={"subtotal": subtotal, "minimumOrder": vendor.minimum_order},
        )

    for line in lines:
        await _take_stock(db, line.product, line.quantity)

    hours = settings.emergency_delivery_hours if is_emergency else settings.standard_delivery_hours
    order = Order(
        user_id=customer.id,
        vendor_id=vendor.id,
        delivery_street=delivery_street,
        delivery_city=delivery_city,
        delivery_state=delivery_state,
        delivery_latitude=delivery_latitude,
        delivery_longitude=delivery_longitude,
        delivery_instructions=delivery_instructions,
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        payment_method=payment_method,
        subtotal=subtotal,
        delivery_fee=vendor.delivery_fee,
        total_amount=round(subtotal + vendor.delivery_fee, 2),
        estimated_delivery=datetime.utcnow() + timedelta(hours=hours),
        is_emergency=is_emergency,
        items=[
            OrderItem(
                product_id=line.product.id,
                product=line.product,
                quantity=line.quantity,
                price_per_unit=line.product.price_per_unit,
                total_price=line.total,
            )
            for line in lines
        ],
    )
    db.add(order)

    if phone:
        phone = normalize_phone(phone)
        if phone != customer.phone_number:
            await ensure_unique_contact(db, phone=phone, exclude_user_id=customer.id)
            customer.phone_number = phone

    await db.flush()
    logger.info(
        f"Order {order.order_number} placed by {customer.id} with vendor {vendor.id} "
        f"({len(lines)} item(s), total {order.total_amount})"
    )
    low_stock = [line.product for line in lines if product_service.is_low_stock(line.product)]
    return order, low_stock


# ── Listing ─────────────────────────────────────────────────────────

def date_range_start(date_range: str | None, now: datetime | None = None) -> datetime | None:
    if not date_range or date_range == "all":
        return None
    now = now or datetime.utcnow()
    if date_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    days = DATE_RANGE_DAYS.get(date_range)
    if days is None:
        raise ValidationError("dateRange must be one of: today, week, month, year", field="dateRange")
    return now - timedelta(days=days)


async def list_orders(
    db: AsyncSession,
    *,
    customer_id: str | None = None,
    vendor_id: str | None = None,
    driver_id: str | None = None,
    status: str | None = None,
    date_range: str | None = None,
    search: str | None = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[Order], int]:
    filters = []
    if customer_id:
        filters.append(Order.user_id == customer_id)
    if vendor_id:
        filters.append(Order.vendor_id == vendor_id)
    if driver_id:
        filters.append(Order.driver_id == driver_id)
    if status and status != "all":
        try:
            filters.append(Order.status == OrderStatus(status).value)
        except ValueError:
            raise ValidationError("Invalid order status filter", field="status")
    start = date_range_start(date_range)
    if start is not None:
        filters.append(Order.created_at >= start)

    query = (
        select(Order)
        .join(User, Order.user_id == User.id)
        .join(Vendor, Order.vendor_id == Vendor.id)
    )
    count_query = (
        select(func.count(Order.id))
        .join(User, Order.user_id == User.id)
        .join(Vendor, Order.vendor_id == Vendor.id)
    )
    if search:
        term = f"%{search.strip()}%"
        filters.append(
            or_(
                Order.id.ilike(term),
                Vendor.business_name.ilike(term),
                User.first_name.ilike(term),
                User.last_name.ilike(term),
                User.email.ilike(term),
            )
        )

    res = await db.execute(
        query.where(*filters).order_by(Order.created_at.desc()).limit(limit).offset(offset)
    )
    total = (await db.execute(count_query.where(*filters))).scalar_one()
    return list(res.scalars().all()), total


# ── Status changes ──────────────────────────────────────────────────

def _check_transition(order: Order, new_status: str, actor_role: str) -> None:
    if not OrderFlow.actor_may_set(actor_role, new_status):
        raise PermissionDeniedError(f"A {actor_role} cannot set order status to {new_status}")
    if not OrderFlow.can_transition(order.status, new_status):
        raise InvalidTransitionError(order.status, new_status)


async def _release_driver(db: AsyncSession, order: Order) -> None:
    driver = order.driver
    if driver is None:
        return
    others = await db.execute(
        select(func.count(Order.id)).where(
            Order.driver_id == driver.id,
            Order.id != order.id,
            Order.status.in_(ACTIVE_DELIVERY_STATUSES),
        )
    )
    if others.scalar_one() == 0 and driver.status == DriverStatus.BUSY.value:
        driver.status = DriverStatus.AVAILABLE.value
        driver.updated_at = datetime.utcnow()


async def _finalize_delivery(db: AsyncSession, order: Order) -> Payment | None:
    """Mark delivered, settle COD, release the driver and credit its stats."""
    now = datetime.utcnow()
    order.status = OrderStatus.DELIVERED.value
    order.actual_delivery_time = now
    order.updated_at = now

    payment = None
    if order.payment_method == PaymentMethod.CASH.value and order.payment_status != PaymentStatus.PAID.value:
        payment = await payment_service.record_cash_payment(db, order=order)

    driver = order.driver
    if driver is not None:
        await _release_driver(db, order)
        driver.total_deliveries = (driver.total_deliveries or 0) + 1
        driver.total_earnings = (driver.total_earnings or 0.0) + order.delivery_fee
    await db.flush()
    return payment


async def _cancel(db: AsyncSession, order: Order, reason: str | None) -> None:
    await _restore_stock(db, order)
    await _release_driver(db, order)
    order.status = OrderStatus.CANCELLED.value
    order.cancellation_reason = reason
    order.updated_at = datetime.utcnow()
    await db.flush()


async def apply_status(
    db: AsyncSession,
    *,
    order: Order,
    new_status: str,
    actor_role: str,
    reason: str | None = None,
) -> Payment | None:
    """
    Move an order along the lifecycle with the side effects each target needs.
    Returns the COD payment when the move completed a cash delivery.
    """
    _check_transition(order, new_status, actor_role)

    if new_status == OrderStatus.ASSIGNED.value and order.driver_id is None:
        raise ValidationError("Assign a driver to move an order to assigned")
    if new_status == OrderStatus.DELIVERED.value:
        return await _finalize_delivery(db, order)
    if new_status == OrderStatus.CANCELLED.value:
        await _cancel(db, order, reason)
        return None
    if new_status == OrderStatus.ACCEPTED.value and order.driver_id is not None:
        # Back from assigned: the driver is released and detached
        await _release_driver(db, order)
        order.driver = None

    order.status = new_status
    order.updated_at = datetime.utcnow()
    await db.flush()
    return None


async def _vendor_order(db: AsyncSession, vendor: Vendor, order_id: str) -> Order:
    order = await load_order(db, order_id)
    if order.vendor_id != vendor.id:
        raise NotFoundError("Order", order_id)
    return order


async def _driver_order(db: AsyncSession, driver: Driver, order_id: str) -> Order:
    order = await load_order(db, order_id)
    if order.driver_id != driver.id:
        raise NotFoundError("Order", order_id)
    return order


async def update_status_by_vendor(
    db: AsyncSession, *, vendor: Vendor, order_id: str, status: str, reason: str | None = None,
) -> tuple[Order, Payment | None]:
    order = await _vendor_order(db, vendor, order_id)
    previous = order.status
    payment = await apply_status(db, order=order, new_status=status, actor_role=UserRole.VENDOR.value, reason=reason)
    logger.info(f"Vendor {vendor.id} moved order {order.order_number} {previous} → {status}")
    return order, payment


async def assign_driver(
    db: AsyncSession, *, order: Order, driver_id: str, vendor_id: str | None = None,
) -> Order:
    """
    Attach an available driver and move the order to assigned.

    With `vendor_id` the driver must belong to that vendor. Pending orders
    are accepted implicitly.
    """
    res = await db.execute(select(Driver).where(Driver.id == driver_id))
    driver = res.scalar_one_or_none()
    if not driver or (vendor_id is not None and driver.vendor_id != vendor_id):
        raise NotFoundError("Driver", driver_id)
    if not driver.is_active:
        raise ValidationError("Driver account is deactivated")
    if driver.status != DriverStatus.AVAILABLE.value:
        raise ValidationError("Driver is not available")
    if order.status not in (OrderStatus.PENDING.value, OrderStatus.ACCEPTED.value):
        raise InvalidTransitionError(order.status, OrderStatus.ASSIGNED.value)

    order.driver = driver
    order.status = OrderStatus.ASSIGNED.value
    order.updated_at = datetime.utcnow()
    driver.status = DriverStatus.BUSY.value
    driver.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Driver {driver.id} assigned to order {order.order_number}")
    return order


async def assign_driver_by_vendor(db: AsyncSession, *, vendor: Vendor, order_id: str, driver_id: str) -> Order:
    order = await _vendor_order(db, vendor, order_id)
    return await assign_driver(db, order=order, driver_id=driver_id, vendor_id=vendor.id)


async def cancel_by_customer(
    db: AsyncSession, *, customer: User, order_id: str, reason: str | None = None,
) -> Order:
    order = await load_order(db, order_id)
    if order.user_id != customer.id:
        raise NotFoundError("Order", order_id)
    if order.status not in CANCELLABLE_STATUSES:
        raise ValidationError(f"Order cannot be cancelled once it is {order.status}")
    await _cancel(db, order, reason or "Cancelled by customer")
    logger.info(f"Order {order.order_number} cancelled by customer")
    return order


# ── Driver flow ─────────────────────────────────────────────────────

async def update_status_by_driver(db: AsyncSession, *, driver: Driver, order_id: str, status: str) -> Order:
    order = await _driver_order(db, driver, order_id)
    if status == OrderStatus.DELIVERED.value:
        raise ValidationError("Use the complete endpoint to finish a delivery")
    await apply_status(db, order=order, new_status=status, actor_role=UserRole.DRIVER.value)
    return order


async def complete_delivery(db: AsyncSession, *, driver: Driver, order_id: str) -> tuple[Order, Payment | None]:
    """
    Finish a delivery in one unit of work: order delivered, driver freed,
    stats credited and, for cash orders, the COD payment recorded.
    """
    order = await _driver_order(db, driver, order_id)
    payment = await apply_status(
        db, order=order, new_status=OrderStatus.DELIVERED.value, actor_role=UserRole.DRIVER.value,
    )
    logger.info(
        f"Order {order.order_number} delivered by driver {driver.id}"
        + (" (cash collected)" if payment else "")
    )
    return order, payment


async def driver_location_for_order(db: AsyncSession, *, driver: Driver, order_id: str) -> Order:
    order = await _driver_order(db, driver, order_id)
    if order.status not in ACTIVE_DELIVERY_STATUSES:
        raise ValidationError("Location updates are only accepted for active deliveries")
    return order


# ── Admin ───────────────────────────────────────────────────────────

async def admin_intervene(
    db: AsyncSession,
    *,
    admin: User,
    order_id: str,
    action: str,
    reason: str,
    driver_id: str | None = None,
    new_status: str | None = None,
) -> Order:
    order = await load_order(db, order_id)
    try:
        action = AdminOrderAction(action).value
    except ValueError:
        raise ValidationError("Invalid action", field="action")

    if action == AdminOrderAction.FORCE_CANCEL.value:
        if OrderFlow.is_terminal(order.status):
            raise ValidationError(f"Order is already {order.status}")
        await _cancel(db, order, f"Admin: {reason}")
    elif action == AdminOrderAction.FORCE_CONFIRM.value:
        if order.status != OrderStatus.PENDING.value:
            raise ValidationError("Only pending orders can be force-confirmed")
        order.status = OrderStatus.ACCEPTED.value
        order.updated_at = datetime.utcnow()
    elif action == AdminOrderAction.ASSIGN_DRIVER.value:
        if not driver_id:
            raise ValidationError("driverId is required for assign_driver", field="driverId")
        await assign_driver(db, order=order, driver_id=driver_id)
    elif action == AdminOrderAction.UPDATE_STATUS.value:
        if not new_status:
            raise ValidationError("newStatus is required for update_status", field="newStatus")
        await apply_status(db, order=order, new_status=new_status, actor_role=UserRole.ADMIN.value, reason=reason)
    elif action == AdminOrderAction.REFUND.value:
        await payment_service.refund_order(db, order=order, reason=reason)

    await db.flush()
    logger.info(f"Admin {admin.id} performed {action} on order {order.order_number}: {reason}")
    return order


async def order_analytics(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.utcnow()
    month_start = now - timedelta(days=30)
    week_start = now - timedelta(days=7)

    async def _count(*filters) -> int:
        return (await db.execute(select(func.count(Order.id)).where(*filters))).scalar_one()

    async def _revenue(*filters) -> float:
        res = await db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0.0)).where(
                Order.status == OrderStatus.DELIVERED.value, *filters
            )
        )
        return float(res.scalar_one() or 0.0)

    return {
        "totalOrders": await _count(),
        "pendingOrders": await _count(Order.status == OrderStatus.PENDING.value),
        "activeOrders": await _count(Order.status.in_(ACTIVE_DELIVERY_STATUSES | {OrderStatus.ACCEPTED.value})),
        "completedOrders": await _count(Order.status == OrderStatus.DELIVERED.value),
        "cancelledOrders": await _count(Order.status == OrderStatus.CANCELLED.value),
        "monthlyOrders": await _count(Order.created_at >= month_start),
        "weeklyOrders": await _count(Order.created_at >= week_start),
        "totalRevenue": await _revenue(),
        "monthlyRevenue": await _revenue(Order.created_at >= month_start),
        "weeklyRevenue": await _revenue(Order.created_at >= week_start),
    }


# ── Side effects ────────────────────────────────────────────────────

async def publish_order_update(
    db: AsyncSession,
    event: OrderEvent,
    *,
    notify_vendor: bool = True,
    notify_driver: bool = False,
    customer_message: str | None = None,
) -> None:
    """
    Notify the parties of an order and emit `order_status_updated`.
    Call after commit; failures are logged by the helpers and never raised.
    """
    await notification_service.send_order_status_notification(
        db,
        user_id=event.customer_id,
        order_id=event.order_id,
        order_number=event.order_number,
        status=event.status,
        message=customer_message,
    )
    recipients = [event.customer_id]

    if notify_vendor and event.vendor_user_id:
        is_new = event.status == OrderStatus.PENDING.value
        await notification_service.send_order_status_notification(
            db,
            user_id=event.vendor_user_id,
            order_id=event.order_id,
            order_number=event.order_number,
            status=event.status,
            title="New Order" if is_new else "Order Update",
            message=(
                f"New order #{event.order_number} received"
                if is_new
                else f"Order #{event.order_number} is now {event.status.replace('_', ' ')}"
            ),
        )
        recipients.append(event.vendor_user_id)

    if notify_driver and event.driver_user_id:
        await notification_service.send_order_status_notification(
            db,
            user_id=event.driver_user_id,
            order_id=event.order_id,
            order_number=event.order_number,
            status=event.status,
            title="Delivery Update",
            message=f"Order #{event.order_number} is now {event.status.replace('_', ' ')}",
        )
        recipients.append(event.driver_user_id)

    payload = event.payload()
    for user_id in dict.fromkeys(recipients):
        await realtime_service.emit_to_user(user_id, RealtimeEvent.ORDER_STATUS_UPDATED.value, payload)
    await realtime_service.emit_safely(order_room(event.order_id), RealtimeEvent.ORDER_STATUS_UPDATED.value, payload)


async def publish_driver_assignment(db: AsyncSession, event: OrderEvent) -> None:
    await notification_service.send_delivery_notification(
        db,
        user_id=event.customer_id,
        order_id=event.order_id,
        order_number=event.order_number,
        driver_name=event.driver_name or "A driver",
    )
    if event.driver_user_id:
        await notification_service.send_notification(
            db,
            user_id=event.driver_user_id,
            type=NotificationType.ORDER_STATUS.value,
            title="New Delivery",
            message=f"You have been assigned to deliver order #{event.order_number}",
            data=event.payload(),
            priority=NotificationPriority.HIGH.value,
        )
    payload = event.payload() | {"driverName": event.driver_name}
    for user_id in filter(None, (event.customer_id, event.vendor_user_id, event.driver_user_id)):
        await realtime_service.emit_to_user(user_id, RealtimeEvent.ORDER_STATUS_UPDATED.value, payload)


async def publish_payment_update(db: AsyncSession, event: OrderEvent, *, amount: float, status: str) -> None:
    await notification_service.send_payment_notification(
        db,
        user_id=event.customer_id,
        order_id=event.order_id,
        order_number=event.order_number,
        amount=amount,
        status=status,
    )
    payload = event.payload() | {"amount": amount, "paymentRecordStatus": status}
    for user_id in filter(None, (event.customer_id, event.vendor_user_id)):
        await realtime_service.emit_to_user(user_id, RealtimeEvent.PAYMENT_UPDATED.value, payload)


async def publish_admin_action(db: AsyncSession, event: OrderEvent, *, admin_name: str, action: str, reason: str) -> None:
    await notification_service.send_notification(
        db,
        user_id=event.customer_id,
        type=NotificationType.SYSTEM.value,
        title="Order Update by Admin",
        message=f"Admin {admin_name} performed action: {action}. Reason: {reason}",
        data=event.payload() | {"action": action, "reason": reason},
        priority=NotificationPriority.HIGH.value,
    )
    payload = event.payload() | {"action": action}
    for user_id in filter(None, (event.customer_id, event.vendor_user_id, event.driver_user_id)):
        await realtime_service.emit_to_user(user_id, RealtimeEvent.ORDER_STATUS_UPDATED.value, payload)


async def publish_low_stock(db: AsyncSession, vendor_user_id: str, products: list[dict]) -> None:
    """`products` are plain dicts captured before commit (id, name, qty, unit)."""
    for p in products:
        await notification_service.send_low_stock_alert(
            db,
            vendor_user_id=vendor_user_id,
            product_id=p["id"],
            product_name=p["name"],
            available_qty=p["availableQty"],
            unit=p["unit"],
        )
