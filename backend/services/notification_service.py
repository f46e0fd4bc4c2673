"""
Notification service — persistence, preferences, templates and channel fan-out.

Every notification is stored, then dispatched after commit:
    IN_APP  → `notification_received` on the user's real-time room
    EMAIL / SMS / PUSH → handed to the provider log (no provider is wired)

The send_* helpers are fire-and-forget: they commit their own rows, log
any failure and return None instead of raising, so a caller's business
write is never undone by a notification problem. Call them only after
the caller has committed its own work.
"""
import logging
import re
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import select, func, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Notification, NotificationPreference, NotificationTemplate, User
from domain.enums import (
    NotificationChannel, NotificationPriority, NotificationType, RealtimeEvent, UserStatus,
)
from domain.errors import NotFoundError, ConflictError, ValidationError
from domain.serializers import notification_to_dict
from services import realtime_service

logger = logging.getLogger(__name__)

# Which preference switch silences which notification type
CATEGORY_BY_TYPE = {
    NotificationType.ORDER_STATUS.value: "order_updates",
    NotificationType.DELIVERY.value: "order_updates",
    NotificationType.PAYMENT.value: "payment_updates",
    NotificationType.SYSTEM.value: "system_updates",
}

_CHANNEL_FLAGS = {
    NotificationChannel.EMAIL.value: "email_enabled",
    NotificationChannel.SMS.value: "sms_enabled",
    NotificationChannel.PUSH.value: "push_enabled",
}

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

STATUS_LABELS = {
    "pending": "placed",
    "accepted": "accepted",
    "assigned": "assigned to a driver",
    "picked_up": "picked up",
    "in_transit": "dispatched and is on its way",
    "delivered": "delivered",
    "cancelled": "cancelled",
}


# ── Preferences ─────────────────────────────────────────────────────

async def get_preferences(db: AsyncSession, user_id: str) -> NotificationPreference:
    """Return the user's preferences, creating the defaults on first use."""
    res = await db.execute(
        select(NotificationPreference).where(NotificationPreference.user_id == user_id)
    )
    prefs = res.scalar_one_or_none()
    if prefs is None:
        prefs = NotificationPreference(
            user_id=user_id,
            email_enabled=True,
            sms_enabled=False,
            push_enabled=True,
            in_app_enabled=True,
            order_updates=True,
            payment_updates=True,
            system_updates=True,
            marketing=False,
        )
        db.add(prefs)
        await db.flush()
    return prefs


async def update_preferences(db: AsyncSession, user_id: str, **flags: bool | None) -> NotificationPreference:
    prefs = await get_preferences(db, user_id)
    for name, value in flags.items():
        if value is None:
            continue
        if not hasattr(prefs, name):
            raise ValidationError(f"Unknown preference: {name}")
        setattr(prefs, name, value)
    prefs.updated_at = datetime.utcnow()
    await db.flush()
    return prefs


def resolve_channels(prefs: NotificationPreference, requested: Iterable[str] | None = None) -> list[str]:
    """IN_APP always, plus every requested (or default) channel the user enabled."""
    wanted = list(requested) if requested else list(_CHANNEL_FLAGS)
    channels = [NotificationChannel.IN_APP.value]
    for channel in wanted:
        flag = _CHANNEL_FLAGS.get(channel)
        if flag and getattr(prefs, flag) and channel not in channels:
            channels.append(channel)
    return channels


def is_muted(prefs: NotificationPreference, type_: str, priority: str) -> bool:
    if priority == NotificationPriority.URGENT.value:
        return False
    category = CATEGORY_BY_TYPE.get(type_)
    return bool(category) and not getattr(prefs, category)


# ── Create & dispatch ───────────────────────────────────────────────

async def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    priority: str = NotificationPriority.MEDIUM.value,
    channels: Iterable[str] | None = None,
) -> Notification | None:
    """
    Persist a notification (flush only). Returns None when the user's
    category preferences mute it.
    """
    prefs = await get_preferences(db, user_id)
    if is_muted(prefs, type, priority):
        logger.info(f"Notification '{title}' muted by preferences of user {user_id}")
        return None

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data or {},
        priority=priority,
        channels=resolve_channels(prefs, channels),
        is_read=False,
    )
    db.add(notification)
    await db.flush()
    return notification


async def _dispatch_channel(notification: Notification, channel: str, payload: dict) -> None:
    if channel == NotificationChannel.IN_APP.value:
        await realtime_service.emit_to_user(
            notification.user_id, RealtimeEvent.NOTIFICATION_RECEIVED.value, payload
        )
    else:
        # No e-mail/SMS/push provider is configured; record the hand-off.
        logger.info(f"{channel} notification queued for user {notification.user_id}: {notification.title}")


async def deliver(db: AsyncSession, notification: Notification) -> None:
    """Push a committed notification through its channels; failures are logged per channel."""
    payload = notification_to_dict(notification)
    for channel in notification.channels or []:
        try:
            await _dispatch_channel(notification, channel, payload)
        except Exception as e:
            logger.error(f"Failed to send {channel} notification {notification.id}: {e}", exc_info=True)
    notification.sent_at = datetime.utcnow()
    await db.commit()


async def send_notification(db: AsyncSession, **kwargs) -> Notification | None:
    """Create, commit and dispatch one notification. Never raises."""
    try:
        notification = await create_notification(db, **kwargs)
        if notification is None:
            return None
        await db.commit()
        await deliver(db, notification)
        return notification
    except Exception as e:
        logger.error(f"Error sending notification to {kwargs.get('user_id')}: {e}", exc_info=True)
        await db.rollback()
        return None


async def send_bulk(
    db: AsyncSession,
    *,
    user_ids: Iterable[str],
    type: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    priority: str = NotificationPriority.MEDIUM.value,
) -> int:
    """Notify many users; returns how many notifications were sent."""
    sent = 0
    for user_id in dict.fromkeys(user_ids):
        result = await send_notification(
            db, user_id=user_id, type=type, title=title, message=message,
            data=data, priority=priority,
        )
        if result is not None:
            sent += 1
    return sent


async def active_user_ids(db: AsyncSession, roles: Iterable[str] | None = None) -> list[str]:
    query = select(User.id).where(User.status == UserStatus.ACTIVE.value)
    roles = list(roles or [])
    if roles:
        query = query.where(User.role.in_(roles))
    res = await db.execute(query)
    return list(res.scalars().all())


async def send_by_role(
    db: AsyncSession,
    *,
    roles: Iterable[str],
    type: str,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    priority: str = NotificationPriority.MEDIUM.value,
) -> int:
    user_ids = await active_user_ids(db, roles)
    return await send_bulk(
        db, user_ids=user_ids, type=type, title=title, message=message,
        data=data, priority=priority,
    )


# ── Domain helpers ──────────────────────────────────────────────────

async def send_order_status_notification(
    db: AsyncSession,
    *,
    user_id: str,
    order_id: str,
    order_number: str,
    status: str,
    title: str = "Order Update",
    message: str | None = None,
) -> Notification | None:
    label = STATUS_LABELS.get(status, status)
    return await send_notification(
        db,
        user_id=user_id,
        type=NotificationType.ORDER_STATUS.value,
        title=title,
        message=message or f"Your order #{order_number} has been {label}",
        data={"orderId": order_id, "orderNumber": order_number, "status": status},
        priority=NotificationPriority.MEDIUM.value,
    )


async def send_payment_notification(
    db: AsyncSession,
    *,
    user_id: str,
    order_id: str,
    order_number: str,
    amount: float,
    status: str,
) -> Notification | None:
    if status == "success":
        title = "Payment Confirmed"
        message = f"Payment of {settings.currency_symbol}{amount:,.2f} for order #{order_number} has been confirmed"
    elif status == "refunded":
        title = "Payment Refunded"
        message = f"A refund of {settings.currency_symbol}{amount:,.2f} for order #{order_number} has been issued"
    else:
        title = "Payment Failed"
        message = f"Payment of {settings.currency_symbol}{amount:,.2f} for order #{order_number} failed"
    return await send_notification(
        db,
        user_id=user_id,
        type=NotificationType.PAYMENT.value,
        title=title,
        message=message,
        data={"orderId": order_id, "orderNumber": order_number, "amount": amount, "status": status},
        priority=NotificationPriority.HIGH.value,
    )


async def send_delivery_notification(
    db: AsyncSession,
    *,
    user_id: str,
    order_id: str,
    order_number: str,
    driver_name: str,
) -> Notification | None:
    return await send_notification(
        db,
        user_id=user_id,
        type=NotificationType.DELIVERY.value,
        title="Driver Assigned",
        message=f"{driver_name} has been assigned to deliver your order #{order_number}",
        data={"orderId": order_id, "orderNumber": order_number, "driverName": driver_name},
        priority=NotificationPriority.MEDIUM.value,
    )


async def send_low_stock_alert(
    db: AsyncSession,
    *,
    vendor_user_id: str,
    product_id: str,
    product_name: str,
    available_qty: float,
    unit: str,
) -> Notification | None:
    data = {"productId": product_id, "productName": product_name, "availableQty": available_qty, "unit": unit}
    notification = await send_notification(
        db,
        user_id=vendor_user_id,
        type=NotificationType.ALERT.value,
        title="Low Stock Alert",
        message=f"{product_name} is running low ({available_qty:g} {unit} left)",
        data=data,
        priority=NotificationPriority.URGENT.value,
    )
    await realtime_service.emit_to_user(vendor_user_id, RealtimeEvent.STOCK_ALERT.value, data)
    return notification


# ── Inbox ───────────────────────────────────────────────────────────

async def list_notifications(
    db: AsyncSession,
    *,
    user_id: str,
    limit: int = 20,
    offset: int = 0,
    unread_only: bool = False,
    type: str | None = None,
) -> tuple[list[Notification], int, int]:
    """Returns (page, total matching, unread count)."""
    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.is_read.is_(False))
    if type:
        filters.append(Notification.type == type)

    res = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    items = list(res.scalars().all())
    total = (await db.execute(select(func.count(Notification.id)).where(*filters))).scalar_one()
    return items, total, await unread_count(db, user_id)


async def unread_count(db: AsyncSession, user_id: str) -> int:
    res = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
    )
    return res.scalar_one()


async def _own_notification(db: AsyncSession, user_id: str, notification_id: str) -> Notification:
    res = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = res.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification", notification_id)
    return notification


async def mark_read(db: AsyncSession, *, user_id: str, notification_id: str) -> Notification:
    notification = await _own_notification(db, user_id, notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.utcnow()
        await db.flush()
    return notification


async def mark_all_read(db: AsyncSession, *, user_id: str) -> int:
    res = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.utcnow())
    )
    return res.rowcount or 0


async def delete_notification(db: AsyncSession, *, user_id: str, notification_id: str) -> None:
    notification = await _own_notification(db, user_id, notification_id)
    await db.delete(notification)
    await db.flush()


async def delete_for_user(db: AsyncSession, user_id: str) -> None:
    """Drop a user's inbox and preferences (used when the account is deleted)."""
    await db.execute(delete(Notification).where(Notification.user_id == user_id))
    await db.execute(delete(NotificationPreference).where(NotificationPreference.user_id == user_id))


# ── Templates ───────────────────────────────────────────────────────

def render_template(text: str, variables: dict[str, Any]) -> str:
    """Replace {name} placeholders; unknown placeholders are left untouched."""
    return _PLACEHOLDER_RE.sub(
        lambda m: str(variables[m.group(1)]) if m.group(1) in variables else m.group(0),
        text,
    )


async def list_templates(db: AsyncSession, *, active_only: bool = False) -> list[NotificationTemplate]:
    query = select(NotificationTemplate).order_by(NotificationTemplate.name)
    if active_only:
        query = query.where(NotificationTemplate.is_active.is_(True))
    res = await db.execute(query)
    return list(res.scalars().all())


async def create_template(
    db: AsyncSession,
    *,
    name: str,
    title: str,
    message: str,
    type: str,
    priority: str,
    target_roles: list[str],
    is_active: bool = True,
) -> NotificationTemplate:
    existing = await db.execute(select(NotificationTemplate).where(NotificationTemplate.name == name))
    if existing.scalar_one_or_none():
        raise ConflictError(f"Template '{name}' already exists")
    template = NotificationTemplate(
        name=name,
        title=title,
        message=message,
        type=type,
        priority=priority,
        target_roles=target_roles,
        is_active=is_active,
    )
    db.add(template)
    await db.flush()
    return template


async def send_template(
    db: AsyncSession,
    *,
    name: str,
    variables: dict[str, Any],
    user_ids: list[str] | None = None,
) -> int:
    """Render a template and send it to `user_ids`, or to its target roles."""
    res = await db.execute(select(NotificationTemplate).where(NotificationTemplate.name == name))
    template = res.scalar_one_or_none()
    if not template or not template.is_active:
        raise NotFoundError("Notification template", name)

    title = render_template(template.title, variables)
    message = render_template(template.message, variables)
    type_, priority, roles = template.type, template.priority, list(template.target_roles or [])

    if not user_ids:
        user_ids = await active_user_ids(db, roles)
    return await send_bulk(
        db, user_ids=user_ids, type=type_, title=title, message=message,
        data={"template": name, **variables}, priority=priority,
    )
