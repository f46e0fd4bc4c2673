"""
Notification endpoints — personal inbox, preferences and admin messaging.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User
from deps import get_current_user, require_admin
from domain.enums import NotificationType, NotificationPriority, UserRole
from domain.responses import success_response
from domain.serializers import notification_to_dict, preference_to_dict, template_to_dict
from services import notification_service
from utils.validators import parse_enum

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


class PreferencesUpdateRequest(BaseModel):
    email: bool | None = None
    sms: bool | None = None
    push: bool | None = None
    in_app: bool | None = Field(default=None, alias="inApp")
    order_updates: bool | None = Field(default=None, alias="orderUpdates")
    payment_updates: bool | None = Field(default=None, alias="paymentUpdates")
    system_updates: bool | None = Field(default=None, alias="systemUpdates")
    marketing: bool | None = None


class TemplateCreateRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: str = NotificationType.SYSTEM.value
    priority: str = NotificationPriority.MEDIUM.value
    target_roles: list[str] = Field(default_factory=list, alias="targetRoles")
    is_active: bool = Field(True, alias="isActive")


class TemplateSendRequest(BaseModel):
    variables: dict[str, Any] = Field(default_factory=dict)
    user_ids: list[str] | None = Field(default=None, alias="userIds")


class BulkSendRequest(BaseModel):
    user_ids: list[str] = Field(..., alias="userIds", min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: str = NotificationType.SYSTEM.value
    priority: str = NotificationPriority.MEDIUM.value
    data: dict[str, Any] | None = None


class RoleSendRequest(BaseModel):
    roles: list[str] = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: str = NotificationType.SYSTEM.value
    priority: str = NotificationPriority.MEDIUM.value
    data: dict[str, Any] | None = None


# ── Inbox ───────────────────────────────────────────────────────────

@router.get("")
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False, alias="unreadOnly"),
    type: str | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if type:
        type = parse_enum(NotificationType, type, "type")
    items, total, unread = await notification_service.list_notifications(
        db, user_id=user.id, limit=limit, offset=offset, unread_only=unread_only, type=type,
    )
    return success_response(
        data={
            "notifications": [notification_to_dict(n) for n in items],
            "total": total,
            "unreadCount": unread,
            "hasMore": offset + len(items) < total,
        }
    )


@router.get("/unread-count")
async def get_unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data={"count": await notification_service.unread_count(db, user.id)})


@router.patch("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await notification_service.mark_all_read(db, user_id=user.id)
    await db.commit()
    return success_response(data={"updatedCount": updated})


@router.get("/preferences")
async def get_preferences(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    prefs = await notification_service.get_preferences(db, user.id)
    await db.commit()
    return success_response(data=preference_to_dict(prefs))


@router.put("/preferences")
async def update_preferences(
    request: PreferencesUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    prefs = await notification_service.update_preferences(
        db,
        user.id,
        email_enabled=request.email,
        sms_enabled=request.sms,
        push_enabled=request.push,
        in_app_enabled=request.in_app,
        order_updates=request.order_updates,
        payment_updates=request.payment_updates,
        system_updates=request.system_updates,
        marketing=request.marketing,
    )
    await db.commit()
    return success_response(data=preference_to_dict(prefs))


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await notification_service.mark_read(db, user_id=user.id, notification_id=notification_id)
    await db.commit()
    return success_response(data=notification_to_dict(notification))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await notification_service.delete_notification(db, user_id=user.id, notification_id=notification_id)
    await db.commit()
    return success_response(data={"message": "Notification deleted"})


# ── Admin ───────────────────────────────────────────────────────────

@router.get("/templates")
async def list_templates(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    templates = await notification_service.list_templates(db)
    return success_response(data=[template_to_dict(t) for t in templates])


@router.post("/templates", status_code=status.HTTP_201_CREATED)
async def create_template(
    request: TemplateCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    template = await notification_service.create_template(
        db,
        name=request.name,
        title=request.title,
        message=request.message,
        type=parse_enum(NotificationType, request.type, "type"),
        priority=parse_enum(NotificationPriority, request.priority, "priority"),
        target_roles=[parse_enum(UserRole, r, "targetRoles") for r in request.target_roles],
        is_active=request.is_active,
    )
    await db.commit()
    return success_response(data=template_to_dict(template))


@router.post("/templates/{name}/send")
async def send_template(
    name: str,
    request: TemplateSendRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    sent = await notification_service.send_template(
        db, name=name, variables=request.variables, user_ids=request.user_ids,
    )
    return success_response(data={"sentCount": sent})


@router.post("/send-bulk")
async def send_bulk(
    request: BulkSendRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    sent = await notification_service.send_bulk(
        db,
        user_ids=request.user_ids,
        type=parse_enum(NotificationType, request.type, "type"),
        title=request.title,
        message=request.message,
        data=request.data,
        priority=parse_enum(NotificationPriority, request.priority, "priority"),
    )
    return success_response(data={"sentCount": sent})


@router.post("/send-by-role")
async def send_by_role(
    request: RoleSendRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    sent = await notification_service.send_by_role(
        db,
        roles=[parse_enum(UserRole, r, "roles") for r in request.roles],
        type=parse_enum(NotificationType, request.type, "type"),
        title=request.title,
        message=request.message,
        data=request.data,
        priority=parse_enum(NotificationPriority, request.priority, "priority"),
    )
    return success_response(data={"sentCount": sent})
