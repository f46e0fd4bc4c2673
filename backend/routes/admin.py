"""
Admin endpoints — account approval queue, user management, vendor
verification, platform broadcasts, the activity audit trail and admin
invitations.

Every endpoint requires an admin token except POST /admin/register, which
is authorized by the invitation token instead.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from db_models import User
from deps import require_admin
from domain.enums import NotificationType, NotificationPriority, UserRole, RealtimeEvent, ActivityType
from domain.responses import success_response, paginated_response
from domain.serializers import (
    account_to_dict, user_to_dict, vendor_profile, activity_to_dict, invitation_to_dict,
)
from middleware.rate_limit import rate_limit
from services import (
    user_service, vendor_service, notification_service, realtime_service,
    activity_service, invitation_service,
)
from utils.validators import parse_enum

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


class RejectRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class StatusRequest(BaseModel):
    status: str
    reason: str | None = Field(default=None, max_length=500)


class RoleRequest(BaseModel):
    role: str


class UserUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, alias="firstName", max_length=100)
    last_name: str | None = Field(default=None, alias="lastName", max_length=100)
    email: str | None = None
    phone: str | None = None


class BulkActionRequest(BaseModel):
    user_ids: list[str] = Field(..., alias="userIds")
    action: str
    reason: str | None = Field(default=None, max_length=500)


class VerifyVendorRequest(BaseModel):
    status: str


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    roles: list[str] = Field(default_factory=list)
    priority: str = NotificationPriority.MEDIUM.value


class InviteRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class AdminRegisterRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    phone: str = Field(..., min_length=7, max_length=20)


# ── Users ───────────────────────────────────────────────────────────

@router.get("/users")
async def list_users(
    status: str | None = None,
    role: str | None = None,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users, total = await user_service.list_users(
        db, status=status, role=role, search=search, limit=limit, offset=(page - 1) * limit,
    )
    return paginated_response(
        "users", [account_to_dict(u) for u in users], page=page, limit=limit, total=total,
    )


@router.get("/users/stats")
async def user_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await user_service.user_stats(db))


@router.get("/users/export")
async def export_users(
    format: str = "csv",
    status: str | None = None,
    role: str | None = None,
    search: str | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    body, media_type = await user_service.export_users(
        db, format=format, status=status, role=role, search=search,
    )
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="users.{format}"'},
    )


@router.post("/users/bulk-action")
async def bulk_action(
    request: BulkActionRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.bulk_action(
        db, user_ids=request.user_ids, action=request.action, reason=request.reason,
    )
    await db.commit()
    logger.info(f"Admin {admin.email} ran bulk {request.action}: {result}")
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=admin.id,
        type=ActivityType.BULK_ACTION.value,
        details=f"Bulk {request.action} on {len(request.user_ids)} selected user(s): {result}",
        request=http_request,
    )
    return success_response(data=result)


@router.get("/users/{user_id}")
async def get_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.get_user(db, user_id)
    data = account_to_dict(user)
    data["orderCount"] = await user_service.order_count(db, user)
    return success_response(data=data)


@router.post("/users/{user_id}/approve")
async def approve_user(
    user_id: str,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.approve(db, user_id)
    await db.commit()
    data = {"message": "User approved successfully", "user": account_to_dict(user)}
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=user_id,
        type=ActivityType.VERIFICATION_UPDATE.value,
        details=f"Account approved by {admin.email}",
        request=http_request,
    )
    await notification_service.send_notification(
        db,
        user_id=user_id,
        type=NotificationType.SYSTEM.value,
        title="Account Approved",
        message="Your account has been approved. You can now log in.",
        priority=NotificationPriority.HIGH.value,
    )
    return success_response(data=data)


@router.post("/users/{user_id}/reject")
async def reject_user(
    user_id: str,
    request: RejectRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.reject(db, user_id, request.reason)
    await db.commit()
    data = {"message": "User rejected", "user": account_to_dict(user)}
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=user_id,
        type=ActivityType.VERIFICATION_UPDATE.value,
        details=f"Account rejected by {admin.email}: {user.rejection_reason}",
        request=http_request,
    )
    return success_response(data=data)


@router.patch("/users/{user_id}/status")
async def set_user_status(
    user_id: str,
    request: StatusRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_status(
        db, admin=admin, user_id=user_id, status=request.status, reason=request.reason,
    )
    await db.commit()
    data = account_to_dict(user)
    details = f"Status set to {request.status} by {admin.email}"
    if request.reason:
        details += f": {request.reason}"
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=user_id,
        type=ActivityType.STATUS_CHANGE.value,
        details=details,
        request=http_request,
    )
    return success_response(data=data)


@router.patch("/users/{user_id}/role")
async def set_user_role(
    user_id: str,
    request: RoleRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_role(db, admin=admin, user_id=user_id, role=request.role)
    await db.commit()
    data = account_to_dict(user)
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=user_id,
        type=ActivityType.ROLE_CHANGE.value,
        details=f"Role set to {user.role} by {admin.email}",
        request=http_request,
    )
    return success_response(data=data)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    request: UserUpdateRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.update_user(
        db,
        user_id=user_id,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone=request.phone,
    )
    await db.commit()
    data = user_to_dict(user)
    changed = sorted(request.model_dump(exclude_none=True, by_alias=True))
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=user_id,
        type=ActivityType.PROFILE_UPDATE.value,
        details=f"Profile fields updated by {admin.email}: {', '.join(changed) or 'none'}",
        request=http_request,
    )
    return success_response(data=data)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    email = await user_service.delete_user(db, user_id)
    await db.commit()
    # the subject's own trail is deleted with the account
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=admin.id,
        type=ActivityType.ACCOUNT_DELETION.value,
        details=f"Deleted user {email} ({user_id})",
        request=http_request,
    )
    return success_response(data={"message": "User deleted successfully", "id": user_id})


# ── Activity ────────────────────────────────────────────────────────

@router.get("/activity/recent")
async def recent_activity(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    entries = await activity_service.list_recent(db)
    return success_response(data=[activity_to_dict(e) for e in entries])


@router.get("/activity/type/{activity_type}")
async def activity_by_type(
    activity_type: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    entries = await activity_service.list_by_type(db, activity_type)
    return success_response(data=[activity_to_dict(e) for e in entries])


@router.get("/activity/user/{user_id}")
async def user_activity(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.get_user(db, user_id)
    entries = await activity_service.list_for_user(db, user_id)
    return success_response(data=[activity_to_dict(e) for e in entries])


# ── Admin invitations ───────────────────────────────────────────────

@router.post("/invite", status_code=201)
async def invite_admin(
    request: InviteRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    invitation = await invitation_service.create_invitation(db, admin=admin, email=request.email)
    await db.commit()
    data = {
        "message": "Admin invitation sent successfully",
        "invitation": {
            "id": invitation.id,
            "email": invitation.email,
            "token": invitation.token,
            "expiresAt": invitation.expires_at.isoformat(),
        },
    }
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=admin.id,
        type=ActivityType.ADMIN_INVITATION.value,
        details=f"Invited {invitation.email} as admin",
        request=http_request,
    )
    return success_response(data=data)


@router.get("/invitations")
async def list_invitations(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    invitations = await invitation_service.list_invitations(db)
    return success_response(data=[invitation_to_dict(i) for i in invitations])


@router.post("/register", status_code=201)
async def register_admin(
    request: AdminRegisterRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(settings.register_rate_limit, settings.auth_rate_window_seconds)),
):
    user = await invitation_service.register_admin(
        db,
        token=request.token,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
        phone=request.phone,
    )
    await db.commit()
    return success_response(
        data={"message": "Admin account created successfully", "user": account_to_dict(user)}
    )


# ── Vendors ─────────────────────────────────────────────────────────

@router.get("/vendors")
async def list_vendors(
    verification_status: str | None = Query(None, alias="verificationStatus"),
    search: str | None = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    vendors = await vendor_service.list_all_vendors(
        db, verification_status=verification_status, search=search,
    )
    return success_response(data=[vendor_profile(v) for v in vendors])


@router.patch("/vendors/{vendor_id}/verify")
async def verify_vendor(
    vendor_id: str,
    request: VerifyVendorRequest,
    http_request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.set_verification(db, vendor_id=vendor_id, status=request.status)
    await db.commit()
    data = vendor_profile(vendor)
    await activity_service.log_admin_action(
        db,
        admin=admin,
        user_id=vendor.user_id,
        type=ActivityType.VERIFICATION_UPDATE.value,
        details=f"Vendor {vendor.business_name} marked {vendor.verification_status} by {admin.email}",
        request=http_request,
    )
    return success_response(data=data)


# ── Broadcast ───────────────────────────────────────────────────────

@router.post("/broadcast")
async def broadcast(
    request: BroadcastRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    roles = [parse_enum(UserRole, r, "roles") for r in request.roles]
    priority = parse_enum(NotificationPriority, request.priority, "priority")
    sent = await notification_service.send_by_role(
        db,
        roles=roles,
        type=NotificationType.SYSTEM.value,
        title=request.title,
        message=request.message,
        priority=priority,
    )
    payload = {"title": request.title, "message": request.message, "priority": priority}
    if roles:
        for role in roles:
            await realtime_service.emit_to_role(role, RealtimeEvent.ADMIN_BROADCAST.value, payload)
    else:
        await realtime_service.broadcast(RealtimeEvent.ADMIN_BROADCAST.value, payload)
    return success_response(data={"sentCount": sent})
