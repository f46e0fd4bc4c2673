"""
User administration — approval queue, status/role changes, export, bulk actions.

Admin accounts are protected: they are skipped by bulk actions and cannot
be deleted through the API.
"""
import csv
import io
import json
import logging
from datetime import datetime, timedelta

from sqlalchemy import select, func, or_, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import User, Order, Product, Driver, Review
from domain.enums import UserRole, UserStatus, VerificationStatus, BulkUserAction, values
from domain.errors import NotFoundError, ValidationError, PermissionDeniedError, ConflictError
from services import activity_service, notification_service
from services.auth_service import ensure_unique_contact
from utils.validators import normalize_email, normalize_phone

logger = logging.getLogger(__name__)

EXPORT_HEADERS = [
    "ID", "First Name", "Last Name", "Email", "Phone Number",
    "Role", "Status", "Created At", "Updated At",
]

ADMIN_SETTABLE_STATUSES = {
    UserStatus.ACTIVE.value,
    UserStatus.SUSPENDED.value,
    UserStatus.REJECTED.value,
}


def _filtered(query, *, status: str | None, role: str | None, search: str | None):
    if status:
        query = query.where(User.status == status)
    if role:
        query = query.where(User.role == role)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
                User.phone_number.ilike(pattern),
            )
        )
    return query


async def list_users(
    db: AsyncSession,
    *,
    status: str | None = None,
    role: str | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[User], int]:
    query = _filtered(select(User), status=status, role=role, search=search)
    res = await db.execute(query.order_by(User.created_at.desc()).limit(limit).offset(offset))
    count_query = _filtered(select(func.count(User.id)), status=status, role=role, search=search)
    total = (await db.execute(count_query)).scalar_one()
    return list(res.scalars().all()), total


async def user_stats(db: AsyncSession) -> dict:
    status_rows = (await db.execute(select(User.status, func.count(User.id)).group_by(User.status))).all()
    role_rows = (await db.execute(select(User.role, func.count(User.id)).group_by(User.role))).all()
    by_status = dict(status_rows)
    week_ago = datetime.utcnow() - timedelta(days=7)
    recent = (
        await db.execute(select(func.count(User.id)).where(User.created_at >= week_ago))
    ).scalar_one()
    return {
        "totalUsers": sum(by_status.values()),
        "pendingApprovals": by_status.get(UserStatus.PENDING.value, 0),
        "activeUsers": by_status.get(UserStatus.ACTIVE.value, 0),
        "suspendedUsers": by_status.get(UserStatus.SUSPENDED.value, 0),
        "rejectedUsers": by_status.get(UserStatus.REJECTED.value, 0),
        "usersByRole": {r: dict(role_rows).get(r, 0) for r in values(UserRole)},
        "recentRegistrations": recent,
    }


def _export_row(user: User) -> list[str]:
    return [
        user.id,
        user.first_name,
        user.last_name,
        user.email,
        user.phone_number,
        user.role,
        user.status,
        user.created_at.isoformat() if user.created_at else "",
        user.updated_at.isoformat() if user.updated_at else "",
    ]


async def export_users(
    db: AsyncSession,
    *,
    format: str = "csv",
    status: str | None = None,
    role: str | None = None,
    search: str | None = None,
) -> tuple[str, str]:
    """Return (body, media_type) for every user matching the filters."""
    if format not in ("csv", "json"):
        raise ValidationError("Export format must be csv or json", field="format")
    query = _filtered(select(User), status=status, role=role, search=search)
    users = list((await db.execute(query.order_by(User.created_at.desc()))).scalars().all())

    if format == "json":
        rows = [dict(zip(EXPORT_HEADERS, _export_row(u))) for u in users]
        return json.dumps(rows, indent=2), "application/json"

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for user in users:
        writer.writerow(_export_row(user))
    return buf.getvalue(), "text/csv"


async def get_user(db: AsyncSession, user_id: str) -> User:
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise NotFoundError("User", user_id)
    return user


async def order_count(db: AsyncSession, user: User) -> int:
    """Orders the user took part in, as customer, vendor or driver."""
    clauses = [Order.user_id == user.id]
    if user.vendor:
        clauses.append(Order.vendor_id == user.vendor.id)
    if user.driver:
        clauses.append(Order.driver_id == user.driver.id)
    res = await db.execute(select(func.count(Order.id)).where(or_(*clauses)))
    return res.scalar_one()


# ── Status changes ──────────────────────────────────────────────────

def _activate(user: User) -> None:
    user.status = UserStatus.ACTIVE.value
    user.rejection_reason = None
    user.updated_at = datetime.utcnow()
    if user.vendor:
        user.vendor.verification_status = VerificationStatus.VERIFIED.value
        user.vendor.is_active = True


def _reject(user: User, reason: str) -> None:
    user.status = UserStatus.REJECTED.value
    user.rejection_reason = reason
    user.updated_at = datetime.utcnow()
    if user.vendor:
        user.vendor.verification_status = VerificationStatus.REJECTED.value


async def approve(db: AsyncSession, user_id: str) -> User:
    user = await get_user(db, user_id)
    if user.status != UserStatus.PENDING.value:
        raise ValidationError("User is not pending approval")
    _activate(user)
    await db.flush()
    logger.info(f"Approved {user.role} {user.email}")
    return user


async def reject(db: AsyncSession, user_id: str, reason: str | None) -> User:
    if not reason or not reason.strip():
        raise ValidationError("Rejection reason is required", field="reason")
    user = await get_user(db, user_id)
    if user.status != UserStatus.PENDING.value:
        raise ValidationError("User is not pending approval")
    _reject(user, reason.strip())
    await db.flush()
    logger.info(f"Rejected {user.role} {user.email}: {reason}")
    return user


async def set_status(db: AsyncSession, *, admin: User, user_id: str, status: str, reason: str | None = None) -> User:
    if status not in ADMIN_SETTABLE_STATUSES:
        raise ValidationError(
            f"Invalid status. Allowed: {', '.join(sorted(ADMIN_SETTABLE_STATUSES))}", field="status"
        )
    user = await get_user(db, user_id)
    if user.id == admin.id:
        raise PermissionDeniedError("You cannot change your own status")

    if status == UserStatus.ACTIVE.value:
        _activate(user)
    elif status == UserStatus.REJECTED.value:
        _reject(user, (reason or "").strip() or "Rejected by administrator")
    else:
        user.status = status
        user.updated_at = datetime.utcnow()
    await db.flush()
    return user


async def set_role(db: AsyncSession, *, admin: User, user_id: str, role: str) -> User:
    if role not in values(UserRole):
        raise ValidationError("Invalid role", field="role")
    user = await get_user(db, user_id)
    if user.id == admin.id:
        raise PermissionDeniedError("You cannot change your own role")
    if role == UserRole.VENDOR.value and not user.vendor:
        raise ConflictError("User has no vendor profile")
    if role == UserRole.DRIVER.value and not user.driver:
        raise ConflictError("User has no driver profile")
    user.role = role
    user.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Role of {user.email} changed to {role} by {admin.email}")
    return user


async def update_user(
    db: AsyncSession,
    *,
    user_id: str,
    first_name: str | None = None,
    last_name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> User:
    user = await get_user(db, user_id)
    new_email = normalize_email(email) if email else None
    new_phone = normalize_phone(phone) if phone else None
    await ensure_unique_contact(db, email=new_email, phone=new_phone, exclude_user_id=user.id)

    if first_name:
        user.first_name = first_name.strip()
    if last_name:
        user.last_name = last_name.strip()
    if new_email:
        user.email = new_email
    if new_phone:
        user.phone_number = new_phone
    user.updated_at = datetime.utcnow()
    await db.flush()
    return user


async def _remove(db: AsyncSession, user: User) -> None:
    if user.vendor:
        vendor_id = user.vendor.id
        await db.execute(delete(Product).where(Product.vendor_id == vendor_id))
        await db.execute(update(Driver).where(Driver.vendor_id == vendor_id).values(vendor_id=None))
    await db.execute(delete(Review).where(Review.reviewer_id == user.id))
    await notification_service.delete_for_user(db, user.id)
    await activity_service.delete_for_user(db, user.id)
    await db.delete(user)
    await db.flush()


async def delete_user(db: AsyncSession, user_id: str) -> str:
    """Hard delete; returns the removed email. Users with order history must be suspended instead."""
    user = await get_user(db, user_id)
    if user.role == UserRole.ADMIN.value:
        raise PermissionDeniedError("Admin accounts cannot be deleted")
    if await order_count(db, user):
        raise ConflictError("User has order history and cannot be deleted; suspend the account instead")
    email = user.email
    await _remove(db, user)
    logger.info(f"Deleted user {email}")
    return email


async def bulk_action(
    db: AsyncSession,
    *,
    user_ids: list[str],
    action: str,
    reason: str | None = None,
) -> dict:
    try:
        action = BulkUserAction(action).value
    except ValueError:
        raise ValidationError(f"Invalid action. Allowed: {', '.join(values(BulkUserAction))}", field="action")
    if not user_ids:
        raise ValidationError("No users selected", field="userIds")
    if action == BulkUserAction.REJECT.value and not (reason and reason.strip()):
        raise ValidationError("Rejection reason is required", field="reason")

    res = await db.execute(
        select(User).where(User.id.in_(user_ids), User.role != UserRole.ADMIN.value)
    )
    users = list(res.scalars().all())

    if action == BulkUserAction.DELETE.value:
        deleted = 0
        for user in users:
            if await order_count(db, user):
                logger.warning(f"Bulk delete skipped {user.email}: has order history")
                continue
            await _remove(db, user)
            deleted += 1
        return {"deletedCount": deleted}

    for user in users:
        if action in (BulkUserAction.APPROVE.value, BulkUserAction.ACTIVATE.value):
            _activate(user)
        elif action == BulkUserAction.REJECT.value:
            _reject(user, reason.strip())
        elif action == BulkUserAction.SUSPEND.value:
            user.status = UserStatus.SUSPENDED.value
            user.updated_at = datetime.utcnow()
    await db.flush()
    logger.info(f"Bulk {action} applied to {len(users)} user(s)")
    return {"updatedCount": len(users)}
