"""
User activity audit trail.

Logins (successful or refused) and every admin action on an account are
recorded here. Writing an entry commits on its own and never raises, so
callers log after their own unit of work has been committed.
"""
import logging

from fastapi import Request
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import UserActivity, User
from domain.constants import ACTIVITY_LIST_LIMIT
from domain.enums import ActivityType, ActivityStatus
from utils.validators import parse_enum

logger = logging.getLogger(__name__)


def client_info(request: Request | None) -> dict[str, str | None]:
    """IP address and user agent of the caller, when a request is at hand."""
    if request is None:
        return {"ip_address": None, "user_agent": None}
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": (request.headers.get("user-agent") or "")[:255] or None,
    }


async def log_activity(
    db: AsyncSession,
    *,
    user_id: str,
    type: str,
    status: str = ActivityStatus.SUCCESS.value,
    details: str | None = None,
    performed_by: str | None = None,
    request: Request | None = None,
) -> UserActivity | None:
    """Record and commit one audit entry. Never raises."""
    try:
        entry = UserActivity(
            user_id=user_id,
            performed_by=performed_by,
            type=type,
            status=status,
            details=details,
            **client_info(request),
        )
        db.add(entry)
        await db.commit()
        return entry
    except Exception as e:
        logger.error(f"Error logging {type} activity for {user_id}: {e}", exc_info=True)
        await db.rollback()
        return None


async def log_admin_action(
    db: AsyncSession,
    *,
    admin: User,
    user_id: str,
    type: str,
    details: str,
    request: Request | None = None,
) -> UserActivity | None:
    return await log_activity(
        db, user_id=user_id, type=type, details=details, performed_by=admin.id, request=request,
    )


async def log_login_failure(
    db: AsyncSession,
    *,
    user: User | None,
    reason: str,
    request: Request | None = None,
) -> UserActivity | None:
    """Refused logins are only recorded against an existing account."""
    if user is None:
        return None
    logger.info(f"Login refused for {user.email}: {reason}")
    return await log_activity(
        db,
        user_id=user.id,
        type=ActivityType.LOGIN.value,
        status=ActivityStatus.FAILED.value,
        details=reason,
        request=request,
    )


# ── Listings ────────────────────────────────────────────────────────

async def _newest(db: AsyncSession, query, limit: int) -> list[UserActivity]:
    res = await db.execute(
        query.order_by(UserActivity.created_at.desc(), UserActivity.id.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(res.scalars().all())


async def list_for_user(db: AsyncSession, user_id: str, limit: int = ACTIVITY_LIST_LIMIT) -> list[UserActivity]:
    return await _newest(db, select(UserActivity).where(UserActivity.user_id == user_id), limit)


async def list_recent(db: AsyncSession, limit: int = ACTIVITY_LIST_LIMIT) -> list[UserActivity]:
    return await _newest(db, select(UserActivity), limit)


async def list_by_type(db: AsyncSession, type: str, limit: int = ACTIVITY_LIST_LIMIT) -> list[UserActivity]:
    type = parse_enum(ActivityType, type, "type")
    return await _newest(db, select(UserActivity).where(UserActivity.type == type), limit)


async def delete_for_user(db: AsyncSession, user_id: str) -> None:
    """Drop the entries about a deleted account."""
    await db.execute(delete(UserActivity).where(UserActivity.user_id == user_id))
