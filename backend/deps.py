"""
Shared FastAPI dependencies.

Routers import the DB session, the authenticated account, role guards and
pagination from here.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User, Vendor, Driver
from domain.enums import UserRole
from domain.errors import PermissionDeniedError, UnauthorizedError, NotFoundError
from middleware.auth import require_token_payload
from services.auth_service import ensure_active


class Pagination(TypedDict):
    page: int
    limit: int
    offset: int


def pagination_params(
    page: int = Query(1, ge=1, le=10_000),
    limit: int = Query(10, ge=1, le=200),
) -> Pagination:
    return {"page": page, "limit": limit, "offset": (page - 1) * limit}


async def get_current_user(
    claims: dict = Depends(require_token_payload),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The active account named by the token's `sub` claim."""
    res = await db.execute(select(User).where(User.id == claims["sub"]))
    user = res.scalar_one_or_none()
    if not user:
        raise UnauthorizedError("User not found for access token.")
    ensure_active(user)
    return user


def require_roles(*roles: UserRole):
    """Dependency factory: 403 unless the caller has one of `roles`."""
    allowed = {r.value for r in roles}

    async def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDeniedError(
                f"Access denied. Required role: {' or '.join(sorted(allowed))}."
            )
        return user

    return _guard


require_customer = require_roles(UserRole.CUSTOMER)
require_admin = require_roles(UserRole.ADMIN)


async def get_current_vendor(
    user: User = Depends(require_roles(UserRole.VENDOR)),
    db: AsyncSession = Depends(get_db),
) -> Vendor:
    """Vendor profile of the authenticated vendor user."""
    res = await db.execute(select(Vendor).where(Vendor.user_id == user.id))
    vendor = res.scalar_one_or_none()
    if not vendor:
        raise NotFoundError("Vendor profile")
    return vendor


async def get_current_driver(
    user: User = Depends(require_roles(UserRole.DRIVER)),
    db: AsyncSession = Depends(get_db),
) -> Driver:
    """Driver profile of the authenticated driver user."""
    res = await db.execute(select(Driver).where(Driver.user_id == user.id))
    driver = res.scalar_one_or_none()
    if not driver:
        raise NotFoundError("Driver profile")
    if not driver.is_active:
        raise PermissionDeniedError("Driver account has been deactivated.")
    return driver
