"""
Auth endpoints — email/password accounts and JWT access tokens.

Flow:
  1) POST /auth/register -> pending account (+ vendor/driver profile) and a token
  2) An admin approves the account (/admin/users/{id}/approve)
  3) POST /auth/login    -> signed JWT once the account is active
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from db_models import User
from deps import get_current_user
from domain.enums import ActivityType
from domain.errors import ValidationError, PermissionDeniedError
from domain.responses import success_response
from domain.serializers import account_to_dict
from middleware.auth import issue_access_token
from middleware.rate_limit import rate_limit
from services import activity_service, auth_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    phone: str = Field(..., min_length=7, max_length=20)
    role: str | None = None
    # vendor registration
    business_name: str | None = Field(default=None, alias="businessName", max_length=200)
    business_address: str | None = Field(default=None, alias="businessAddress", max_length=255)
    # driver registration
    license_number: str | None = Field(default=None, alias="licenseNumber", max_length=50)
    vehicle_type: str | None = Field(default=None, alias="vehicleType", max_length=50)
    vehicle_plate: str | None = Field(default=None, alias="vehiclePlate", max_length=20)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=1, max_length=128)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(settings.register_rate_limit, settings.auth_rate_window_seconds)),
):
    user = await auth_service.register_user(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
        phone=request.phone,
        role=request.role,
        business_name=request.business_name,
        business_address=request.business_address,
        license_number=request.license_number,
        vehicle_type=request.vehicle_type,
        vehicle_plate=request.vehicle_plate,
    )
    await db.commit()
    return success_response(
        data={
            "message": "Registration successful. Your account is pending approval.",
            "user": account_to_dict(user),
            "token": issue_access_token(user_id=user.id, role=user.role),
        }
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    http_request: Request,
    db: AsyncSession = Depends(get_db),
    _rate=Depends(rate_limit(settings.login_rate_limit, settings.auth_rate_window_seconds)),
):
    try:
        user = await auth_service.authenticate(db, email=request.email, password=request.password)
    except (ValidationError, PermissionDeniedError) as e:
        account = await auth_service.get_user_by_email(db, (request.email or "").strip().lower())
        await activity_service.log_login_failure(db, user=account, reason=e.message, request=http_request)
        raise
    await db.commit()
    data = {
        "token": issue_access_token(user_id=user.id, role=user.role),
        "expiresInSeconds": settings.jwt_access_ttl_minutes * 60,
        "user": account_to_dict(user),
    }
    await activity_service.log_activity(
        db, user_id=user.id, type=ActivityType.LOGIN.value, request=http_request,
    )
    return success_response(data=data)


@router.get("/validate-token")
async def validate_token(user: User = Depends(get_current_user)):
    return success_response(data={"valid": True, "user": account_to_dict(user)})


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return success_response(data=account_to_dict(user))


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    http_request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(
        db,
        user=user,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    await db.commit()
    logger.info(f"Password changed for {user.email}")
    await activity_service.log_activity(
        db, user_id=user.id, type=ActivityType.PASSWORD_CHANGE.value, request=http_request,
    )
    return success_response(data={"message": "Password changed successfully"})
