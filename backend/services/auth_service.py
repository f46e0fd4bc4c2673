"""
Account service — registration, login and password management.

Registration creates the role profile in the same unit of work:
    vendor → Vendor row with Lagos defaults, PMS/DIESEL, 06:00–22:00 daily
    driver → Driver row, offline until approved

New accounts start `pending` and cannot log in until an admin approves them.
"""
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import User, Vendor, Driver
from domain.constants import (
    DEFAULT_VENDOR_CITY, DEFAULT_VENDOR_STATE, DEFAULT_VENDOR_COORDINATES,
    DEFAULT_VENDOR_FUEL_TYPES, DEFAULT_OPENING_TIME, DEFAULT_CLOSING_TIME,
    WEEK_DAYS, DEFAULT_PAYMENT_METHODS,
)
from domain.enums import UserRole, UserStatus, VerificationStatus, DriverStatus
from domain.errors import ValidationError, PermissionDeniedError
from middleware.auth import hash_password, verify_password
from utils.validators import normalize_email, normalize_phone, validate_password

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = {UserRole.CUSTOMER.value, UserRole.VENDOR.value, UserRole.DRIVER.value}


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    res = await db.execute(select(User).where(User.email == email))
    return res.scalar_one_or_none()


async def get_user_by_phone(db: AsyncSession, phone: str) -> User | None:
    res = await db.execute(select(User).where(User.phone_number == phone))
    return res.scalar_one_or_none()


async def ensure_unique_contact(
    db: AsyncSession,
    *,
    email: str | None = None,
    phone: str | None = None,
    exclude_user_id: str | None = None,
) -> None:
    """400 when another account already uses the email or phone number."""
    if email:
        other = await get_user_by_email(db, email)
        if other and other.id != exclude_user_id:
            raise ValidationError("User with this email already exists", field="email")
    if phone:
        other = await get_user_by_phone(db, phone)
        if other and other.id != exclude_user_id:
            raise ValidationError("User with this phone number already exists", field="phoneNumber")


async def create_user(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone: str,
    role: str,
    status: str = UserStatus.PENDING.value,
    vendor: Vendor | None = None,
    driver: Driver | None = None,
) -> User:
    """
    Validate, de-duplicate and insert a user (flush only).

    The role profile is attached before the first flush so both relationships
    are populated on the returned object.
    """
    email = normalize_email(email)
    phone = normalize_phone(phone)
    validate_password(password, settings.password_min_length)
    await ensure_unique_contact(db, email=email, phone=phone)

    user = User(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email,
        password_hash=hash_password(password),
        phone_number=phone,
        role=role,
        status=status,
        vendor=vendor,
        driver=driver,
    )
    db.add(user)
    await db.flush()
    return user


def build_default_vendor(business_name: str | None, street: str | None) -> Vendor:
    lat, lng = DEFAULT_VENDOR_COORDINATES
    return Vendor(
        business_name=business_name.strip() if business_name else "TBD",
        street=street,
        city=DEFAULT_VENDOR_CITY,
        state=DEFAULT_VENDOR_STATE,
        latitude=lat,
        longitude=lng,
        fuel_types=list(DEFAULT_VENDOR_FUEL_TYPES),
        opening_time=DEFAULT_OPENING_TIME,
        closing_time=DEFAULT_CLOSING_TIME,
        operating_days=list(WEEK_DAYS),
        payment_methods=list(DEFAULT_PAYMENT_METHODS),
        minimum_order=settings.default_minimum_order,
        delivery_fee=settings.default_delivery_fee,
        verification_status=VerificationStatus.PENDING.value,
        is_active=True,
        bank_name="TBD",
        account_number="TBD",
        account_name=business_name or "TBD",
    )


async def register_user(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone: str,
    role: str | None = None,
    business_name: str | None = None,
    business_address: str | None = None,
    license_number: str | None = None,
    vehicle_type: str | None = None,
    vehicle_plate: str | None = None,
) -> User:
    """Self-service registration. The caller commits."""
    role = (role or UserRole.CUSTOMER.value).strip().lower()
    if role not in SELF_REGISTER_ROLES:
        raise ValidationError("Invalid role for registration", field="role")

    if role == UserRole.VENDOR.value and (not business_name or not business_address):
        raise ValidationError(
            "Missing required fields for vendor registration",
            details={"required": ["businessName", "businessAddress"]},
        )
    if role == UserRole.DRIVER.value and (not license_number or not vehicle_type or not vehicle_plate):
        raise ValidationError(
            "Missing required fields for driver registration",
            details={"required": ["licenseNumber", "vehicleType", "vehiclePlate"]},
        )

    vendor = driver = None
    if role == UserRole.VENDOR.value:
        vendor = build_default_vendor(business_name, business_address)
    elif role == UserRole.DRIVER.value:
        driver = Driver(
            license_number=license_number,
            vehicle_type=vehicle_type,
            vehicle_plate=vehicle_plate.upper(),
            status=DriverStatus.OFFLINE.value,
            is_active=True,
        )

    user = await create_user(
        db,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=password,
        phone=phone,
        role=role,
        vendor=vendor,
        driver=driver,
    )

    logger.info(f"Registered {role} account {user.email} (pending approval)")
    return user


def ensure_active(user: User) -> None:
    """403 for any account that is not `active`. Shared by login and token auth."""
    if user.status == UserStatus.PENDING.value:
        raise PermissionDeniedError("Account pending approval")
    if user.status == UserStatus.REJECTED.value:
        raise PermissionDeniedError(
            "Account has been rejected",
            details={"reason": user.rejection_reason} if user.rejection_reason else None,
        )
    if user.status == UserStatus.SUSPENDED.value:
        raise PermissionDeniedError("Account has been suspended")


async def authenticate(db: AsyncSession, *, email: str, password: str) -> User:
    """Check credentials and account status; stamps last_login. The caller commits."""
    user = await get_user_by_email(db, (email or "").strip().lower())
    if not user or not verify_password(password, user.password_hash):
        raise ValidationError("Invalid credentials")

    ensure_active(user)
    user.last_login = datetime.utcnow()
    await db.flush()
    logger.info(f"Login: {user.email} ({user.role})")
    return user


async def change_password(db: AsyncSession, *, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect", field="currentPassword")
    validate_password(new_password, settings.password_min_length)
    if current_password == new_password:
        raise ValidationError("New password must be different from the current password", field="newPassword")
    user.password_hash = hash_password(new_password)
    user.updated_at = datetime.utcnow()
    await db.flush()
