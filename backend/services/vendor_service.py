"""
Vendor service — public directory, self-service profile, logo and stats.
"""
import logging
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Vendor, User, Order, Product, Driver
from domain.enums import (
    VerificationStatus, UserStatus, OrderStatus, ProductStatus, PaymentMethod, values,
)
from domain.errors import NotFoundError, ValidationError
from services.auth_service import ensure_unique_contact
from utils.uploads import delete_logo
from utils.validators import (
    normalize_email, normalize_phone, validate_time_of_day, validate_fuel_type,
    validate_coordinates,
)

logger = logging.getLogger(__name__)


async def list_public_vendors(
    db: AsyncSession,
    *,
    fuel_type: str | None = None,
    city: str | None = None,
    search: str | None = None,
) -> list[Vendor]:
    """Active, verified vendors whose owner account is active."""
    query = (
        select(Vendor)
        .join(User, Vendor.user_id == User.id)
        .where(
            Vendor.is_active.is_(True),
            Vendor.verification_status == VerificationStatus.VERIFIED.value,
            User.status == UserStatus.ACTIVE.value,
        )
    )
    if city:
        query = query.where(func.lower(Vendor.city) == city.strip().lower())
    if search:
        query = query.where(Vendor.business_name.ilike(f"%{search.strip()}%"))
    res = await db.execute(query.order_by(Vendor.average_rating.desc(), Vendor.business_name))
    vendors = list(res.scalars().all())
    if fuel_type:
        wanted = validate_fuel_type(fuel_type)
        vendors = [v for v in vendors if wanted in (v.fuel_types or [])]
    return vendors


async def get_vendor(db: AsyncSession, vendor_id: str) -> Vendor:
    res = await db.execute(select(Vendor).where(Vendor.id == vendor_id))
    vendor = res.scalar_one_or_none()
    if not vendor:
        raise NotFoundError("Vendor", vendor_id)
    return vendor


async def get_public_vendor(db: AsyncSession, vendor_id: str) -> Vendor:
    vendor = await get_vendor(db, vendor_id)
    if not vendor.is_active or not vendor.is_verified:
        raise NotFoundError("Vendor", vendor_id)
    return vendor


async def update_profile(
    db: AsyncSession,
    *,
    vendor: Vendor,
    business_name: str | None = None,
    street: str | None = None,
    city: str | None = None,
    state: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    opening_time: str | None = None,
    closing_time: str | None = None,
    operating_days: list[str] | None = None,
    payment_methods: list[str] | None = None,
    fuel_types: list[str] | None = None,
    minimum_order: float | None = None,
    delivery_fee: float | None = None,
    license_number: str | None = None,
    bank_name: str | None = None,
    account_number: str | None = None,
    account_name: str | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> Vendor:
    """Partial update of the vendor profile and the owner's contact details."""
    if business_name is not None:
        if not business_name.strip():
            raise ValidationError("Business name cannot be empty", field="businessName")
        vendor.business_name = business_name.strip()

    # Address fields merge into the existing address
    if street is not None:
        vendor.street = street
    if city is not None:
        vendor.city = city
    if state is not None:
        vendor.state = state
    if latitude is not None or longitude is not None:
        lat, lng = validate_coordinates(latitude, longitude)
        vendor.latitude, vendor.longitude = lat, lng

    if opening_time is not None:
        vendor.opening_time = validate_time_of_day(opening_time, "operatingHours.open")
    if closing_time is not None:
        vendor.closing_time = validate_time_of_day(closing_time, "operatingHours.close")
    if operating_days is not None:
        vendor.operating_days = list(operating_days)
    if payment_methods is not None:
        allowed = set(values(PaymentMethod))
        bad = [m for m in payment_methods if m not in allowed]
        if bad:
            raise ValidationError(f"Invalid payment method(s): {', '.join(bad)}", field="paymentMethods")
        vendor.payment_methods = list(payment_methods)
    if fuel_types is not None:
        vendor.fuel_types = [validate_fuel_type(t) for t in fuel_types]
    if minimum_order is not None:
        if minimum_order < 0:
            raise ValidationError("Minimum order cannot be negative", field="minimumOrder")
        vendor.minimum_order = minimum_order
    if delivery_fee is not None:
        if delivery_fee < 0:
            raise ValidationError("Delivery fee cannot be negative", field="deliveryFee")
        vendor.delivery_fee = delivery_fee
    if license_number is not None:
        vendor.license_number = license_number
    if bank_name is not None:
        vendor.bank_name = bank_name
    if account_number is not None:
        vendor.account_number = account_number
    if account_name is not None:
        vendor.account_name = account_name

    if email is not None or phone is not None:
        user = vendor.user
        new_email = normalize_email(email) if email is not None else None
        new_phone = normalize_phone(phone) if phone is not None else None
        await ensure_unique_contact(db, email=new_email, phone=new_phone, exclude_user_id=user.id)
        if new_email:
            user.email = new_email
        if new_phone:
            user.phone_number = new_phone
        user.updated_at = datetime.utcnow()

    vendor.updated_at = datetime.utcnow()
    await db.flush()
    return vendor


async def replace_logo(db: AsyncSession, *, vendor: Vendor, logo_url: str) -> Vendor:
    """Point the vendor at a freshly stored logo and remove the previous file."""
    old = vendor.logo_url
    vendor.logo_url = logo_url
    vendor.updated_at = datetime.utcnow()
    await db.flush()
    if old and old != logo_url:
        delete_logo(old)
    return vendor


async def vendor_stats(db: AsyncSession, vendor_id: str) -> dict:
    """Dashboard numbers for one vendor."""
    status_rows = await db.execute(
        select(Order.status, func.count(Order.id))
        .where(Order.vendor_id == vendor_id)
        .group_by(Order.status)
    )
    by_status = {status: count for status, count in status_rows.all()}

    revenue = (
        await db.execute(
            select(func.coalesce(func.sum(Order.total_amount), 0.0)).where(
                Order.vendor_id == vendor_id,
                Order.status == OrderStatus.DELIVERED.value,
            )
        )
    ).scalar_one()

    products = (
        await db.execute(
            select(func.count(Product.id)).where(
                Product.vendor_id == vendor_id,
                Product.status != ProductStatus.DISCONTINUED.value,
            )
        )
    ).scalar_one()

    drivers = (
        await db.execute(
            select(func.count(Driver.id)).where(
                Driver.vendor_id == vendor_id, Driver.is_active.is_(True)
            )
        )
    ).scalar_one()

    return {
        "totalOrders": sum(by_status.values()),
        "ordersByStatus": {s: by_status.get(s, 0) for s in values(OrderStatus)},
        "totalRevenue": float(revenue or 0.0),
        "activeProducts": products,
        "activeDrivers": drivers,
    }


# ── Admin ───────────────────────────────────────────────────────────

async def list_all_vendors(
    db: AsyncSession,
    *,
    verification_status: str | None = None,
    search: str | None = None,
) -> list[Vendor]:
    query = select(Vendor)
    if verification_status:
        query = query.where(Vendor.verification_status == verification_status)
    if search:
        query = query.where(Vendor.business_name.ilike(f"%{search.strip()}%"))
    res = await db.execute(query.order_by(Vendor.created_at.desc()))
    return list(res.scalars().all())


async def set_verification(db: AsyncSession, *, vendor_id: str, status: str) -> Vendor:
    """Verify or reject a vendor. Verifying also activates a pending owner."""
    try:
        status = VerificationStatus(status).value
    except ValueError:
        raise ValidationError("Invalid verification status", field="status")

    vendor = await get_vendor(db, vendor_id)
    vendor.verification_status = status
    vendor.updated_at = datetime.utcnow()
    if status == VerificationStatus.VERIFIED.value:
        vendor.is_active = True
        if vendor.user and vendor.user.status == UserStatus.PENDING.value:
            vendor.user.status = UserStatus.ACTIVE.value
    await db.flush()
    logger.info(f"Vendor {vendor.business_name} verification set to {status}")
    return vendor
