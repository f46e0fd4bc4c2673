"""
Driver service — vendor fleet management and driver self-service.

Vendors create driver accounts directly (active immediately, no approval).
Deactivation is soft: the driver is suspended and its user blocked from
logging in, but delivery history stays intact.
"""
import logging
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Driver, Vendor, Order
from domain.constants import ACTIVE_DELIVERY_STATUSES
from domain.enums import DriverStatus, UserRole, UserStatus
from domain.errors import NotFoundError, ValidationError, ConflictError
from services.auth_service import create_user, ensure_unique_contact
from utils.validators import normalize_email, normalize_phone, validate_coordinates

logger = logging.getLogger(__name__)

# Statuses a vendor or driver may pick directly
SETTABLE_STATUSES = {
    DriverStatus.AVAILABLE.value,
    DriverStatus.BUSY.value,
    DriverStatus.OFFLINE.value,
}


async def list_vendor_drivers(
    db: AsyncSession,
    *,
    vendor_id: str,
    status: str | None = None,
    include_inactive: bool = False,
) -> list[Driver]:
    query = select(Driver).where(Driver.vendor_id == vendor_id)
    if not include_inactive:
        query = query.where(Driver.is_active.is_(True))
    if status:
        query = query.where(Driver.status == status)
    res = await db.execute(query.order_by(Driver.created_at.desc()))
    return list(res.scalars().all())


async def get_vendor_driver(db: AsyncSession, *, vendor_id: str, driver_id: str) -> Driver:
    res = await db.execute(
        select(Driver).where(Driver.id == driver_id, Driver.vendor_id == vendor_id)
    )
    driver = res.scalar_one_or_none()
    if not driver:
        raise NotFoundError("Driver", driver_id)
    return driver


async def get_driver(db: AsyncSession, driver_id: str) -> Driver:
    res = await db.execute(select(Driver).where(Driver.id == driver_id))
    driver = res.scalar_one_or_none()
    if not driver:
        raise NotFoundError("Driver", driver_id)
    return driver


async def create_vendor_driver(
    db: AsyncSession,
    *,
    vendor: Vendor,
    first_name: str,
    last_name: str,
    email: str,
    phone: str,
    password: str,
    license_number: str,
    vehicle_type: str,
    vehicle_plate: str,
    license_expiry: datetime | None = None,
    license_type: str | None = None,
    vehicle_model: str | None = None,
    vehicle_color: str | None = None,
    vehicle_capacity: float | None = None,
    emergency_contact_name: str | None = None,
    emergency_contact_phone: str | None = None,
    emergency_contact_relationship: str | None = None,
) -> Driver:
    """Create an active driver account attached to `vendor`."""
    driver = Driver(
        vendor_id=vendor.id,
        license_number=license_number,
        license_expiry=license_expiry,
        license_type=license_type,
        vehicle_type=vehicle_type,
        vehicle_plate=vehicle_plate.upper(),
        vehicle_model=vehicle_model,
        vehicle_color=vehicle_color,
        vehicle_capacity=vehicle_capacity,
        emergency_contact_name=emergency_contact_name,
        emergency_contact_phone=emergency_contact_phone,
        emergency_contact_relationship=emergency_contact_relationship,
        status=DriverStatus.AVAILABLE.value,
        is_active=True,
    )
    await create_user(
        db,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=password,
        phone=phone,
        role=UserRole.DRIVER.value,
        status=UserStatus.ACTIVE.value,
        driver=driver,
    )
    logger.info(f"Vendor {vendor.id} created driver {driver.id} ({driver.vehicle_plate})")
    return driver


_DRIVER_FIELDS = {
    "license_number", "license_expiry", "license_type", "vehicle_type", "vehicle_plate",
    "vehicle_model", "vehicle_color", "vehicle_capacity", "emergency_contact_name",
    "emergency_contact_phone", "emergency_contact_relationship",
}


async def update_driver(db: AsyncSession, *, driver: Driver, **fields) -> Driver:
    """Partial update. Name/email/phone go to the user row."""
    user = driver.user
    if fields.get("first_name"):
        user.first_name = fields["first_name"].strip()
    if fields.get("last_name"):
        user.last_name = fields["last_name"].strip()

    new_email = normalize_email(fields["email"]) if fields.get("email") else None
    new_phone = normalize_phone(fields["phone"]) if fields.get("phone") else None
    if new_email or new_phone:
        await ensure_unique_contact(db, email=new_email, phone=new_phone, exclude_user_id=user.id)
        if new_email:
            user.email = new_email
        if new_phone:
            user.phone_number = new_phone

    for name in _DRIVER_FIELDS:
        value = fields.get(name)
        if value is not None:
            setattr(driver, name, value.upper() if name == "vehicle_plate" else value)

    driver.updated_at = datetime.utcnow()
    user.updated_at = datetime.utcnow()
    await db.flush()
    return driver


async def count_active_deliveries(db: AsyncSession, driver_id: str) -> int:
    res = await db.execute(
        select(func.count(Order.id)).where(
            Order.driver_id == driver_id,
            Order.status.in_(ACTIVE_DELIVERY_STATUSES),
        )
    )
    return res.scalar_one()


async def set_status(db: AsyncSession, *, driver: Driver, status: str) -> Driver:
    """Switch between available, busy and offline."""
    if status not in SETTABLE_STATUSES:
        raise ValidationError(
            f"Invalid driver status. Allowed: {', '.join(sorted(SETTABLE_STATUSES))}", field="status"
        )
    if not driver.is_active:
        raise ConflictError("Driver account is deactivated")
    if status != DriverStatus.BUSY.value and await count_active_deliveries(db, driver.id):
        raise ConflictError("Driver has an active delivery and must stay busy until it is completed")

    driver.status = status
    driver.updated_at = datetime.utcnow()
    await db.flush()
    return driver


async def deactivate_driver(db: AsyncSession, *, driver: Driver) -> Driver:
    if await count_active_deliveries(db, driver.id):
        raise ConflictError("Cannot deactivate a driver with an active delivery")
    driver.is_active = False
    driver.status = DriverStatus.SUSPENDED.value
    driver.updated_at = datetime.utcnow()
    if driver.user:
        driver.user.status = UserStatus.SUSPENDED.value
    await db.flush()
    logger.info(f"Driver {driver.id} deactivated")
    return driver


async def update_location(db: AsyncSession, *, driver: Driver, lat: float, lng: float) -> Driver:
    lat, lng = validate_coordinates(lat, lng)
    driver.current_latitude = lat
    driver.current_longitude = lng
    driver.location_updated_at = datetime.utcnow()
    await db.flush()
    return driver
