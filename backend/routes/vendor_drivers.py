"""
Vendor fleet endpoints — create and manage the vendor's own drivers.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Vendor
from deps import get_current_vendor
from domain.responses import success_response
from domain.serializers import driver_to_dict
from services import driver_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/vendor/drivers", tags=["vendor-drivers"])


class DriverCreateRequest(BaseModel):
    first_name: str = Field(..., alias="firstName", min_length=1, max_length=100)
    last_name: str = Field(..., alias="lastName", min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=7, max_length=20)
    password: str = Field(..., min_length=1, max_length=128)
    license_number: str = Field(..., alias="licenseNumber", min_length=1, max_length=50)
    license_expiry: datetime | None = Field(default=None, alias="licenseExpiry")
    license_type: str | None = Field(default=None, alias="licenseType", max_length=50)
    vehicle_type: str = Field(..., alias="vehicleType", min_length=1, max_length=50)
    vehicle_plate: str = Field(..., alias="vehiclePlate", min_length=1, max_length=20)
    vehicle_model: str | None = Field(default=None, alias="vehicleModel", max_length=100)
    vehicle_color: str | None = Field(default=None, alias="vehicleColor", max_length=50)
    vehicle_capacity: float | None = Field(default=None, alias="vehicleCapacity", gt=0)
    emergency_contact_name: str | None = Field(default=None, alias="emergencyContactName", max_length=200)
    emergency_contact_phone: str | None = Field(default=None, alias="emergencyContactPhone", max_length=20)
    emergency_contact_relationship: str | None = Field(
        default=None, alias="emergencyContactRelationship", max_length=50
    )


class DriverUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, alias="firstName", max_length=100)
    last_name: str | None = Field(default=None, alias="lastName", max_length=100)
    email: str | None = None
    phone: str | None = None
    license_number: str | None = Field(default=None, alias="licenseNumber", max_length=50)
    license_expiry: datetime | None = Field(default=None, alias="licenseExpiry")
    license_type: str | None = Field(default=None, alias="licenseType", max_length=50)
    vehicle_type: str | None = Field(default=None, alias="vehicleType", max_length=50)
    vehicle_plate: str | None = Field(default=None, alias="vehiclePlate", max_length=20)
    vehicle_model: str | None = Field(default=None, alias="vehicleModel", max_length=100)
    vehicle_color: str | None = Field(default=None, alias="vehicleColor", max_length=50)
    vehicle_capacity: float | None = Field(default=None, alias="vehicleCapacity", gt=0)
    emergency_contact_name: str | None = Field(default=None, alias="emergencyContactName", max_length=200)
    emergency_contact_phone: str | None = Field(default=None, alias="emergencyContactPhone", max_length=20)
    emergency_contact_relationship: str | None = Field(
        default=None, alias="emergencyContactRelationship", max_length=50
    )


class DriverStatusRequest(BaseModel):
    status: str


@router.get("")
async def list_drivers(
    status: str | None = None,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    drivers = await driver_service.list_vendor_drivers(db, vendor_id=vendor.id, status=status)
    return success_response(data=[driver_to_dict(d) for d in drivers])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_driver(
    request: DriverCreateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    driver = await driver_service.create_vendor_driver(
        db,
        vendor=vendor,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        phone=request.phone,
        password=request.password,
        license_number=request.license_number,
        license_expiry=request.license_expiry,
        license_type=request.license_type,
        vehicle_type=request.vehicle_type,
        vehicle_plate=request.vehicle_plate,
        vehicle_model=request.vehicle_model,
        vehicle_color=request.vehicle_color,
        vehicle_capacity=request.vehicle_capacity,
        emergency_contact_name=request.emergency_contact_name,
        emergency_contact_phone=request.emergency_contact_phone,
        emergency_contact_relationship=request.emergency_contact_relationship,
    )
    await db.commit()
    return success_response(data=driver_to_dict(driver))


@router.get("/{driver_id}")
async def get_driver(
    driver_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    driver = await driver_service.get_vendor_driver(db, vendor_id=vendor.id, driver_id=driver_id)
    data = driver_to_dict(driver)
    data["activeDeliveries"] = await driver_service.count_active_deliveries(db, driver.id)
    return success_response(data=data)


@router.put("/{driver_id}")
async def update_driver(
    driver_id: str,
    request: DriverUpdateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    driver = await driver_service.get_vendor_driver(db, vendor_id=vendor.id, driver_id=driver_id)
    driver = await driver_service.update_driver(db, driver=driver, **request.model_dump(exclude_none=True))
    await db.commit()
    return success_response(data=driver_to_dict(driver))


@router.patch("/{driver_id}/status")
async def set_driver_status(
    driver_id: str,
    request: DriverStatusRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    driver = await driver_service.get_vendor_driver(db, vendor_id=vendor.id, driver_id=driver_id)
    driver = await driver_service.set_status(db, driver=driver, status=request.status)
    await db.commit()
    return success_response(data=driver_to_dict(driver))


@router.delete("/{driver_id}")
async def deactivate_driver(
    driver_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    driver = await driver_service.get_vendor_driver(db, vendor_id=vendor.id, driver_id=driver_id)
    await driver_service.deactivate_driver(db, driver=driver)
    await db.commit()
    return success_response(data={"message": "Driver deactivated successfully", "id": driver.id})
