"""
Driver endpoints — profile, availability and the delivery workflow.

    assigned → picked_up → in_transit → (complete) delivered

Location pings are stored on the driver and pushed to the customer and
the order room as `driver_location_updated`.
"""

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Driver
from deps import Pagination, pagination_params, get_current_driver
from domain.constants import order_room
from domain.enums import DriverStatus, PaymentRecordStatus, RealtimeEvent
from domain.errors import ValidationError, NotFoundError
from domain.responses import success_response, paginated_response
from domain.serializers import driver_to_dict, order_to_dict, iso
from services import driver_service, order_service, realtime_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/driver", tags=["driver"])

AVAILABILITY_CHOICES = {DriverStatus.AVAILABLE.value, DriverStatus.OFFLINE.value}


class AvailabilityRequest(BaseModel):
    status: str


class DeliveryStatusRequest(BaseModel):
    status: str


class LocationRequest(BaseModel):
    lat: float
    lng: float
    heading: float | None = Field(default=None, ge=0, le=360)
    speed: float | None = Field(default=None, ge=0)


@router.get("/profile")
async def get_profile(
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    data = driver_to_dict(driver)
    data["activeDeliveries"] = await driver_service.count_active_deliveries(db, driver.id)
    return success_response(data=data)


@router.patch("/availability")
async def set_availability(
    request: AvailabilityRequest,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    if request.status not in AVAILABILITY_CHOICES:
        raise ValidationError("Availability must be available or offline", field="status")
    driver = await driver_service.set_status(db, driver=driver, status=request.status)
    await db.commit()
    return success_response(data=driver_to_dict(driver))


@router.get("/deliveries")
async def list_deliveries(
    status: str | None = None,
    date_range: str | None = Query(None, alias="dateRange"),
    page: Pagination = Depends(pagination_params),
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    orders, total = await order_service.list_orders(
        db,
        driver_id=driver.id,
        status=status,
        date_range=date_range,
        limit=page["limit"],
        offset=page["offset"],
    )
    return paginated_response(
        "deliveries",
        [order_to_dict(o) for o in orders],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )


@router.get("/deliveries/{order_id}")
async def get_delivery(
    order_id: str,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.load_order(db, order_id)
    if order.driver_id != driver.id:
        raise NotFoundError("Order", order_id)
    return success_response(data=order_to_dict(order))


@router.patch("/deliveries/{order_id}/status")
async def update_delivery_status(
    order_id: str,
    request: DeliveryStatusRequest,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.update_status_by_driver(
        db, driver=driver, order_id=order_id, status=request.status,
    )
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = order_to_dict(order)
    await order_service.publish_order_update(db, event)
    return success_response(data=data)


@router.post("/deliveries/{order_id}/location")
async def update_location(
    order_id: str,
    request: LocationRequest,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.driver_location_for_order(db, driver=driver, order_id=order_id)
    driver = await driver_service.update_location(db, driver=driver, lat=request.lat, lng=request.lng)
    customer_id = order.user_id
    payload = {
        "orderId": order.id,
        "driverId": driver.id,
        "location": {"lat": driver.current_latitude, "lng": driver.current_longitude},
        "heading": request.heading,
        "speed": request.speed,
        "updatedAt": iso(driver.location_updated_at),
    }
    await db.commit()

    await realtime_service.emit_to_user(customer_id, RealtimeEvent.DRIVER_LOCATION_UPDATED.value, payload)
    await realtime_service.emit_safely(order_room(order_id), RealtimeEvent.DRIVER_LOCATION_UPDATED.value, payload)
    return success_response(data=payload)


@router.post("/deliveries/{order_id}/complete")
async def complete_delivery(
    order_id: str,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    order, payment = await order_service.complete_delivery(db, driver=driver, order_id=order_id)
    amount = payment.amount if payment else None
    await db.commit()

    order = await order_service.load_order(db, order.id)
    event = order_service.order_event(order)
    data = {"message": "Delivery completed successfully", "order": order_to_dict(order)}
    await order_service.publish_order_update(
        db, event, customer_message=f"Your order #{event.order_number} has been delivered"
    )
    if amount is not None:
        await order_service.publish_payment_update(
            db, event, amount=amount, status=PaymentRecordStatus.SUCCESS.value
        )
    return success_response(data=data)
