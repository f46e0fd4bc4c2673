"""
Vendor self-service endpoints — profile, logo, fuel listings and stats.

Every route acts on the authenticated vendor's own profile.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import Vendor
from deps import get_current_vendor
from domain.responses import success_response
from domain.serializers import vendor_profile, product_to_dict
from services import vendor_service, product_service, order_service
from utils.uploads import save_logo, delete_logo

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/vendor", tags=["vendor"])


class AddressUpdate(BaseModel):
    street: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    coordinates: dict[str, float] | None = None


class OperatingHoursUpdate(BaseModel):
    open: str | None = None
    close: str | None = None
    days: list[str] | None = None


class BankInfoUpdate(BaseModel):
    bank_name: str | None = Field(default=None, alias="bankName", max_length=100)
    account_number: str | None = Field(default=None, alias="accountNumber", max_length=20)
    account_name: str | None = Field(default=None, alias="accountName", max_length=200)


class ProfileUpdateRequest(BaseModel):
    business_name: str | None = Field(default=None, alias="businessName", max_length=200)
    address: AddressUpdate | None = None
    operating_hours: OperatingHoursUpdate | None = Field(default=None, alias="operatingHours")
    payment_methods: list[str] | None = Field(default=None, alias="paymentMethods")
    fuel_types: list[str] | None = Field(default=None, alias="fuelTypes")
    minimum_order: float | None = Field(default=None, alias="minimumOrder")
    delivery_fee: float | None = Field(default=None, alias="deliveryFee")
    license_number: str | None = Field(default=None, alias="licenseNumber", max_length=100)
    bank_info: BankInfoUpdate | None = Field(default=None, alias="bankInfo")
    email: str | None = None
    phone: str | None = None


class ProductCreateRequest(BaseModel):
    type: str
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    price_per_unit: float = Field(..., alias="pricePerUnit")
    available_qty: float = Field(0, alias="availableQty")
    min_order_qty: float = Field(1, alias="minOrderQty")
    max_order_qty: float = Field(1000, alias="maxOrderQty")
    image_url: str | None = Field(default=None, alias="imageUrl")
    specifications: dict[str, Any] | None = None


class ProductUpdateRequest(BaseModel):
    type: str | None = None
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    price_per_unit: float | None = Field(default=None, alias="pricePerUnit")
    available_qty: float | None = Field(default=None, alias="availableQty")
    min_order_qty: float | None = Field(default=None, alias="minOrderQty")
    max_order_qty: float | None = Field(default=None, alias="maxOrderQty")
    status: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    specifications: dict[str, Any] | None = None


class StockUpdateRequest(BaseModel):
    quantity: float = Field(..., ge=0)
    operation: str = "set"


async def _alert_if_low(db: AsyncSession, vendor: Vendor, product) -> None:
    """Call after commit with products whose fields are already loaded."""
    low = product_service.low_stock_snapshot([product])
    if low:
        await order_service.publish_low_stock(db, vendor.user_id, low)


# ── Profile ─────────────────────────────────────────────────────────

@router.get("/profile")
async def get_profile(vendor: Vendor = Depends(get_current_vendor)):
    return success_response(data=vendor_profile(vendor))


@router.put("/profile")
async def update_profile(
    request: ProfileUpdateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    address = request.address or AddressUpdate()
    hours = request.operating_hours or OperatingHoursUpdate()
    bank = request.bank_info or BankInfoUpdate()
    coords = address.coordinates or {}

    vendor = await vendor_service.update_profile(
        db,
        vendor=vendor,
        business_name=request.business_name,
        street=address.street,
        city=address.city,
        state=address.state,
        latitude=coords.get("lat"),
        longitude=coords.get("lng"),
        opening_time=hours.open,
        closing_time=hours.close,
        operating_days=hours.days,
        payment_methods=request.payment_methods,
        fuel_types=request.fuel_types,
        minimum_order=request.minimum_order,
        delivery_fee=request.delivery_fee,
        license_number=request.license_number,
        bank_name=bank.bank_name,
        account_number=bank.account_number,
        account_name=bank.account_name,
        email=request.email,
        phone=request.phone,
    )
    await db.commit()
    return success_response(data=vendor_profile(vendor))


@router.post("/logo")
async def upload_logo(
    logo: UploadFile = File(...),
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    logo_url = await save_logo(logo)
    try:
        await vendor_service.replace_logo(db, vendor=vendor, logo_url=logo_url)
        await db.commit()
    except Exception:
        delete_logo(logo_url)
        raise
    return success_response(data={"message": "Logo uploaded successfully", "logoUrl": logo_url})


@router.get("/stats")
async def get_stats(
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    stats = await vendor_service.vendor_stats(db, vendor.id)
    stats["averageRating"] = vendor.average_rating
    stats["totalRatings"] = vendor.total_ratings
    return success_response(data=stats)


# ── Products ────────────────────────────────────────────────────────

@router.get("/products")
async def list_products(
    type: str | None = None,
    status: str | None = None,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    products = await product_service.list_vendor_products(db, vendor_id=vendor.id, type=type, status=status)
    return success_response(data=[product_to_dict(p) for p in products])


@router.post("/products", status_code=status.HTTP_201_CREATED)
async def create_product(
    request: ProductCreateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    product = await product_service.create_product(
        db,
        vendor=vendor,
        type=request.type,
        name=request.name,
        description=request.description,
        price_per_unit=request.price_per_unit,
        available_qty=request.available_qty,
        min_order_qty=request.min_order_qty,
        max_order_qty=request.max_order_qty,
        image_url=request.image_url,
        specifications=request.specifications,
    )
    await db.commit()
    data = product_to_dict(product)
    await _alert_if_low(db, vendor, product)
    return success_response(data=data)


@router.get("/products/{product_id}")
async def get_product(
    product_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    product = await product_service.get_vendor_product(db, vendor_id=vendor.id, product_id=product_id)
    return success_response(data=product_to_dict(product))


@router.put("/products/{product_id}")
async def update_product(
    product_id: str,
    request: ProductUpdateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    product = await product_service.update_product(
        db,
        vendor_id=vendor.id,
        product_id=product_id,
        type=request.type,
        name=request.name,
        description=request.description,
        price_per_unit=request.price_per_unit,
        available_qty=request.available_qty,
        min_order_qty=request.min_order_qty,
        max_order_qty=request.max_order_qty,
        status=request.status,
        image_url=request.image_url,
        specifications=request.specifications,
    )
    await db.commit()
    data = product_to_dict(product)
    await _alert_if_low(db, vendor, product)
    return success_response(data=data)


@router.patch("/products/{product_id}/stock")
async def update_stock(
    product_id: str,
    request: StockUpdateRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    product = await product_service.adjust_stock(
        db,
        vendor_id=vendor.id,
        product_id=product_id,
        quantity=request.quantity,
        operation=request.operation,
    )
    await db.commit()
    data = product_to_dict(product)
    await _alert_if_low(db, vendor, product)
    return success_response(data=data)


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: str,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    product = await product_service.discontinue_product(db, vendor_id=vendor.id, product_id=product_id)
    await db.commit()
    logger.info(f"Vendor {vendor.id} discontinued product {product.id}")
    return success_response(data={"message": "Product deleted successfully", "id": product.id})
