"""
Product service — vendor fuel listings and the public catalogue.

Stock rules:
    - unit follows the fuel type (kg for GAS, litre otherwise)
    - available_qty <= 0 flips status to out_of_stock, restocking flips it back
    - discontinued listings stay discontinued regardless of stock
"""
import logging
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db_models import Product, Vendor, Order, OrderItem
from domain.constants import UNIT_BY_FUEL_TYPE, CLOSED_ORDER_STATUSES
from domain.enums import ProductStatus, VerificationStatus
from domain.errors import NotFoundError, ValidationError, ConflictError
from utils.validators import validate_fuel_type

logger = logging.getLogger(__name__)


def sync_stock_status(product: Product) -> None:
    """Keep status consistent with available quantity."""
    if product.status == ProductStatus.DISCONTINUED.value:
        return
    if product.available_qty <= 0:
        product.available_qty = max(product.available_qty, 0)
        product.status = ProductStatus.OUT_OF_STOCK.value
    else:
        product.status = ProductStatus.AVAILABLE.value


def is_low_stock(product: Product) -> bool:
    return (
        product.status != ProductStatus.DISCONTINUED.value
        and product.available_qty <= settings.low_stock_threshold
    )


def low_stock_snapshot(products: list[Product]) -> list[dict]:
    """Plain copies of low-stock products, safe to use after commit/rollback."""
    return [
        {"id": p.id, "name": p.name, "availableQty": p.available_qty, "unit": p.unit}
        for p in products
        if is_low_stock(p)
    ]


def _check_bounds(min_qty: float, max_qty: float) -> None:
    if min_qty <= 0:
        raise ValidationError("Minimum order quantity must be greater than 0", field="minOrderQty")
    if max_qty < min_qty:
        raise ValidationError(
            "Maximum order quantity must be greater than or equal to minimum order quantity",
            field="maxOrderQty",
        )


async def create_product(
    db: AsyncSession,
    *,
    vendor: Vendor,
    type: str,
    name: str,
    price_per_unit: float,
    available_qty: float,
    min_order_qty: float = 1.0,
    max_order_qty: float = 1000.0,
    description: str | None = None,
    image_url: str | None = None,
    specifications: dict | None = None,
) -> Product:
    fuel_type = validate_fuel_type(type)
    if price_per_unit <= 0:
        raise ValidationError("Price per unit must be greater than 0", field="pricePerUnit")
    if available_qty < 0:
        raise ValidationError("Available quantity cannot be negative", field="availableQty")
    _check_bounds(min_order_qty, max_order_qty)

    product = Product(
        vendor_id=vendor.id,
        type=fuel_type,
        name=name.strip(),
        description=description,
        price_per_unit=price_per_unit,
        unit=UNIT_BY_FUEL_TYPE[fuel_type],
        available_qty=available_qty,
        min_order_qty=min_order_qty,
        max_order_qty=max_order_qty,
        status=ProductStatus.AVAILABLE.value,
        image_url=image_url,
        specifications=specifications or {},
        vendor=vendor,
    )
    sync_stock_status(product)
    db.add(product)

    if fuel_type not in (vendor.fuel_types or []):
        vendor.fuel_types = [*(vendor.fuel_types or []), fuel_type]
    await db.flush()
    logger.info(f"Vendor {vendor.id} listed {fuel_type} product '{product.name}'")
    return product


async def get_vendor_product(db: AsyncSession, *, vendor_id: str, product_id: str) -> Product:
    """A product that must belong to the vendor (404 otherwise)."""
    res = await db.execute(
        select(Product).where(Product.id == product_id, Product.vendor_id == vendor_id)
    )
    product = res.scalar_one_or_none()
    if not product:
        raise NotFoundError("Product", product_id)
    return product


async def list_vendor_products(
    db: AsyncSession,
    *,
    vendor_id: str,
    type: str | None = None,
    status: str | None = None,
    include_discontinued: bool = True,
) -> list[Product]:
    query = select(Product).where(Product.vendor_id == vendor_id)
    if type:
        query = query.where(Product.type == validate_fuel_type(type))
    if status:
        query = query.where(Product.status == status)
    elif not include_discontinued:
        query = query.where(Product.status != ProductStatus.DISCONTINUED.value)
    res = await db.execute(query.order_by(Product.created_at.desc()))
    return list(res.scalars().all())


async def update_product(
    db: AsyncSession,
    *,
    vendor_id: str,
    product_id: str,
    type: str | None = None,
    name: str | None = None,
    description: str | None = None,
    price_per_unit: float | None = None,
    available_qty: float | None = None,
    min_order_qty: float | None = None,
    max_order_qty: float | None = None,
    status: str | None = None,
    image_url: str | None = None,
    specifications: dict | None = None,
) -> Product:
    """Update a product's fields. Only provided fields are updated."""
    product = await get_vendor_product(db, vendor_id=vendor_id, product_id=product_id)

    if type is not None:
        product.type = validate_fuel_type(type)
        product.unit = UNIT_BY_FUEL_TYPE[product.type]
    if name is not None:
        product.name = name.strip()
    if description is not None:
        product.description = description
    if price_per_unit is not None:
        if price_per_unit <= 0:
            raise ValidationError("Price per unit must be greater than 0", field="pricePerUnit")
        product.price_per_unit = price_per_unit
    if min_order_qty is not None:
        product.min_order_qty = min_order_qty
    if max_order_qty is not None:
        product.max_order_qty = max_order_qty
    _check_bounds(product.min_order_qty, product.max_order_qty)
    if image_url is not None:
        product.image_url = image_url
    if specifications is not None:
        product.specifications = specifications
    if status is not None:
        try:
            product.status = ProductStatus(status).value
        except ValueError:
            raise ValidationError("Invalid product status", field="status")
    if available_qty is not None:
        if available_qty < 0:
            raise ValidationError("Available quantity cannot be negative", field="availableQty")
        product.available_qty = available_qty
    sync_stock_status(product)

    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def adjust_stock(
    db: AsyncSession,
    *,
    vendor_id: str,
    product_id: str,
    quantity: float,
    operation: str = "set",
) -> Product:
    """Set, add to, or subtract from available stock."""
    product = await get_vendor_product(db, vendor_id=vendor_id, product_id=product_id)
    if operation == "set":
        new_qty = quantity
    elif operation == "add":
        new_qty = product.available_qty + quantity
    elif operation == "subtract":
        new_qty = product.available_qty - quantity
    else:
        raise ValidationError("Operation must be one of: set, add, subtract", field="operation")
    if new_qty < 0:
        raise ValidationError("Stock cannot go below zero", field="quantity")

    product.available_qty = new_qty
    sync_stock_status(product)
    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def discontinue_product(db: AsyncSession, *, vendor_id: str, product_id: str) -> Product:
    """
    Retire a product. Refused while it sits on an order that is still open,
    since order items keep pointing at the listing.
    """
    product = await get_vendor_product(db, vendor_id=vendor_id, product_id=product_id)

    open_orders = await db.execute(
        select(func.count(func.distinct(Order.id)))
        .select_from(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .where(
            OrderItem.product_id == product_id,
            Order.status.not_in(CLOSED_ORDER_STATUSES),
        )
    )
    count = open_orders.scalar_one()
    if count:
        raise ConflictError(
            f"Cannot delete product '{product.name}': {count} open order(s) reference it"
        )

    product.status = ProductStatus.DISCONTINUED.value
    product.updated_at = datetime.utcnow()
    await db.flush()
    return product


async def list_catalogue(
    db: AsyncSession,
    *,
    type: str | None = None,
    vendor_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Product], int]:
    """Available products of active, verified vendors."""
    filters = [
        Product.status == ProductStatus.AVAILABLE.value,
        Vendor.is_active.is_(True),
        Vendor.verification_status == VerificationStatus.VERIFIED.value,
    ]
    if type:
        filters.append(Product.type == validate_fuel_type(type))
    if vendor_id:
        filters.append(Product.vendor_id == vendor_id)

    base = select(Product).join(Vendor, Product.vendor_id == Vendor.id).where(*filters)
    res = await db.execute(base.order_by(Product.price_per_unit.asc()).limit(limit).offset(offset))
    total = (
        await db.execute(
            select(func.count(Product.id)).join(Vendor, Product.vendor_id == Vendor.id).where(*filters)
        )
    ).scalar_one()
    return list(res.scalars().all()), total
