"""
Public vendor directory and fuel catalogue (no auth).
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from deps import Pagination, pagination_params
from domain.enums import ProductStatus
from domain.responses import success_response, paginated_response
from domain.serializers import vendor_public, product_to_dict
from services import vendor_service, product_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["vendors"])


@router.get("/vendors")
async def list_vendors(
    fuel_type: str | None = Query(None, alias="fuelType"),
    city: str | None = None,
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    vendors = await vendor_service.list_public_vendors(db, fuel_type=fuel_type, city=city, search=search)
    return success_response(data=[vendor_public(v) for v in vendors], meta={"total": len(vendors)})


@router.get("/vendors/{vendor_id}")
async def get_vendor(vendor_id: str, db: AsyncSession = Depends(get_db)):
    vendor = await vendor_service.get_public_vendor(db, vendor_id)
    return success_response(data=vendor_public(vendor))


@router.get("/vendors/{vendor_id}/products")
async def get_vendor_products(
    vendor_id: str,
    type: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.get_public_vendor(db, vendor_id)
    products = await product_service.list_vendor_products(
        db, vendor_id=vendor.id, type=type, status=ProductStatus.AVAILABLE.value,
    )
    return success_response(data=[product_to_dict(p) for p in products])


@router.get("/products")
async def list_products(
    type: str | None = None,
    vendor_id: str | None = Query(None, alias="vendorId"),
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    products, total = await product_service.list_catalogue(
        db, type=type, vendor_id=vendor_id, limit=page["limit"], offset=page["offset"],
    )
    return paginated_response(
        "products",
        [product_to_dict(p) for p in products],
        page=page["page"],
        limit=page["limit"],
        total=total,
    )
