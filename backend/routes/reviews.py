"""
Review endpoints — customer ratings, vendor replies and admin moderation.
"""

import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from db_models import User, Vendor
from deps import Pagination, pagination_params, require_customer, require_admin, get_current_vendor
from domain.enums import ReviewType
from domain.responses import success_response, paginated_response
from domain.serializers import review_to_dict
from services import review_service, vendor_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reviews", tags=["reviews"])


class ReviewCreateRequest(BaseModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)
    type: str = ReviewType.VENDOR.value


class ReviewResponseRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=500)


class ReviewStatusRequest(BaseModel):
    status: str


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(
    request: ReviewCreateRequest,
    user: User = Depends(require_customer),
    db: AsyncSession = Depends(get_db),
):
    review = await review_service.create_review(
        db,
        reviewer=user,
        order_id=request.order_id,
        rating=request.rating,
        comment=request.comment,
        type=request.type,
    )
    await db.commit()
    return success_response(data=review_to_dict(review))


@router.get("/vendor/{vendor_id}")
async def list_vendor_reviews(
    vendor_id: str,
    page: Pagination = Depends(pagination_params),
    db: AsyncSession = Depends(get_db),
):
    vendor = await vendor_service.get_vendor(db, vendor_id)
    reviews, total = await review_service.list_vendor_reviews(
        db, vendor_id=vendor.id, limit=page["limit"], offset=page["offset"],
    )
    return paginated_response(
        "reviews",
        [review_to_dict(r) for r in reviews],
        page=page["page"],
        limit=page["limit"],
        total=total,
        extra={"averageRating": vendor.average_rating, "totalRatings": vendor.total_ratings},
    )


@router.post("/{review_id}/respond")
async def respond_to_review(
    review_id: str,
    request: ReviewResponseRequest,
    vendor: Vendor = Depends(get_current_vendor),
    db: AsyncSession = Depends(get_db),
):
    review = await review_service.respond(db, vendor=vendor, review_id=review_id, response=request.response)
    await db.commit()
    return success_response(data=review_to_dict(review))


@router.patch("/{review_id}/status")
async def moderate_review(
    review_id: str,
    request: ReviewStatusRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    review = await review_service.moderate(db, review_id=review_id, status=request.status)
    await db.commit()
    logger.info(f"Admin {admin.id} set review {review.id} to {review.status}")
    return success_response(data=review_to_dict(review))
