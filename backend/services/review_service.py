"""
Review service — customer ratings and rating aggregation.

A customer may review each delivered order once per target (vendor,
driver). Every change recomputes the target's average over active reviews.
"""
import logging
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Review, Order, Vendor, Driver, User
from domain.enums import OrderStatus, ReviewType, ReviewStatus
from domain.errors import NotFoundError, ValidationError, ConflictError, PermissionDeniedError

logger = logging.getLogger(__name__)


async def recalculate_vendor_rating(db: AsyncSession, vendor_id: str) -> tuple[float, int]:
    res = await db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.vendor_id == vendor_id,
            Review.type == ReviewType.VENDOR.value,
            Review.status == ReviewStatus.ACTIVE.value,
        )
    )
    avg, count = res.one()
    vendor = (await db.execute(select(Vendor).where(Vendor.id == vendor_id))).scalar_one()
    vendor.average_rating = round(float(avg or 0.0), 2)
    vendor.total_ratings = count
    await db.flush()
    return vendor.average_rating, count


async def recalculate_driver_rating(db: AsyncSession, driver_id: str) -> tuple[float, int]:
    res = await db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.driver_id == driver_id,
            Review.type == ReviewType.DRIVER.value,
            Review.status == ReviewStatus.ACTIVE.value,
        )
    )
    avg, count = res.one()
    driver = (await db.execute(select(Driver).where(Driver.id == driver_id))).scalar_one()
    driver.rating = round(float(avg or 0.0), 2)
    driver.total_ratings = count
    await db.flush()
    return driver.rating, count


async def _recalculate(db: AsyncSession, review: Review) -> None:
    if review.type == ReviewType.DRIVER.value and review.driver_id:
        await recalculate_driver_rating(db, review.driver_id)
    else:
        await recalculate_vendor_rating(db, review.vendor_id)


async def create_review(
    db: AsyncSession,
    *,
    reviewer: User,
    order_id: str,
    rating: int,
    comment: str | None = None,
    type: str = ReviewType.VENDOR.value,
) -> Review:
    try:
        type = ReviewType(type).value
    except ValueError:
        raise ValidationError("Review type must be vendor or driver", field="type")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5", field="rating")
    if comment and len(comment) > 500:
        raise ValidationError("Comment cannot exceed 500 characters", field="comment")

    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalar_one_or_none()
    if not order or order.user_id != reviewer.id:
        raise NotFoundError("Order", order_id)
    if order.status != OrderStatus.DELIVERED.value:
        raise ValidationError("Only delivered orders can be reviewed")
    if type == ReviewType.DRIVER.value and not order.driver_id:
        raise ValidationError("This order had no driver to review")

    existing = await db.execute(
        select(Review.id).where(
            Review.order_id == order_id,
            Review.reviewer_id == reviewer.id,
            Review.type == type,
        )
    )
    if existing.first():
        raise ConflictError(f"You have already reviewed this order's {type}")

    review = Review(
        order_id=order.id,
        reviewer_id=reviewer.id,
        vendor_id=order.vendor_id,
        driver_id=order.driver_id if type == ReviewType.DRIVER.value else None,
        type=type,
        rating=rating,
        comment=comment,
        status=ReviewStatus.ACTIVE.value,
        reviewer=reviewer,
    )
    db.add(review)
    await db.flush()
    await _recalculate(db, review)
    logger.info(f"Review {review.id} ({type}, {rating}★) for order {order.order_number}")
    return review


async def list_vendor_reviews(
    db: AsyncSession, *, vendor_id: str, limit: int = 10, offset: int = 0,
) -> tuple[list[Review], int]:
    filters = [
        Review.vendor_id == vendor_id,
        Review.type == ReviewType.VENDOR.value,
        Review.status == ReviewStatus.ACTIVE.value,
    ]
    res = await db.execute(
        select(Review).where(*filters).order_by(Review.created_at.desc()).limit(limit).offset(offset)
    )
    total = (await db.execute(select(func.count(Review.id)).where(*filters))).scalar_one()
    return list(res.scalars().all()), total


async def get_review(db: AsyncSession, review_id: str) -> Review:
    res = await db.execute(select(Review).where(Review.id == review_id))
    review = res.scalar_one_or_none()
    if not review:
        raise NotFoundError("Review", review_id)
    return review


async def respond(db: AsyncSession, *, vendor: Vendor, review_id: str, response: str) -> Review:
    review = await get_review(db, review_id)
    if review.vendor_id != vendor.id or review.type != ReviewType.VENDOR.value:
        raise PermissionDeniedError("You can only respond to reviews of your business")
    if not response or not response.strip():
        raise ValidationError("Response cannot be empty", field="response")
    if len(response) > 500:
        raise ValidationError("Response cannot exceed 500 characters", field="response")
    review.vendor_response = response.strip()
    review.responded_at = datetime.utcnow()
    await db.flush()
    return review


async def moderate(db: AsyncSession, *, review_id: str, status: str) -> Review:
    try:
        status = ReviewStatus(status).value
    except ValueError:
        raise ValidationError("Invalid review status", field="status")
    review = await get_review(db, review_id)
    review.status = status
    review.updated_at = datetime.utcnow()
    await db.flush()
    await _recalculate(db, review)
    return review
