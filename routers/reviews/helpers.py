from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from models import Review, Order, OrderItem, Product, OrderStatus
from utils.errors import (
    NotAuthenticated, InvalidRating, OrderNotFound, NotOrderOwner, OrderNotDelivered,
    ProductNotInOrder, DuplicateReview, ReviewNotFound, NotReviewOwner
)
from .schemas import ReviewCreate, ReviewUpdate, ReviewFilters, ReviewResponse
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple
import logging
import uuid

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRating(rating)
    return rating


def round_rating(average) -> float:
    """Round half up to one decimal place (4.25 -> 4.3)"""
    return float(Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewHelpers:
    """Reviews of delivered purchases and the product rating aggregate"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, review_id: uuid.UUID, refresh: bool = False) -> Optional[Review]:
        query = select(Review).where(Review.id == review_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def update_product_rating(self, product_id: uuid.UUID) -> Tuple[float, int]:
        """Recompute rating and review_count from every review of the product"""
        result = await self.db.execute(
            select(func.count(Review.id), func.avg(Review.rating)).where(Review.product_id == product_id)
        )
        review_count, average = result.one()

        if not review_count:
            rating, review_count = 0.0, 0
        else:
            rating = round_rating(average)

        product = await self.db.get(Product, product_id)
        if product is not None:
            product.rating = rating
            product.review_count = review_count
            await self.db.commit()
            logger.debug(f"Product {product_id} rating now {rating} from {review_count} review(s)")
        return rating, review_count

    async def list_reviews(self, filters: ReviewFilters) -> List[ReviewResponse]:
        query = select(Review)
        if filters.product_id is not None:
            query = query.where(Review.product_id == filters.product_id)
        if filters.user_id is not None:
            query = query.where(Review.user_id == filters.user_id)

        query = query.order_by(Review.created_at.desc()).offset(filters.offset).limit(filters.limit)
        result = await self.db.execute(query)
        return [ReviewResponse.model_validate(review) for review in result.scalars().all()]

    async def get_review(self, review_id: uuid.UUID) -> Optional[ReviewResponse]:
        review = await self._load(review_id)
        return ReviewResponse.model_validate(review) if review else None

    async def create_review(self, user_id: Optional[uuid.UUID], review_data: ReviewCreate) -> ReviewResponse:
        if user_id is None:
            raise NotAuthenticated()

        validate_rating(review_data.rating)

        result = await self.db.execute(select(Order).where(Order.id == review_data.order_id))
        order = result.scalar_one_or_none()
        if not order:
            raise OrderNotFound(review_data.order_id)

        if order.customer_id != user_id:
            raise NotOrderOwner()

        if order.status != OrderStatus.DELIVERED.value:
            raise OrderNotDelivered()

        in_order = await self.db.execute(
            select(OrderItem.id).where(
                OrderItem.order_id == order.id,
                OrderItem.product_id == review_data.product_id
            )
        )
        if in_order.first() is None:
            raise ProductNotInOrder()

        existing = await self.db.execute(
            select(Review.id).where(
                Review.product_id == review_data.product_id,
                Review.user_id == user_id,
                Review.order_id == order.id
            )
        )
        if existing.first() is not None:
            raise DuplicateReview()

        review = Review(
            product_id=review_data.product_id,
            user_id=user_id,
            order_id=order.id,
            rating=review_data.rating,
            comment=review_data.comment
        )
        self.db.add(review)
        try:
            await self.db.commit()
        except IntegrityError:
            # lost a race against an identical review
            await self.db.rollback()
            raise DuplicateReview()

        await self.update_product_rating(review_data.product_id)

        review = await self._load(review.id, refresh=True)
        logger.info(f"Review {review.id} ({review.rating}/5) added to product {review.product_id} by {user_id}")
        return ReviewResponse.model_validate(review)

    async def update_review(
        self,
        user_id: Optional[uuid.UUID],
        review_id: uuid.UUID,
        update_data: ReviewUpdate
    ) -> ReviewResponse:
        if user_id is None:
            raise NotAuthenticated()

        review = await self._load(review_id)
        if not review:
            raise ReviewNotFound(review_id)
        if review.user_id != user_id:
            raise NotReviewOwner("update")

        changes = update_data.model_dump(exclude_unset=True)
        if changes.get("rating") is not None:
            review.rating = validate_rating(changes["rating"])
        if "comment" in changes:
            review.comment = changes["comment"]

        await self.db.commit()
        await self.update_product_rating(review.product_id)

        review = await self._load(review_id, refresh=True)
        return ReviewResponse.model_validate(review)

    async def delete_review(self, user_id: Optional[uuid.UUID], review_id: uuid.UUID) -> bool:
        if user_id is None:
            raise NotAuthenticated()

        review = await self._load(review_id)
        if not review:
            raise ReviewNotFound(review_id)
        if review.user_id != user_id:
            raise NotReviewOwner("delete")

        product_id = review.product_id
        await self.db.delete(review)
        await self.db.commit()

        await self.update_product_rating(product_id)
        logger.info(f"Review {review_id} deleted by {user_id}")
        return True
