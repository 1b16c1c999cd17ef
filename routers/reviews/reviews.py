import strawberry
from strawberry.types import Info
from typing import List, Optional
from routers.types import Review, ReviewInput, ReviewUpdateInput, to_review_type
from utils.errors import AppError, InternalError
from utils.response_helpers import parse_id, parse_optional_id, validate_input
from .schemas import ReviewCreate, ReviewUpdate, ReviewFilters
from .helpers import ReviewHelpers
import logging

logger = logging.getLogger(__name__)


@strawberry.type
class ReviewQuery:
    @strawberry.field
    async def reviews(
        self,
        info: Info,
        product_id: Optional[strawberry.ID] = None,
        user_id: Optional[strawberry.ID] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[Review]:
        try:
            filters = validate_input(ReviewFilters, {
                "product_id": parse_optional_id(product_id, "product ID"),
                "user_id": parse_optional_id(user_id, "user ID"),
                "limit": limit,
                "offset": offset,
            })
            reviews = await ReviewHelpers(info.context.db).list_reviews(filters)
            return [to_review_type(review) for review in reviews]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting reviews: {str(e)}")
            raise InternalError("Failed to get reviews")

    @strawberry.field
    async def review(self, info: Info, id: strawberry.ID) -> Optional[Review]:
        try:
            review = await ReviewHelpers(info.context.db).get_review(parse_id(id, "review ID"))
            return to_review_type(review) if review else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting review {id}: {str(e)}")
            raise InternalError("Failed to get review")


@strawberry.type
class ReviewMutation:
    @strawberry.mutation(description="Review a product from one of the caller's delivered orders")
    async def create_review(self, info: Info, input: ReviewInput) -> Review:
        try:
            review_data = validate_input(ReviewCreate, input)
            review = await ReviewHelpers(info.context.db).create_review(info.context.user_id, review_data)
            return to_review_type(review)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error creating review: {str(e)}")
            raise InternalError("Failed to create review")

    @strawberry.mutation
    async def update_review(self, info: Info, id: strawberry.ID, input: ReviewUpdateInput) -> Review:
        try:
            update_data = validate_input(ReviewUpdate, input)
            review = await ReviewHelpers(info.context.db).update_review(
                info.context.user_id, parse_id(id, "review ID"), update_data
            )
            return to_review_type(review)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error updating review {id}: {str(e)}")
            raise InternalError("Failed to update review")

    @strawberry.mutation
    async def delete_review(self, info: Info, id: strawberry.ID) -> bool:
        try:
            return await ReviewHelpers(info.context.db).delete_review(
                info.context.user_id, parse_id(id, "review ID")
            )
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error deleting review {id}: {str(e)}")
            raise InternalError("Failed to delete review")
