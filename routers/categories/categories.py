import strawberry
from strawberry.types import Info
from typing import List, Optional
from routers.types import Category, CategoryInput, CategoryUpdateInput, to_category_type
from utils.errors import AppError, InternalError
from utils.response_helpers import parse_id, validate_input
from .schemas import CategoryCreate, CategoryUpdate
from .helpers import CategoryHelpers
import logging

logger = logging.getLogger(__name__)


# =================
# CATEGORY QUERIES (PUBLIC)
# =================

@strawberry.type
class CategoryQuery:
    @strawberry.field
    async def categories(self, info: Info) -> List[Category]:
        try:
            categories = await CategoryHelpers(info.context.db).list_categories()
            return [to_category_type(category) for category in categories]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting categories: {str(e)}")
            raise InternalError("Failed to get categories")

    @strawberry.field
    async def category(self, info: Info, id: strawberry.ID) -> Optional[Category]:
        try:
            category = await CategoryHelpers(info.context.db).get_category(parse_id(id, "category ID"))
            return to_category_type(category) if category else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting category {id}: {str(e)}")
            raise InternalError("Failed to get category")

    @strawberry.field
    async def category_by_slug(self, info: Info, slug: str) -> Optional[Category]:
        try:
            category = await CategoryHelpers(info.context.db).get_category_by_slug(slug)
            return to_category_type(category) if category else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting category by slug {slug}: {str(e)}")
            raise InternalError("Failed to get category")


# =================
# CATEGORY MUTATIONS (ADMIN)
# =================

@strawberry.type
class CategoryMutation:
    @strawberry.mutation
    async def create_category(self, info: Info, input: CategoryInput) -> Category:
        try:
            user = await info.context.get_user()
            category_data = validate_input(CategoryCreate, input)
            category = await CategoryHelpers(info.context.db).create_category(user, category_data)
            return to_category_type(category)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error creating category: {str(e)}")
            raise InternalError("Failed to create category")

    @strawberry.mutation
    async def update_category(self, info: Info, id: strawberry.ID, input: CategoryUpdateInput) -> Category:
        try:
            user = await info.context.get_user()
            update_data = validate_input(CategoryUpdate, input)
            category = await CategoryHelpers(info.context.db).update_category(
                user, parse_id(id, "category ID"), update_data
            )
            return to_category_type(category)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error updating category {id}: {str(e)}")
            raise InternalError("Failed to update category")

    @strawberry.mutation
    async def delete_category(self, info: Info, id: strawberry.ID) -> bool:
        try:
            user = await info.context.get_user()
            return await CategoryHelpers(info.context.db).delete_category(user, parse_id(id, "category ID"))
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error deleting category {id}: {str(e)}")
            raise InternalError("Failed to delete category")
