from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from models import Category, Product, User
from dependencies.rbac import require_permission
from utils.errors import CategoryNotFound, CategoryHasProducts, DuplicateSlug, ValidationError
from .schemas import CategoryCreate, CategoryUpdate, CategoryResponse
from typing import List, Optional
import logging
import re
import uuid

logger = logging.getLogger(__name__)


def generate_slug(name: str) -> str:
    """
    URL slug from a category name: "Eco  Bags!!" -> "eco-bags".
    Applying it to its own output returns the same slug.
    """
    slug = name.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug, flags=re.ASCII)
    return re.sub(r"^-+|-+$", "", slug)


class CategoryHelpers:
    """Category management; writes are restricted to admins"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, category_id: uuid.UUID) -> Optional[Category]:
        result = await self.db.execute(select(Category).where(Category.id == category_id))
        return result.scalar_one_or_none()

    async def _slug_taken(self, slug: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
        query = select(Category.id).where(Category.slug == slug)
        if exclude_id is not None:
            query = query.where(Category.id != exclude_id)
        result = await self.db.execute(query)
        return result.first() is not None

    async def count_products(self, category_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Product.id)).where(Product.category_id == category_id)
        )
        return result.scalar() or 0

    async def list_categories(self) -> List[CategoryResponse]:
        result = await self.db.execute(select(Category).order_by(Category.name))
        return [CategoryResponse.model_validate(category) for category in result.scalars().all()]

    async def get_category(self, category_id: uuid.UUID) -> Optional[CategoryResponse]:
        category = await self._get(category_id)
        return CategoryResponse.model_validate(category) if category else None

    async def get_category_by_slug(self, slug: str) -> Optional[CategoryResponse]:
        result = await self.db.execute(select(Category).where(Category.slug == slug))
        category = result.scalar_one_or_none()
        return CategoryResponse.model_validate(category) if category else None

    async def create_category(self, user: Optional[User], category_data: CategoryCreate) -> CategoryResponse:
        require_permission(user, "categories", "write")

        slug = generate_slug(category_data.slug or category_data.name)
        if not slug:
            raise ValidationError("Category slug cannot be empty", field="slug")
        if await self._slug_taken(slug):
            raise DuplicateSlug(slug)

        category = Category(
            name=category_data.name,
            slug=slug,
            description=category_data.description
        )
        self.db.add(category)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateSlug(slug)
        await self.db.refresh(category)

        logger.info(f"Category {category.slug} created by {user.id}")
        return CategoryResponse.model_validate(category)

    async def update_category(
        self,
        user: Optional[User],
        category_id: uuid.UUID,
        update_data: CategoryUpdate
    ) -> CategoryResponse:
        require_permission(user, "categories", "write")

        category = await self._get(category_id)
        if not category:
            raise CategoryNotFound(category_id)

        changes = update_data.model_dump(exclude_unset=True)

        new_slug = None
        if changes.get("slug"):
            new_slug = generate_slug(changes["slug"])
        elif changes.get("name") and changes["name"] != category.name:
            # renaming without an explicit slug re-derives it
            new_slug = generate_slug(changes["name"])

        if new_slug is not None and new_slug != category.slug:
            if not new_slug:
                raise ValidationError("Category slug cannot be empty", field="slug")
            if await self._slug_taken(new_slug, exclude_id=category.id):
                raise DuplicateSlug(new_slug)
            category.slug = new_slug

        if changes.get("name"):
            category.name = changes["name"]
        if "description" in changes:
            category.description = changes["description"]

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateSlug(new_slug or category.slug)
        await self.db.refresh(category)

        logger.info(f"Category {category.id} updated by {user.id}")
        return CategoryResponse.model_validate(category)

    async def delete_category(self, user: Optional[User], category_id: uuid.UUID) -> bool:
        require_permission(user, "categories", "delete")

        category = await self._get(category_id)
        if not category:
            raise CategoryNotFound(category_id)

        product_count = await self.count_products(category_id)
        if product_count > 0:
            raise CategoryHasProducts(product_count)

        await self.db.delete(category)
        await self.db.commit()

        logger.info(f"Category {category.slug} deleted by {user.id}")
        return True
