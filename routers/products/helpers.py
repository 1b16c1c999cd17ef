from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func
from models import Product, Category, OrderItem, User, utcnow
from dependencies.rbac import require_permission
from utils.errors import (
    NotAuthorized, ProductNotFound, CategoryNotFound, DuplicateSku, ProductInUse, InternalError
)
from utils.pubsub import PubSub, SubscriptionEvent, topic
from .schemas import ProductCreate, ProductUpdate, ProductResponse, ProductDeletedResponse
from typing import List, Optional
import logging
import uuid

logger = logging.getLogger(__name__)


class ProductHelpers:
    """Product catalogue operations; vendors manage their own listings"""

    def __init__(self, db: AsyncSession, pubsub: Optional[PubSub] = None):
        self.db = db
        self.pubsub = pubsub

    async def _load(self, product_id: uuid.UUID, refresh: bool = False) -> Optional[Product]:
        query = select(Product).where(Product.id == product_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _category_exists(self, category_id: uuid.UUID) -> bool:
        result = await self.db.execute(select(Category.id).where(Category.id == category_id))
        return result.first() is not None

    async def _publish(self, event: SubscriptionEvent, vendor_id: uuid.UUID, payload):
        """Product events go to the global topic and the owning vendor's topic"""
        if self.pubsub is None:
            return
        await self.pubsub.publish(topic(event), payload)
        await self.pubsub.publish(topic(event, vendor_id), payload)

    async def list_products(
        self,
        category_id: Optional[uuid.UUID] = None,
        vendor_id: Optional[uuid.UUID] = None,
        featured: Optional[bool] = None,
        limit: Optional[int] = 10,
        offset: int = 0
    ) -> List[ProductResponse]:
        query = select(Product)
        if category_id is not None:
            query = query.where(Product.category_id == category_id)
        if vendor_id is not None:
            query = query.where(Product.vendor_id == vendor_id)
        if featured is not None:
            query = query.where(Product.is_featured == featured)

        query = query.order_by(Product.created_at.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return [ProductResponse.model_validate(product) for product in result.scalars().all()]

    async def get_product(self, product_id: uuid.UUID) -> Optional[ProductResponse]:
        product = await self._load(product_id)
        return ProductResponse.model_validate(product) if product else None

    async def related_products(self, product_id: uuid.UUID, limit: int = 4) -> List[ProductResponse]:
        """Other products from the same category"""
        product = await self._load(product_id)
        if not product:
            raise ProductNotFound(product_id)

        result = await self.db.execute(
            select(Product)
            .where(Product.category_id == product.category_id, Product.id != product.id)
            .order_by(Product.rating.desc(), Product.created_at.desc())
            .limit(limit)
        )
        return [ProductResponse.model_validate(related) for related in result.scalars().all()]

    async def create_product(self, user: Optional[User], product_data: ProductCreate) -> ProductResponse:
        require_permission(user, "products", "write")

        if not await self._category_exists(product_data.category_id):
            raise CategoryNotFound(product_data.category_id)

        existing = await self.db.execute(select(Product.id).where(Product.sku == product_data.sku))
        if existing.first():
            raise DuplicateSku(product_data.sku)

        product = Product(
            vendor_id=user.id,
            **product_data.model_dump(mode="json", exclude={"category_id"}),
            category_id=product_data.category_id
        )
        self.db.add(product)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateSku(product_data.sku)

        product = await self._load(product.id, refresh=True)
        response = ProductResponse.model_validate(product)

        logger.info(f"Product {product.sku} created by vendor {user.id}")
        await self._publish(SubscriptionEvent.PRODUCT_CREATED, user.id, response)
        return response

    async def update_product(
        self,
        user: Optional[User],
        product_id: uuid.UUID,
        update_data: ProductUpdate
    ) -> ProductResponse:
        require_permission(user, "products", "write")

        product = await self._load(product_id)
        if not product:
            raise ProductNotFound(product_id)
        if product.vendor_id != user.id:
            raise NotAuthorized("You can only update your own products")

        changes = update_data.model_dump(mode="json", exclude_unset=True)

        if changes.get("category_id") is not None:
            category_id = update_data.category_id
            if not await self._category_exists(category_id):
                raise CategoryNotFound(category_id)
            changes["category_id"] = category_id

        for field, value in changes.items():
            if value is None and field not in ("description", "original_price", "badge"):
                continue
            setattr(product, field, value)

        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error updating product {product_id}: {str(e)}")
            raise InternalError("Failed to update product")

        product = await self._load(product_id, refresh=True)
        response = ProductResponse.model_validate(product)

        logger.info(f"Product {product.sku} updated by vendor {user.id}")
        await self._publish(SubscriptionEvent.PRODUCT_UPDATED, user.id, response)
        return response

    async def delete_product(self, user: Optional[User], product_id: uuid.UUID) -> ProductDeletedResponse:
        require_permission(user, "products", "delete")

        product = await self._load(product_id)
        if not product:
            raise ProductNotFound(product_id)
        if product.vendor_id != user.id:
            raise NotAuthorized("You can only delete your own products")

        result = await self.db.execute(
            select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id)
        )
        order_item_count = result.scalar() or 0
        if order_item_count > 0:
            raise ProductInUse(order_item_count)

        deleted = ProductDeletedResponse(id=product.id, name=product.name, deleted_at=utcnow())
        await self.db.delete(product)
        await self.db.commit()

        logger.info(f"Product {product.sku} deleted by vendor {user.id}")
        await self._publish(SubscriptionEvent.PRODUCT_DELETED, user.id, deleted)
        return deleted


def product_event_topics(
    event: SubscriptionEvent,
    vendor_id: Optional[uuid.UUID] = None,
    caller_id: Optional[uuid.UUID] = None
) -> List[str]:
    """
    Topics for a product subscription: the requested vendor's channel,
    else the caller's own channel plus the global one, else just the global one
    """
    if vendor_id is not None:
        return [topic(event, vendor_id)]
    if caller_id is not None:
        return [topic(event, caller_id), topic(event)]
    return [topic(event)]
