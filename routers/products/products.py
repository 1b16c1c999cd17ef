import strawberry
from strawberry.types import Info
from typing import AsyncGenerator, List, Optional
from routers.types import (
    Product, ProductDeleted, ProductInput, ProductUpdateInput,
    to_product_type, to_product_deleted_type
)
from utils.errors import AppError, InternalError
from utils.pubsub import SubscriptionEvent
from utils.response_helpers import parse_id, parse_optional_id, validate_input
from .schemas import ProductCreate, ProductUpdate
from .helpers import ProductHelpers, product_event_topics
import logging

logger = logging.getLogger(__name__)


# =================
# PRODUCT QUERIES (PUBLIC)
# =================

@strawberry.type
class ProductQuery:
    @strawberry.field
    async def products(
        self,
        info: Info,
        category_id: Optional[strawberry.ID] = None,
        vendor_id: Optional[strawberry.ID] = None,
        featured: Optional[bool] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[Product]:
        """List products, newest first"""
        try:
            products = await ProductHelpers(info.context.db).list_products(
                category_id=parse_optional_id(category_id, "category ID"),
                vendor_id=parse_optional_id(vendor_id, "vendor ID"),
                featured=featured,
                limit=max(1, min(limit, 100)),
                offset=max(0, offset)
            )
            return [to_product_type(product) for product in products]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error listing products: {str(e)}")
            raise InternalError("Failed to list products")

    @strawberry.field
    async def product(self, info: Info, id: strawberry.ID) -> Optional[Product]:
        try:
            product = await ProductHelpers(info.context.db).get_product(parse_id(id, "product ID"))
            return to_product_type(product) if product else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting product {id}: {str(e)}")
            raise InternalError("Failed to get product")

    @strawberry.field
    async def related_products(self, info: Info, product_id: strawberry.ID, limit: int = 4) -> List[Product]:
        try:
            products = await ProductHelpers(info.context.db).related_products(
                parse_id(product_id, "product ID"),
                limit=max(1, min(limit, 20))
            )
            return [to_product_type(product) for product in products]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting related products for {product_id}: {str(e)}")
            raise InternalError("Failed to get related products")


# =================
# PRODUCT MUTATIONS (VENDOR)
# =================

@strawberry.type
class ProductMutation:
    @strawberry.mutation
    async def create_product(self, info: Info, input: ProductInput) -> Product:
        try:
            user = await info.context.get_user()
            product_data = validate_input(ProductCreate, input)
            helpers = ProductHelpers(info.context.db, info.context.pubsub)
            return to_product_type(await helpers.create_product(user, product_data))
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error creating product: {str(e)}")
            raise InternalError("Failed to create product")

    @strawberry.mutation
    async def update_product(self, info: Info, id: strawberry.ID, input: ProductUpdateInput) -> Product:
        try:
            user = await info.context.get_user()
            update_data = validate_input(ProductUpdate, input)
            helpers = ProductHelpers(info.context.db, info.context.pubsub)
            product = await helpers.update_product(user, parse_id(id, "product ID"), update_data)
            return to_product_type(product)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error updating product {id}: {str(e)}")
            raise InternalError("Failed to update product")

    @strawberry.mutation
    async def delete_product(self, info: Info, id: strawberry.ID) -> ProductDeleted:
        try:
            user = await info.context.get_user()
            helpers = ProductHelpers(info.context.db, info.context.pubsub)
            deleted = await helpers.delete_product(user, parse_id(id, "product ID"))
            return to_product_deleted_type(deleted)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error deleting product {id}: {str(e)}")
            raise InternalError("Failed to delete product")


# =================
# PRODUCT SUBSCRIPTIONS
# =================

@strawberry.type
class ProductSubscription:
    @strawberry.subscription
    async def product_created(
        self, info: Info, vendor_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[Product, None]:
        topics = product_event_topics(
            SubscriptionEvent.PRODUCT_CREATED,
            parse_optional_id(vendor_id, "vendor ID"),
            info.context.user_id
        )
        async with info.context.pubsub.subscribe(topics) as events:
            async for product in events:
                yield to_product_type(product)

    @strawberry.subscription
    async def product_updated(
        self, info: Info, vendor_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[Product, None]:
        topics = product_event_topics(
            SubscriptionEvent.PRODUCT_UPDATED,
            parse_optional_id(vendor_id, "vendor ID"),
            info.context.user_id
        )
        async with info.context.pubsub.subscribe(topics) as events:
            async for product in events:
                yield to_product_type(product)

    @strawberry.subscription
    async def product_deleted(
        self, info: Info, vendor_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[ProductDeleted, None]:
        topics = product_event_topics(
            SubscriptionEvent.PRODUCT_DELETED,
            parse_optional_id(vendor_id, "vendor ID"),
            info.context.user_id
        )
        async with info.context.pubsub.subscribe(topics) as events:
            async for deleted in events:
                yield to_product_deleted_type(deleted)
