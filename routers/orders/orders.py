import strawberry
from strawberry.types import Info
from typing import AsyncGenerator, List, Optional
from routers.types import (
    Order, OrderStatus, OrderStatusUpdate, CreateOrderInput,
    to_order_type, to_order_status_update_type
)
from utils.errors import AppError, NotAuthenticated, InternalError
from utils.response_helpers import parse_id, parse_optional_id, validate_input
from .schemas import OrderCreate, OrderFilters
from .helpers import OrderHelpers, order_created_topics, order_updated_topics, order_status_topics
import logging

logger = logging.getLogger(__name__)


# =================
# ORDER QUERIES
# =================

@strawberry.type
class OrderQuery:
    @strawberry.field
    async def orders(
        self,
        info: Info,
        vendor_id: Optional[strawberry.ID] = None,
        customer_id: Optional[strawberry.ID] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[Order]:
        """Orders filtered by vendor, customer and status, newest first"""
        try:
            if info.context.user_id is None:
                raise NotAuthenticated()
            filters = validate_input(OrderFilters, {
                "vendor_id": parse_optional_id(vendor_id, "vendor ID"),
                "customer_id": parse_optional_id(customer_id, "customer ID"),
                "status": status,
                "limit": limit,
                "offset": offset,
            })
            orders = await OrderHelpers(info.context.db, info.context.pubsub).list_orders(filters)
            return [to_order_type(order) for order in orders]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting orders: {str(e)}")
            raise InternalError("Failed to get orders")

    @strawberry.field
    async def order(self, info: Info, id: strawberry.ID) -> Optional[Order]:
        try:
            user = await info.context.get_user()
            helpers = OrderHelpers(info.context.db, info.context.pubsub)
            order = await helpers.get_order(parse_id(id, "order ID"), user)
            return to_order_type(order) if order else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting order {id}: {str(e)}")
            raise InternalError("Failed to get order")

    @strawberry.field(description="Orders placed by the authenticated user")
    async def my_orders(
        self,
        info: Info,
        status: Optional[OrderStatus] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[Order]:
        try:
            helpers = OrderHelpers(info.context.db, info.context.pubsub)
            orders = await helpers.my_orders(
                info.context.user_id,
                status=status,
                limit=max(1, min(limit, 100)),
                offset=max(0, offset)
            )
            return [to_order_type(order) for order in orders]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting my orders: {str(e)}")
            raise InternalError("Failed to get orders")


# =================
# ORDER MUTATIONS
# =================

@strawberry.type
class OrderMutation:
    @strawberry.mutation(description="Place an order; stock is reserved after the order is saved")
    async def create_order(self, info: Info, input: CreateOrderInput) -> Order:
        try:
            order_data = validate_input(OrderCreate, input)
            helpers = OrderHelpers(info.context.db, info.context.pubsub)
            order = await helpers.create_order(info.context.user_id, order_data)
            return to_order_type(order)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error creating order: {str(e)}")
            raise InternalError("Failed to create order")

    @strawberry.mutation
    async def update_order_status(self, info: Info, id: strawberry.ID, status: OrderStatus) -> Order:
        try:
            helpers = OrderHelpers(info.context.db, info.context.pubsub)
            order = await helpers.update_order_status(
                parse_id(id, "order ID"), status, info.context.user_id
            )
            return to_order_type(order)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error updating order {id} status: {str(e)}")
            raise InternalError("Failed to update order status")


# =================
# ORDER SUBSCRIPTIONS
# =================

@strawberry.type
class OrderSubscription:
    @strawberry.subscription
    async def order_created(
        self,
        info: Info,
        vendor_id: Optional[strawberry.ID] = None,
        customer_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[Order, None]:
        topics = order_created_topics(
            vendor_id=parse_optional_id(vendor_id, "vendor ID"),
            customer_id=parse_optional_id(customer_id, "customer ID"),
            caller_id=info.context.user_id
        )
        async with info.context.pubsub.subscribe(topics) as events:
            async for order in events:
                yield to_order_type(order)

    @strawberry.subscription
    async def order_updated(
        self, info: Info, order_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[Order, None]:
        topics = order_updated_topics(parse_optional_id(order_id, "order ID"))
        async with info.context.pubsub.subscribe(topics) as events:
            async for order in events:
                yield to_order_type(order)

    @strawberry.subscription
    async def order_status_changed(
        self,
        info: Info,
        vendor_id: Optional[strawberry.ID] = None,
        customer_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[OrderStatusUpdate, None]:
        topics = order_status_topics(
            vendor_id=parse_optional_id(vendor_id, "vendor ID"),
            customer_id=parse_optional_id(customer_id, "customer ID"),
            caller_id=info.context.user_id
        )
        async with info.context.pubsub.subscribe(topics) as events:
            async for change in events:
                yield to_order_status_update_type(change)
