from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from config import LOW_STOCK_THRESHOLD
from models import Order, OrderItem, Product, OrderStatus, User, utcnow
from dependencies.rbac import is_admin
from utils.errors import (
    NotAuthenticated, NotAuthorized, ProductNotFound, OrderNotFound,
    InsufficientStock, StockUpdateFailed, InternalError, ValidationError
)
from utils.pubsub import PubSub, SubscriptionEvent, topic
from utils.notifications import (
    send_notification,
    get_order_created_notification,
    get_order_status_notification,
    get_low_stock_notification,
)
from .schemas import OrderCreate, OrderFilters, OrderResponse, OrderStatusChange
from datetime import datetime
from typing import Dict, List, Optional
import logging
import secrets
import string
import time
import uuid

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 10
BASE36_ALPHABET = string.digits + string.ascii_uppercase


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def random_order_number(now: Optional[datetime] = None) -> str:
    """ORD-YYYYMMDD-XXXXXX with six random upper-case base-36 characters"""
    now = now or utcnow()
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
    return f"ORD-{now.strftime('%Y%m%d')}-{suffix}"


def fallback_order_number(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"ORD-{now.strftime('%Y%m%d')}-{to_base36(int(time.time() * 1000))}"


def is_suspicious_transition(old_status: OrderStatus, new_status: OrderStatus) -> bool:
    """Leaving a final state, or going back to PENDING"""
    if old_status == new_status:
        return False
    if old_status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        return True
    return new_status == OrderStatus.PENDING


def order_vendor_ids(order) -> List[uuid.UUID]:
    """Distinct vendors of an order's products, in item order"""
    vendor_ids = []
    for item in order.items:
        vendor_id = item.product.vendor.id
        if vendor_id not in vendor_ids:
            vendor_ids.append(vendor_id)
    return vendor_ids


# Subscription topic selection

def order_created_topics(
    vendor_id: Optional[uuid.UUID] = None,
    customer_id: Optional[uuid.UUID] = None,
    caller_id: Optional[uuid.UUID] = None
) -> List[str]:
    topics = [topic(SubscriptionEvent.ORDER_CREATED)]
    for entity_id in (vendor_id, caller_id, customer_id):
        if entity_id is not None:
            name = topic(SubscriptionEvent.ORDER_CREATED, entity_id)
            if name not in topics:
                topics.append(name)
    return topics


def order_updated_topics(order_id: Optional[uuid.UUID] = None) -> List[str]:
    if order_id is not None:
        return [topic(SubscriptionEvent.ORDER_UPDATED, order_id)]
    return [topic(SubscriptionEvent.ORDER_UPDATED)]


def order_status_topics(
    vendor_id: Optional[uuid.UUID] = None,
    customer_id: Optional[uuid.UUID] = None,
    caller_id: Optional[uuid.UUID] = None
) -> List[str]:
    topics = []
    for entity_id in (vendor_id, caller_id, customer_id):
        if entity_id is not None:
            name = topic(SubscriptionEvent.ORDER_STATUS_CHANGED, entity_id)
            if name not in topics:
                topics.append(name)
    if not topics:
        raise ValidationError("Vendor ID or Customer ID required")
    return topics


class OrderHelpers:
    """Order lifecycle: checkout with stock decrement, status changes and their fan-out"""

    def __init__(self, db: AsyncSession, pubsub: PubSub):
        self.db = db
        self.pubsub = pubsub

    async def _load_order(self, order_id: uuid.UUID, refresh: bool = False) -> Optional[Order]:
        query = select(Order).where(Order.id == order_id)
        if refresh:
            query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def generate_order_number(self) -> str:
        """Pick an unused order number, retrying on collision"""
        for attempt in range(ORDER_NUMBER_ATTEMPTS):
            order_number = random_order_number()
            result = await self.db.execute(
                select(Order.id).where(Order.order_number == order_number)
            )
            if result.first() is None:
                return order_number
            logger.debug(f"Order number {order_number} taken (attempt {attempt + 1})")

        order_number = fallback_order_number()
        logger.warning(f"Falling back to timestamp order number {order_number}")
        return order_number

    async def create_order(self, customer_id: Optional[uuid.UUID], order_data: OrderCreate) -> OrderResponse:
        """
        Validate stock, persist the order, then decrement stock.

        The order insert and the stock decrement are two separate commits. If
        the decrement fails the order stays PENDING and StockUpdateFailed is
        raised; no stock is restored and nothing is published.
        """
        if customer_id is None:
            raise NotAuthenticated()

        # Requested units per product, summed across lines
        requested: Dict[uuid.UUID, int] = {}
        for item in order_data.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        result = await self.db.execute(select(Product).where(Product.id.in_(list(requested))))
        products = {product.id: product for product in result.scalars().all()}

        for item in order_data.items:
            if item.product_id not in products:
                raise ProductNotFound(item.product_id)

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock < quantity:
                raise InsufficientStock(product.name, product.stock, quantity)

        order_number = await self.generate_order_number()
        total = sum(item.price * item.quantity for item in order_data.items)

        order = Order(
            order_number=order_number,
            customer_id=customer_id,
            total=total,
            status=OrderStatus.PENDING.value,
            shipping_address=order_data.shipping_address.model_dump(),
            items=[
                OrderItem(
                    product_id=item.product_id,
                    position=position,
                    quantity=item.quantity,
                    price=item.price,
                    size=item.size,
                    color=item.color
                )
                for position, item in enumerate(order_data.items)
            ]
        )
        self.db.add(order)
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error saving order {order_number}: {str(e)}")
            raise InternalError("Failed to create order")

        order_id = order.id

        try:
            for product_id, quantity in requested.items():
                await self.db.execute(
                    update(Product)
                    .where(Product.id == product_id)
                    .values(stock=Product.stock - quantity)
                )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Stock update failed for order {order_number}: {str(e)}")
            raise StockUpdateFailed(order_number)

        order = await self._load_order(order_id, refresh=True)
        response = OrderResponse.model_validate(order)
        logger.info(
            f"Order {order_number} created by {customer_id}: "
            f"{len(order.items)} item(s), total {total:.2f}"
        )

        await self._publish_created(response)
        await self._check_low_stock(list(requested))
        return response

    async def _publish_created(self, order: OrderResponse):
        vendor_ids = order_vendor_ids(order)
        status_change = OrderStatusChange(
            order_id=order.id,
            order_number=order.order_number,
            old_status=OrderStatus.PENDING,
            new_status=OrderStatus.PENDING,
            updated_at=order.created_at
        )

        await self.pubsub.publish(topic(SubscriptionEvent.ORDER_CREATED), order)
        for vendor_id in vendor_ids:
            await self.pubsub.publish(topic(SubscriptionEvent.ORDER_CREATED, vendor_id), order)
            await self.pubsub.publish(topic(SubscriptionEvent.ORDER_STATUS_CHANGED, vendor_id), status_change)
        await self.pubsub.publish(topic(SubscriptionEvent.ORDER_CREATED, order.customer.id), order)

        for vendor_id in vendor_ids:
            await send_notification(self.pubsub, get_order_created_notification(order, vendor_id))

    async def _check_low_stock(self, product_ids: List[uuid.UUID]):
        result = await self.db.execute(
            select(Product)
            .where(Product.id.in_(product_ids))
            .execution_options(populate_existing=True)
        )
        for product in result.scalars().all():
            if product.stock <= LOW_STOCK_THRESHOLD:
                logger.info(f"Product {product.sku} is low on stock ({product.stock} left)")
                await send_notification(self.pubsub, get_low_stock_notification(product, product.stock))

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        new_status: OrderStatus,
        caller_id: Optional[uuid.UUID]
    ) -> OrderResponse:
        """
        Any status may follow any other; odd transitions are only logged.
        Callers must be the customer or a vendor of one of the order's products.
        """
        if caller_id is None:
            raise NotAuthenticated()

        order = await self._load_order(order_id)
        if not order:
            raise OrderNotFound(order_id)

        vendor_ids = order_vendor_ids(order)
        if caller_id != order.customer_id and caller_id not in vendor_ids:
            raise NotAuthorized("Not authorized to update this order")

        old_status = OrderStatus(order.status)
        new_status = OrderStatus(new_status)
        if is_suspicious_transition(old_status, new_status):
            logger.warning(
                f"Suspicious status transition on order {order.order_number}: "
                f"{old_status.value} -> {new_status.value} by {caller_id}"
            )

        order.status = new_status.value
        try:
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error updating status of order {order.order_number}: {str(e)}")
            raise InternalError("Failed to update order status")

        order = await self._load_order(order_id, refresh=True)
        response = OrderResponse.model_validate(order)
        logger.info(f"Order {order.order_number} status {old_status.value} -> {new_status.value}")

        status_change = OrderStatusChange(
            order_id=response.id,
            order_number=response.order_number,
            old_status=old_status,
            new_status=new_status,
            updated_at=response.updated_at
        )

        await self.pubsub.publish(topic(SubscriptionEvent.ORDER_UPDATED), response)
        await self.pubsub.publish(topic(SubscriptionEvent.ORDER_UPDATED, response.id), response)
        for vendor_id in vendor_ids:
            await self.pubsub.publish(topic(SubscriptionEvent.ORDER_STATUS_CHANGED, vendor_id), status_change)
        await self.pubsub.publish(
            topic(SubscriptionEvent.ORDER_STATUS_CHANGED, response.customer.id), status_change
        )

        if old_status != new_status:
            await send_notification(
                self.pubsub, get_order_status_notification(response, old_status, new_status)
            )
        return response

    async def list_orders(self, filters: OrderFilters) -> List[OrderResponse]:
        query = select(Order)
        if filters.vendor_id is not None:
            vendor_orders = (
                select(OrderItem.order_id)
                .join(Product, OrderItem.product_id == Product.id)
                .where(Product.vendor_id == filters.vendor_id)
            )
            query = query.where(Order.id.in_(vendor_orders))
        if filters.customer_id is not None:
            query = query.where(Order.customer_id == filters.customer_id)
        if filters.status is not None:
            query = query.where(Order.status == filters.status.value)

        query = query.order_by(Order.created_at.desc()).offset(filters.offset).limit(filters.limit)
        result = await self.db.execute(query)
        return [OrderResponse.model_validate(order) for order in result.scalars().all()]

    async def my_orders(
        self,
        customer_id: Optional[uuid.UUID],
        status: Optional[OrderStatus] = None,
        limit: int = 10,
        offset: int = 0
    ) -> List[OrderResponse]:
        if customer_id is None:
            raise NotAuthenticated()
        return await self.list_orders(
            OrderFilters(customer_id=customer_id, status=status, limit=limit, offset=offset)
        )

    async def get_order(self, order_id: uuid.UUID, user: Optional[User]) -> Optional[OrderResponse]:
        """Readable by the customer, a vendor of one of its products, or an admin"""
        if user is None:
            raise NotAuthenticated()

        order = await self._load_order(order_id)
        if not order:
            return None

        if (
            order.customer_id != user.id
            and user.id not in order_vendor_ids(order)
            and not is_admin(user)
        ):
            raise NotAuthorized("Not authorized to view this order")

        return OrderResponse.model_validate(order)
