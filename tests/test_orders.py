import logging
import re
import uuid

import pytest
from sqlalchemy import select, func, update

from conftest import SHIPPING_ADDRESS, drain
from models import Order, Product, OrderStatus, UserRole
from routers.orders import helpers as order_helpers
from routers.orders.helpers import (
    OrderHelpers,
    is_suspicious_transition,
    order_created_topics,
    order_status_topics,
    order_updated_topics,
)
from routers.orders.schemas import OrderCreate, OrderFilters
from utils.errors import (
    InsufficientStock,
    NotAuthenticated,
    NotAuthorized,
    OrderNotFound,
    ProductNotFound,
    StockUpdateFailed,
    ValidationError,
)
from utils.notifications import Notification, NotificationType


@pytest.fixture
async def shop(make_user, make_category, make_product):
    vendor = await make_user(UserRole.VENDOR)
    customer = await make_user(UserRole.BUYER)
    category = await make_category()
    product = await make_product(vendor, category, stock=10, price=12.5)
    return vendor, customer, category, product


async def test_create_order_totals_and_decrements_stock(db, shop, make_product, place_order):
    vendor, customer, category, product = shop
    other = await make_product(vendor, category, stock=20, price=4.0)

    order = await place_order(customer, (product, 3), (other, 5))

    assert order.status == OrderStatus.PENDING
    assert order.total == pytest.approx(12.5 * 3 + 4.0 * 5)
    assert [item.quantity for item in order.items] == [3, 5]
    assert order.customer.id == customer.id
    assert re.fullmatch(r"ORD-\d{8}-[0-9A-Z]{6}", order.order_number)

    await db.refresh(product)
    await db.refresh(other)
    assert product.stock == 7
    assert other.stock == 15


async def test_item_price_is_taken_from_input(db, pubsub, shop):
    vendor, customer, category, product = shop
    order_data = OrderCreate(
        items=[{"product_id": product.id, "quantity": 2, "price": 1.0}],
        shipping_address=SHIPPING_ADDRESS,
    )

    order = await OrderHelpers(db, pubsub).create_order(customer.id, order_data)

    assert order.items[0].price == 1.0
    assert order.total == 2.0


async def test_insufficient_stock_leaves_everything_unchanged(db, shop, make_product, place_order):
    vendor, customer, category, product = shop
    plenty = await make_product(vendor, category, stock=50)

    with pytest.raises(InsufficientStock) as exc_info:
        await place_order(customer, (plenty, 5), (product, 11))

    assert exc_info.value.message == (
        f"Insufficient stock for {product.name}. Available: 10, Requested: 11"
    )
    assert exc_info.value.extensions["code"] == "VALIDATION_ERROR"

    await db.refresh(product)
    await db.refresh(plenty)
    assert product.stock == 10
    assert plenty.stock == 50
    count = await db.execute(select(func.count(Order.id)))
    assert count.scalar() == 0


async def test_repeated_product_lines_are_checked_together(db, shop, place_order):
    vendor, customer, category, product = shop

    with pytest.raises(InsufficientStock):
        await place_order(customer, (product, 6), (product, 6))

    await db.refresh(product)
    assert product.stock == 10


async def test_unknown_product(db, pubsub, shop):
    vendor, customer, category, product = shop
    order_data = OrderCreate(
        items=[{"product_id": uuid.uuid4(), "quantity": 1, "price": 5}],
        shipping_address=SHIPPING_ADDRESS,
    )

    with pytest.raises(ProductNotFound):
        await OrderHelpers(db, pubsub).create_order(customer.id, order_data)


async def test_create_order_requires_customer(db, pubsub, shop):
    vendor, customer, category, product = shop
    order_data = OrderCreate(
        items=[{"product_id": product.id, "quantity": 1, "price": 5}],
        shipping_address=SHIPPING_ADDRESS,
    )

    with pytest.raises(NotAuthenticated):
        await OrderHelpers(db, pubsub).create_order(None, order_data)


async def test_order_numbers_are_unique(shop, place_order):
    vendor, customer, category, product = shop

    numbers = {(await place_order(customer, (product, 1))).order_number for _ in range(5)}

    assert len(numbers) == 5


async def test_order_number_falls_back_after_repeated_collisions(db, pubsub, shop, place_order, monkeypatch):
    vendor, customer, category, product = shop
    first = await place_order(customer, (product, 1))
    monkeypatch.setattr(order_helpers, "random_order_number", lambda now=None: first.order_number)

    number = await OrderHelpers(db, pubsub).generate_order_number()

    assert number != first.order_number
    assert re.fullmatch(r"ORD-\d{8}-[0-9A-Z]+", number)


async def test_failed_stock_decrement_keeps_pending_order(db, pubsub, shop, monkeypatch):
    vendor, customer, category, product = shop

    async def racing_order_number(self):
        # a concurrent checkout empties the shelf between the check and the decrement
        await self.db.execute(update(Product).where(Product.id == product.id).values(stock=0))
        return "ORD-20260101-RACE01"

    monkeypatch.setattr(OrderHelpers, "generate_order_number", racing_order_number)
    order_data = OrderCreate(
        items=[{"product_id": product.id, "quantity": 2, "price": 12.5}],
        shipping_address=SHIPPING_ADDRESS,
    )
    stream = pubsub.subscribe(["ORDER_CREATED"])

    with pytest.raises(StockUpdateFailed) as exc_info:
        await OrderHelpers(db, pubsub).create_order(customer.id, order_data)

    assert exc_info.value.extensions["code"] == "INTERNAL_SERVER_ERROR"
    result = await db.execute(select(Order).where(Order.order_number == "ORD-20260101-RACE01"))
    order = result.scalar_one()
    assert order.status == OrderStatus.PENDING.value
    assert drain(stream) == []


async def test_create_order_fan_out(pubsub, shop, place_order):
    vendor, customer, category, product = shop
    global_stream = pubsub.subscribe(["ORDER_CREATED"])
    vendor_stream = pubsub.subscribe([f"ORDER_CREATED_{vendor.id}"])
    customer_stream = pubsub.subscribe([f"ORDER_CREATED_{customer.id}"])
    status_stream = pubsub.subscribe([f"ORDER_STATUS_CHANGED_{vendor.id}"])
    vendor_inbox = pubsub.subscribe([f"NOTIFICATION_ADDED_{vendor.id}"])

    order = await place_order(customer, (product, 2))

    assert [o.id for o in drain(global_stream)] == [order.id]
    assert [o.id for o in drain(vendor_stream)] == [order.id]
    assert [o.id for o in drain(customer_stream)] == [order.id]

    (change,) = drain(status_stream)
    assert change.order_id == order.id
    assert change.old_status == OrderStatus.PENDING
    assert change.new_status == OrderStatus.PENDING

    (notification,) = drain(vendor_inbox)
    assert isinstance(notification, Notification)
    assert notification.type == NotificationType.ORDER_CREATED
    assert notification.user_id == vendor.id


async def test_create_order_notifies_each_vendor_once(pubsub, make_user, make_category, make_product, place_order):
    first_vendor = await make_user(UserRole.VENDOR)
    second_vendor = await make_user(UserRole.VENDOR)
    customer = await make_user()
    category = await make_category()
    a = await make_product(first_vendor, category)
    b = await make_product(first_vendor, category)
    c = await make_product(second_vendor, category)
    first_stream = pubsub.subscribe([f"ORDER_CREATED_{first_vendor.id}"])
    second_stream = pubsub.subscribe([f"ORDER_CREATED_{second_vendor.id}"])

    await place_order(customer, (a, 1), (b, 1), (c, 1))

    assert len(drain(first_stream)) == 1
    assert len(drain(second_stream)) == 1


async def test_low_stock_notification(pubsub, make_user, make_category, make_product, place_order):
    vendor = await make_user(UserRole.VENDOR)
    customer = await make_user()
    product = await make_product(vendor, await make_category(), stock=6)
    inbox = pubsub.subscribe([f"NOTIFICATION_ADDED_{vendor.id}"])

    await place_order(customer, (product, 2))

    types = [notification.type for notification in drain(inbox)]
    assert types == [NotificationType.ORDER_CREATED, NotificationType.PRODUCT_LOW_STOCK]


async def test_update_status_by_vendor_publishes(db, pubsub, shop, place_order):
    vendor, customer, category, product = shop
    order = await place_order(customer, (product, 1))
    updated_stream = pubsub.subscribe(["ORDER_UPDATED", f"ORDER_UPDATED_{order.id}"])
    vendor_status = pubsub.subscribe([f"ORDER_STATUS_CHANGED_{vendor.id}"])
    customer_status = pubsub.subscribe([f"ORDER_STATUS_CHANGED_{customer.id}"])
    customer_inbox = pubsub.subscribe([f"NOTIFICATION_ADDED_{customer.id}"])

    updated = await OrderHelpers(db, pubsub).update_order_status(order.id, OrderStatus.SHIPPED, vendor.id)

    assert updated.status == OrderStatus.SHIPPED
    # one payload per topic the stream listens on
    assert len(drain(updated_stream)) == 2
    for stream in (vendor_status, customer_status):
        (change,) = drain(stream)
        assert change.old_status == OrderStatus.PENDING
        assert change.new_status == OrderStatus.SHIPPED
        assert change.order_number == order.order_number
    (notification,) = drain(customer_inbox)
    assert notification.type == NotificationType.ORDER_UPDATED


async def test_cancellation_notifies_customer(db, pubsub, shop, place_order):
    vendor, customer, category, product = shop
    order = await place_order(customer, (product, 1))
    inbox = pubsub.subscribe([f"NOTIFICATION_ADDED_{customer.id}"])

    await OrderHelpers(db, pubsub).update_order_status(order.id, OrderStatus.CANCELLED, customer.id)

    (notification,) = drain(inbox)
    assert notification.type == NotificationType.ORDER_CANCELLED


async def test_update_status_authorization(db, pubsub, shop, make_user, place_order):
    vendor, customer, category, product = shop
    stranger = await make_user(UserRole.VENDOR)
    order = await place_order(customer, (product, 1))
    helpers = OrderHelpers(db, pubsub)

    with pytest.raises(NotAuthenticated):
        await helpers.update_order_status(order.id, OrderStatus.SHIPPED, None)
    with pytest.raises(NotAuthorized):
        await helpers.update_order_status(order.id, OrderStatus.SHIPPED, stranger.id)
    with pytest.raises(OrderNotFound):
        await helpers.update_order_status(uuid.uuid4(), OrderStatus.SHIPPED, vendor.id)


async def test_any_transition_is_allowed_but_odd_ones_are_logged(db, pubsub, shop, place_order, caplog):
    vendor, customer, category, product = shop
    order = await place_order(customer, (product, 1))
    helpers = OrderHelpers(db, pubsub)
    await helpers.update_order_status(order.id, OrderStatus.DELIVERED, vendor.id)

    with caplog.at_level(logging.WARNING, logger="routers.orders.helpers"):
        reopened = await helpers.update_order_status(order.id, OrderStatus.PENDING, vendor.id)

    assert reopened.status == OrderStatus.PENDING
    assert "Suspicious status transition" in caplog.text


def test_suspicious_transitions():
    assert is_suspicious_transition(OrderStatus.DELIVERED, OrderStatus.SHIPPED)
    assert is_suspicious_transition(OrderStatus.CANCELLED, OrderStatus.PROCESSING)
    assert is_suspicious_transition(OrderStatus.SHIPPED, OrderStatus.PENDING)
    assert not is_suspicious_transition(OrderStatus.PENDING, OrderStatus.PROCESSING)
    assert not is_suspicious_transition(OrderStatus.SHIPPED, OrderStatus.DELIVERED)
    assert not is_suspicious_transition(OrderStatus.DELIVERED, OrderStatus.DELIVERED)


async def test_get_order_access(db, pubsub, shop, make_user, place_order):
    vendor, customer, category, product = shop
    admin = await make_user(UserRole.ADMIN)
    stranger = await make_user()
    order = await place_order(customer, (product, 1))
    helpers = OrderHelpers(db, pubsub)

    assert (await helpers.get_order(order.id, customer)).id == order.id
    assert (await helpers.get_order(order.id, vendor)).id == order.id
    assert (await helpers.get_order(order.id, admin)).id == order.id
    assert await helpers.get_order(uuid.uuid4(), customer) is None
    with pytest.raises(NotAuthorized):
        await helpers.get_order(order.id, stranger)
    with pytest.raises(NotAuthenticated):
        await helpers.get_order(order.id, None)


async def test_list_orders_filters(db, pubsub, make_user, make_category, make_product, place_order):
    vendor = await make_user(UserRole.VENDOR)
    other_vendor = await make_user(UserRole.VENDOR)
    customer = await make_user()
    category = await make_category()
    mine = await make_product(vendor, category)
    theirs = await make_product(other_vendor, category)
    first = await place_order(customer, (mine, 1))
    second = await place_order(customer, (theirs, 1))
    helpers = OrderHelpers(db, pubsub)
    await helpers.update_order_status(second.id, OrderStatus.PROCESSING, other_vendor.id)

    by_vendor = await helpers.list_orders(OrderFilters(vendor_id=vendor.id))
    by_status = await helpers.list_orders(OrderFilters(status=OrderStatus.PROCESSING))
    by_customer = await helpers.my_orders(customer.id)

    assert [o.id for o in by_vendor] == [first.id]
    assert [o.id for o in by_status] == [second.id]
    assert {o.id for o in by_customer} == {first.id, second.id}


def test_order_subscription_topics():
    vendor_id, customer_id, caller_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    assert order_created_topics() == ["ORDER_CREATED"]
    assert order_created_topics(vendor_id, customer_id, caller_id) == [
        "ORDER_CREATED",
        f"ORDER_CREATED_{vendor_id}",
        f"ORDER_CREATED_{caller_id}",
        f"ORDER_CREATED_{customer_id}",
    ]
    assert order_updated_topics() == ["ORDER_UPDATED"]
    assert order_updated_topics(customer_id) == [f"ORDER_UPDATED_{customer_id}"]
    assert order_status_topics(caller_id=caller_id) == [f"ORDER_STATUS_CHANGED_{caller_id}"]

    with pytest.raises(ValidationError, match="Vendor ID or Customer ID required"):
        order_status_topics()
