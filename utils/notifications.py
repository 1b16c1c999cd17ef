from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum
import logging
import uuid

from models import OrderStatus, utcnow
from utils.errors import ValidationError
from utils.pubsub import PubSub, SubscriptionEvent, topic

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    NEW_MESSAGE = "NEW_MESSAGE"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    PRODUCT_LOW_STOCK = "PRODUCT_LOW_STOCK"
    SYSTEM_ALERT = "SYSTEM_ALERT"


class Notification(BaseModel):
    """In-app notification pushed to a single user's channel"""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    read: bool = False
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)


async def send_notification(pubsub: PubSub, notification: Notification) -> int:
    """Publish a notification on its recipient's NOTIFICATION_ADDED channel"""
    delivered = await pubsub.publish(
        topic(SubscriptionEvent.NOTIFICATION_ADDED, notification.user_id),
        notification
    )
    logger.info(
        f"Notification {notification.type.value} sent to user {notification.user_id} "
        f"({delivered} live subscriber(s))"
    )
    return delivered


# Notification templates
def get_order_created_notification(order, vendor_id: uuid.UUID) -> Notification:
    """New order for a vendor; only that vendor's lines are counted"""
    vendor_items = [item for item in order.items if item.product.vendor.id == vendor_id]
    units = sum(item.quantity for item in vendor_items)
    return Notification(
        user_id=vendor_id,
        type=NotificationType.ORDER_CREATED,
        title=f"New order {order.order_number}",
        message=f"{order.customer.name} ordered {units} unit(s) across {len(vendor_items)} of your product(s).",
        link=f"/orders/{order.id}",
        metadata={"orderId": str(order.id), "orderNumber": order.order_number, "units": units},
    )


def get_order_status_notification(order, old_status: OrderStatus, new_status: OrderStatus) -> Notification:
    """Status change for the customer who placed the order"""
    if new_status == OrderStatus.CANCELLED:
        notification_type = NotificationType.ORDER_CANCELLED
        message = f"Your order {order.order_number} has been cancelled."
    else:
        notification_type = NotificationType.ORDER_UPDATED
        message = (
            f"Your order {order.order_number} moved from "
            f"{old_status.value.title()} to {new_status.value.title()}."
        )
    return Notification(
        user_id=order.customer.id,
        type=notification_type,
        title=f"Order {order.order_number} updated",
        message=message,
        link=f"/orders/{order.id}",
        metadata={
            "orderId": str(order.id),
            "oldStatus": old_status.value,
            "newStatus": new_status.value,
        },
    )


def get_low_stock_notification(product, remaining: int) -> Notification:
    return Notification(
        user_id=product.vendor.id,
        type=NotificationType.PRODUCT_LOW_STOCK,
        title=f"Low stock: {product.name}",
        message=f"Only {remaining} unit(s) of {product.name} (SKU {product.sku}) left in stock.",
        link=f"/products/{product.id}",
        metadata={"productId": str(product.id), "sku": product.sku, "stock": remaining},
    )


def notification_topics(user_id: Optional[uuid.UUID] = None, caller_id: Optional[uuid.UUID] = None) -> List[str]:
    """A notification stream follows one user: the requested one, else the caller"""
    recipient = user_id if user_id is not None else caller_id
    if recipient is None:
        raise ValidationError("User ID required")
    return [topic(SubscriptionEvent.NOTIFICATION_ADDED, recipient)]
