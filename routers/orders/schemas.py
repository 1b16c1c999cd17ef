from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from models import OrderStatus
from routers.users.schemas import Address, UserResponse
from routers.products.schemas import ProductResponse
import uuid


class OrderItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    size: Optional[str] = None
    color: Optional[str] = None


class OrderCreate(BaseModel):
    items: List[OrderItemCreate] = Field(..., min_length=1)
    shipping_address: Address


class OrderFilters(BaseModel):
    vendor_id: Optional[uuid.UUID] = None
    customer_id: Optional[uuid.UUID] = None
    status: Optional[OrderStatus] = None
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)


class OrderItemResponse(BaseModel):
    id: uuid.UUID
    product: ProductResponse
    quantity: int
    price: float
    size: Optional[str] = None
    color: Optional[str] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    customer: UserResponse
    items: List[OrderItemResponse]
    total: float
    status: OrderStatus
    shipping_address: Optional[Address] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OrderStatusChange(BaseModel):
    """Payload of ORDER_STATUS_CHANGED events"""
    order_id: uuid.UUID
    order_number: str
    old_status: OrderStatus
    new_status: OrderStatus
    updated_at: datetime
