from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from routers.users.schemas import UserResponse
from routers.products.schemas import ProductResponse
from routers.orders.schemas import OrderResponse
import uuid


class ReviewCreate(BaseModel):
    product_id: uuid.UUID
    order_id: uuid.UUID
    # range is checked by the service so it can raise InvalidRating
    rating: int
    comment: Optional[str] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


class ReviewFilters(BaseModel):
    product_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    limit: int = Field(10, ge=1, le=100)
    offset: int = Field(0, ge=0)


class ReviewResponse(BaseModel):
    id: uuid.UUID
    product: ProductResponse
    user: UserResponse
    order: OrderResponse
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
