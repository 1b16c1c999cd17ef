from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from models import Currency
from routers.categories.schemas import CategoryResponse
from routers.users.schemas import UserResponse
import uuid


class ProductColor(BaseModel):
    name: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)  # Hex color code


# Product Schemas
class ProductCreate(BaseModel):
    category_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    currency: Currency = Currency.USD
    images: List[str] = []
    sku: str = Field(..., min_length=1, max_length=100)
    stock: int = Field(..., ge=0)
    sizes: List[str] = []
    colors: List[ProductColor] = []
    features: List[str] = []
    badge: Optional[str] = Field(None, max_length=50)
    is_featured: bool = False


class ProductUpdate(BaseModel):
    category_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    sizes: Optional[List[str]] = None
    colors: Optional[List[ProductColor]] = None
    features: Optional[List[str]] = None
    badge: Optional[str] = Field(None, max_length=50)
    is_featured: Optional[bool] = None


class ProductResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    currency: Currency
    images: List[str] = []
    category: CategoryResponse
    vendor: UserResponse
    stock: int
    sku: str
    sizes: List[str] = []
    colors: List[ProductColor] = []
    badge: Optional[str] = None
    rating: float = 0
    review_count: int = 0
    features: List[str] = []
    is_featured: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProductDeletedResponse(BaseModel):
    id: uuid.UUID
    name: str
    deleted_at: datetime
