"""
GraphQL object and input types shared by every domain router, plus the
mappers that turn service response models into them.
"""
from typing import List, Optional
from datetime import datetime
import uuid

import strawberry
from strawberry import UNSET
from strawberry.scalars import JSON
from strawberry.types import Info

from models import UserRole, OrderStatus, Currency
from utils.notifications import NotificationType
from routers.products.helpers import ProductHelpers

UserRole = strawberry.enum(UserRole)
OrderStatus = strawberry.enum(OrderStatus)
Currency = strawberry.enum(Currency)
NotificationType = strawberry.enum(NotificationType)


# ---------------------------
# Object types
# ---------------------------

@strawberry.type
class Address:
    street: str
    city: str
    state: str
    zip_code: str
    country: str


@strawberry.type
class User:
    id: strawberry.ID
    name: str
    email: str
    role: UserRole
    avatar: Optional[str]
    phone: Optional[str]
    address: Optional[Address]
    created_at: datetime
    updated_at: datetime

    @strawberry.field(description="Products listed by this user as a vendor")
    async def products(self, info: Info) -> List["Product"]:
        helpers = ProductHelpers(info.context.db)
        products = await helpers.list_products(vendor_id=uuid.UUID(str(self.id)), limit=None)
        return [to_product_type(product) for product in products]


@strawberry.type
class AuthPayload:
    token: str
    user: User


@strawberry.type
class Category:
    id: strawberry.ID
    name: str
    slug: str
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    @strawberry.field(description="Products in this category, looked up on demand")
    async def products(self, info: Info) -> List["Product"]:
        helpers = ProductHelpers(info.context.db)
        products = await helpers.list_products(category_id=uuid.UUID(str(self.id)), limit=None)
        return [to_product_type(product) for product in products]


@strawberry.type
class ProductColor:
    name: str
    value: str


@strawberry.type
class Product:
    id: strawberry.ID
    name: str
    description: Optional[str]
    price: float
    original_price: Optional[float]
    currency: Currency
    images: List[str]
    category: Category
    vendor: User
    stock: int
    sku: str
    sizes: List[str]
    colors: List[ProductColor]
    badge: Optional[str]
    rating: float
    review_count: int
    features: List[str]
    is_featured: bool
    created_at: datetime
    updated_at: datetime


@strawberry.type
class ProductDeleted:
    id: strawberry.ID
    name: str
    deleted_at: datetime


@strawberry.type
class OrderItem:
    id: strawberry.ID
    product: Product
    quantity: int
    price: float
    size: Optional[str]
    color: Optional[str]


@strawberry.type
class Order:
    id: strawberry.ID
    order_number: str
    customer: User
    items: List[OrderItem]
    total: float
    status: OrderStatus
    shipping_address: Optional[Address]
    created_at: datetime
    updated_at: datetime


@strawberry.type
class OrderStatusUpdate:
    order_id: strawberry.ID
    order_number: str
    old_status: OrderStatus
    new_status: OrderStatus
    updated_at: datetime


@strawberry.type
class Review:
    id: strawberry.ID
    product: Product
    user: User
    order: Order
    rating: int
    comment: Optional[str]
    created_at: datetime
    updated_at: datetime


@strawberry.type
class Notification:
    id: strawberry.ID
    user_id: strawberry.ID
    type: NotificationType
    title: str
    message: str
    link: Optional[str]
    read: bool
    metadata: Optional[JSON]
    created_at: datetime


# ---------------------------
# Input types
# ---------------------------

@strawberry.input
class AddressInput:
    street: str
    city: str
    state: str
    zip_code: str
    country: str


@strawberry.input
class RegisterInput:
    name: str
    email: str
    password: str
    role: UserRole = UserRole.BUYER


@strawberry.input
class LoginInput:
    email: str
    password: str
    role: Optional[UserRole] = None


@strawberry.input
class UpdateUserInput:
    name: Optional[str] = UNSET
    email: Optional[str] = UNSET
    avatar: Optional[str] = UNSET
    phone: Optional[str] = UNSET
    address: Optional[AddressInput] = UNSET


@strawberry.input
class CategoryInput:
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None


@strawberry.input
class CategoryUpdateInput:
    name: Optional[str] = UNSET
    slug: Optional[str] = UNSET
    description: Optional[str] = UNSET


@strawberry.input
class ProductColorInput:
    name: str
    value: str


@strawberry.input
class ProductInput:
    category_id: strawberry.ID
    name: str
    price: float
    sku: str
    stock: int
    description: Optional[str] = None
    original_price: Optional[float] = None
    currency: Currency = Currency.USD
    images: List[str] = strawberry.field(default_factory=list)
    sizes: List[str] = strawberry.field(default_factory=list)
    colors: List[ProductColorInput] = strawberry.field(default_factory=list)
    features: List[str] = strawberry.field(default_factory=list)
    badge: Optional[str] = None
    is_featured: bool = False


@strawberry.input
class ProductUpdateInput:
    category_id: Optional[strawberry.ID] = UNSET
    name: Optional[str] = UNSET
    description: Optional[str] = UNSET
    price: Optional[float] = UNSET
    original_price: Optional[float] = UNSET
    currency: Optional[Currency] = UNSET
    images: Optional[List[str]] = UNSET
    stock: Optional[int] = UNSET
    sizes: Optional[List[str]] = UNSET
    colors: Optional[List[ProductColorInput]] = UNSET
    features: Optional[List[str]] = UNSET
    badge: Optional[str] = UNSET
    is_featured: Optional[bool] = UNSET


@strawberry.input
class OrderItemInput:
    product_id: strawberry.ID
    quantity: int
    price: float
    size: Optional[str] = None
    color: Optional[str] = None


@strawberry.input
class CreateOrderInput:
    items: List[OrderItemInput]
    shipping_address: AddressInput


@strawberry.input
class ReviewInput:
    product_id: strawberry.ID
    order_id: strawberry.ID
    rating: int
    comment: Optional[str] = None


@strawberry.input
class ReviewUpdateInput:
    rating: Optional[int] = UNSET
    comment: Optional[str] = UNSET


# ---------------------------
# Mappers (response model -> GraphQL)
# ---------------------------

def to_address_type(address) -> Optional[Address]:
    if address is None:
        return None
    return Address(
        street=address.street,
        city=address.city,
        state=address.state,
        zip_code=address.zip_code,
        country=address.country
    )


def to_user_type(user) -> User:
    return User(
        id=strawberry.ID(str(user.id)),
        name=user.name,
        email=user.email,
        role=user.role,
        avatar=user.avatar,
        phone=user.phone,
        address=to_address_type(user.address),
        created_at=user.created_at,
        updated_at=user.updated_at
    )


def to_auth_payload_type(auth) -> AuthPayload:
    return AuthPayload(token=auth.token, user=to_user_type(auth.user))


def to_category_type(category) -> Category:
    return Category(
        id=strawberry.ID(str(category.id)),
        name=category.name,
        slug=category.slug,
        description=category.description,
        created_at=category.created_at,
        updated_at=category.updated_at
    )


def to_product_type(product) -> Product:
    return Product(
        id=strawberry.ID(str(product.id)),
        name=product.name,
        description=product.description,
        price=product.price,
        original_price=product.original_price,
        currency=product.currency,
        images=list(product.images),
        category=to_category_type(product.category),
        vendor=to_user_type(product.vendor),
        stock=product.stock,
        sku=product.sku,
        sizes=list(product.sizes),
        colors=[ProductColor(name=color.name, value=color.value) for color in product.colors],
        badge=product.badge,
        rating=product.rating,
        review_count=product.review_count,
        features=list(product.features),
        is_featured=product.is_featured,
        created_at=product.created_at,
        updated_at=product.updated_at
    )


def to_product_deleted_type(deleted) -> ProductDeleted:
    return ProductDeleted(id=strawberry.ID(str(deleted.id)), name=deleted.name, deleted_at=deleted.deleted_at)


def to_order_type(order) -> Order:
    return Order(
        id=strawberry.ID(str(order.id)),
        order_number=order.order_number,
        customer=to_user_type(order.customer),
        items=[
            OrderItem(
                id=strawberry.ID(str(item.id)),
                product=to_product_type(item.product),
                quantity=item.quantity,
                price=item.price,
                size=item.size,
                color=item.color
            )
            for item in order.items
        ],
        total=order.total,
        status=order.status,
        shipping_address=to_address_type(order.shipping_address),
        created_at=order.created_at,
        updated_at=order.updated_at
    )


def to_order_status_update_type(change) -> OrderStatusUpdate:
    return OrderStatusUpdate(
        order_id=strawberry.ID(str(change.order_id)),
        order_number=change.order_number,
        old_status=change.old_status,
        new_status=change.new_status,
        updated_at=change.updated_at
    )


def to_review_type(review) -> Review:
    return Review(
        id=strawberry.ID(str(review.id)),
        product=to_product_type(review.product),
        user=to_user_type(review.user),
        order=to_order_type(review.order),
        rating=review.rating,
        comment=review.comment,
        created_at=review.created_at,
        updated_at=review.updated_at
    )


def to_notification_type(notification) -> Notification:
    return Notification(
        id=strawberry.ID(str(notification.id)),
        user_id=strawberry.ID(str(notification.user_id)),
        type=notification.type,
        title=notification.title,
        message=notification.message,
        link=notification.link,
        read=notification.read,
        metadata=notification.metadata,
        created_at=notification.created_at
    )
