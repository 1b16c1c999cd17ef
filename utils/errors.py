"""
Application error taxonomy.

Every failure surfaced through the API is an AppError carrying a
human-readable message and a machine-readable code. graphql-core copies the
``extensions`` dict of the original exception onto the GraphQL error, so the
code and structured fields reach the client without further mapping.
"""
from enum import Enum
from typing import Any, Dict


class ErrorCode(str, Enum):
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class AppError(Exception):
    """Base exception for all API errors"""
    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **fields: Any):
        self.message = message
        self.fields = fields
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def extensions(self) -> Dict[str, Any]:
        return {"code": self.code.value, "kind": self.kind, **self.fields}


# Authentication / authorization

class NotAuthenticated(AppError):
    code = ErrorCode.NOT_AUTHENTICATED

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class InvalidCredentials(NotAuthenticated):
    def __init__(self):
        super().__init__("Invalid email or password")


class NotAuthorized(AppError):
    code = ErrorCode.NOT_AUTHORIZED

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class NotOrderOwner(NotAuthorized):
    def __init__(self):
        super().__init__("You can only review products from your own orders")


class NotReviewOwner(NotAuthorized):
    def __init__(self, action: str = "update"):
        super().__init__(f"You can only {action} your own reviews")


# Not found

class NotFound(AppError):
    code = ErrorCode.NOT_FOUND
    entity = "Resource"

    def __init__(self, entity_id: Any = None, message: str = None):
        fields = {"id": str(entity_id)} if entity_id is not None else {}
        super().__init__(message or f"{self.entity} not found", **fields)


class ProductNotFound(NotFound):
    entity = "Product"


class OrderNotFound(NotFound):
    entity = "Order"


class CategoryNotFound(NotFound):
    entity = "Category"


class ReviewNotFound(NotFound):
    entity = "Review"


class UserNotFound(NotFound):
    entity = "User"


# Validation

class ValidationError(AppError):
    code = ErrorCode.VALIDATION_ERROR


class InvalidRating(ValidationError):
    def __init__(self, rating: Any = None):
        super().__init__("Rating must be between 1 and 5", rating=rating)


class InsufficientStock(ValidationError):
    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            available=available,
            requested=requested,
        )


class OrderNotDelivered(ValidationError):
    def __init__(self):
        super().__init__("You can only review products from delivered orders")


class ProductNotInOrder(ValidationError):
    def __init__(self):
        super().__init__("Product not found in this order")


class CategoryHasProducts(ValidationError):
    def __init__(self, count: int):
        super().__init__(
            f"Cannot delete category. It has {count} product(s) associated with it.",
            count=count,
        )


class ProductInUse(ValidationError):
    def __init__(self, count: int):
        super().__init__(
            f"Cannot delete product. It appears in {count} order item(s).",
            count=count,
        )


# Conflicts on unique indexes

class ConflictError(AppError):
    code = ErrorCode.CONFLICT


class DuplicateReview(ConflictError):
    def __init__(self):
        super().__init__("You have already reviewed this product for this order")


class DuplicateSlug(ConflictError):
    def __init__(self, slug: str):
        super().__init__("Category with this slug already exists", slug=slug)


class DuplicateSku(ConflictError):
    def __init__(self, sku: str):
        super().__init__("Product with this SKU already exists", sku=sku)


class DuplicateEmail(ConflictError):
    def __init__(self):
        super().__init__("Email already registered")


# Internal

class InternalError(AppError):
    code = ErrorCode.INTERNAL_SERVER_ERROR


class StockUpdateFailed(InternalError):
    def __init__(self, order_number: str):
        super().__init__(
            f"Order {order_number} was placed but stock could not be updated",
            orderNumber=order_number,
        )


def from_pydantic(error) -> ValidationError:
    """Turn a pydantic ValidationError into the API's ValidationError"""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid input")
    if location:
        message = f"{location}: {message}"
    return ValidationError(message, field=location or None)
