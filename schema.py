"""
Root GraphQL schema: every domain router contributes its Query, Mutation and
Subscription fields here.
"""
from typing import List, Optional
import logging

import strawberry
from graphql import GraphQLError
from strawberry.types import ExecutionContext

from routers.auth.auth import AuthMutation
from routers.users.users import UserQuery, UserMutation
from routers.categories.categories import CategoryQuery, CategoryMutation
from routers.products.products import ProductQuery, ProductMutation, ProductSubscription
from routers.orders.orders import OrderQuery, OrderMutation, OrderSubscription
from routers.reviews.reviews import ReviewQuery, ReviewMutation
from routers.notifications.notifications import NotificationSubscription
from utils.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)


@strawberry.type
class Query(UserQuery, CategoryQuery, ProductQuery, OrderQuery, ReviewQuery):
    pass


@strawberry.type
class Mutation(AuthMutation, UserMutation, CategoryMutation, ProductMutation, OrderMutation, ReviewMutation):
    pass


@strawberry.type
class Subscription(OrderSubscription, ProductSubscription, NotificationSubscription):
    pass


class AppSchema(strawberry.Schema):
    def process_errors(
        self,
        errors: List[GraphQLError],
        execution_context: Optional[ExecutionContext] = None
    ) -> None:
        for error in errors:
            original = error.original_error
            if isinstance(original, AppError) and original.code != ErrorCode.INTERNAL_SERVER_ERROR:
                logger.info(f"GraphQL {original.code.value} at {error.path}: {error.message}")
            elif original is not None:
                logger.error(f"GraphQL error at {error.path}: {error.message}", exc_info=original)
            else:
                # parse and validation errors raised by graphql-core itself
                logger.info(f"GraphQL request error: {error.message}")


schema = AppSchema(query=Query, mutation=Mutation, subscription=Subscription)
