import strawberry
from strawberry.types import Info
from typing import List, Optional
from routers.types import User, UpdateUserInput, to_user_type
from utils.errors import AppError, InternalError, UserNotFound
from utils.response_helpers import parse_id, validate_input
from .schemas import UserUpdate, UserResponse
from .helpers import UserHelpers
import logging

logger = logging.getLogger(__name__)


@strawberry.type
class UserQuery:
    @strawberry.field(description="The authenticated user, or null for anonymous callers")
    async def me(self, info: Info) -> Optional[User]:
        try:
            user = await info.context.get_user()
            return to_user_type(UserResponse.model_validate(user)) if user else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting current user: {str(e)}")
            raise InternalError("Failed to get current user")

    @strawberry.field
    async def user(self, info: Info, id: strawberry.ID) -> Optional[User]:
        try:
            user = await UserHelpers(info.context.db).get_user(parse_id(id, "user ID"))
            return to_user_type(user) if user else None
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting user {id}: {str(e)}")
            raise InternalError("Failed to get user")

    @strawberry.field
    async def users(self, info: Info, limit: int = 10, offset: int = 0) -> List[User]:
        try:
            users = await UserHelpers(info.context.db).list_users(
                limit=max(1, min(limit, 100)),
                offset=max(0, offset)
            )
            return [to_user_type(user) for user in users]
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Error getting users: {str(e)}")
            raise InternalError("Failed to get users")


@strawberry.type
class UserMutation:
    @strawberry.mutation(description="Update the caller's own profile")
    async def update_user(self, info: Info, input: UpdateUserInput) -> User:
        try:
            user = await info.context.get_user()
            if user is None and info.context.user_id is not None:
                raise UserNotFound(info.context.user_id)
            update_data = validate_input(UserUpdate, input)
            updated = await UserHelpers(info.context.db).update_user(user, update_data)
            return to_user_type(updated)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Error updating user profile: {str(e)}")
            raise InternalError("Failed to update user profile")
