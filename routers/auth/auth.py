import strawberry
from strawberry.types import Info
from routers.types import AuthPayload, RegisterInput, LoginInput, to_auth_payload_type
from utils.errors import AppError, NotAuthenticated, InternalError, UserNotFound
from utils.response_helpers import validate_input
from .schemas import UserRegister, UserLogin, ChangePasswordRequest
from .helpers import auth_helpers
import logging

logger = logging.getLogger(__name__)


@strawberry.type
class AuthMutation:
    @strawberry.mutation(description="Create a buyer or vendor account")
    async def register(self, info: Info, input: RegisterInput) -> AuthPayload:
        try:
            user_data = validate_input(UserRegister, input)
            auth = await auth_helpers.register(info.context.db, user_data)
            return to_auth_payload_type(auth)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Registration failed: {str(e)}")
            raise InternalError("Registration failed")

    @strawberry.mutation
    async def login(self, info: Info, input: LoginInput) -> AuthPayload:
        try:
            credentials = validate_input(UserLogin, input)
            auth = await auth_helpers.login(info.context.db, credentials)
            logger.info(f"User {auth.user.id} logged in")
            return to_auth_payload_type(auth)
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Login failed: {str(e)}")
            raise InternalError("Login failed")

    @strawberry.mutation(description="Tokens are stateless; the client just discards its token")
    async def logout(self, info: Info) -> bool:
        return True

    @strawberry.mutation
    async def change_password(self, info: Info, old_password: str, new_password: str) -> bool:
        try:
            user = await info.context.get_user()
            if user is None:
                if info.context.user_id is not None:
                    raise UserNotFound(info.context.user_id)
                raise NotAuthenticated()
            request_data = validate_input(
                ChangePasswordRequest,
                {"old_password": old_password, "new_password": new_password}
            )
            return await auth_helpers.change_password(info.context.db, user, request_data)
        except AppError:
            raise
        except Exception as e:
            await info.context.db.rollback()
            logger.error(f"Password change failed: {str(e)}")
            raise InternalError("Password change failed")
