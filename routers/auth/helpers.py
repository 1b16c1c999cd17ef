from config import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS
from models import User
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from datetime import datetime, timedelta, timezone
from typing import Optional
from utils.errors import InvalidCredentials, NotAuthorized, DuplicateEmail
from routers.users.schemas import UserResponse
from .schemas import UserRegister, UserLogin, ChangePasswordRequest, AuthResponse
import bcrypt
import jwt
import logging

logger = logging.getLogger(__name__)


class AuthHelpers:
    """Helper functions for authentication operations"""

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    @staticmethod
    def _encode_password(password: str) -> bytes:
        # bcrypt only looks at the first 72 bytes
        return password.encode("utf-8")[:72]

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(self._encode_password(password), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(self._encode_password(password), password_hash.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is not a valid bcrypt hash")
            return False

    def create_access_token(self, user_id) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
        }
        return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)

    def verify_token(self, token: Optional[str]) -> Optional[dict]:
        """
        Verify a JWT locally.
        Returns {"user_id": ...} or None; a bad token means an anonymous caller, not an error.
        """
        if not token or not token.strip():
            logger.debug("verify_token: No token provided")
            return None

        actual_token = token.strip()
        if actual_token.startswith("Bearer "):
            actual_token = actual_token[7:]

        try:
            payload = jwt.decode(
                actual_token,
                JWT_SECRET_KEY,
                algorithms=[JWT_ALGORITHM],
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "verify_signature": True,
                    "verify_aud": False
                }
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid JWT token: {str(e)}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            logger.warning("Invalid token: missing user ID")
            return None

        return {"user_id": user_id, "payload": payload}

    async def register(self, db: AsyncSession, user_data: UserRegister) -> AuthResponse:
        email = str(user_data.email).lower()
        existing = await db.execute(select(User).where(User.email == email))
        if existing.scalar_one_or_none():
            raise DuplicateEmail()

        user = User(
            name=user_data.name,
            email=email,
            password_hash=self.hash_password(user_data.password),
            role=user_data.role.value
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise DuplicateEmail()
        await db.refresh(user)

        logger.info(f"Registered {user.role} account {user.id}")
        return AuthResponse(
            token=self.create_access_token(user.id),
            user=UserResponse.model_validate(user)
        )

    async def login(self, db: AsyncSession, credentials: UserLogin) -> AuthResponse:
        result = await db.execute(
            select(User).where(User.email == str(credentials.email).lower())
        )
        user = result.scalar_one_or_none()
        if not user or not self.verify_password(credentials.password, user.password_hash):
            logger.info(f"Failed login attempt for {credentials.email}")
            raise InvalidCredentials()

        if credentials.role is not None and credentials.role.value != user.role:
            raise NotAuthorized(f"This account is not registered as {credentials.role.value.lower()}")

        return AuthResponse(
            token=self.create_access_token(user.id),
            user=UserResponse.model_validate(user)
        )

    async def change_password(self, db: AsyncSession, user: User, request_data: ChangePasswordRequest) -> bool:
        if not self.verify_password(request_data.old_password, user.password_hash):
            raise InvalidCredentials()

        user.password_hash = self.hash_password(request_data.new_password)
        await db.commit()
        logger.info(f"Password changed for user {user.id}")
        return True


auth_helpers = AuthHelpers()
