from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
from models import User
from utils.errors import NotAuthenticated, DuplicateEmail
from .schemas import UserUpdate, UserResponse
from typing import List, Optional
import logging
import uuid

logger = logging.getLogger(__name__)


class UserHelpers:
    """Helper functions for user operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: uuid.UUID) -> Optional[UserResponse]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        return UserResponse.model_validate(user) if user else None

    async def list_users(self, limit: int = 10, offset: int = 0) -> List[UserResponse]:
        result = await self.db.execute(
            select(User)
            .order_by(User.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [UserResponse.model_validate(user) for user in result.scalars().all()]

    async def update_user(self, user: Optional[User], update_data: UserUpdate) -> UserResponse:
        """Update the caller's own profile; only fields sent by the client change"""
        if user is None:
            raise NotAuthenticated()

        changes = update_data.model_dump(exclude_unset=True)

        if changes.get("email") is not None:
            changes["email"] = str(changes["email"]).lower()
            if changes["email"] != user.email:
                existing = await self.db.execute(
                    select(User.id).where(User.email == changes["email"], User.id != user.id)
                )
                if existing.scalar_one_or_none():
                    raise DuplicateEmail()

        for field, value in changes.items():
            if field in ("name", "email") and value is None:
                # required columns cannot be cleared
                continue
            setattr(user, field, value)

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateEmail()

        await self.db.refresh(user)
        logger.info(f"Updated profile for user {user.id}: {', '.join(changes) or 'no changes'}")
        return UserResponse.model_validate(user)
