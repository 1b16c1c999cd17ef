"""
GraphQL request context.
Carries the database session, the event relay and the caller identity for
every query, mutation and subscription.
"""
from fastapi import Depends
from strawberry.fastapi import BaseContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import logging
import uuid

from config import get_db
from models import User
from routers.auth.helpers import auth_helpers
from utils.pubsub import PubSub

logger = logging.getLogger(__name__)

_UNSET = object()


class GraphQLContext(BaseContext):
    def __init__(self, db: AsyncSession, pubsub: PubSub, token: Optional[str] = None):
        super().__init__()
        self.db = db
        self.pubsub = pubsub
        self._token = token
        self._user = _UNSET

    @property
    def token(self) -> Optional[str]:
        """Bearer token from the HTTP header or the websocket connection params"""
        if self._token is not None:
            return self._token
        if self.request is not None:
            header = self.request.headers.get("authorization")
            if header:
                return header
        if isinstance(self.connection_params, dict):
            return self.connection_params.get("authorization")
        return None

    @property
    def current_user(self) -> Optional[dict]:
        """Token identity ({"user_id": ...}) or None for anonymous callers"""
        claims = auth_helpers.verify_token(self.token)
        logger.debug(f"Context user status: {claims['user_id'] if claims else 'anonymous'}")
        return claims

    @property
    def user_id(self) -> Optional[uuid.UUID]:
        claims = self.current_user
        if not claims:
            return None
        try:
            return uuid.UUID(str(claims["user_id"]))
        except ValueError:
            logger.warning(f"Token subject is not a valid user id: {claims['user_id']}")
            return None

    async def get_user(self) -> Optional[User]:
        """Load the caller's user row once per request"""
        if self._user is _UNSET:
            user_id = self.user_id
            if user_id is None:
                self._user = None
            else:
                result = await self.db.execute(select(User).where(User.id == user_id))
                self._user = result.scalar_one_or_none()
                if self._user is None:
                    logger.warning(f"Token subject {user_id} has no user record")
        return self._user


def build_context_getter(pubsub: PubSub):
    """FastAPI dependency producing a GraphQLContext bound to the app's relay"""

    async def get_context(db: AsyncSession = Depends(get_db)) -> GraphQLContext:
        return GraphQLContext(db=db, pubsub=pubsub)

    return get_context
