import strawberry
from strawberry.types import Info
from typing import AsyncGenerator, Optional
from routers.types import Notification, to_notification_type
from utils.notifications import notification_topics
from utils.response_helpers import parse_optional_id


@strawberry.type
class NotificationSubscription:
    @strawberry.subscription(description="In-app notifications for one user, the caller by default")
    async def notification_added(
        self, info: Info, user_id: Optional[strawberry.ID] = None
    ) -> AsyncGenerator[Notification, None]:
        topics = notification_topics(parse_optional_id(user_id, "user ID"), info.context.user_id)
        async with info.context.pubsub.subscribe(topics) as events:
            async for notification in events:
                yield to_notification_type(notification)
