"""
In-process publish/subscribe relay used for GraphQL subscriptions.

A relay instance is created by the application factory and handed to
resolvers through the GraphQL context. Delivery is best effort: there is no
history, a stream only sees events published while it is registered, and
per-stream queues are unbounded.
"""
import asyncio
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


class SubscriptionEvent(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    PRODUCT_CREATED = "PRODUCT_CREATED"
    PRODUCT_UPDATED = "PRODUCT_UPDATED"
    PRODUCT_DELETED = "PRODUCT_DELETED"
    NOTIFICATION_ADDED = "NOTIFICATION_ADDED"


def topic(event: SubscriptionEvent, entity_id: Any = None) -> str:
    """`<EVENT>` for the global channel, `<EVENT>_<entityId>` for a scoped one"""
    if entity_id is None:
        return event.value
    return f"{event.value}_{entity_id}"


_CLOSED = object()


class EventStream:
    """
    Live sequence of payloads for a set of topics.

    Registration happens on construction, so events published after
    ``PubSub.subscribe`` returns are queued even before iteration starts.
    A payload published on two topics of the same stream is queued twice.
    """

    def __init__(self, pubsub: "PubSub", topics: List[str]):
        self.topics = topics
        self._pubsub = pubsub
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        for name in topics:
            pubsub._register(name, self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        for name in self.topics:
            self._pubsub._unregister(name, self._queue)
        # wake a consumer blocked on get()
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class PubSub:
    """Topic registry: topic name -> queues of the streams listening on it"""

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = defaultdict(set)

    async def publish(self, topic_name: str, payload: Any) -> int:
        """Deliver payload to every stream currently subscribed to topic_name"""
        queues = list(self._subscribers.get(topic_name, ()))
        for queue in queues:
            queue.put_nowait(payload)
        logger.debug(f"Published to {topic_name} ({len(queues)} subscriber(s))")
        return len(queues)

    def subscribe(self, topics: Iterable[str]) -> EventStream:
        names = list(topics)
        if not names:
            raise ValueError("At least one topic is required")
        logger.debug(f"New subscription on {', '.join(names)}")
        return EventStream(self, names)

    def subscriber_count(self, topic_name: Optional[str] = None) -> int:
        if topic_name is not None:
            return len(self._subscribers.get(topic_name, ()))
        return sum(len(queues) for queues in self._subscribers.values())

    def _register(self, topic_name: str, queue: asyncio.Queue):
        self._subscribers[topic_name].add(queue)

    def _unregister(self, topic_name: str, queue: asyncio.Queue):
        queues = self._subscribers.get(topic_name)
        if queues is None:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[topic_name]
