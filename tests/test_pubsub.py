import asyncio
import uuid

import pytest

from conftest import drain
from utils.notifications import notification_topics
from utils.errors import ValidationError
from utils.pubsub import PubSub, SubscriptionEvent, topic


def test_topic_names():
    entity_id = uuid.uuid4()

    assert topic(SubscriptionEvent.ORDER_CREATED) == "ORDER_CREATED"
    assert topic(SubscriptionEvent.ORDER_CREATED, entity_id) == f"ORDER_CREATED_{entity_id}"


async def test_publish_reaches_only_current_subscribers():
    pubsub = PubSub()
    early = pubsub.subscribe(["ORDER_CREATED"])
    elsewhere = pubsub.subscribe(["ORDER_UPDATED"])

    delivered = await pubsub.publish("ORDER_CREATED", {"n": 1})
    late = pubsub.subscribe(["ORDER_CREATED"])

    assert delivered == 1
    assert drain(early) == [{"n": 1}]
    assert drain(elsewhere) == []
    assert drain(late) == []


async def test_publish_without_subscribers():
    assert await PubSub().publish("PRODUCT_CREATED", "payload") == 0


async def test_stream_merges_topics_and_keeps_duplicates():
    pubsub = PubSub()
    stream = pubsub.subscribe(["ORDER_UPDATED", "ORDER_UPDATED_42"])

    await pubsub.publish("ORDER_UPDATED", "a")
    await pubsub.publish("ORDER_UPDATED_42", "a")
    await pubsub.publish("ORDER_UPDATED_7", "b")

    assert [await stream.__anext__(), await stream.__anext__()] == ["a", "a"]
    assert drain(stream) == []


async def test_closing_a_stream_unregisters_it():
    pubsub = PubSub()

    async with pubsub.subscribe(["A", "B"]) as stream:
        assert pubsub.subscriber_count() == 2
        assert pubsub.subscriber_count("A") == 1

    assert stream.closed
    assert pubsub.subscriber_count() == 0
    assert await pubsub.publish("A", "lost") == 0


async def test_close_wakes_a_waiting_consumer():
    pubsub = PubSub()
    stream = pubsub.subscribe(["A"])
    received = []

    async def consume():
        async for item in stream:
            received.append(item)

    consumer = asyncio.create_task(consume())
    await pubsub.publish("A", 1)
    await asyncio.sleep(0)
    await stream.aclose()
    await asyncio.wait_for(consumer, timeout=1)

    assert received == [1]


def test_subscribe_requires_a_topic():
    with pytest.raises(ValueError):
        PubSub().subscribe([])


def test_notification_topics():
    user_id, caller_id = uuid.uuid4(), uuid.uuid4()

    assert notification_topics(user_id, caller_id) == [f"NOTIFICATION_ADDED_{user_id}"]
    assert notification_topics(None, caller_id) == [f"NOTIFICATION_ADDED_{caller_id}"]
    with pytest.raises(ValidationError, match="User ID required"):
        notification_topics()
