import asyncio

from seatwatch.broadcaster import EventBroadcaster


def test_publish_fans_out_to_topic_subscribers_only() -> None:
    async def scenario():
        broadcaster = EventBroadcaster()
        first = broadcaster.subscribe("EVT1")
        second = broadcaster.subscribe("EVT1")
        other = broadcaster.subscribe("EVT2")

        delivered = broadcaster.publish("EVT1", {"event": "ticketUpdate"})

        return delivered, first.get_nowait(), second.get_nowait(), other.queue.empty()

    delivered, first, second, other_empty = asyncio.run(scenario())

    assert delivered == 2
    assert first == second == {"event": "ticketUpdate"}
    assert other_empty


def test_unsubscribe_stops_delivery() -> None:
    async def scenario():
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe("EVT1")
        broadcaster.unsubscribe(subscription)
        broadcaster.unsubscribe(subscription)
        return broadcaster.publish("EVT1", "payload"), broadcaster.subscriber_count("EVT1"), subscription

    delivered, count, subscription = asyncio.run(scenario())

    assert delivered == 0
    assert count == 0
    assert subscription.active is False


def test_publish_without_subscribers_is_noop() -> None:
    assert EventBroadcaster().publish("nobody", {"x": 1}) == 0


def test_lagging_subscriber_drops_oldest_payload() -> None:
    async def scenario():
        broadcaster = EventBroadcaster(queue_size=2)
        subscription = broadcaster.subscribe("EVT1")
        for n in range(3):
            broadcaster.publish("EVT1", n)
        return [subscription.get_nowait() for _ in range(subscription.queue.qsize())]

    assert asyncio.run(scenario()) == [1, 2]


def test_subscription_iterates_payloads_in_order() -> None:
    async def scenario():
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe("EVT1")
        broadcaster.publish("EVT1", "a")
        broadcaster.publish("EVT1", "b")
        received = []
        async for payload in subscription:
            received.append(payload)
            if len(received) == 2:
                broadcaster.unsubscribe(subscription)
        return received

    assert asyncio.run(scenario()) == ["a", "b"]


def test_unsubscribe_wakes_idle_consumer() -> None:
    async def scenario():
        broadcaster = EventBroadcaster()
        subscription = broadcaster.subscribe("EVT1")
        received = []

        async def consume():
            async for payload in subscription:
                received.append(payload)

        consumer = asyncio.create_task(consume())
        broadcaster.publish("EVT1", "a")
        while not received:
            await asyncio.sleep(0)
        broadcaster.unsubscribe(subscription)
        await asyncio.wait_for(consumer, timeout=1)
        return received

    assert asyncio.run(scenario()) == ["a"]
