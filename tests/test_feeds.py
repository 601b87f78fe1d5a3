"""Tests for the change feeds in :mod:`circle_sync.realtime`."""

import asyncio

import pytest

from circle_sync.adapters.local import LocalCollectionClient
from circle_sync.core.models import ChangeKind
from circle_sync.errors import ValidationError
from circle_sync.realtime.local import LocalChangeFeed
from circle_sync.realtime.polling import PollingChangeFeed


def _collector():
    seen = []

    async def handler(event):
        # yield so a later event could overtake if ordering were not enforced
        await asyncio.sleep(0)
        seen.append((event.kind, event.record["n"]))

    return seen, handler


def test_local_feed_delivers_matching_events_in_order():
    feed = LocalChangeFeed()
    seen, handler = _collector()

    async def scenario():
        await feed.subscribe("msgs:g1", "group_messages", {"group_id": "g1"}, handler)
        for n in range(5):
            feed.publish("group_messages", ChangeKind.INSERT, {"group_id": "g1", "n": n})
        skipped = [
            feed.publish("group_messages", ChangeKind.INSERT, {"group_id": "g2", "n": 99}),
            feed.publish("group_members", ChangeKind.INSERT, {"group_id": "g1", "n": 98}),
            feed.publish("group_messages", ChangeKind.UPDATE, {"group_id": "g1", "n": 97}),
        ]
        await feed.drain()
        return skipped

    assert asyncio.run(scenario()) == [0, 0, 0]
    assert seen == [(ChangeKind.INSERT, n) for n in range(5)]


def test_closed_subscription_receives_nothing():
    feed = LocalChangeFeed()
    seen, handler = _collector()

    async def scenario():
        sub = await feed.subscribe("t", "c", {}, handler, events=[ChangeKind.INSERT, "delete"])
        feed.publish("c", ChangeKind.DELETE, {"n": 1})
        await feed.drain()
        feed.close(sub)
        delivered = feed.publish("c", ChangeKind.INSERT, {"n": 2})
        return sub, delivered

    sub, delivered = asyncio.run(scenario())
    assert seen == [(ChangeKind.DELETE, 1)]
    assert delivered == 0
    assert sub.closed
    assert feed.subscriptions == []


def test_failing_handler_does_not_stop_the_subscription(caplog):
    feed = LocalChangeFeed()
    seen = []

    async def handler(event):
        if event.record["n"] == 1:
            raise RuntimeError("boom")
        seen.append(event.record["n"])

    async def scenario():
        await feed.subscribe("t", "c", {}, handler)
        for n in range(3):
            feed.publish("c", ChangeKind.INSERT, {"n": n})
        await feed.drain()
        feed.close_all()

    asyncio.run(scenario())
    assert seen == [0, 2]
    assert "Handler for c on topic t failed" in caplog.text


def test_polling_feed_advances_cursor_and_pushes_new_rows():
    store = LocalCollectionClient()
    feed = PollingChangeFeed(store, interval=3600)
    seen = []

    async def handler(event):
        seen.append(event.record["message"])

    async def scenario():
        old = await store.insert("group_messages", {"group_id": "g1", "message": "old"})
        sub = await feed.subscribe(
            "msgs:g1", "group_messages", {"group_id": "g1"}, handler, since=old["created_at"]
        )
        await store.insert("group_messages", {"group_id": "g1", "message": "one"})
        await store.insert("group_messages", {"group_id": "g2", "message": "elsewhere"})
        last = await store.insert("group_messages", {"group_id": "g1", "message": "two"})
        cursor = await feed.poll_once(sub, old["created_at"])
        again = await feed.poll_once(sub, cursor)
        await sub.drain()
        feed.close_all()
        return cursor, again, last

    cursor, again, last = asyncio.run(scenario())
    assert seen == ["one", "two"]
    assert cursor == again == last["created_at"]


def test_polling_feed_only_polls_insert_subscriptions():
    store = LocalCollectionClient()
    feed = PollingChangeFeed(store, interval=3600)

    async def handler(event):
        pass

    async def scenario():
        inserts = await feed.subscribe("a", "c", {}, handler)
        deletes = await feed.subscribe("b", "c", {}, handler, events=[ChangeKind.DELETE])
        pollers = len(feed._pollers)
        feed.close(inserts)
        feed.close(deletes)
        return pollers, len(feed._pollers)

    assert asyncio.run(scenario()) == (1, 0)


def test_event_names_are_case_insensitive_and_checked():
    feed = LocalChangeFeed()

    async def handler(event):
        pass

    async def scenario():
        sub = await feed.subscribe("t", "c", {}, handler, events=["insert", " Update "])
        with pytest.raises(ValidationError) as info:
            await feed.subscribe("t", "c", {}, handler, events=["upsert"])
        feed.close_all()
        return sub, info.value

    sub, err = asyncio.run(scenario())
    assert sub.events == {ChangeKind.INSERT, ChangeKind.UPDATE}
    assert err.field == "events"
    assert feed.subscriptions == []
