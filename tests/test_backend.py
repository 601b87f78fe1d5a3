"""Tests for :func:`circle_sync.backend.connect`."""

import asyncio

import httpx

from circle_sync.adapters.auth import StaticIdentity, SupabaseIdentity
from circle_sync.adapters.local import LocalCollectionClient
from circle_sync.adapters.storage import SupabaseStorage
from circle_sync.adapters.supabase import SupabaseCollectionClient
from circle_sync.backend import connect
from circle_sync.config import Settings
from circle_sync.realtime.local import LocalChangeFeed
from circle_sync.realtime.polling import PollingChangeFeed


def test_connect_local_round_trip(tmp_path):
    settings = Settings(data_path=str(tmp_path / "data.json"))
    backend = connect(settings, user_id="u1")
    assert isinstance(backend.client, LocalCollectionClient)
    assert isinstance(backend.feed, LocalChangeFeed)
    assert isinstance(backend.identity, StaticIdentity)
    assert backend.avatars() is None

    async def scenario():
        group = await backend.groups().create_group("Umoja", "Nairobi", "women", 10)
        chat = backend.group_chat()
        await chat.activate(group.id)
        await chat.send("karibu")
        await backend.feed.drain()
        roster = backend.members()
        await roster.activate(group.id)
        messages = [m.message for m in chat.records]
        await backend.close()
        return messages, [m.user_id for m in roster.records]

    messages, members = asyncio.run(scenario())
    assert messages == ["karibu"]
    assert members == ["u1"]
    assert (tmp_path / "data.json").exists()


def test_connect_remote_wiring():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[])

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    settings = Settings(url="https://proj.example.co", api_key="ANON", poll_seconds=5, live_edits=True)
    backend = connect(settings, http=http)

    assert isinstance(backend.client, SupabaseCollectionClient)
    assert isinstance(backend.feed, PollingChangeFeed)
    assert backend.feed.interval == 5
    assert isinstance(backend.identity, SupabaseIdentity)
    assert isinstance(backend.storage, SupabaseStorage)
    assert backend.avatars() is not None
    assert backend.join_requests().events[-1].value == "DELETE"
    assert backend.group_chat().profiles is backend.profiles
