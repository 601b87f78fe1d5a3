"""Tests for the :mod:`circle_sync.adapters.supabase` module."""

import asyncio
import json
from typing import Any

import httpx
import pytest

from circle_sync.adapters.supabase import SupabaseCollectionClient, encode_filters
from circle_sync.errors import RemoteError, RemoteErrorKind


def run(coro: Any) -> Any:
    """Run an async coroutine synchronously for tests."""
    return asyncio.run(coro)


def make_client(handler, token: str = "") -> SupabaseCollectionClient:
    transport = httpx.MockTransport(handler)
    return SupabaseCollectionClient(
        "https://proj.example.co/",
        "ANON",
        access_token=token,
        client=httpx.AsyncClient(transport=transport),
    )


def test_encode_filters() -> None:
    """Filter values map onto PostgREST operators."""
    params = encode_filters(
        {
            "group_id": "g1",
            "user_id": ["a", "b,c"],
            "deleted_at": None,
            "read": False,
            "created_at": ("gt", "2024-01-01T00:00:00+00:00"),
        }
    )
    assert params == [
        ("group_id", "eq.g1"),
        ("user_id", 'in.(a,"b,c")'),
        ("deleted_at", "is.null"),
        ("read", "eq.false"),
        ("created_at", "gt.2024-01-01T00:00:00+00:00"),
    ]


def test_query_sends_select_order_and_limit() -> None:
    """``query`` builds the REST request and returns the rows."""
    captured: dict[str, httpx.Request] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        return httpx.Response(200, json=[{"id": "m1"}])

    client = make_client(handler, token="USER")
    rows = run(
        client.query(
            "group_messages",
            {"group_id": "g1"},
            order_by="created_at",
            ascending=False,
            limit=10,
        )
    )

    request = captured["request"]
    assert rows == [{"id": "m1"}]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/group_messages"
    assert request.url.params["select"] == "*"
    assert request.url.params["group_id"] == "eq.g1"
    assert request.url.params["order"] == "created_at.desc"
    assert request.url.params["limit"] == "10"
    assert request.headers["apikey"] == "ANON"
    assert request.headers["Authorization"] == "Bearer USER"


def test_writes_ask_for_representation() -> None:
    """Inserts, updates and deletes return the affected rows."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[{"id": "r1", "status": "approved"}])

    client = make_client(handler)

    async def scenario():
        inserted = await client.insert("group_join_requests", {"group_id": "g1"})
        updated = await client.update(
            "group_join_requests", {"id": "r1", "status": "pending"}, {"status": "approved"}
        )
        deleted = await client.delete("group_join_requests", {"id": "r1"})
        await client.close()
        return inserted, updated, deleted

    inserted, updated, deleted = run(scenario())
    assert inserted == {"id": "r1", "status": "approved"}
    assert updated == deleted == [{"id": "r1", "status": "approved"}]
    assert [r.method for r in seen] == ["POST", "PATCH", "DELETE"]
    assert all(r.headers["Prefer"] == "return=representation" for r in seen)
    assert json.loads(seen[1].content) == {"status": "approved"}
    assert seen[1].url.params["status"] == "eq.pending"
    assert seen[0].headers["Authorization"] == "Bearer ANON"


def test_rpc_with_empty_body_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/rpc/create_notification"
        assert json.loads(request.content)["p_user_id"] == "u1"
        return httpx.Response(204)

    client = make_client(handler)
    assert run(client.rpc("create_notification", {"p_user_id": "u1"})) is None


@pytest.mark.parametrize(
    ("status", "body", "kind"),
    [
        (401, {"message": "JWT expired"}, RemoteErrorKind.DENIED),
        (400, {"code": "42501", "message": "permission denied"}, RemoteErrorKind.DENIED),
        (404, {"message": "missing"}, RemoteErrorKind.NOT_FOUND),
        (406, {"code": "PGRST116", "message": "0 rows"}, RemoteErrorKind.NOT_FOUND),
        (409, {"code": "23505", "message": "duplicate key"}, RemoteErrorKind.CONFLICT),
        (500, {"message": "oops"}, RemoteErrorKind.NETWORK),
    ],
)
def test_error_responses_map_to_kinds(status, body, kind) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    client = make_client(handler)
    with pytest.raises(RemoteError) as info:
        run(client.query("groups"))
    assert info.value.kind == kind
    assert info.value.status == status
    assert info.value.message == body["message"]


def test_transport_failure_is_a_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    with pytest.raises(RemoteError) as info:
        run(client.insert("groups", {"name": "A"}))
    assert info.value.kind == RemoteErrorKind.NETWORK
    assert "connection refused" in info.value.message
