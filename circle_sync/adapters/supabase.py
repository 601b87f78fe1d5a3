"""Remote store adapter implementing :class:`~circle_sync.adapters.base.CollectionClient`.

Talks to the hosted backend's REST interface (PostgREST under ``/rest/v1``)
with :mod:`httpx`, so every call is fully asynchronous and tests can swap in
an :class:`httpx.MockTransport`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from ..errors import RemoteError, RemoteErrorKind
from .base import CollectionClient, Filters, normalise_filter

# PostgREST / Postgres error codes that carry more meaning than the status.
_NOT_FOUND_CODES = {"PGRST116", "42P01", "PGRST202"}
_CONFLICT_CODES = {"23505", "23503"}
_DENIED_CODES = {"42501"}


def _literal(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _in_literal(values: list[Any]) -> str:
    items = []
    for v in values:
        text = _literal(v)
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        items.append(text)
    return "(" + ",".join(items) + ")"


def encode_filters(filters: Filters | None) -> list[tuple[str, str]]:
    """Translate a filter mapping into PostgREST query parameters."""
    params = []
    for column, value in (filters or {}).items():
        op, operand = normalise_filter(value)
        if op == "in":
            params.append((column, f"in.{_in_literal(list(operand))}"))
        else:
            params.append((column, f"{op}.{_literal(operand)}"))
    return params


def error_from_response(response: httpx.Response) -> RemoteError:
    """Map a failed response onto a :class:`RemoteError`."""
    code = ""
    message = response.reason_phrase or f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = str(body.get("code") or "")
        message = body.get("message") or body.get("msg") or body.get("error") or message

    status = response.status_code
    if status in (401, 403) or code in _DENIED_CODES:
        kind = RemoteErrorKind.DENIED
    elif status == 404 or code in _NOT_FOUND_CODES:
        kind = RemoteErrorKind.NOT_FOUND
    elif status == 409 or code in _CONFLICT_CODES:
        kind = RemoteErrorKind.CONFLICT
    else:
        kind = RemoteErrorKind.NETWORK
    return RemoteError(kind, str(message), status=status)


class SupabaseHTTP:
    """Shared connection details for the hosted backend's HTTP services."""

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Store the project ``url`` and keys, and an optional HTTP ``client``."""
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.client = client or httpx.AsyncClient()

    def headers(self, **extra: str) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        headers.update(extra)
        return headers

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, f"{self.url}{path}", **kwargs)
        except httpx.TransportError as exc:
            raise RemoteError(RemoteErrorKind.NETWORK, str(exc) or type(exc).__name__) from exc
        if response.is_error:
            raise error_from_response(response)
        return response

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()


class SupabaseCollectionClient(SupabaseHTTP, CollectionClient):
    """Collection client for the hosted store's REST interface."""

    rest_path = "/rest/v1"

    async def query(
        self,
        collection: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict]:
        params = [("select", columns)] + encode_filters(filters)
        if order_by:
            params.append(("order", f"{order_by}.{'asc' if ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        response = await self._send(
            "GET",
            f"{self.rest_path}/{collection}",
            params=params,
            headers=self.headers(),
        )
        return list(response.json())

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        response = await self._send(
            "POST",
            f"{self.rest_path}/{collection}",
            json=dict(record),
            headers=self.headers(Prefer="return=representation"),
        )
        rows = response.json()
        return rows[0] if isinstance(rows, list) else rows

    async def update(
        self, collection: str, filters: Filters, patch: Mapping[str, Any]
    ) -> list[dict]:
        response = await self._send(
            "PATCH",
            f"{self.rest_path}/{collection}",
            params=encode_filters(filters),
            json=dict(patch),
            headers=self.headers(Prefer="return=representation"),
        )
        return list(response.json())

    async def delete(self, collection: str, filters: Filters) -> list[dict]:
        response = await self._send(
            "DELETE",
            f"{self.rest_path}/{collection}",
            params=encode_filters(filters),
            headers=self.headers(Prefer="return=representation"),
        )
        return list(response.json())

    async def rpc(self, function: str, params: Mapping[str, Any]) -> Any:
        response = await self._send(
            "POST",
            f"{self.rest_path}/rpc/{function}",
            json=dict(params),
            headers=self.headers(),
        )
        if not response.content:
            return None
        return response.json()
