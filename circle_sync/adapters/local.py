"""In-process collection store with optional JSON persistence.

Behaves like the remote store as far as this layer can tell: rows get an
``id`` and ``created_at`` on insert, table defaults are filled in, and every
write is published to an attached :class:`LocalChangeFeed`.
"""

from __future__ import annotations

import copy
import datetime
import json
import os
import uuid
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC
from typing import Any

from ..core.models import ChangeKind
from ..errors import RemoteError, RemoteErrorKind
from ..realtime.local import LocalChangeFeed
from .base import CollectionClient, Filters, matches

RpcFunction = Callable[["LocalCollectionClient", Mapping[str, Any]], Awaitable[Any]]

# Column defaults the store applies on insert.
TABLE_DEFAULTS: dict[str, dict[str, Any]] = {
    "groups": {"member_count": 0, "current_balance": 0, "description": ""},
    "group_members": {"current_balance": 0},
    "group_join_requests": {"status": "pending"},
    "notifications": {"read": False},
    "profiles": {"total_savings": 0},
}


async def _create_notification(
    client: LocalCollectionClient, params: Mapping[str, Any]
) -> str:
    row = await client.insert(
        "notifications",
        {
            "user_id": params["p_user_id"],
            "type": params["p_type"],
            "title": params["p_title"],
            "message": params["p_message"],
            "related_id": params.get("p_related_id"),
        },
    )
    return row["id"]


class LocalCollectionClient(CollectionClient):
    """Collection client backed by process memory and, optionally, a file."""

    def __init__(
        self,
        path: str | None = None,
        feed: LocalChangeFeed | None = None,
    ) -> None:
        self.path = path
        self.feed = feed
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self._functions: dict[str, RpcFunction] = {
            "create_notification": _create_notification,
        }
        self._last_ts: datetime.datetime | None = None
        self._load()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _load(self) -> None:
        """Load store contents from ``self.path`` if it exists."""
        if not self.path or not os.path.exists(self.path):
            return
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        self.collections = {
            name: [dict(row) for row in rows]
            for name, rows in data.get("collections", {}).items()
        }

    def save(self) -> None:
        """Persist the current state atomically."""
        if not self.path:
            return
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(
                {"collections": self.collections}, f, indent=2, ensure_ascii=False
            )
        os.replace(tmp, self.path)

    def _now(self) -> str:
        # strictly increasing so created_at ordering matches insertion order
        now = datetime.datetime.now(tz=UTC)
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + datetime.timedelta(microseconds=1)
        self._last_ts = now
        return now.isoformat()

    def _publish(self, collection: str, kind: ChangeKind, row: dict[str, Any]) -> None:
        if self.feed is not None:
            self.feed.publish(collection, kind, copy.deepcopy(row))

    def register_function(self, name: str, func: RpcFunction) -> None:
        self._functions[name] = func

    # ------------------------------------------------------------------
    # CollectionClient
    # ------------------------------------------------------------------
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
        rows = [
            r for r in self.collections.get(collection, []) if matches(r, filters)
        ]
        if order_by:
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=not ascending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        if columns.strip() != "*":
            wanted = [c.strip() for c in columns.split(",") if c.strip()]
            return [{c: r.get(c) for c in wanted} for r in rows]
        return copy.deepcopy(rows)

    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        row: dict[str, Any] = dict(TABLE_DEFAULTS.get(collection, {}))
        row.update(record)
        row.setdefault("id", uuid.uuid4().hex)
        table = self.collections.setdefault(collection, [])
        if any(r["id"] == row["id"] for r in table):
            raise RemoteError(
                RemoteErrorKind.CONFLICT,
                f"duplicate key value violates unique constraint on {collection}.id",
                status=409,
            )
        row.setdefault("created_at", self._now())
        if collection == "group_members":
            row.setdefault("joined_at", row["created_at"])
        table.append(row)
        self.save()
        self._publish(collection, ChangeKind.INSERT, row)
        return copy.deepcopy(row)

    async def update(
        self, collection: str, filters: Filters, patch: Mapping[str, Any]
    ) -> list[dict]:
        changed = []
        for row in self.collections.get(collection, []):
            if matches(row, filters):
                row.update(patch)
                changed.append(copy.deepcopy(row))
        if changed:
            self.save()
            for row in changed:
                self._publish(collection, ChangeKind.UPDATE, row)
        return changed

    async def delete(self, collection: str, filters: Filters) -> list[dict]:
        table = self.collections.get(collection, [])
        removed = [r for r in table if matches(r, filters)]
        if removed:
            self.collections[collection] = [r for r in table if not matches(r, filters)]
            self.save()
            for row in removed:
                self._publish(collection, ChangeKind.DELETE, row)
        return removed

    async def rpc(self, function: str, params: Mapping[str, Any]) -> Any:
        func = self._functions.get(function)
        if func is None:
            raise RemoteError(
                RemoteErrorKind.NOT_FOUND, f"Function {function} not found.", status=404
            )
        return await func(self, params)
