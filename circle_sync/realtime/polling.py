"""Insert-only change feed that polls the remote store.

The remote store's push channel is not available to this client, so new rows
are discovered by periodically asking for anything created after the newest
row already seen.  Updates and deletes are never reported; views pick those up
on refresh.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from datetime import UTC

from ..adapters.base import CollectionClient
from ..core.models import ChangeKind
from ..errors import RemoteError
from .base import ChangeFeed, Subscription

log = logging.getLogger(__name__)


class PollingChangeFeed(ChangeFeed):
    def __init__(self, client: CollectionClient, interval: float = 2.0) -> None:
        super().__init__()
        self.client = client
        self.interval = interval
        self._pollers: dict[int, asyncio.Task] = {}

    def _opened(self, sub: Subscription) -> None:
        if ChangeKind.INSERT not in sub.events:
            return
        task = asyncio.get_running_loop().create_task(self._poll(sub))
        self._pollers[id(sub)] = task

    def _closed(self, sub: Subscription) -> None:
        task = self._pollers.pop(id(sub), None)
        if task is not None:
            task.cancel()

    async def poll_once(self, sub: Subscription, cursor: str) -> str:
        """Fetch rows newer than ``cursor``, queue them and return the new cursor."""
        rows = await self.client.query(
            sub.collection,
            {**sub.filters, "created_at": ("gt", cursor)},
            order_by="created_at",
            ascending=True,
        )
        for row in rows:
            if sub.closed:
                break
            created = row.get("created_at")
            if created and created > cursor:
                cursor = created
            sub.push(ChangeKind.INSERT, row)
        return cursor

    async def _poll(self, sub: Subscription) -> None:
        cursor = sub.since or datetime.datetime.now(tz=UTC).isoformat()
        while not sub.closed:
            await asyncio.sleep(self.interval)
            try:
                cursor = await self.poll_once(sub, cursor)
            except RemoteError as exc:
                # keep polling; the next tick retries from the same cursor
                log.warning(
                    "Polling %s for %s failed: %s", sub.collection, sub.topic, exc.message
                )
