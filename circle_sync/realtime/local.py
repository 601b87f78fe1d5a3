"""In-process change feed fed by :class:`~circle_sync.adapters.local.LocalCollectionClient`."""

from __future__ import annotations

from typing import Any

from ..core.models import ChangeKind
from .base import ChangeFeed, Subscription


class LocalChangeFeed(ChangeFeed):
    """Pushes every published change to the subscriptions that want it."""

    def publish(self, collection: str, kind: ChangeKind, record: dict[str, Any]) -> int:
        """Fan ``record`` out and return how many subscriptions received it."""
        delivered = 0
        for sub in self._subscriptions:
            if sub.wants(collection, kind, record):
                sub.push(kind, record)
                delivered += 1
        return delivered

    async def drain(self) -> None:
        """Wait until every open subscription has handled its queued events."""
        for sub in list(self._subscriptions):
            await sub.drain()

    def _opened(self, sub: Subscription) -> None:
        pass

    def _closed(self, sub: Subscription) -> None:
        pass
