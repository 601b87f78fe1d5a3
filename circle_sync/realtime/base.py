"""Change subscriptions over a remote collection."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from ..adapters.base import Filters, matches
from ..core.models import ChangeEvent, ChangeKind
from ..errors import ValidationError

log = logging.getLogger(__name__)

EventHandler = Callable[[ChangeEvent], Awaitable[None]]


class Subscription:
    """Handle for one live subscription.

    Events are queued and handed to ``handler`` one at a time by a single
    consumer task, so a slow handler (one that awaits a profile read) never
    lets a later event overtake an earlier one.
    """

    def __init__(
        self,
        topic: str,
        collection: str,
        filters: Filters,
        handler: EventHandler,
        events: Iterable[ChangeKind | str],
        since: str | None = None,
    ) -> None:
        self.topic = topic
        self.collection = collection
        self.filters = dict(filters)
        self.handler = handler
        try:
            self.events = frozenset(ChangeKind(e) for e in events)
        except ValueError:
            raise ValidationError(
                f"Unknown change event in {list(events)!r}.", field="events"
            ) from None
        self.since = since
        self.closed = False
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._consume())

    def wants(self, collection: str, kind: ChangeKind, record: dict[str, Any]) -> bool:
        return (
            not self.closed
            and collection == self.collection
            and kind in self.events
            and matches(record, self.filters)
        )

    def push(self, kind: ChangeKind, record: dict[str, Any]) -> None:
        if self.closed:
            return
        self._queue.put_nowait(
            ChangeEvent(
                topic=self.topic,
                collection=self.collection,
                kind=kind,
                record=dict(record),
            )
        )

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        await self._queue.join()

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.handler(event)
            except Exception:
                log.exception(
                    "Handler for %s on topic %s failed", self.collection, self.topic
                )
            finally:
                self._queue.task_done()

    def close(self) -> None:
        self.closed = True
        if self._task is not None:
            self._task.cancel()
            self._task = None


class ChangeFeed(ABC):
    """Source of change events, one :class:`Subscription` per topic."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    async def subscribe(
        self,
        topic: str,
        collection: str,
        filters: Filters,
        handler: EventHandler,
        events: Iterable[ChangeKind | str] = (ChangeKind.INSERT,),
        since: str | None = None,
    ) -> Subscription:
        """Open a subscription; it stays live until :meth:`close`.

        ``since`` is the newest ``created_at`` the caller already holds; feeds
        that cannot push use it as their starting cursor.
        """
        sub = Subscription(topic, collection, filters, handler, events, since)
        sub.start()
        self._subscriptions.append(sub)
        self._opened(sub)
        log.debug("Subscribed to %s (%s)", collection, topic)
        return sub

    def close(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
            self._closed(sub)
        sub.close()

    def close_all(self) -> None:
        for sub in list(self._subscriptions):
            self.close(sub)

    # ------------------------------------------------------------------
    @abstractmethod
    def _opened(self, sub: Subscription) -> None:
        """Start delivering events for ``sub``."""

    @abstractmethod
    def _closed(self, sub: Subscription) -> None:
        """Stop delivering events for ``sub``."""
