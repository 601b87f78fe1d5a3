"""Local view state kept consistent with a remote collection.

A view holds the enriched, ordered rows of one collection for one group.  It
is filled by a bulk read and then kept current by a change subscription:

``idle -> loading -> ready | failed``, ``ready -> ready`` on every event and
``ready -> loading`` on :meth:`ViewReconciler.refresh`.

Every read is tagged with the generation that issued it.  Activating another
group or deactivating bumps the generation, and results belonging to an older
generation are dropped when they arrive.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError as ModelError

from ..adapters.base import CollectionClient, IdentityProvider, matches
from ..core.models import UNKNOWN_USER, ChangeEvent, ChangeKind, Profile, Record
from ..errors import AuthError, RemoteError
from ..realtime.base import ChangeFeed, Subscription
from .profiles import ProfileDirectory

log = logging.getLogger(__name__)


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ViewReconciler:
    """Base class for a collection-backed view of one group."""

    collection: str = ""
    model: type[Record] = Record
    order_by: str = "created_at"
    ascending: bool = True
    actor_field: str = "user_id"

    def __init__(
        self,
        client: CollectionClient,
        feed: ChangeFeed,
        profiles: ProfileDirectory | None = None,
        identity: IdentityProvider | None = None,
        live_edits: bool = False,
    ) -> None:
        self.client = client
        self.feed = feed
        self.profiles = profiles or ProfileDirectory(client)
        self.identity = identity
        self.events = (
            (ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE)
            if live_edits
            else (ChangeKind.INSERT,)
        )
        self.state = ViewState.IDLE
        self.group_id: str | None = None
        self.records: list[Any] = []
        self.last_error: RemoteError | None = None
        self._index: dict[str, Any] = {}
        self._generation = 0
        self._subscription: Subscription | None = None

    # ------------------------------------------------------------------
    # Hooks for concrete views
    # ------------------------------------------------------------------
    def base_filters(self, group_id: str) -> dict[str, Any]:
        return {"group_id": group_id}

    def enrich(self, row: dict[str, Any], profile: Profile | None) -> dict[str, Any]:
        return {**row, "user_name": profile.name if profile else UNKNOWN_USER}

    # ------------------------------------------------------------------
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def __len__(self) -> int:
        return len(self.records)

    def get(self, record_id: str) -> Any | None:
        return self._index.get(record_id)

    def _build(self, row: dict[str, Any], profile: Profile | None) -> Any | None:
        try:
            return self.model(**self.enrich(row, profile))
        except ModelError:
            log.warning("Ignoring malformed %s row %r", self.collection, row.get("id"))
            return None

    async def _enrich_many(self, rows: list[dict[str, Any]]) -> list[Any]:
        profiles = await self.profiles.lookup_many(r.get(self.actor_field) for r in rows)
        built = (self._build(r, profiles.get(r.get(self.actor_field))) for r in rows)
        return [b for b in built if b is not None]

    def _replace_all(self, records: list[Any]) -> None:
        self.records = []
        self._index = {}
        for record in records:
            self._put(record)

    def _put(self, record: Any, live: bool = False) -> None:
        """Add ``record``, or replace the row with the same id in place.

        Rows from the bulk read arrive already ordered and are appended.  A
        live row is the newest one, so it goes to the tail of an ascending
        view and to the head of a descending one.
        """
        if record.id and record.id in self._index:
            for pos, existing in enumerate(self.records):
                if existing.id == record.id:
                    self.records[pos] = record
                    break
        elif live and not self.ascending:
            self.records.insert(0, record)
        else:
            self.records.append(record)
        if record.id:
            self._index[record.id] = record

    def _drop(self, record_id: str | None) -> bool:
        if not record_id or record_id not in self._index:
            return False
        del self._index[record_id]
        self.records = [r for r in self.records if r.id != record_id]
        return True

    def _close_subscription(self) -> None:
        if self._subscription is not None:
            self.feed.close(self._subscription)
            self._subscription = None

    async def _current_user_id(self, user_id: str | None, action: str) -> str:
        if not user_id and self.identity is not None:
            user = await self.identity.get_current_user()
            user_id = user["id"] if user else None
        if not user_id:
            raise AuthError(f"You must be logged in to {action}.")
        return user_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def activate(self, group_id: str) -> bool:
        """Load ``group_id`` and start following its changes.

        Returns ``False`` when the load failed or was superseded.  A failed
        load leaves an empty, ``failed`` view rather than raising.
        """
        self._close_subscription()
        self._generation += 1
        generation = self._generation
        self.group_id = group_id
        self.state = ViewState.LOADING
        self.last_error = None
        filters = self.base_filters(group_id)

        try:
            rows = await self.client.query(
                self.collection,
                filters,
                order_by=self.order_by,
                ascending=self.ascending,
            )
            records = await self._enrich_many(rows)
        except RemoteError as exc:
            if generation != self._generation:
                return False
            log.warning(
                "Loading %s for group %s failed: %s", self.collection, group_id, exc.message
            )
            self._replace_all([])
            self.last_error = exc
            self.state = ViewState.FAILED
            return False

        if generation != self._generation:
            log.debug("Discarding stale %s load for group %s", self.collection, group_id)
            return False

        self._replace_all(records)
        self.state = ViewState.READY
        stamps = [r.get("created_at") for r in rows if r.get("created_at")]
        sub = await self.feed.subscribe(
            f"{self.collection}:{group_id}",
            self.collection,
            {"group_id": group_id},
            functools.partial(self._handle_event, generation),
            events=self.events,
            since=max(stamps) if stamps else None,
        )
        if generation != self._generation:
            self.feed.close(sub)
            return False
        self._subscription = sub
        return True

    async def refresh(self) -> bool:
        if self.group_id is None:
            return False
        return await self.activate(self.group_id)

    def deactivate(self) -> None:
        """Stop following the group and forget its rows."""
        self._generation += 1
        self._close_subscription()
        self._replace_all([])
        self.group_id = None
        self.state = ViewState.IDLE

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------
    async def _handle_event(self, generation: int, event: ChangeEvent) -> None:
        await self.on_remote_event(event, generation=generation)

    async def on_remote_event(
        self, event: ChangeEvent, generation: int | None = None
    ) -> None:
        """Apply one change event to the local rows."""
        if generation is None:
            generation = self._generation
        if generation != self._generation or self.state is not ViewState.READY:
            return

        row = event.record
        if event.kind is ChangeKind.DELETE:
            self._drop(row.get("id"))
            return
        if not matches(row, self.base_filters(self.group_id)):
            # e.g. a join request that is no longer pending
            self._drop(row.get("id"))
            return

        if event.kind is ChangeKind.UPDATE and row.get("id") in self._index:
            # keep the enrichment already attached; updates only touch own columns
            current = self._index[row["id"]].model_dump()
            row = {**current, **row}

        actor = row.get(self.actor_field)
        profile = await self.profiles.lookup(actor) if actor else None
        if generation != self._generation:
            return
        record = self._build(row, profile)
        if record is not None:
            self._put(record, live=True)
