"""Profile lookups shared by every view.

Views attach display names and photos to rows keyed by ``user_id``.  Lookups
go through a small TTL cache so a burst of chat events from the same people
costs one read instead of one read per event.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

from pydantic import ValidationError as ModelError

from ..adapters.base import CollectionClient
from ..core.models import Profile

log = logging.getLogger(__name__)


class ProfileDirectory:
    collection = "profiles"

    def __init__(
        self,
        client: CollectionClient,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.ttl = ttl
        self.clock = clock
        # user_id -> (fetched_at, profile or None when the user has none)
        self._cache: dict[str, tuple[float, Profile | None]] = {}

    def _cached(self, user_id: str) -> tuple[bool, Profile | None]:
        entry = self._cache.get(user_id)
        if entry is None:
            return False, None
        fetched_at, profile = entry
        if self.clock() - fetched_at > self.ttl:
            del self._cache[user_id]
            return False, None
        return True, profile

    def _store(self, rows: Iterable[dict], requested: Iterable[str]) -> dict[str, Profile]:
        """Cache the fetched ``rows`` for ``requested`` ids and return them by id."""
        now = self.clock()
        found: dict[str, Profile] = {}
        for row in rows:
            try:
                profile = Profile(**row)
            except ModelError:
                log.warning("Ignoring malformed profile row %r", row.get("user_id"))
                continue
            found[profile.user_id] = profile
        for user_id in requested:
            self._cache[user_id] = (now, found.get(user_id))
        return found

    async def lookup_many(self, user_ids: Iterable[str]) -> dict[str, Profile]:
        """Return profiles for ``user_ids``, reading all misses in one query."""
        wanted = list(dict.fromkeys(u for u in user_ids if u))
        result: dict[str, Profile] = {}
        missing = []
        for user_id in wanted:
            hit, profile = self._cached(user_id)
            if not hit:
                missing.append(user_id)
            elif profile is not None:
                result[user_id] = profile
        if missing:
            rows = await self.client.query(self.collection, {"user_id": missing})
            result.update(self._store(rows, missing))
        return {u: result[u] for u in wanted if u in result}

    async def lookup(self, user_id: str) -> Profile | None:
        hit, profile = self._cached(user_id)
        if hit:
            return profile
        rows = await self.client.query(self.collection, {"user_id": user_id}, limit=1)
        return self._store(rows, [user_id]).get(user_id)

    def invalidate(self, user_id: str | None = None) -> None:
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)
