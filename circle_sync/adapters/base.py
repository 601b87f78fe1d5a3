"""Base interfaces for the external collaborators of the sync layer."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from ..errors import RemoteError, RemoteErrorKind

log = logging.getLogger(__name__)

FILTER_OPS = {"eq", "neq", "gt", "gte", "lt", "lte", "in", "is"}

Filters = Mapping[str, Any]


def normalise_filter(value: Any) -> tuple[str, Any]:
    """Return ``(op, operand)`` for a filter value.

    Scalars mean equality, collections mean membership and an explicit
    ``(op, value)`` pair is passed through.
    """
    if isinstance(value, tuple) and len(value) == 2 and value[0] in FILTER_OPS:
        return value[0], value[1]
    if isinstance(value, (list, tuple, set, frozenset)):
        return "in", list(value)
    if value is None:
        return "is", None
    return "eq", value


def _compare(op: str, actual: Any, operand: Any) -> bool:
    if op == "eq":
        return actual == operand
    if op == "neq":
        return actual != operand
    if op == "in":
        return actual in operand
    if op == "is":
        return actual is operand
    if actual is None:
        return False
    if op == "gt":
        return actual > operand
    if op == "gte":
        return actual >= operand
    if op == "lt":
        return actual < operand
    return actual <= operand


def matches(record: Mapping[str, Any], filters: Filters | None) -> bool:
    """Evaluate ``filters`` against a single row, the way the store would."""
    for column, value in (filters or {}).items():
        op, operand = normalise_filter(value)
        if not _compare(op, record.get(column), operand):
            return False
    return True


class CollectionClient(ABC):
    """Abstract access to named remote collections (tables).

    All methods raise :class:`~circle_sync.errors.RemoteError` on failure and
    never retry.
    """

    @abstractmethod
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
        """Return rows of ``collection`` matching every filter."""

    @abstractmethod
    async def insert(self, collection: str, record: Mapping[str, Any]) -> dict:
        """Insert ``record`` and return the stored row."""

    @abstractmethod
    async def update(
        self, collection: str, filters: Filters, patch: Mapping[str, Any]
    ) -> list[dict]:
        """Apply ``patch`` to matching rows and return them."""

    @abstractmethod
    async def delete(self, collection: str, filters: Filters) -> list[dict]:
        """Delete matching rows and return them.  Zero rows is not an error."""

    @abstractmethod
    async def rpc(self, function: str, params: Mapping[str, Any]) -> Any:
        """Invoke a remote procedure."""

    # ------------------------------------------------------------------
    async def get(self, collection: str, record_id: str) -> dict:
        rows = await self.query(collection, {"id": record_id}, limit=1)
        if not rows:
            raise RemoteError(
                RemoteErrorKind.NOT_FOUND, f"{collection} {record_id} not found."
            )
        return rows[0]

    async def update_by_id(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> dict:
        rows = await self.update(collection, {"id": record_id}, patch)
        if not rows:
            raise RemoteError(
                RemoteErrorKind.NOT_FOUND, f"{collection} {record_id} not found."
            )
        return rows[0]

    async def adjust_counter(
        self,
        collection: str,
        record_id: str,
        field: str,
        delta: int,
        attempts: int = 5,
    ) -> int:
        """Add ``delta`` to a numeric column and return the new value.

        The write is conditional on the value read just before it, so two
        concurrent adjustments can never overwrite each other; the loser
        re-reads and tries again.
        """
        for attempt in range(1, attempts + 1):
            row = await self.get(collection, record_id)
            current = row.get(field)
            new_value = (current or 0) + delta
            rows = await self.update(
                collection,
                {"id": record_id, field: current},
                {field: new_value},
            )
            if rows:
                return new_value
            log.debug(
                "Counter %s.%s on %s changed under us (attempt %d)",
                collection,
                field,
                record_id,
                attempt,
            )
        raise RemoteError(
            RemoteErrorKind.CONFLICT,
            f"Could not update {collection}.{field} after {attempts} attempts.",
        )


class IdentityProvider(ABC):
    """Source of the currently authenticated user."""

    @abstractmethod
    async def get_current_user(self) -> dict | None:
        """Return ``{"id": ..., "email": ...}`` or ``None`` when signed out."""

    @abstractmethod
    async def sign_out(self) -> None:
        """End the session.  Raises :class:`~circle_sync.errors.AuthError`."""


class ObjectStorage(ABC):
    """Blob storage used for profile photos."""

    @abstractmethod
    async def upload(
        self, path: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        """Store ``data`` at ``path`` and return its public URL."""

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the object at ``path``."""

    def path_from_url(self, url: str) -> str | None:
        """Return the object path behind a URL from :meth:`upload`, if known."""
        return None
