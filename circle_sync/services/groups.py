"""Group creation, settings and join requests."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Mapping
from datetime import UTC
from typing import Any

from ..adapters.base import CollectionClient, IdentityProvider
from ..core.models import Group, GroupCategory
from ..errors import AuthError, PartialWriteError, RemoteError, ValidationError

log = logging.getLogger(__name__)

SETTINGS_FIELDS = ("name", "description", "location", "category", "size")


class JoinOutcome:
    MEMBER = "member"
    ALREADY_REQUESTED = "already_requested"
    REQUESTED = "requested"


def _parse_size(value: Any) -> int:
    try:
        size = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Group size must be a whole number.", field="size") from None
    if size < 1:
        raise ValidationError("Group size must be at least 1.", field="size")
    return size


def _parse_category(value: Any) -> str:
    try:
        return GroupCategory(str(value).strip().lower()).value
    except ValueError:
        allowed = ", ".join(c.value for c in GroupCategory)
        raise ValidationError(
            f"Category must be one of: {allowed}.", field="category"
        ) from None


def _required_text(value: Any, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field.capitalize()} is required.", field=field)
    return text


class GroupService:
    def __init__(
        self, client: CollectionClient, identity: IdentityProvider
    ) -> None:
        self.client = client
        self.identity = identity

    async def _require_user(self, action: str) -> str:
        user = await self.identity.get_current_user()
        if not user:
            raise AuthError(f"You must be logged in to {action}.")
        return user["id"]

    # ------------------------------------------------------------------
    # Group operations
    # ------------------------------------------------------------------
    async def create_group(
        self,
        name: str,
        location: str,
        category: str,
        size: Any,
        description: str = "",
    ) -> Group:
        """Create a group with the current user as creator and first member."""
        fields = {
            "name": _required_text(name, "name"),
            "description": (description or "").strip(),
            "location": _required_text(location, "location"),
            "category": _parse_category(category),
            "size": _parse_size(size),
        }
        user_id = await self._require_user("create a group")

        row = await self.client.insert(
            "groups",
            {**fields, "member_count": 1, "current_balance": 0, "created_by": user_id},
        )
        try:
            await self.client.insert(
                "group_members",
                {"group_id": row["id"], "user_id": user_id, "current_balance": 0},
            )
        except RemoteError as exc:
            log.error("Group %s created without creator membership: %s", row["id"], exc.message)
            raise PartialWriteError(exc, ["insert_group"], "insert_membership") from exc
        log.info("Group %s created by %s", row["id"], user_id)
        return Group(**row)

    async def get_group(self, group_id: str) -> Group:
        return Group(**await self.client.get("groups", group_id))

    async def is_admin(self, group_id: str, user_id: str | None = None) -> bool:
        """Only the creator administers a group."""
        if user_id is None:
            user = await self.identity.get_current_user()
            if not user:
                return False
            user_id = user["id"]
        group = await self.client.get("groups", group_id)
        return group.get("created_by") == user_id

    async def update_settings(
        self, group_id: str, changes: Mapping[str, Any], is_admin: bool
    ) -> Group:
        if not is_admin:
            raise AuthError("Only admins can modify group settings.")
        unknown = set(changes) - set(SETTINGS_FIELDS)
        if unknown:
            raise ValidationError(
                f"Cannot change {', '.join(sorted(unknown))}.", field=sorted(unknown)[0]
            )
        patch: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "size":
                patch[key] = _parse_size(value)
            elif key == "category":
                patch[key] = _parse_category(value)
            elif key == "description":
                patch[key] = (value or "").strip()
            else:
                patch[key] = _required_text(value, key)

        if "size" in patch:
            current = await self.client.get("groups", group_id)
            if patch["size"] < (current.get("member_count") or 0):
                raise ValidationError(
                    "Group size cannot be smaller than the current member count.",
                    field="size",
                )
        patch["updated_at"] = datetime.datetime.now(tz=UTC).isoformat()
        return Group(**await self.client.update_by_id("groups", group_id, patch))

    async def find_groups(
        self, search: str = "", category: str = "all", location: str = "all"
    ) -> list[Group]:
        """The group directory, newest first, narrowed by the given filters."""
        rows = await self.client.query("groups", order_by="created_at", ascending=False)
        term = (search or "").strip().lower()
        result = []
        for row in rows:
            group = Group(**row)
            if term and term not in group.name.lower():
                continue
            if category != "all" and group.category.value != category:
                continue
            if location != "all" and group.location != location:
                continue
            result.append(group)
        return result

    # ------------------------------------------------------------------
    # Joining
    # ------------------------------------------------------------------
    async def request_to_join(self, group_id: str) -> str:
        """File a join request for the current user.

        Returns one of the :class:`JoinOutcome` values; nothing is written when
        the user is already a member or already asked.
        """
        user_id = await self._require_user("join a group")
        member = await self.client.query(
            "group_members", {"group_id": group_id, "user_id": user_id}, limit=1
        )
        if member:
            return JoinOutcome.MEMBER
        existing = await self.client.query(
            "group_join_requests", {"group_id": group_id, "user_id": user_id}, limit=1
        )
        if existing:
            return JoinOutcome.ALREADY_REQUESTED
        await self.client.insert(
            "group_join_requests", {"group_id": group_id, "user_id": user_id}
        )
        return JoinOutcome.REQUESTED
