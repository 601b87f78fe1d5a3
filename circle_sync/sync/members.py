"""Membership roster of a group."""

from __future__ import annotations

import logging
from typing import Any

from ..core.models import Membership, Profile
from ..errors import AuthError, PartialWriteError, RemoteError, RemoteErrorKind, ValidationError
from .reconciler import ViewReconciler

log = logging.getLogger(__name__)


class MemberRoster(ViewReconciler):
    collection = "group_members"
    model = Membership
    order_by = "joined_at"

    def enrich(self, row: dict[str, Any], profile: Profile | None) -> dict[str, Any]:
        enriched = super().enrich(row, profile)
        enriched["profile"] = profile
        return enriched

    async def remove_member(
        self,
        membership_id: str,
        requester_is_admin: bool,
        group_id: str | None = None,
    ) -> None:
        """Remove a membership and decrement the group's member count.

        Only admins may remove members.  The count is decremented in the store
        rather than recomputed from this view's row count, which may be stale.
        """
        if not requester_is_admin:
            raise AuthError("Only group admins can remove members.")
        group_id = group_id or self.group_id
        if not group_id:
            raise ValidationError("No group selected.", field="group_id")

        removed = await self.client.delete(
            self.collection, {"id": membership_id, "group_id": group_id}
        )
        if not removed:
            raise RemoteError(
                RemoteErrorKind.NOT_FOUND, f"Membership {membership_id} not found."
            )
        self._drop(membership_id)
        try:
            await self.client.adjust_counter("groups", group_id, "member_count", -1)
        except RemoteError as exc:
            log.error(
                "Membership %s removed but member count of %s not updated: %s",
                membership_id,
                group_id,
                exc.message,
            )
            raise PartialWriteError(
                exc, ["delete_membership"], "decrement_member_count"
            ) from exc

        if self.group_id == group_id:
            await self.refresh()
