"""Pending join requests of a group and the admin decision workflow."""

from __future__ import annotations

import logging
from typing import Any

from ..core.models import JoinRequest, JoinRequestStatus, Profile
from ..errors import PartialWriteError, RemoteError, ValidationError
from ..services.notifications import Notifier
from .reconciler import ViewReconciler

log = logging.getLogger(__name__)


class JoinRequestQueue(ViewReconciler):
    """Pending requests for one group, newest first."""

    collection = "group_join_requests"
    model = JoinRequest
    ascending = False

    def __init__(self, *args, notifier: Notifier | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.notifier = notifier or Notifier(self.client)

    def base_filters(self, group_id: str) -> dict[str, Any]:
        return {"group_id": group_id, "status": JoinRequestStatus.PENDING.value}

    def enrich(self, row: dict[str, Any], profile: Profile | None) -> dict[str, Any]:
        enriched = super().enrich(row, profile)
        enriched["user_phone"] = (profile.phone if profile else None) or ""
        return enriched

    # ------------------------------------------------------------------
    async def _group_name(self, group_id: str) -> str | None:
        try:
            group = await self.client.get("groups", group_id)
        except RemoteError as exc:
            log.warning("Could not read group %s for notification: %s", group_id, exc.message)
            return None
        return group.get("name")

    async def _mark(self, request_id: str, decision: JoinRequestStatus) -> dict:
        rows = await self.client.update(
            self.collection,
            {"id": request_id, "status": JoinRequestStatus.PENDING.value},
            {"status": decision.value},
        )
        if rows:
            return rows[0]
        # either gone or already decided
        current = await self.client.get(self.collection, request_id)
        raise ValidationError(
            f"This request was already {current.get('status')}.", field="status"
        )

    async def _ensure_membership(self, group_id: str, user_id: str) -> bool:
        """Insert the membership unless one exists; return whether it was created."""
        existing = await self.client.query(
            "group_members", {"group_id": group_id, "user_id": user_id}, limit=1
        )
        if existing:
            log.info("User %s is already a member of %s", user_id, group_id)
            return False
        await self.client.insert(
            "group_members",
            {"group_id": group_id, "user_id": user_id, "current_balance": 0},
        )
        return True

    async def decide(
        self,
        request_id: str,
        user_id: str,
        decision: JoinRequestStatus | str,
        group_id: str | None = None,
    ) -> JoinRequest:
        """Approve or reject a pending request.

        The steps run in order and are not rolled back: the request status is
        written, the group is read for its name, then (on approval) the
        membership is inserted and the member count bumped, and finally the
        applicant is notified.  A failure after the status write
        raises :class:`PartialWriteError` naming what already happened.  A
        notification failure is only logged.
        """
        try:
            decision = JoinRequestStatus(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision {decision!r}.", field="status") from None
        if decision is JoinRequestStatus.PENDING:
            raise ValidationError("A decision must approve or reject.", field="status")
        group_id = group_id or self.group_id
        if not group_id:
            raise ValidationError("No group selected.", field="group_id")

        row = await self._mark(request_id, decision)
        group_name = await self._group_name(group_id)
        completed = ["update_request"]
        step = "insert_membership"
        try:
            if decision is JoinRequestStatus.APPROVED:
                if await self._ensure_membership(group_id, user_id):
                    completed.append(step)
                    step = "increment_member_count"
                    await self.client.adjust_counter("groups", group_id, "member_count", 1)
                    completed.append(step)
        except RemoteError as exc:
            log.error(
                "Join approval for request %s stopped at %s (done: %s): %s",
                request_id,
                step,
                ", ".join(completed),
                exc.message,
            )
            raise PartialWriteError(exc, completed, step) from exc

        await self.notifier.join_decision(user_id, group_id, group_name, decision)

        if self.group_id == group_id:
            await self.refresh()
        return JoinRequest(**row)

    async def sweep_orphans(self, group_id: str | None = None) -> list[str]:
        """Create the missing membership for every approved request without one.

        Repairs what an interrupted :meth:`decide` left behind and returns the
        affected user ids.
        """
        group_id = group_id or self.group_id
        if not group_id:
            raise ValidationError("No group selected.", field="group_id")
        approved = await self.client.query(
            self.collection,
            {"group_id": group_id, "status": JoinRequestStatus.APPROVED.value},
        )
        members = await self.client.query(
            "group_members", {"group_id": group_id}, columns="user_id"
        )
        have = {m["user_id"] for m in members}
        repaired = []
        for user_id in dict.fromkeys(r["user_id"] for r in approved):
            if user_id in have:
                continue
            await self.client.insert(
                "group_members",
                {"group_id": group_id, "user_id": user_id, "current_balance": 0},
            )
            await self.client.adjust_counter("groups", group_id, "member_count", 1)
            repaired.append(user_id)
        if repaired:
            log.warning(
                "Repaired %d approved request(s) without membership in %s",
                len(repaired),
                group_id,
            )
        return repaired

