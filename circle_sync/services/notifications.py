"""Notification dispatch through the store's ``create_notification`` function."""

from __future__ import annotations

import logging

from ..adapters.base import CollectionClient
from ..core.models import JoinRequestStatus
from ..errors import DispatchError, RemoteError

log = logging.getLogger(__name__)

# decision -> (type, title, body template)
JOIN_DECISION_TEMPLATES: dict[JoinRequestStatus, tuple[str, str, str]] = {
    JoinRequestStatus.APPROVED: (
        "join_request_approved",
        "Join Request Approved! 🎉",
        "Your request to join {group} has been approved.",
    ),
    JoinRequestStatus.REJECTED: (
        "join_request_rejected",
        "Join Request Declined",
        "Your request to join {group} has been declined.",
    ),
}


class Notifier:
    def __init__(
        self, client: CollectionClient, function: str = "create_notification"
    ) -> None:
        self.client = client
        self.function = function

    async def notify(
        self,
        user_id: str,
        type: str,
        title: str,
        body: str,
        related_id: str | None = None,
    ) -> None:
        """Dispatch one notification.  Raises :class:`DispatchError`."""
        try:
            await self.client.rpc(
                self.function,
                {
                    "p_user_id": user_id,
                    "p_type": type,
                    "p_title": title,
                    "p_message": body,
                    "p_related_id": related_id,
                },
            )
        except RemoteError as exc:
            raise DispatchError(f"Could not notify {user_id}: {exc.message}") from exc

    async def join_decision(
        self,
        user_id: str,
        group_id: str,
        group_name: str | None,
        decision: JoinRequestStatus,
    ) -> bool:
        """Tell ``user_id`` about a join decision.

        Fire-and-forget: a failure is logged and reported as ``False``, it
        never undoes the decision itself.
        """
        type_, title, template = JOIN_DECISION_TEMPLATES[decision]
        try:
            await self.notify(
                user_id,
                type_,
                title,
                template.format(group=group_name or "the group"),
                related_id=group_id,
            )
        except DispatchError as exc:
            log.warning("Join decision notification dropped: %s", exc.message)
            return False
        return True
