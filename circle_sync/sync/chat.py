"""Group chat and discussion views."""

from __future__ import annotations

import logging
from typing import Any

from ..core.models import DiscussionMessage, Message, Profile
from ..errors import ValidationError
from .reconciler import ViewReconciler

log = logging.getLogger(__name__)


class GroupChat(ViewReconciler):
    """Messages of one group, oldest first.

    Sending does not touch the local rows: the message shows up when the
    subscription delivers its insert, like everyone else's.
    """

    collection = "group_messages"
    model = Message

    def enrich(self, row: dict[str, Any], profile: Profile | None) -> dict[str, Any]:
        enriched = super().enrich(row, profile)
        enriched["user_photo"] = profile.photo if profile else None
        return enriched

    async def send(
        self,
        body: str,
        author_id: str | None = None,
        group_id: str | None = None,
    ) -> Message:
        """Insert a message and return the stored row.

        Raises :class:`ValidationError` for a blank body and
        :class:`~circle_sync.errors.AuthError` when no author can be resolved;
        neither case reaches the store.
        """
        text = (body or "").strip()
        if not text:
            raise ValidationError("Message cannot be empty.", field="message")
        group_id = group_id or self.group_id
        if not group_id:
            raise ValidationError("No group selected.", field="group_id")
        author_id = await self._current_user_id(author_id, "send messages")

        row = await self.client.insert(
            self.collection,
            {"group_id": group_id, "user_id": author_id, "message": text},
        )
        return self.model(**row)

    async def delete_message(self, message_id: str, requester_id: str) -> bool:
        """Delete a message if ``requester_id`` wrote it.

        Ownership is part of the delete filter, so someone else's message (or
        one that no longer exists) simply matches nothing and ``False`` is
        returned.
        """
        rows = await self.client.delete(
            self.collection, {"id": message_id, "user_id": requester_id}
        )
        if not rows:
            log.info(
                "Delete of message %s by %s matched nothing", message_id, requester_id
            )
            return False
        self._drop(message_id)
        return True


class DiscussionPanel(GroupChat):
    """Chat with emoji reactions and reply targets.

    Reactions and reply links live only in this view: there is no column for
    them remotely, so they are kept beside the rows and re-attached whenever a
    row is (re)built.
    """

    model = DiscussionMessage

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.reply_target: str | None = None
        self._reactions: dict[str, dict[str, set[str]]] = {}
        self._replies: dict[str, str] = {}

    def enrich(self, row: dict[str, Any], profile: Profile | None) -> dict[str, Any]:
        enriched = super().enrich(row, profile)
        message_id = row.get("id", "")
        enriched["reactions"] = self._reactions.get(message_id, {})
        enriched["reply_to"] = self._replies.get(message_id)
        return enriched

    def toggle_reaction(self, message_id: str, emoji: str, user_id: str) -> bool:
        """Add or remove ``user_id``'s ``emoji``; return whether it is now set."""
        message = self.get(message_id)
        if message is None:
            raise ValidationError("Message not found.", field="message_id")
        reactions = self._reactions.setdefault(
            message_id, {e: set(u) for e, u in message.reactions.items()}
        )
        users = reactions.setdefault(emoji, set())
        if user_id in users:
            users.discard(user_id)
            if not users:
                del reactions[emoji]
            reacted = False
        else:
            users.add(user_id)
            reacted = True
        message.reactions = {e: set(u) for e, u in reactions.items()}
        return reacted

    def reply_to(self, message_id: str) -> DiscussionMessage:
        message = self.get(message_id)
        if message is None:
            raise ValidationError("Message not found.", field="message_id")
        self.reply_target = message_id
        return message

    def clear_reply(self) -> None:
        self.reply_target = None

    async def send(
        self,
        body: str,
        author_id: str | None = None,
        group_id: str | None = None,
    ) -> Message:
        message = await super().send(body, author_id, group_id)
        if self.reply_target is not None:
            self._replies[message.id] = self.reply_target
            existing = self.get(message.id)
            if existing is not None:
                existing.reply_to = self.reply_target
            self.reply_target = None
        return message

    def deactivate(self) -> None:
        super().deactivate()
        self.reply_target = None
        self._reactions.clear()
        self._replies.clear()
