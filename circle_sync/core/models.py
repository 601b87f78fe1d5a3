"""Data models for the savings-circle collections.

The models are implemented using :mod:`pydantic` so that rows coming back from
the remote store are validated on the way in and can be dumped back to plain
dictionaries for writes.  Unknown columns are kept (``extra="allow"``) because
the store owns the schema and may grow fields this layer does not read.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GroupCategory(str, Enum):
    WOMEN = "women"
    YOUTH = "youth"
    FAMILY = "family"


class JoinRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    @classmethod
    def _missing_(cls, value: object) -> ChangeKind | None:
        if isinstance(value, str):
            upper = value.strip().upper()
            for kind in cls:
                if kind.value == upper:
                    return kind
        return None


class TransactionType(str, Enum):
    SAVING = "saving"
    LOAN = "loan"
    REPAYMENT = "repayment"
    INTEREST = "interest"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


UNKNOWN_USER = "Unknown User"


class Record(BaseModel):
    """Common shape of every row: an identifier and a creation timestamp."""

    model_config = ConfigDict(extra="allow")

    id: str = ""
    created_at: str | None = None


class Group(Record):
    """A savings circle.

    Attributes
    ----------
    size:
        Upper bound on membership.  Not enforced atomically by the store.
    member_count:
        Denormalised counter, only ever changed through
        :meth:`~circle_sync.adapters.base.CollectionClient.adjust_counter`.
    created_by:
        Identifier of the creator, who is the group's only admin.

    """

    name: str
    description: str | None = ""
    location: str = ""
    category: GroupCategory
    size: int
    member_count: int = 0
    current_balance: float | None = 0
    created_by: str | None = None
    updated_at: str | None = None


class Profile(Record):
    """Display data for a user; read-only from this layer."""

    user_id: str
    name: str
    phone: str | None = None
    photo: str | None = None
    total_savings: float | None = 0


class Membership(Record):
    group_id: str
    user_id: str
    current_balance: float | None = 0
    joined_at: str | None = None
    user_name: str | None = None
    profile: Profile | None = None


class JoinRequest(Record):
    group_id: str
    user_id: str
    status: JoinRequestStatus = JoinRequestStatus.PENDING
    user_name: str | None = None
    user_phone: str | None = None


class Message(Record):
    """A group chat message.  ``message`` is the text body column."""

    group_id: str
    user_id: str
    message: str
    user_name: str | None = None
    user_photo: str | None = None


class DiscussionMessage(Message):
    """Discussion variant: reactions and a reply target, both local-only."""

    reactions: dict[str, set[str]] = Field(default_factory=dict)
    reply_to: str | None = None


class Transaction(Record):
    group_id: str
    type: str
    amount: float
    description: str | None = ""
    status: str
    group_name: str | None = None


class Notification(Record):
    user_id: str
    type: str
    title: str
    message: str
    related_id: str | None = None
    read: bool = False


class ChangeEvent(BaseModel):
    """One change delivered by a subscription.

    ``record`` is the new row for inserts and updates; for deletes it holds
    whatever the feed knows about the removed row (at least ``id``).
    """

    topic: str
    collection: str
    kind: ChangeKind = ChangeKind.INSERT
    record: dict[str, Any]
