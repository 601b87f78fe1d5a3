"""Client-side sync layer for savings-circle groups.

Views over the remote collections (chat, discussion, join requests, members)
are kept current by change subscriptions; services cover the remaining group,
profile and transaction operations.  The main entry points are re-exported
here so consumers can import them from ``circle_sync`` directly.
"""

from .backend import Backend, connect
from .core.models import (
    ChangeEvent,
    DiscussionMessage,
    Group,
    JoinRequest,
    JoinRequestStatus,
    Membership,
    Message,
    Profile,
    Transaction,
)
from .errors import AuthError, DispatchError, PartialWriteError, RemoteError, ValidationError
from .sync.chat import DiscussionPanel, GroupChat
from .sync.members import MemberRoster
from .sync.reconciler import ViewState
from .sync.requests import JoinRequestQueue

__all__ = [
    "AuthError",
    "Backend",
    "ChangeEvent",
    "DiscussionMessage",
    "DiscussionPanel",
    "DispatchError",
    "Group",
    "GroupChat",
    "JoinRequest",
    "JoinRequestQueue",
    "JoinRequestStatus",
    "MemberRoster",
    "Membership",
    "Message",
    "PartialWriteError",
    "Profile",
    "RemoteError",
    "Transaction",
    "ValidationError",
    "ViewState",
    "connect",
]
