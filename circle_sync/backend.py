"""Wiring of clients, feed and services from :class:`~circle_sync.config.Settings`."""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from .adapters.auth import StaticIdentity, SupabaseIdentity
from .adapters.base import CollectionClient, IdentityProvider, ObjectStorage
from .adapters.local import LocalCollectionClient
from .adapters.storage import SupabaseStorage
from .adapters.supabase import SupabaseCollectionClient
from .config import Settings, load_settings
from .logging_config import setup_logging
from .realtime.base import ChangeFeed
from .realtime.local import LocalChangeFeed
from .realtime.polling import PollingChangeFeed
from .services.groups import GroupService
from .services.notifications import Notifier
from .services.profiles import AvatarService
from .services.transactions import TransactionLedger
from .sync.chat import DiscussionPanel, GroupChat
from .sync.members import MemberRoster
from .sync.profiles import ProfileDirectory
from .sync.requests import JoinRequestQueue


@dataclass
class Backend:
    settings: Settings
    client: CollectionClient
    feed: ChangeFeed
    identity: IdentityProvider
    storage: ObjectStorage | None = None
    profiles: ProfileDirectory = field(init=False)

    def __post_init__(self) -> None:
        self.profiles = ProfileDirectory(self.client, ttl=self.settings.profile_ttl)

    def _view_kwargs(self) -> dict:
        return {
            "profiles": self.profiles,
            "identity": self.identity,
            "live_edits": self.settings.live_edits,
        }

    def group_chat(self) -> GroupChat:
        return GroupChat(self.client, self.feed, **self._view_kwargs())

    def discussion(self) -> DiscussionPanel:
        return DiscussionPanel(self.client, self.feed, **self._view_kwargs())

    def join_requests(self) -> JoinRequestQueue:
        return JoinRequestQueue(
            self.client,
            self.feed,
            notifier=Notifier(self.client),
            **self._view_kwargs(),
        )

    def members(self) -> MemberRoster:
        return MemberRoster(self.client, self.feed, **self._view_kwargs())

    def groups(self) -> GroupService:
        return GroupService(self.client, self.identity)

    def ledger(self) -> TransactionLedger:
        return TransactionLedger(self.client, self.identity)

    def avatars(self) -> AvatarService | None:
        if self.storage is None:
            return None
        return AvatarService(self.client, self.identity, self.storage, self.profiles)

    async def close(self) -> None:
        self.feed.close_all()
        for part in (self.client, self.identity, self.storage):
            aclose = getattr(part, "close", None)
            if aclose is not None:
                await aclose()


def connect(
    settings: Settings | None = None,
    user_id: str | None = None,
    http: httpx.AsyncClient | None = None,
) -> Backend:
    """Build a :class:`Backend`.

    With a URL configured everything talks to the hosted backend; otherwise a
    local JSON-backed store is used with ``user_id`` as the signed-in user.
    """
    settings = settings or load_settings()
    log = setup_logging(settings.log_level)

    if not settings.is_remote:
        feed = LocalChangeFeed()
        client = LocalCollectionClient(path=settings.data_path, feed=feed)
        log.info("Using local store at %s", settings.data_path)
        return Backend(settings, client, feed, StaticIdentity(user_id))

    http = http or httpx.AsyncClient()
    common = (settings.url, settings.api_key, settings.access_token, http)
    client = SupabaseCollectionClient(*common)
    log.info("Using remote store at %s", settings.url)
    return Backend(
        settings,
        client,
        PollingChangeFeed(client, interval=settings.poll_seconds),
        SupabaseIdentity(*common),
        SupabaseStorage(*common),
    )
