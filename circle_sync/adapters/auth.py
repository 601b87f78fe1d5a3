"""Identity providers."""

from __future__ import annotations

from ..errors import AuthError, RemoteError, RemoteErrorKind
from .base import IdentityProvider
from .supabase import SupabaseHTTP


class StaticIdentity(IdentityProvider):
    """A fixed identity, for local stores and tests."""

    def __init__(self, user_id: str | None = None, email: str = "") -> None:
        self._user = {"id": user_id, "email": email} if user_id else None

    async def get_current_user(self) -> dict | None:
        return dict(self._user) if self._user else None

    async def sign_out(self) -> None:
        self._user = None


class SupabaseIdentity(SupabaseHTTP, IdentityProvider):
    """Resolves the session token against the hosted auth service."""

    async def get_current_user(self) -> dict | None:
        if not self.access_token:
            return None
        try:
            response = await self._send("GET", "/auth/v1/user", headers=self.headers())
        except RemoteError as exc:
            if exc.kind == RemoteErrorKind.DENIED:
                return None
            raise
        data = response.json()
        return {"id": data["id"], "email": data.get("email", "")}

    async def sign_out(self) -> None:
        if not self.access_token:
            raise AuthError("Not signed in.")
        try:
            await self._send("POST", "/auth/v1/logout", headers=self.headers())
        except RemoteError as exc:
            raise AuthError(f"Sign out failed: {exc.message}") from exc
        self.access_token = ""
