"""Profile photo upload."""

from __future__ import annotations

import logging
import uuid

from ..adapters.base import CollectionClient, IdentityProvider, ObjectStorage
from ..errors import AuthError, RemoteError, RemoteErrorKind, ValidationError
from ..sync.profiles import ProfileDirectory

log = logging.getLogger(__name__)

_CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


class AvatarService:
    def __init__(
        self,
        client: CollectionClient,
        identity: IdentityProvider,
        storage: ObjectStorage,
        profiles: ProfileDirectory | None = None,
    ) -> None:
        self.client = client
        self.identity = identity
        self.storage = storage
        self.profiles = profiles

    async def upload_avatar(
        self, filename: str, data: bytes, current_photo: str | None = None
    ) -> str:
        """Store a new photo for the current user and return its public URL.

        The previous photo, if it lives in the same bucket, is removed first;
        failing to remove it does not stop the upload.
        """
        if not data:
            raise ValidationError("No file selected.", field="photo")
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in _CONTENT_TYPES:
            raise ValidationError("Unsupported image type.", field="photo")
        user = await self.identity.get_current_user()
        if not user:
            raise AuthError("You must be logged in to change your photo.")

        if current_photo:
            old_path = self.storage.path_from_url(current_photo)
            if old_path:
                try:
                    await self.storage.remove(old_path)
                except RemoteError as exc:
                    log.warning("Could not remove old photo %s: %s", old_path, exc.message)

        path = f"{user['id']}/{uuid.uuid4().hex}.{ext}"
        url = await self.storage.upload(path, data, _CONTENT_TYPES[ext])
        rows = await self.client.update("profiles", {"user_id": user["id"]}, {"photo": url})
        if not rows:
            raise RemoteError(
                RemoteErrorKind.NOT_FOUND, f"No profile for user {user['id']}."
            )
        if self.profiles is not None:
            self.profiles.invalidate(user["id"])
        return url
