"""Object storage for profile photos."""

from __future__ import annotations

from urllib.parse import quote

from .base import ObjectStorage
from .supabase import SupabaseHTTP


class SupabaseStorage(SupabaseHTTP, ObjectStorage):
    """Uploads to one bucket of the hosted object store."""

    def __init__(self, *args, bucket: str = "avatars", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.bucket = bucket

    def public_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    def path_from_url(self, url: str) -> str | None:
        """Return the object path of a public URL in this bucket, if it is one."""
        marker = f"/{self.bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[1] or None

    async def upload(
        self, path: str, data: bytes, content_type: str = "image/jpeg"
    ) -> str:
        await self._send(
            "POST",
            f"/storage/v1/object/{self.bucket}/{quote(path)}",
            content=data,
            headers=self.headers(**{"Content-Type": content_type, "x-upsert": "true"}),
        )
        return self.public_url(path)

    async def remove(self, path: str) -> None:
        await self._send(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": [path]},
            headers=self.headers(),
        )
