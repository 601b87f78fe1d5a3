"""Seed helpers shared by the test modules."""

from __future__ import annotations

from circle_sync.adapters.local import LocalCollectionClient


async def add_profile(store: LocalCollectionClient, user_id: str, name: str, **extra) -> dict:
    return await store.insert("profiles", {"user_id": user_id, "name": name, **extra})


async def add_group(store: LocalCollectionClient, creator: str = "admin", **extra) -> dict:
    fields = {
        "name": "Umoja Women",
        "location": "Nairobi",
        "category": "women",
        "size": 20,
        "member_count": 1,
        "created_by": creator,
    }
    fields.update(extra)
    return await store.insert("groups", fields)


async def post(store: LocalCollectionClient, group_id: str, user_id: str, text: str) -> dict:
    return await store.insert(
        "group_messages", {"group_id": group_id, "user_id": user_id, "message": text}
    )
