"""Shared fixtures: an in-process store wired to its change feed."""

from __future__ import annotations

import pytest

from circle_sync.adapters.local import LocalCollectionClient
from circle_sync.realtime.local import LocalChangeFeed


@pytest.fixture
def feed() -> LocalChangeFeed:
    return LocalChangeFeed()


@pytest.fixture
def store(feed: LocalChangeFeed) -> LocalCollectionClient:
    return LocalCollectionClient(feed=feed)
