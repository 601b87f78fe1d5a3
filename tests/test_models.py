"""Tests for core Pydantic models and error envelopes."""

import pytest
from pydantic import ValidationError as ModelError

from circle_sync.core.models import (
    ChangeEvent,
    ChangeKind,
    DiscussionMessage,
    Group,
    GroupCategory,
    JoinRequest,
    JoinRequestStatus,
)
from circle_sync.errors import PartialWriteError, RemoteError, ValidationError


def test_group_defaults_and_extra_columns() -> None:
    """Unknown columns from the store are kept on the model."""
    group = Group(name="Umoja", category="women", size=20, contribution_day="friday")
    assert group.category is GroupCategory.WOMEN
    assert group.member_count == 0
    assert group.model_dump()["contribution_day"] == "friday"


def test_group_rejects_unknown_category() -> None:
    with pytest.raises(ModelError):
        Group(name="Umoja", category="elders", size=20)


def test_join_request_and_discussion_defaults() -> None:
    request = JoinRequest(group_id="g", user_id="u")
    assert request.status is JoinRequestStatus.PENDING
    message = DiscussionMessage(group_id="g", user_id="u", message="hi")
    assert message.reactions == {}
    assert message.reply_to is None


def test_change_event_defaults_to_insert() -> None:
    event = ChangeEvent(topic="t", collection="c", record={"id": "1"})
    assert event.kind is ChangeKind.INSERT


def test_error_envelopes() -> None:
    assert ValidationError("Name is required.", field="name").to_dict() == {
        "error": {"code": "VALIDATION", "message": "Name is required.", "field": "name"}
    }
    cause = RemoteError("network", "timeout", status=504)
    partial = PartialWriteError(cause, ["update_request"], "insert_membership")
    payload = partial.to_dict()["error"]
    assert isinstance(partial, RemoteError)
    assert payload["code"] == "PARTIAL_WRITE"
    assert payload["kind"] == "network"
    assert payload["completed_steps"] == ["update_request"]
    assert payload["failed_step"] == "insert_membership"
    assert partial.status == 504
