"""Tests for the local-only parts of :class:`circle_sync.sync.chat.DiscussionPanel`."""

import asyncio

import pytest

from circle_sync.errors import ValidationError
from circle_sync.sync.chat import DiscussionPanel

from support import add_profile, post


def test_reactions_toggle_and_survive_refresh(store, feed):
    async def scenario():
        row = await post(store, "g1", "u1", "contribution received")
        panel = DiscussionPanel(store, feed)
        await panel.activate("g1")
        assert panel.toggle_reaction(row["id"], "👍", "u2") is True
        assert panel.toggle_reaction(row["id"], "👍", "u3") is True
        assert panel.toggle_reaction(row["id"], "🎉", "u2") is True
        assert panel.toggle_reaction(row["id"], "🎉", "u2") is False
        await panel.refresh()
        return panel, row, await store.query("group_messages")

    panel, row, stored = asyncio.run(scenario())
    assert panel.get(row["id"]).reactions == {"👍": {"u2", "u3"}}
    assert "reactions" not in stored[0]


def test_reaction_on_unknown_message_is_rejected(store, feed):
    async def scenario():
        panel = DiscussionPanel(store, feed)
        await panel.activate("g1")
        with pytest.raises(ValidationError):
            panel.toggle_reaction("nope", "👍", "u1")

    asyncio.run(scenario())


def test_reply_target_attaches_to_echoed_message(store, feed):
    async def scenario():
        await add_profile(store, "u1", "Amina")
        question = await post(store, "g1", "u2", "when is the meeting?")
        panel = DiscussionPanel(store, feed)
        await panel.activate("g1")
        panel.reply_to(question["id"])
        sent = await panel.send("Saturday at 10", author_id="u1")
        await feed.drain()
        return panel, question, sent

    panel, question, sent = asyncio.run(scenario())
    echoed = panel.get(sent.id)
    assert echoed.reply_to == question["id"]
    assert echoed.user_name == "Amina"
    assert panel.reply_target is None
    assert panel.get(question["id"]).reply_to is None
