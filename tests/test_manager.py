"""
Tests for the conversation state manager.
"""

import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from conftest import mock_client, settle
from sidekick.chat.gateway import ChatGateway, ErrorCategory, GatewayError
from sidekick.chat.manager import ConversationManager, ordered_conversations
from sidekick.chat.models import Conversation, Message
from sidekick.i18n import Translator

EN = Translator("en")


def start_send(manager: ConversationManager, conv: Conversation, text: str) -> asyncio.Task:
    return asyncio.create_task(manager.send(conv.id, conv.session_id, text))


def contents(conv: Conversation) -> list[str]:
    return [m.content for m in conv.messages]


def contents_of(messages: list[Message]) -> list[str]:
    return [m.content for m in messages]


class TestLoad:
    """Tests for restoring state from the store."""

    def test_empty_store_creates_conversation(self, manager, store):
        """Test a first run starts one conversation holding the greeting."""
        active = manager.active
        assert active is not None
        assert active.has_only_seed
        assert active.messages[0].content == EN("initial_message")
        assert active.title == EN("new_conversation")
        assert store.load_active_id() == active.id
        assert [c.id for c in store.load_conversations()] == [active.id]

    def test_restores_stored_active(self, store, gateway, titles):
        """Test the stored active id is used when it still exists."""
        older = Conversation.new("hi", "Old")
        newer = Conversation.new("hi", "New")
        store.save_conversations([older, newer])
        store.save_active_id(older.id)

        mgr = ConversationManager(store, gateway, titles)
        mgr.load()

        assert mgr.active_id == older.id

    def test_falls_back_to_most_recent(self, store, gateway, titles):
        """Test an unknown active id falls back to the most recent conversation."""
        now = datetime.now()
        a = Conversation(id="conv_a", title="A", timestamp=now - timedelta(hours=2))
        b = Conversation(id="conv_b", title="B", timestamp=now - timedelta(hours=1))
        store.save_conversations([a, b])
        store.save_active_id("conv_gone")

        mgr = ConversationManager(store, gateway, titles)
        mgr.load()

        assert mgr.active_id == "conv_b"
        assert store.load_active_id() == "conv_b"


class TestOrdering:
    """Tests for conversation list ordering."""

    def test_pinned_first_then_newest(self):
        """Test pinned conversations lead, each group newest first."""
        now = datetime.now()
        convs = [
            Conversation(id="old", timestamp=now - timedelta(days=3)),
            Conversation(id="pinned_old", timestamp=now - timedelta(days=5), pinned=True),
            Conversation(id="new", timestamp=now),
            Conversation(id="pinned_new", timestamp=now - timedelta(days=1), pinned=True),
        ]

        assert [c.id for c in ordered_conversations(convs)] == ["pinned_new", "pinned_old", "new", "old"]

    def test_toggle_pin_reorders(self, manager):
        """Test pinning moves a conversation to the top."""
        first = manager.active
        manager.new_conversation()

        assert manager.toggle_pin(first.id) is True
        assert manager.conversations[0].id == first.id
        assert manager.toggle_pin(first.id) is False


class TestSend:
    """Tests for sending messages."""

    @pytest.mark.asyncio
    async def test_send_appends_user_then_reply(self, manager, gateway, store):
        """Test the user message is stored before the reply arrives."""
        conv = manager.active
        task = start_send(manager, conv, "  What is Boomerang?  ")
        await settle()

        assert manager.is_pending(conv.id)
        assert manager.is_loading
        assert contents(store.get_conversation(conv.id))[-1] == "What is Boomerang?"
        assert gateway.calls[0][:2] == (conv.session_id, "What is Boomerang?")

        gateway.reply(0, "A training programme.")
        reply = await task
        await asyncio.gather(*manager.background_tasks)

        assert reply.role == "assistant"
        assert reply.content == "A training programme."
        assert not manager.is_pending(conv.id)
        stored = store.get_conversation(conv.id)
        assert [m.role for m in stored.messages] == ["assistant", "user", "assistant"]
        assert contents(stored)[-1] == "A training programme."

    @pytest.mark.asyncio
    async def test_empty_message_is_ignored(self, manager, gateway):
        """Test whitespace-only input sends nothing."""
        assert await manager.send(manager.active_id, manager.active.session_id, "   ") is None
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_second_send_while_pending_is_refused(self, manager, gateway):
        """Test a conversation has at most one request in flight."""
        conv = manager.active
        task = start_send(manager, conv, "first")
        await settle()

        assert await manager.send(conv.id, conv.session_id, "second") is None
        assert len(gateway.calls) == 1

        gateway.reply(0, "ok")
        await task

    @pytest.mark.asyncio
    async def test_replies_land_in_originating_conversation(self, manager, gateway, store):
        """Test interleaved completions each go to the conversation that asked."""
        a = manager.active
        b = manager.new_conversation()

        task_a = start_send(manager, a, "question A")
        task_b = start_send(manager, b, "question B")
        await settle()
        assert manager.pending == {a.id, b.id}

        # Resolve in reverse order
        gateway.reply(1, "answer B")
        await task_b
        gateway.reply(0, "answer A")
        await task_a

        assert contents(store.get_conversation(a.id))[1:] == ["question A", "answer A"]
        assert contents(store.get_conversation(b.id))[1:] == ["question B", "answer B"]
        assert contents(manager.get(a.id)) == contents(store.get_conversation(a.id))

    @pytest.mark.asyncio
    async def test_switching_away_keeps_reply_out_of_active(self, manager, gateway):
        """Test a reply for a background conversation leaves the visible one alone."""
        a = manager.active
        task = start_send(manager, a, "slow question")
        await settle()

        b = manager.new_conversation()
        assert manager.active_id == b.id
        assert not manager.is_loading

        gateway.reply(0, "slow answer")
        await task

        assert manager.active_id == b.id
        assert manager.active.has_only_seed
        assert contents(manager.get(a.id))[-1] == "slow answer"

    @pytest.mark.asyncio
    async def test_deleted_conversation_is_restored_by_reply(self, manager, gateway, titles, store):
        """Test deleting a waiting conversation does not drop its reply."""
        a = manager.active
        task = start_send(manager, a, "Tell me about meetings")
        await settle()

        assert manager.delete(a.id) is True
        assert store.get_conversation(a.id) is None

        gateway.reply(0, "Meetings are weekly.")
        await task
        await asyncio.gather(*manager.background_tasks)

        restored = store.get_conversation(a.id)
        assert restored is not None
        assert restored.session_id == a.session_id
        assert contents(restored)[-2:] == ["Tell me about meetings", "Meetings are weekly."]
        # The restored record still counts as a first exchange
        assert contents_of(titles.requests[-1]) == contents(restored)
        assert restored.title == "Generated Title"

    @pytest.mark.asyncio
    async def test_restored_conversation_gets_fallback_title(self, manager, gateway, titles, store):
        """Test a conversation restored by a failed reply is titled from its first question."""
        a = manager.active
        task = start_send(manager, a, "Tell me about meetings")
        await settle()
        manager.delete(a.id)

        gateway.reply(0, GatewayError("refused", ErrorCategory.NETWORK))
        await task
        await asyncio.gather(*manager.background_tasks)

        restored = store.get_conversation(a.id)
        assert restored.title == "Tell me about meetings"
        assert contents(restored)[-1] == EN("network_error")
        assert titles.requests == []

    @pytest.mark.asyncio
    async def test_undecodable_reply_becomes_error_message(self, store, titles, toasts):
        """Test a reply body that cannot be decoded still ends the exchange."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"plain bytes")

        async with mock_client(handler) as client:
            mgr = ConversationManager(store, ChatGateway(client, webhook_url="http://n8n.test/chat"),
                                      titles, translate=Translator("en"), toasts=toasts)
            conv = mgr.load()
            reply = await mgr.send(conv.id, conv.session_id, "hello")

        assert reply.content == EN("error_sending_message")
        assert [m.role for m in store.get_conversation(conv.id).messages] == ["assistant", "user", "assistant"]
        assert not mgr.is_pending(conv.id)
        assert [t.message for t in toasts.active()] == [EN("error_toast")]

    @pytest.mark.asyncio
    async def test_gateway_error_becomes_localized_message(self, manager, gateway, toasts):
        """Test a failed call appends an error message and raises an error toast."""
        conv = manager.active
        task = start_send(manager, conv, "hello")
        await settle()

        gateway.reply(0, GatewayError("refused", ErrorCategory.NETWORK))
        reply = await task

        assert reply.content == EN("network_error")
        assert not manager.is_pending(conv.id)
        assert [t.message for t in toasts.active()] == [EN("error_toast")]
        assert manager.background_tasks == frozenset()

    @pytest.mark.asyncio
    async def test_error_in_background_conversation_has_no_toast(self, manager, gateway, toasts):
        """Test only the active conversation's failures are toasted."""
        a = manager.active
        task = start_send(manager, a, "hello")
        await settle()
        manager.new_conversation()

        gateway.reply(0, GatewayError("HTTP 502", ErrorCategory.HTTP, 502))
        reply = await task

        assert reply.content == EN("server_error_with_code", code=502)
        assert toasts.active() == []


class TestTitles:
    """Tests for title generation after the first exchange."""

    @pytest.mark.asyncio
    async def test_first_exchange_generates_title(self, manager, gateway, titles, store):
        """Test the title is replaced once the first reply arrives."""
        conv = manager.active
        task = start_send(manager, conv, "What is the Collective?")
        await settle()
        gateway.reply(0, "A community.")
        await task
        await asyncio.gather(*manager.background_tasks)

        assert store.get_conversation(conv.id).title == "Generated Title"
        assert contents_of(titles.requests[0]) == [EN("initial_message"), "What is the Collective?", "A community."]

    @pytest.mark.asyncio
    async def test_later_exchanges_keep_title(self, manager, gateway, titles):
        """Test only the first exchange triggers title generation."""
        conv = manager.active
        for i in range(2):
            task = start_send(manager, conv, f"q{i}")
            await settle()
            gateway.reply(i, f"a{i}")
            await task
            await asyncio.gather(*manager.background_tasks)

        assert len(titles.requests) == 1

    @pytest.mark.asyncio
    async def test_title_not_applied_to_deleted_conversation(self, manager, gateway, titles, store):
        """Test a late title does not resurrect a deleted conversation."""
        conv = manager.active
        task = start_send(manager, conv, "hello")
        await settle()
        gateway.reply(0, "hi")
        await task

        manager.delete(conv.id)
        await asyncio.gather(*manager.background_tasks)

        assert store.get_conversation(conv.id) is None


class TestHydrate:
    """Tests for loading remote session history."""

    @pytest.mark.asyncio
    async def test_history_replaces_messages(self, manager, gateway, store):
        """Test remote history replaces the active conversation's messages."""
        gateway.history = [
            Message(role="user", content="earlier question", id="hist_1"),
            Message(role="assistant", content="earlier answer", id="hist_2"),
        ]

        assert await manager.hydrate() is True
        assert gateway.history_requests == [manager.active.session_id]
        assert contents(store.get_conversation(manager.active_id)) == ["earlier question", "earlier answer"]

    @pytest.mark.asyncio
    async def test_no_history_leaves_messages(self, manager, gateway):
        """Test a missing or empty history changes nothing."""
        before = contents(manager.active)

        assert await manager.hydrate() is False
        gateway.history = []
        assert await manager.hydrate() is False
        assert contents(manager.active) == before

    @pytest.mark.asyncio
    async def test_message_sent_during_hydration_is_kept(self, manager, gateway, store):
        """Test a message staged while history loads survives the history write."""
        gateway.history = [Message(role="assistant", content="remembered", id="hist_1")]
        gateway.history_gate = asyncio.Event()
        conv = manager.active

        hydration = asyncio.create_task(manager.hydrate())
        await settle()
        sending = start_send(manager, conv, "asked early")
        await settle()

        gateway.history_gate.set()
        assert await hydration is True
        assert contents(store.get_conversation(conv.id)) == ["remembered", "asked early"]

        gateway.reply(0, "answered")
        await sending
        assert contents(store.get_conversation(conv.id)) == ["remembered", "asked early", "answered"]


class TestConversationActions:
    """Tests for delete, archive and bulk operations."""

    def test_delete_active_selects_next(self, manager, store, toasts):
        """Test deleting the active conversation activates another one."""
        first = manager.active
        second = manager.new_conversation()

        assert manager.delete(second.id) is True
        assert manager.active_id == first.id
        assert store.get_conversation(second.id) is None
        assert toasts.active()[-1].message == EN("conversation_deleted")

    def test_delete_last_creates_new(self, manager):
        """Test deleting the only conversation leaves a fresh one active."""
        only = manager.active_id

        manager.delete(only)

        assert manager.active_id != only
        assert manager.active.has_only_seed

    def test_delete_unknown_returns_false(self, manager):
        assert manager.delete("conv_missing") is False

    def test_bulk_delete(self, manager, store, toasts):
        """Test deleting K of N selected conversations leaves N-K."""
        keep = manager.active_id
        others = [manager.new_conversation().id for _ in range(4)]
        manager.select(keep)

        removed = manager.bulk_delete(others[:3])

        assert removed == 3
        assert {c.id for c in store.load_conversations()} == {keep, others[3]}
        assert manager.active_id == keep
        assert toasts.active()[-1].message == "3 conversation(s) deleted"

    def test_bulk_delete_nothing_selected(self, manager, toasts):
        assert manager.bulk_delete([]) == 0
        assert toasts.active()[-1].message == EN("no_conversations_selected")

    def test_archive_active_moves_on(self, manager):
        """Test archived conversations leave the visible list."""
        first = manager.active
        second = manager.new_conversation()

        assert manager.toggle_archive(second.id) is True

        assert manager.active_id == first.id
        assert [c.id for c in manager.archived_conversations()] == [second.id]
        assert second.id not in [c.id for c in manager.visible_conversations()]
        assert manager.toggle_archive(second.id) is False

    def test_bulk_archive(self, manager):
        keep = manager.active_id
        others = [manager.new_conversation().id for _ in range(2)]
        manager.select(keep)

        assert manager.bulk_archive(others) == 2
        assert {c.id for c in manager.archived_conversations()} == set(others)

    def test_visible_conversations_search(self, manager):
        """Test the list filter matches titles and message text."""
        manager.new_conversation()
        target = manager.new_conversation()
        manager._apply(target.id, lambda c: c.model_copy(update={"title": "Quarterly meeting notes"}))

        assert [c.id for c in manager.visible_conversations("QUARTERLY")] == [target.id]
        assert manager.visible_conversations("no such text") == []


class TestMessageActions:
    """Tests for editing and deleting messages."""

    def test_edit_message(self, manager, store):
        seed = manager.active.messages[0]

        assert manager.edit_message(seed.id, "Edited greeting") is True
        assert contents(store.get_conversation(manager.active_id)) == ["Edited greeting"]

    def test_delete_message(self, manager, store):
        seed = manager.active.messages[0]

        assert manager.delete_message(seed.id) is True
        assert store.get_conversation(manager.active_id).messages == []

    def test_message_writes_touch_timestamp(self, manager):
        """Test editing or deleting a message marks the conversation as touched."""
        long_ago = datetime.now() - timedelta(days=2)
        conv_id = manager.active_id
        manager._apply(conv_id, lambda c: c.model_copy(update={"timestamp": long_ago}))
        user_msg = Message.user("to be removed")
        manager._apply(conv_id, lambda c: c.model_copy(
            update={"messages": [*c.messages, user_msg], "timestamp": long_ago}))

        manager.edit_message(manager.active.messages[0].id, "Edited")
        edited_at = manager.active.timestamp
        assert edited_at > long_ago

        manager._apply(conv_id, lambda c: c.model_copy(update={"timestamp": long_ago}))
        manager.delete_message(user_msg.id)
        assert manager.active.timestamp > long_ago

    def test_unknown_message(self, manager, toasts):
        assert manager.edit_message("msg_missing", "x") is False
        assert manager.delete_message("msg_missing") is False
        assert toasts.active()[-1].message == EN("message_not_found")

    def test_search_messages(self, manager):
        assert manager.search_messages("sidekick") == manager.messages
        assert manager.search_messages("zzz-not-there") == []


class TestSettings:
    """Tests for dark mode, language and export."""

    def test_dark_mode_persists(self, manager, store):
        manager.set_dark_mode(True)
        assert store.load_settings().dark_mode is True

    def test_language_switch(self, manager, store):
        """Test switching language changes strings and persists the choice."""
        assert manager.set_language("nl") is True
        assert manager.translate("you") == "Jij"
        assert store.load_language() == "nl"

    def test_invalid_language(self, manager, store):
        assert manager.set_language("fr") is False
        assert store.load_language() is None

    def test_export_active(self, manager):
        filename, text = manager.export()

        assert filename == "boomerang-chat-New-Conversation.txt"
        assert text.startswith("[Just now] Boomerang Sidekick: ")
