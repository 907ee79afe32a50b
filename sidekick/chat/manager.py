"""
Conversation state: the in-memory conversation list, the active
conversation and the set of conversations waiting on a reply.

Every mutation re-reads the persisted list, applies its change to the
freshest copy of the one conversation it touches, and writes the whole list
back. Memory is then replaced by what was written, so the two never drift.

A reply always lands in the conversation that sent the request, whatever is
active when it arrives. If that conversation was deleted in the meantime it
is re-created: a response is never dropped.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Coroutine, Iterable

from sidekick.chat.gateway import ChatGateway, GatewayError, describe_error
from sidekick.chat.models import Conversation, Message, Settings
from sidekick.chat.titles import TitleGenerator, fallback_title
from sidekick.chat.toasts import ToastBoard
from sidekick.formatting import export_filename, format_transcript
from sidekick.i18n import Translator, normalize_language
from sidekick.log import setup_logging
from sidekick.storage.store import ConversationStore

log = setup_logging("sidekick.manager")

Update = Callable[[Conversation | None], Conversation | None]


def ordered_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Pinned first, then most recently touched."""
    by_time = sorted(conversations, key=lambda c: c.timestamp, reverse=True)
    return sorted(by_time, key=lambda c: not c.pinned)


class ConversationManager:
    """Owns conversation state and keeps it in sync with the store."""

    def __init__(
        self,
        store: ConversationStore,
        gateway: ChatGateway,
        titles: TitleGenerator,
        translate: Translator | None = None,
        toasts: ToastBoard | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.titles = titles
        self.translate = translate or Translator()
        self.toasts = toasts or ToastBoard()
        self.on_change = on_change
        self.settings: Settings = store.load_settings()

        self._conversations: list[Conversation] = []
        self._active_id: str | None = None
        self._pending: set[str] = set()
        self._background: set[asyncio.Task] = set()

    # ── State ───────────────────────────────────────────────────

    @property
    def conversations(self) -> list[Conversation]:
        return list(self._conversations)

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active(self) -> Conversation | None:
        return self._find(self._active_id) if self._active_id else None

    @property
    def messages(self) -> list[Message]:
        active = self.active
        return list(active.messages) if active else []

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    def is_pending(self, conversation_id: str) -> bool:
        return conversation_id in self._pending

    @property
    def is_loading(self) -> bool:
        """Loading indicator: only the active conversation's pending state counts."""
        return self._active_id is not None and self._active_id in self._pending

    @property
    def background_tasks(self) -> frozenset[asyncio.Task]:
        return frozenset(self._background)

    def get(self, conversation_id: str) -> Conversation | None:
        return self._find(conversation_id)

    # ── Lifecycle ───────────────────────────────────────────────

    def load(self) -> Conversation:
        """Restore state from the store and pick the conversation to show."""
        self._conversations = ordered_conversations(self.store.load_conversations())
        stored_id = self.store.load_active_id()

        if stored_id and self._find(stored_id):
            self._active_id = stored_id
        elif self._conversations:
            most_recent = max(self._conversations, key=lambda c: c.timestamp)
            self._active_id = most_recent.id
            self.store.save_active_id(most_recent.id)
        else:
            return self.new_conversation()

        log.info(f"Loaded {len(self._conversations)} conversations, active: {self._active_id}")
        self._notify()
        return self.active  # type: ignore[return-value]

    def new_conversation(self) -> Conversation:
        conv = Conversation.new(
            self.translate("initial_message"), title=self.translate("new_conversation")
        )
        self._apply(conv.id, lambda _current: conv)
        self._set_active(conv.id)
        log.info(f"Started conversation {conv.id}")
        return conv

    def select(self, conversation_id: str) -> Conversation | None:
        conv = self.store.get_conversation(conversation_id) or self._find(conversation_id)
        if conv is None:
            log.warning(f"Cannot select unknown conversation {conversation_id}")
            return None
        self._set_active(conv.id)
        return conv

    def cancel_background(self) -> None:
        for task in list(self._background):
            task.cancel()

    # ── Sending ─────────────────────────────────────────────────

    async def send(self, conversation_id: str, session_id: str, text: str) -> Message | None:
        """
        Send ``text`` on behalf of ``conversation_id``.

        The user message is stored before the webhook is called. The reply,
        or a localized error message, is appended to the stored copy of the
        same conversation once the call resolves. Returns the appended
        message, or None when nothing was sent (empty text, or that
        conversation already has a request in flight).
        """
        text = text.strip()
        if not text or conversation_id in self._pending:
            return None

        existing = self.store.get_conversation(conversation_id) or self._find(conversation_id)
        first_exchange = existing is not None and existing.has_only_seed
        user_msg = Message.user(text)
        staged = (list(existing.messages) if existing else []) + [user_msg]

        def stage(current: Conversation | None) -> Conversation:
            if current is None:
                return self._restored(conversation_id, session_id, staged)
            return self._appended(current, user_msg)

        self._pending.add(conversation_id)
        try:
            self._apply(conversation_id, stage)

            error: GatewayError | None = None
            try:
                reply = Message.assistant(await self.gateway.send_message(session_id, text))
            except GatewayError as e:
                log.error(f"Send failed for {conversation_id} ({e.category.value}): {e}")
                error = e
                reply = Message.assistant(describe_error(e, self.translate))

            def resolve(current: Conversation | None) -> Conversation:
                if current is None:
                    log.warning(f"Conversation {conversation_id} was removed while waiting; restoring it")
                    return self._restored(conversation_id, session_id, staged + [reply])
                return self._appended(current, reply)

            self._pending.discard(conversation_id)
            final = self._apply(conversation_id, resolve)
        finally:
            self._pending.discard(conversation_id)
            self._notify()

        if error is not None:
            if conversation_id == self._active_id:
                self.toasts.push(self.translate("error_toast"), "error")
        elif first_exchange and final is not None:
            self._spawn(self._retitle(conversation_id, list(final.messages)))
        return reply

    async def _retitle(self, conversation_id: str, messages: list[Message]) -> None:
        title = await self.titles.generate(messages)

        def patch(current: Conversation | None) -> Conversation | None:
            if current is None:
                return None
            return current.model_copy(update={"title": title})

        self._apply(conversation_id, patch)

    async def hydrate(self) -> bool:
        """
        Replace the active conversation's messages with the remote session
        history. Messages sent while the history was loading are kept after it.
        """
        active = self.active
        if active is None:
            return False

        known = {m.id for m in active.messages}
        history = await self.gateway.load_previous_session(active.session_id)
        if not history:
            return False

        def merge(current: Conversation | None) -> Conversation:
            base = current if current is not None else active
            # Messages written while the history was loading stay, after it
            newer = [m for m in base.messages if m.id is not None and m.id not in known]
            return base.model_copy(update={"messages": history + newer})

        log.info(f"Hydrated {active.id} with {len(history)} messages from session {active.session_id}")
        self._apply(active.id, merge)
        return True

    # ── Conversation actions ────────────────────────────────────

    def delete(self, conversation_id: str) -> bool:
        stored = self.store.load_conversations()
        remaining = [c for c in stored if c.id != conversation_id]
        if len(remaining) == len(stored) and not self._find(conversation_id):
            return False

        self._commit(remaining)
        self.toasts.push(self.translate("conversation_deleted"), "success")
        log.info(f"Deleted conversation {conversation_id}")
        if conversation_id == self._active_id:
            self._activate_fallback()
        return True

    def bulk_delete(self, conversation_ids: Iterable[str]) -> int:
        ids = set(conversation_ids)
        if not ids:
            self.toasts.push(self.translate("no_conversations_selected"), "info")
            return 0

        stored = self.store.load_conversations()
        remaining = [c for c in stored if c.id not in ids]
        removed = len(stored) - len(remaining)
        self._commit(remaining)
        self.toasts.push(self.translate("conversations_deleted", count=removed), "success")
        log.info(f"Bulk deleted {removed} conversations")
        if self._active_id in ids:
            self._activate_fallback()
        return removed

    def toggle_pin(self, conversation_id: str) -> bool | None:
        updated = self._apply(
            conversation_id,
            lambda c: c.model_copy(update={"pinned": not c.pinned}) if c else None,
        )
        if updated is None:
            return None
        self.toasts.push(self.translate("pinned" if updated.pinned else "unpinned"), "success")
        return updated.pinned

    def toggle_archive(self, conversation_id: str) -> bool | None:
        updated = self._apply(
            conversation_id,
            lambda c: c.model_copy(update={"archived": not c.archived}) if c else None,
        )
        if updated is None:
            return None
        self.toasts.push(self.translate("archived" if updated.archived else "unarchived"), "success")
        if updated.archived and conversation_id == self._active_id:
            self._activate_fallback()
        return updated.archived

    def bulk_archive(self, conversation_ids: Iterable[str]) -> int:
        ids = set(conversation_ids)
        if not ids:
            self.toasts.push(self.translate("no_conversations_selected"), "info")
            return 0

        stored = self.store.load_conversations()
        count = 0
        for i, conv in enumerate(stored):
            if conv.id in ids:
                stored[i] = conv.model_copy(update={"archived": True})
                count += 1
        self._commit(stored)
        self.toasts.push(self.translate("conversations_archived", count=count), "success")
        if self._active_id in ids:
            self._activate_fallback()
        return count

    # ── Message actions (active conversation) ───────────────────

    def edit_message(self, message_id: str, content: str) -> bool:
        def edit(current: Conversation | None) -> Conversation | None:
            if current is None:
                return None
            messages = [
                m.model_copy(update={"content": content, "timestamp": m.timestamp or datetime.now()})
                if m.id == message_id else m
                for m in current.messages
            ]
            return current.model_copy(update={"messages": messages, "timestamp": datetime.now()})

        if not self._has_message(message_id):
            self.toasts.push(self.translate("message_not_found"), "error")
            return False
        self._apply(self._active_id, edit)  # type: ignore[arg-type]
        self.toasts.push(self.translate("message_updated"), "success")
        return True

    def delete_message(self, message_id: str) -> bool:
        if not self._has_message(message_id):
            self.toasts.push(self.translate("message_not_found"), "error")
            return False
        self._apply(
            self._active_id,  # type: ignore[arg-type]
            lambda c: c.model_copy(
                update={"messages": [m for m in c.messages if m.id != message_id], "timestamp": datetime.now()}
            ) if c else None,
        )
        self.toasts.push(self.translate("message_deleted"), "success")
        return True

    # ── Queries ─────────────────────────────────────────────────

    def visible_conversations(self, query: str = "") -> list[Conversation]:
        return [c for c in self._conversations if not c.archived and c.matches(query)]

    def archived_conversations(self) -> list[Conversation]:
        return [c for c in self._conversations if c.archived]

    def search_messages(self, query: str) -> list[Message]:
        q = query.strip().lower()
        if not q:
            return self.messages
        return [m for m in self.messages if q in m.content.lower()]

    def export(self, conversation_id: str | None = None) -> tuple[str, str] | None:
        """``(filename, transcript)`` for a conversation, the active one by default."""
        conv = self._find(conversation_id or self._active_id or "")
        if conv is None:
            return None
        self.toasts.push(self.translate("conversation_exported"), "success")
        return export_filename(conv.title), format_transcript(conv, self.translate)

    # ── Settings ────────────────────────────────────────────────

    def set_dark_mode(self, enabled: bool) -> Settings:
        self.settings = self.settings.model_copy(update={"dark_mode": enabled})
        self.store.save_settings(self.settings)
        self._notify()
        return self.settings

    def set_language(self, language: str) -> bool:
        lang = normalize_language(language)
        if lang is None:
            return False
        self.translate.language = lang
        self.store.save_language(lang)
        self._notify()
        return True

    # ── Internals ───────────────────────────────────────────────

    def _find(self, conversation_id: str | None) -> Conversation | None:
        return next((c for c in self._conversations if c.id == conversation_id), None)

    def _has_message(self, message_id: str) -> bool:
        return any(m.id == message_id for m in self.messages)

    def _restored(self, conversation_id: str, session_id: str, messages: list[Message]) -> Conversation:
        return Conversation(
            id=conversation_id,
            session_id=session_id,
            title=fallback_title(messages, self.translate("new_conversation")),
            messages=messages,
        )

    @staticmethod
    def _appended(conversation: Conversation, message: Message) -> Conversation:
        return conversation.model_copy(
            update={"messages": [*conversation.messages, message], "timestamp": datetime.now()}
        )

    def _apply(self, conversation_id: str, update: Update) -> Conversation | None:
        """Read-merge-write one conversation. ``update`` returning None means no change."""
        stored = self.store.load_conversations()
        index = next((i for i, c in enumerate(stored) if c.id == conversation_id), None)
        updated = update(stored[index] if index is not None else None)
        if updated is None:
            return None
        if index is None:
            stored.append(updated)
        else:
            stored[index] = updated
        self._commit(stored)
        return updated

    def _commit(self, conversations: list[Conversation]) -> None:
        self._conversations = ordered_conversations(conversations)
        self.store.save_conversations(self._conversations)
        self._notify()

    def _set_active(self, conversation_id: str) -> None:
        self._active_id = conversation_id
        self.store.save_active_id(conversation_id)
        self._notify()

    def _activate_fallback(self) -> None:
        visible = self.visible_conversations()
        if visible:
            self.select(visible[0].id)
        else:
            self.new_conversation()

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Background task failed", exc_info=task.exception())

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change()
