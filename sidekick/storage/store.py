"""
Local key-value persistence: one JSON file per key.

Reads never raise: a missing, unreadable or malformed file yields the
caller's default and a logged warning. Writes are atomic (temp file +
rename) and log instead of raising.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sidekick.chat.models import Conversation, Settings
from sidekick.config import Config
from sidekick.i18n import Language, normalize_language
from sidekick.log import setup_logging

log = setup_logging("sidekick.storage")


class JsonStore:
    """Directory-backed key-value store; values are JSON documents."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning(f"Could not read '{key}' from {path}: {e}")
            return default

    def set(self, key: str, value: Any) -> bool:
        path = self.path_for(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(value, f, ensure_ascii=False, indent=2)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            log.error(f"Could not write '{key}' to {path}: {e}")
            return False
        return True

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"Could not delete '{key}': {e}")


class ConversationStore:
    """
    Typed access to the persisted conversation list, active conversation,
    settings and language choice. Each lives under its own key.
    """

    def __init__(self, root: Path | None = None, prefix: str | None = None) -> None:
        self._kv = JsonStore(root if root is not None else Config.DATA_DIR)
        prefix = prefix or Config.STORAGE_PREFIX
        self.conversations_key = f"{prefix}-conversations"
        self.active_key = f"{prefix}-current-conversation"
        self.settings_key = f"{prefix}-settings"
        self.language_key = f"{prefix}-language"

    @property
    def root(self) -> Path:
        return self._kv.root

    # ── Conversations ───────────────────────────────────────────

    def load_conversations(self) -> list[Conversation]:
        raw = self._kv.get(self.conversations_key, [])
        if not isinstance(raw, list):
            log.warning(f"Ignoring stored conversations: expected a list, got {type(raw).__name__}")
            return []

        conversations: list[Conversation] = []
        for i, item in enumerate(raw):
            try:
                conversations.append(Conversation.model_validate(item))
            except ValidationError as e:
                log.warning(f"Skipping malformed conversation #{i}: {e.error_count()} error(s)")
        return conversations

    def save_conversations(self, conversations: list[Conversation]) -> None:
        self._kv.set(self.conversations_key, [c.to_storage() for c in conversations])

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        for conv in self.load_conversations():
            if conv.id == conversation_id:
                return conv
        return None

    # ── Active conversation ─────────────────────────────────────

    def load_active_id(self) -> str | None:
        value = self._kv.get(self.active_key)
        return value if isinstance(value, str) and value else None

    def save_active_id(self, conversation_id: str | None) -> None:
        if conversation_id is None:
            self._kv.delete(self.active_key)
        else:
            self._kv.set(self.active_key, conversation_id)

    # ── Settings ────────────────────────────────────────────────

    def load_settings(self) -> Settings:
        raw = self._kv.get(self.settings_key, {})
        if not isinstance(raw, dict):
            return Settings()
        return Settings(dark_mode=raw.get("darkMode") is True)

    def save_settings(self, settings: Settings) -> None:
        self._kv.set(self.settings_key, settings.model_dump(by_alias=True))

    # ── Language ────────────────────────────────────────────────

    def load_language(self) -> Language | None:
        return normalize_language(self._kv.get(self.language_key))

    def save_language(self, language: Language) -> None:
        self._kv.set(self.language_key, language)
