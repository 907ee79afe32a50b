"""
Data models for conversations, messages and UI state.

Persisted JSON keeps camelCase keys (``sessionId``, ``darkMode``), so every
model is dumped with ``by_alias=True``.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime
from typing import Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    field_validator,
    model_serializer,
    model_validator,
)

Role = Literal["user", "assistant"]
ToastType = Literal["success", "error", "info"]


def _stamp() -> str:
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


def _local_naive(value: datetime | None) -> datetime | None:
    # Older records store epoch milliseconds, which parse as UTC-aware.
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def new_session_id() -> str:
    """Correlation id sent to the chat webhook with every message."""
    return f"session_{uuid.uuid4().hex[:13]}{int(time.time() * 1000):x}"


class StoredRecord(BaseModel):
    """
    Base for records kept in the conversation file.

    Writing a record back keeps the shape it was read in: optional keys that
    were absent stay absent, and a timestamp stored as epoch milliseconds is
    written as epoch milliseconds again.
    """
    optional_keys: ClassVar[tuple[str, ...]] = ()

    epoch_timestamp: bool = Field(default=False, exclude=True, repr=False)

    @model_validator(mode="before")
    @classmethod
    def remember_timestamp_form(cls, data: Any) -> Any:
        if isinstance(data, dict):
            stamp = data.get("timestamp")
            if isinstance(stamp, (int, float)) and not isinstance(stamp, bool):
                data = {**data, "epoch_timestamp": True}
        return data

    @model_serializer(mode="wrap")
    def keep_stored_shape(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        for name in self.optional_keys:
            if name not in self.model_fields_set:
                data.pop(name, None)
        stamp = getattr(self, "timestamp", None)
        if self.epoch_timestamp and stamp is not None and "timestamp" in data:
            data["timestamp"] = round(stamp.timestamp() * 1000)
        return data


class Message(StoredRecord):
    """A single message in a conversation."""
    optional_keys: ClassVar[tuple[str, ...]] = ("timestamp", "id")

    role: Role = Field(description="'user' or 'assistant'")
    content: str = Field(default="", description="Message text content (markdown)")
    timestamp: datetime | None = Field(default=None, description="When the message was created")
    id: str | None = Field(default=None, description="Stable id used by edit/delete")

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value):
        return _local_naive(value)

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=text, timestamp=datetime.now(), id=f"msg_{_stamp()}")

    @classmethod
    def assistant(cls, text: str) -> Message:
        return cls(role="assistant", content=text, timestamp=datetime.now(), id=f"msg_{_stamp()}")

    @classmethod
    def seed(cls, text: str) -> Message:
        """The greeting every new conversation starts with."""
        return cls(role="assistant", content=text, timestamp=datetime.now(), id=f"initial_{_stamp()}")


class Conversation(StoredRecord):
    """A locally persisted thread of messages."""
    model_config = ConfigDict(populate_by_name=True)
    optional_keys: ClassVar[tuple[str, ...]] = ("title", "messages", "pinned", "archived")

    id: str = Field(description="Primary key (conv_...)")
    title: str = Field(default="")
    timestamp: datetime = Field(default_factory=datetime.now, description="Last touched")
    messages: list[Message] = Field(default_factory=list)
    session_id: str = Field(default_factory=new_session_id, alias="sessionId")
    pinned: bool = False
    archived: bool = False

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, value):
        return _local_naive(value)

    @classmethod
    def new(cls, seed_text: str, title: str) -> Conversation:
        return cls(id=f"conv_{_stamp()}", title=title, messages=[Message.seed(seed_text)])

    @property
    def has_only_seed(self) -> bool:
        """True while the conversation holds nothing but its greeting."""
        return len(self.messages) == 1 and self.messages[0].role == "assistant"

    def matches(self, query: str) -> bool:
        q = query.strip().lower()
        if not q:
            return True
        return q in self.title.lower() or any(q in m.content.lower() for m in self.messages)

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Settings(BaseModel):
    """Process-wide user settings."""
    model_config = ConfigDict(populate_by_name=True)

    dark_mode: bool = Field(default=False, alias="darkMode")


class Toast(BaseModel):
    """Ephemeral notification; expires on its own, never persisted."""
    id: str = Field(default_factory=lambda: f"toast_{_stamp()}")
    message: str
    type: ToastType = "info"
    created_at: float = Field(default_factory=time.monotonic)
