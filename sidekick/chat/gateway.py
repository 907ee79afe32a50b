"""
Chat webhook client: sends messages to the n8n workflow and normalizes
whatever it answers into plain text.

The workflow's reply shape is not fixed. ``parse_reply`` tries the known
shapes in a fixed order and tags the one that matched.
"""

from __future__ import annotations

import json
import uuid
from enum import Enum
from typing import Any, Callable, NamedTuple

import httpx

from sidekick.chat.models import Message
from sidekick.config import Config
from sidekick.log import setup_logging

log = setup_logging("sidekick.gateway")

REPLY_FIELDS = ("answer", "response", "text", "message", "chatOutput", "reply", "content")
HISTORY_FIELDS = ("messages", "chatHistory", "history")


# ── Errors ──────────────────────────────────────────────────────


class ErrorCategory(str, Enum):
    NETWORK = "network"
    NOT_FOUND = "not_found"
    AUTH = "auth"
    SERVER = "server"
    HTTP = "http"
    UNKNOWN = "unknown"


class GatewayError(Exception):
    """A failed webhook call, categorized for the user-facing message."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 status: int | None = None) -> None:
        super().__init__(message)
        self.category = category
        self.status = status

    @classmethod
    def from_status(cls, status: int, body: str = "") -> GatewayError:
        if status == 404:
            category = ErrorCategory.NOT_FOUND
        elif status in (401, 403):
            category = ErrorCategory.AUTH
        elif status == 500:
            category = ErrorCategory.SERVER
        else:
            category = ErrorCategory.HTTP
        return cls(f"HTTP {status}: {body or 'no response body'}", category, status)


def describe_error(exc: Exception, translate: Callable[..., str]) -> str:
    """Localized chat message for a failed send."""
    if not isinstance(exc, GatewayError):
        return translate("error_sending_message")
    if exc.category is ErrorCategory.NETWORK:
        return translate("network_error")
    if exc.category is ErrorCategory.NOT_FOUND:
        return translate("webhook_not_found")
    if exc.category is ErrorCategory.AUTH:
        return translate("auth_error")
    if exc.category is ErrorCategory.SERVER:
        return translate("server_error")
    if exc.category is ErrorCategory.HTTP and exc.status is not None:
        return translate("server_error_with_code", code=exc.status)
    return translate("error_sending_message")


# ── Reply parsing ───────────────────────────────────────────────


class ReplyShape(str, Enum):
    PLAIN_TEXT = "plain_text"
    NESTED_ANSWER = "nested_answer"
    FIELD = "field"
    OUTPUT_STRING = "output_string"
    LIST_ITEM = "list_item"
    RAW = "raw"


class ParsedReply(NamedTuple):
    shape: ReplyShape
    text: str


def parse_reply(data: Any) -> ParsedReply:
    """
    Classify a webhook payload and pull the reply text out of it.

    Precedence:
        1. a string body is the reply
        2. ``output.answer``
        3. the first non-empty string among ``REPLY_FIELDS``
        4. ``output`` when it is a string
        5. the first element of a list (strings as-is, objects recursively)
        6. the JSON dump of the payload
    """
    if isinstance(data, str):
        return ParsedReply(ReplyShape.PLAIN_TEXT, data)

    if isinstance(data, dict):
        output = data.get("output")
        if isinstance(output, dict) and output.get("answer"):
            answer = output["answer"]
            return ParsedReply(ReplyShape.NESTED_ANSWER, answer if isinstance(answer, str) else str(answer))

        for field in REPLY_FIELDS:
            value = data.get(field)
            if isinstance(value, str) and value:
                return ParsedReply(ReplyShape.FIELD, value)

        if isinstance(output, str) and output:
            return ParsedReply(ReplyShape.OUTPUT_STRING, output)

    if isinstance(data, list) and data:
        first = data[0]
        if isinstance(first, str):
            return ParsedReply(ReplyShape.LIST_ITEM, first)
        if isinstance(first, (dict, list)):
            return ParsedReply(ReplyShape.LIST_ITEM, parse_reply(first).text)

    log.warning(f"Unknown response format: {str(data)[:200]}")
    return ParsedReply(ReplyShape.RAW, json.dumps(data, indent=2, ensure_ascii=False))


def extract_response_text(data: Any) -> str:
    return parse_reply(data).text


def parse_history(data: Any) -> list[Message] | None:
    """Messages from a loadPreviousSession payload, or None if it has none."""
    if not isinstance(data, dict):
        return None

    entries = None
    for field in HISTORY_FIELDS:
        if isinstance(data.get(field), list):
            entries = data[field]
            break
    if entries is None:
        return None

    messages: list[Message] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        role = entry.get("role")
        if role not in ("user", "assistant"):
            role = "user" if entry.get("type") == "user" else "assistant"
        content = entry.get("content") or entry.get("text") or entry.get("message") or ""
        messages.append(Message(role=role, content=str(content), id=f"hist_{uuid.uuid4().hex[:12]}"))
    return messages


def _decode_body(response: httpx.Response) -> Any:
    """JSON when the server says so or the text parses, else the raw text."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            log.debug("Body labelled JSON did not parse, using text")
    text = response.text
    try:
        return json.loads(text)
    except ValueError:
        return text


# ── Client ──────────────────────────────────────────────────────


class ChatGateway:
    """
    Client for the chat webhook.

    The ``httpx.AsyncClient`` is owned by the caller so one connection pool
    serves the gateway, the title generator and the locale lookup.
    """

    def __init__(self, client: httpx.AsyncClient, webhook_url: str | None = None,
                 timeout: float | None = None) -> None:
        self._client = client
        self.webhook_url = webhook_url or Config.WEBHOOK_URL
        self.timeout = timeout if timeout is not None else Config.REQUEST_TIMEOUT

    async def send_message(self, session_id: str, text: str) -> str:
        """
        Send one user message and return the assistant's reply text.

        Raises:
            GatewayError: on any request failure or a non-2xx status.
        """
        payload = {"chatInput": text, "sessionId": session_id, "action": "sendMessage"}
        log.info(f"Sending message ({len(text)} chars) for {session_id}: {text[:20]}...")

        try:
            response = await self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
        except httpx.TransportError as e:
            log.error(f"Network error calling {self.webhook_url}: {e!r}")
            raise GatewayError(str(e) or type(e).__name__, ErrorCategory.NETWORK) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # Undecodable bodies, redirect loops, a malformed webhook URL
            log.error(f"Request to {self.webhook_url} failed: {e!r}")
            raise GatewayError(str(e) or type(e).__name__, ErrorCategory.UNKNOWN) from e

        if not response.is_success:
            body = response.text
            log.error(f"Webhook returned HTTP {response.status_code}: {body[:500]}")
            raise GatewayError.from_status(response.status_code, body)

        reply = parse_reply(_decode_body(response))
        log.info(f"Reply received ({reply.shape.value}, {len(reply.text)} chars)")
        return reply.text

    async def load_previous_session(self, session_id: str) -> list[Message] | None:
        """Prior turns the workflow remembers for ``session_id``; None on any failure."""
        try:
            response = await self._client.post(
                self.webhook_url,
                params={"action": "loadPreviousSession"},
                json={"sessionId": session_id},
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.warning(f"Could not load previous session {session_id}: {e!r}")
            return None

        if not response.is_success:
            log.warning(f"loadPreviousSession returned HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            log.warning("loadPreviousSession returned a non-JSON body")
            return None
        return parse_history(data)
