"""
Conversation titles: AI-generated via a second webhook, with a local fallback.
"""

from __future__ import annotations

from typing import Callable

import httpx

from sidekick.chat.models import Message
from sidekick.config import Config
from sidekick.i18n import Translator
from sidekick.log import setup_logging

log = setup_logging("sidekick.titles")

FALLBACK_CHARS = 50
DISPLAY_WORDS = 6
DISPLAY_CHARS = 60


def fallback_title(messages: list[Message], default: str) -> str:
    """First user message, cut to 50 characters; ``default`` if there is none."""
    for msg in messages:
        if msg.role == "user":
            title = msg.content.strip()
            return title[:FALLBACK_CHARS] + "..." if len(title) > FALLBACK_CHARS else title
    return default


def truncate_title(title: str, max_words: int = DISPLAY_WORDS) -> str:
    """Shorten titles longer than ``max_words`` words for list display."""
    words = title.split()
    if len(words) <= max_words:
        return title
    truncated = " ".join(words[:max_words])
    if len(truncated) > DISPLAY_CHARS:
        return truncated[: DISPLAY_CHARS - 3] + "..."
    return truncated + "..."


def title_prompt(messages: list[Message]) -> list[dict[str, str]]:
    """The first user message and the first assistant reply after it."""
    for i, msg in enumerate(messages):
        if msg.role != "user":
            continue
        prompt = [{"role": msg.role, "content": msg.content}]
        reply = next((m for m in messages[i + 1:] if m.role == "assistant"), None)
        if reply is not None:
            prompt.append({"role": reply.role, "content": reply.content})
        return prompt
    return []


class TitleGenerator:
    """Asks the title webhook for a short title. Never raises."""

    def __init__(self, client: httpx.AsyncClient, webhook_url: str | None = None,
                 translate: Callable[..., str] | None = None, timeout: float | None = None) -> None:
        self._client = client
        self.webhook_url = webhook_url or Config.TITLE_WEBHOOK_URL
        self.translate = translate or Translator()
        self.timeout = timeout if timeout is not None else Config.TITLE_TIMEOUT

    def fallback(self, messages: list[Message]) -> str:
        return fallback_title(messages, self.translate("new_conversation"))

    async def generate(self, messages: list[Message]) -> str:
        prompt = title_prompt(messages)
        if not prompt:
            return self.fallback(messages)

        try:
            response = await self._client.post(
                self.webhook_url, json={"messages": prompt}, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            log.warning(f"Title generation failed, using fallback: {e!r}")
            return self.fallback(messages)

        title = None
        if isinstance(data, dict):
            title = data.get("title") or data.get("response") or data.get("answer")
        if isinstance(title, str) and title.strip():
            log.info(f"Generated title: {title.strip()[:60]}")
            return title.strip()

        log.warning(f"Title webhook returned an unexpected shape: {str(data)[:200]}")
        return self.fallback(messages)
