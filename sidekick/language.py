"""
UI language resolution: a stored choice wins, otherwise the visitor's
country (IP geolocation) decides between English and Dutch.

States:
    UNRESOLVED → CACHED                 (stored choice found)
    UNRESOLVED → DETECTING → RESOLVED   (lookup returned a country)
    UNRESOLVED → DETECTING → DEFAULTED  (lookup failed, English)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable

import httpx

from sidekick.config import Config
from sidekick.i18n import DEFAULT_LANGUAGE, Language
from sidekick.log import setup_logging
from sidekick.storage.store import ConversationStore

log = setup_logging("sidekick.language")

DUTCH_COUNTRIES = ("BE", "NL")


def should_use_dutch(country_code: str | None) -> bool:
    if not country_code:
        return False
    return country_code.upper() in DUTCH_COUNTRIES


async def detect_country(
    client: httpx.AsyncClient,
    token: str | None = None,
    url: str | None = None,
    retries: int | None = None,
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str | None:
    """
    Look up the caller's country code. Returns None on any failure.

    Timeouts end the lookup at once; other failures are retried
    ``retries`` times with exponential backoff (1s, 2s, ...).
    """
    token = Config.IPINFO_API_TOKEN if token is None else token
    url = url or Config.IPINFO_API_URL
    retries = Config.GEO_RETRIES if retries is None else retries
    timeout = Config.GEO_TIMEOUT if timeout is None else timeout

    if not token:
        log.warning("IPInfo API token not configured, skipping country detection")
        return None

    headers = {"Accept": "application/json", "Authorization": f"Bearer {token}"}
    for attempt in range(retries + 1):
        try:
            response = await client.get(url, headers=headers, timeout=timeout)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected payload: {type(data).__name__}")
            return data.get("country_code") or data.get("country") or None
        except httpx.TimeoutException as e:
            log.warning(f"Country detection timed out: {e!r}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            if attempt == retries:
                log.warning(f"Error detecting country: {e!r}")
                return None
            delay = 2 ** attempt
            log.debug(f"Country detection attempt {attempt + 1} failed ({e!r}), retrying in {delay}s")
            await sleep(delay)
    return None


class ResolverState(str, Enum):
    UNRESOLVED = "unresolved"
    CACHED = "cached"
    DETECTING = "detecting"
    RESOLVED = "resolved"
    DEFAULTED = "defaulted"


class LocaleResolver:
    """Decides the UI language once and remembers it in the store."""

    def __init__(self, store: ConversationStore,
                 detector: Callable[[], Awaitable[str | None]]) -> None:
        self._store = store
        self._detector = detector
        self.state = ResolverState.UNRESOLVED
        self.language: Language = DEFAULT_LANGUAGE

    async def resolve(self) -> Language:
        stored = self._store.load_language()
        if stored is not None:
            self.state = ResolverState.CACHED
            self.language = stored
            return stored

        self.state = ResolverState.DETECTING
        try:
            country = await self._detector()
        except Exception as e:
            log.warning(f"Language detection failed: {e!r}")
            country = None

        if country:
            self.language = "nl" if should_use_dutch(country) else "en"
            self.state = ResolverState.RESOLVED
        else:
            self.language = DEFAULT_LANGUAGE
            self.state = ResolverState.DEFAULTED

        log.info(f"Resolved language '{self.language}' (country: {country or 'unknown'})")
        self._store.save_language(self.language)
        return self.language
