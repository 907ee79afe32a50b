"""
Pytest configuration and shared fixtures for Sidekick tests.
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

# Keep logs and data out of the user's home before any sidekick import
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="sidekick-tests-"))
os.environ["SIDEKICK_DATA_DIR"] = str(_SESSION_DIR / "data")
os.environ["SIDEKICK_LOG_DIR"] = str(_SESSION_DIR / "logs")
os.environ["VERBOSE"] = "false"
os.environ["IPINFO_API_TOKEN"] = ""

import httpx
import pytest

from sidekick.chat.manager import ConversationManager
from sidekick.chat.models import Message
from sidekick.chat.toasts import ToastBoard
from sidekick.i18n import Translator
from sidekick.storage.store import ConversationStore


class FakeGateway:
    """
    Chat gateway double. Each ``send_message`` call parks on a future the
    test resolves, so completion order is under the test's control.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, asyncio.Future]] = []
        self.history: list[Message] | None = None
        self.history_requests: list[str] = []
        self.history_gate: asyncio.Event | None = None

    async def send_message(self, session_id: str, text: str) -> str:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((session_id, text, future))
        result = await future
        if isinstance(result, Exception):
            raise result
        return result

    async def load_previous_session(self, session_id: str) -> list[Message] | None:
        self.history_requests.append(session_id)
        if self.history_gate is not None:
            await self.history_gate.wait()
        return self.history

    def reply(self, index: int, result) -> None:
        """Resolve call ``index`` with a reply string or an exception."""
        self.calls[index][2].set_result(result)


class FakeTitles:
    """Title generator double returning a fixed title."""

    def __init__(self, title: str = "Generated Title") -> None:
        self.title = title
        self.requests: list[list[Message]] = []

    async def generate(self, messages: list[Message]) -> str:
        self.requests.append(messages)
        return self.title


async def settle() -> None:
    """Let pending tasks run up to their next suspension point."""
    for _ in range(5):
        await asyncio.sleep(0)


def mock_client(handler) -> httpx.AsyncClient:
    """An AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture(scope="session", autouse=True)
def _cleanup_session_dir() -> Generator[None, None, None]:
    yield
    shutil.rmtree(_SESSION_DIR, ignore_errors=True)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def store(temp_dir: Path) -> ConversationStore:
    """A conversation store rooted in a fresh directory."""
    return ConversationStore(root=temp_dir / "data", prefix="test")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def titles() -> FakeTitles:
    return FakeTitles()


@pytest.fixture
def toasts() -> ToastBoard:
    return ToastBoard(ttl=3)


@pytest.fixture
def manager(store, gateway, titles, toasts) -> ConversationManager:
    """A manager over a fresh store with its initial conversation loaded."""
    mgr = ConversationManager(store, gateway, titles, translate=Translator("en"), toasts=toasts)
    mgr.load()
    return mgr
