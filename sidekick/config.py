"""
Centralized configuration — loads from .env with sensible defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

_DATA_DIR = Path(os.getenv("SIDEKICK_DATA_DIR", str(Path.home() / ".sidekick"))).expanduser()


class Config:
    """All project settings in one place."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATA_DIR: Path = _DATA_DIR
    LOG_DIR: Path = Path(os.getenv("SIDEKICK_LOG_DIR", str(_DATA_DIR / "logs"))).expanduser()
    STORAGE_PREFIX: str = os.getenv("SIDEKICK_STORAGE_PREFIX", "boomerang-sidekick")

    # Webhooks (n8n)
    WEBHOOK_URL: str = os.getenv(
        "SIDEKICK_WEBHOOK_URL", "http://localhost:5678/webhook/sidekick/chat"
    )
    TITLE_WEBHOOK_URL: str = os.getenv(
        "SIDEKICK_TITLE_WEBHOOK_URL", "http://localhost:5678/webhook/generate-chat-title"
    )

    # Timeouts (s)
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "120"))
    TITLE_TIMEOUT: float = float(os.getenv("TITLE_TIMEOUT", "30"))

    # Country detection
    IPINFO_API_URL: str = os.getenv("IPINFO_API_URL", "https://ipinfo.io/json")
    IPINFO_API_TOKEN: str = os.getenv("IPINFO_API_TOKEN", "")  # empty = detection disabled
    GEO_TIMEOUT: float = float(os.getenv("GEO_TIMEOUT", "5"))
    GEO_RETRIES: int = int(os.getenv("GEO_RETRIES", "2"))

    # UI
    TOAST_SECONDS: float = float(os.getenv("TOAST_SECONDS", "3"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG")
    VERBOSE: bool = os.getenv("VERBOSE", "false").lower() == "true"

    @classmethod
    def ensure_dirs(cls) -> None:
        """Create required directories if they don't exist."""
        cls.DATA_DIR.mkdir(parents=True, exist_ok=True)
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)
