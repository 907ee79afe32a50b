"""
Toast notifications: short-lived, in memory only.
"""

from __future__ import annotations

import time
from typing import Callable

from sidekick.chat.models import Toast, ToastType
from sidekick.config import Config


class ToastBoard:
    """Holds toasts until they are ``ttl`` seconds old."""

    def __init__(self, ttl: float | None = None, clock: Callable[[], float] = time.monotonic,
                 listener: Callable[[Toast], None] | None = None) -> None:
        self.ttl = ttl if ttl is not None else Config.TOAST_SECONDS
        self._clock = clock
        self._toasts: list[Toast] = []
        self.listener = listener

    def push(self, message: str, type: ToastType = "info") -> Toast:
        toast = Toast(message=message, type=type, created_at=self._clock())
        self._toasts.append(toast)
        if self.listener is not None:
            self.listener(toast)
        return toast

    def active(self) -> list[Toast]:
        now = self._clock()
        self._toasts = [t for t in self._toasts if now - t.created_at < self.ttl]
        return list(self._toasts)
