"""
Time formatting and plain-text transcript export.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable

from sidekick.chat.models import Conversation


def _clock_time(ts: datetime) -> str:
    hour = ts.hour % 12 or 12
    ampm = "PM" if ts.hour >= 12 else "AM"
    return f"{hour}:{ts.minute:02d} {ampm}"


def format_message_time(ts: datetime, translate: Callable[..., str],
                        now: datetime | None = None) -> str:
    """Timestamp shown next to a message and in exports."""
    now = now or datetime.now()
    diff = (now - ts).total_seconds()
    minutes = int(diff // 60)

    if minutes < 1:
        return translate("just_now")
    if minutes < 60:
        return translate("minutes_ago", count=minutes)
    if diff < 86400:
        return _clock_time(ts)
    return f"{ts.date().isoformat()} {_clock_time(ts)}"


def format_relative(ts: datetime, translate: Callable[..., str],
                    now: datetime | None = None) -> str:
    """Coarse age used in the conversation list."""
    now = now or datetime.now()
    diff = (now - ts).total_seconds()

    if diff < 60:
        return translate("just_now")
    if diff < 3600:
        return translate("minutes_ago", count=int(diff // 60))
    if diff < 86400:
        return translate("hours_ago", count=int(diff // 3600))
    if diff < 7 * 86400:
        return translate("days_ago", count=int(diff // 86400))
    return ts.date().isoformat()


def format_transcript(conversation: Conversation, translate: Callable[..., str],
                      now: datetime | None = None) -> str:
    """``[time] Role: content`` blocks separated by blank lines."""
    blocks = []
    for msg in conversation.messages:
        role = translate("you") if msg.role == "user" else translate("assistant_name")
        time_str = format_message_time(msg.timestamp, translate, now) if msg.timestamp else ""
        blocks.append(f"[{time_str}] {role}: {msg.content}")
    return "\n\n".join(blocks)


def export_filename(title: str) -> str:
    stem = re.sub(r"[\\/:*?\"<>|\s]+", "-", title[:20]).strip("-") or "conversation"
    return f"boomerang-chat-{stem}.txt"
