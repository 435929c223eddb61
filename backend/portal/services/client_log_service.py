# Overview: Bounded buffer for log entries shipped by browser clients.

"""
Client Log Buffer

Browsers post their own errors/warnings so admins can inspect them without
access to user machines. Entries are kept in memory only, newest entries
evicting the oldest once the buffer is full.
"""

from __future__ import annotations

from collections import deque
from threading import Lock

from ..errors import ValidationError
from ..time_utils import utcnow, to_utc_z


VALID_LEVELS = ("error", "warn", "info", "debug")


class ClientLogBuffer:
    def __init__(self, maxlen: int = 1000):
        self._entries = deque(maxlen=maxlen)
        self._lock = Lock()

    def append(self, level, message, details=None, session_id=None, user_id=None) -> dict:
        level = (level or "").strip().lower()
        message = (message or "").strip() if isinstance(message, str) else ""
        if level not in VALID_LEVELS:
            raise ValidationError(f"level must be one of: {', '.join(VALID_LEVELS)}")
        if not message:
            raise ValidationError("message is required")

        entry = {
            "timestamp": to_utc_z(utcnow()),
            "level": level,
            "message": message,
            "details": details,
            "session_id": session_id,
            "user_id": user_id,
        }
        with self._lock:
            self._entries.append(entry)
        return entry

    def query(self, level: str | None = None, limit: int = 100) -> dict:
        """Most recent entries first, optionally filtered by level."""
        with self._lock:
            entries = list(self._entries)
        total = len(entries)
        if level:
            entries = [entry for entry in entries if entry["level"] == level]
        filtered = len(entries)
        entries.reverse()
        return {
            "logs": entries[:max(limit, 0)],
            "total": total,
            "filtered": filtered,
        }


def get_buffer(app) -> ClientLogBuffer:
    return app.extensions["client_logs"]
