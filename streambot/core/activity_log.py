from __future__ import annotations

import itertools
import logging
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Deque

MAX_ACTIVITY_ENTRIES = 150

logger = logging.getLogger("streambot.activity")


class ActivityLog:
    """Últimos eventos do bot, exibidos no painel (GET /status)."""

    def __init__(self, capacity: int = MAX_ACTIVITY_ENTRIES) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._entries: Deque[dict[str, Any]] = deque(maxlen=capacity)
        self._lock = Lock()

    def add(self, message: str, level: int = logging.INFO) -> dict[str, Any]:
        entry = {"time": datetime.now(timezone.utc).isoformat(), "msg": message}
        with self._lock:
            self._entries.append(entry)
        logger.log(level, message)
        return entry

    def recent(self, count: int = 30) -> list[dict[str, Any]]:
        if count <= 0:
            return []
        with self._lock:
            start = max(0, len(self._entries) - count)
            return list(itertools.islice(self._entries, start, None))

    def __len__(self) -> int:
        return len(self._entries)
