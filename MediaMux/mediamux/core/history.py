from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

from .models import RecentFileEntry

DEFAULT_RECENT_FILES_LIMIT = 10

NotifyCallback = Callable[[str, str, str], None]

logger = logging.getLogger(__name__)


def _utc_now_text() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class RecentFiles:
    """In-memory recent outputs, newest first, one entry per path."""

    def __init__(
        self,
        limit: int = DEFAULT_RECENT_FILES_LIMIT,
        *,
        enabled: bool = True,
        notify_cb: NotifyCallback | None = None,
    ) -> None:
        self._limit = max(1, int(limit))
        self._enabled = bool(enabled)
        self._notify_cb = notify_cb
        self._entries: list[RecentFileEntry] = []
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def entries(self) -> list[RecentFileEntry]:
        with self._lock:
            return list(self._entries)

    def add(self, path: str, kind: str) -> RecentFileEntry | None:
        value = str(path or "").strip()
        if not value or not self._enabled:
            return None
        entry = RecentFileEntry(path=value, kind=str(kind or "").strip(), timestamp_utc=_utc_now_text())
        with self._lock:
            self._entries = [entry, *[item for item in self._entries if item.path != value]][: self._limit]
        return entry

    def remove(self, path: str) -> bool:
        value = str(path or "").strip()
        with self._lock:
            before = len(self._entries)
            self._entries = [item for item in self._entries if item.path != value]
            return len(self._entries) != before

    def clear(self) -> None:
        with self._lock:
            self._entries = []

    def record_history(self, output_path: str, kind: str) -> None:
        self.add(output_path, kind)

    def notify(self, title: str, message: str, severity: str) -> None:
        logger.info("[%s] %s: %s", severity, title, message)
        if self._notify_cb is not None:
            self._notify_cb(title, message, severity)
