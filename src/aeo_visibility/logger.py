from __future__ import annotations

import logging
import threading
from typing import List


class ProcessLogger:
    """Captures console-like log lines for a single visibility check."""

    def __init__(self, name: str = "aeo_visibility") -> None:
        self._entries: List[str] = []
        self._lock = threading.Lock()
        self._forward = logging.getLogger(name)

    def log(self, channel: str, message: str, *, level: int = logging.INFO) -> None:
        entry = f"> [{channel}] {message}"
        with self._lock:
            self._entries.append(entry)
        self._forward.log(level, "[%s] %s", channel, message)

    def warning(self, channel: str, message: str) -> None:
        self.log(channel, message, level=logging.WARNING)

    @property
    def entries(self) -> List[str]:
        with self._lock:
            return list(self._entries)
