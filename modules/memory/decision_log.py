"""
modules/memory/decision_log.py
-------------------------------
Session-scoped, append-only Decision Log.

Holds the most recent DECISION_LOG_MAX entries; the oldest entry is evicted
when a new one would exceed the bound. Entries are immutable.
"""

from __future__ import annotations
import logging
from collections import deque
from typing import Optional

from core.enums import LogType
from schemas.events import DecisionLogEntry
import config

logger = logging.getLogger(__name__)

_LEVELS = {
    LogType.ERROR:   logging.ERROR,
    LogType.WARNING: logging.WARNING,
}


class DecisionLog:

    def __init__(self, capacity: int = config.DECISION_LOG_MAX) -> None:
        self._entries: deque[DecisionLogEntry] = deque(maxlen=capacity)

    def append(self, entry: DecisionLogEntry) -> DecisionLogEntry:
        self._entries.append(entry)
        logger.log(_LEVELS.get(entry.type, logging.INFO), "[%s] %s %s",
                   entry.type.value, entry.title, entry.message)
        return entry

    def add(
        self,
        type: LogType,
        message: str,
        title: str = "",
        detail: Optional[str] = None,
        rules: tuple[str, ...] = (),
        severity: Optional[int] = None,
    ) -> DecisionLogEntry:
        return self.append(DecisionLogEntry(
            type=type, message=message, title=title,
            detail=detail, rules=tuple(rules), severity=severity,
        ))

    def entries(self, type: Optional[LogType] = None) -> tuple[DecisionLogEntry, ...]:
        """Oldest first; optionally filtered by type."""
        if type is None:
            return tuple(self._entries)
        return tuple(e for e in self._entries if e.type == type)

    def latest(self) -> Optional[DecisionLogEntry]:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
