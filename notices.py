# ============================================================
# notices.py — Toast-style notices
# ============================================================
# Managers push notices while they work; the console drains them
# into the next rendered page. Errors and warnings are also printed.
# ============================================================

from dataclasses import dataclass
from typing import List

LEVELS = ("success", "info", "warning", "error")

_PREFIX = {"warning": "⚠️", "error": "❌"}


@dataclass
class Notice:
    level: str  # success | info | warning | error
    message: str


class NoticeBoard:
    def __init__(self):
        self._items: List[Notice] = []

    def add(self, level: str, message: str):
        if level not in LEVELS:
            raise ValueError(f"Unknown notice level: {level}")
        self._items.append(Notice(level, message))
        if level in _PREFIX:
            print(f"{_PREFIX[level]} {message}")

    def success(self, message: str):
        self.add("success", message)

    def info(self, message: str):
        self.add("info", message)

    def warning(self, message: str):
        self.add("warning", message)

    def error(self, message: str):
        self.add("error", message)

    def peek(self) -> List[Notice]:
        return list(self._items)

    def drain(self) -> List[Notice]:
        """Return and clear everything queued so far."""
        items, self._items = self._items, []
        return items

    def __len__(self):
        return len(self._items)
