"""Commit history — a bounded FIFO of immutable entries."""

from __future__ import annotations

import time
from collections import deque
from types import MappingProxyType
from typing import Any, Mapping, NamedTuple

DEFAULT_MAX_HISTORY_SIZE = 50


class HistoryEntry(NamedTuple):
    """One successful commit. State snapshots are shallow and read-only."""

    name: str
    payload: Any
    prev_state: Mapping[str, Any]
    new_state: Mapping[str, Any]
    timestamp: float


def snapshot(state: dict) -> Mapping[str, Any]:
    return MappingProxyType(dict(state))


class History:
    """Ring buffer of HistoryEntry; once full, each append evicts the oldest."""

    __slots__ = ("_entries",)

    def __init__(self, max_size: int = DEFAULT_MAX_HISTORY_SIZE) -> None:
        self._entries: deque[HistoryEntry] = deque(maxlen=_check_size(max_size))

    @property
    def max_size(self) -> int:
        return self._entries.maxlen

    def record(self, name: str, payload: Any, prev_state, new_state) -> HistoryEntry:
        entry = HistoryEntry(name, payload, prev_state, new_state, time.time())
        self._entries.append(entry)
        return entry

    def resize(self, max_size: int) -> None:
        """Change capacity. Shrinking drops the oldest entries immediately."""
        self._entries = deque(self._entries, maxlen=_check_size(max_size))

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"History({len(self._entries)}/{self._entries.maxlen})"


def _check_size(size: int) -> int:
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise ValueError(f"history size must be a non-negative int, got {size!r}")
    return size
