"""Storage for enhancement history entries."""
from __future__ import annotations

from typing import Protocol

from resume_enhancer.domain.usage import HistoryEntry

MAX_ENTRIES = 500


class HistoryRepository(Protocol):
    """Persistence contract for enhancement history."""

    def add(self, entry: HistoryEntry) -> None: ...

    def get(self, entry_id: str) -> HistoryEntry | None: ...

    def entries(self) -> list[HistoryEntry]: ...

    def delete(self, entry_id: str) -> bool: ...

    def reset(self) -> None: ...


class InMemoryHistoryRepository:
    """Newest-first in-memory history capped at ``max_entries``."""

    def __init__(self, max_entries: int = MAX_ENTRIES) -> None:
        self._entries: list[HistoryEntry] = []
        self._max_entries = max_entries

    def add(self, entry: HistoryEntry) -> None:
        self._entries.insert(0, entry)
        del self._entries[self._max_entries :]

    def get(self, entry_id: str) -> HistoryEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def delete(self, entry_id: str) -> bool:
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                del self._entries[index]
                return True
        return False

    def reset(self) -> None:
        self._entries.clear()
