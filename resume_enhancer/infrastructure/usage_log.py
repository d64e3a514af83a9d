"""Append-only storage for usage events."""
from __future__ import annotations

import json
import logging
import os
import threading
from collections import deque
from pathlib import Path
from typing import Iterable, Protocol

from resume_enhancer.domain.usage import UsageEvent

logger = logging.getLogger(__name__)

MAX_EVENTS = 1000


class UsageLog(Protocol):
    """Persistence contract for usage events."""

    def append(self, event: UsageEvent) -> None: ...

    def events(self) -> list[UsageEvent]: ...

    def replace(self, events: Iterable[UsageEvent]) -> None: ...

    def reset(self) -> None: ...


class InMemoryUsageLog:
    """Keeps the most recent ``max_events`` events in process memory."""

    def __init__(self, max_events: int = MAX_EVENTS) -> None:
        self._events: deque[UsageEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: UsageEvent) -> None:
        with self._lock:
            self._events.append(event)

    def events(self) -> list[UsageEvent]:
        with self._lock:
            return list(self._events)

    def replace(self, events: Iterable[UsageEvent]) -> None:
        with self._lock:
            self._events.clear()
            self._events.extend(events)

    def reset(self) -> None:
        self.replace(())


class JsonlUsageLog:
    """Durable log writing one JSON document per line.

    Each event is serialised before the file is opened and written with a
    single ``write`` call, so a reader never observes a partial event.
    """

    def __init__(self, path: Path, max_events: int = MAX_EVENTS) -> None:
        self._path = Path(path)
        self._max_events = max_events
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, event: UsageEvent) -> None:
        line = json.dumps(event.to_dict(), ensure_ascii=False) + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line)

    def events(self) -> list[UsageEvent]:
        with self._lock:
            events = self._read()
        return events[-self._max_events :]

    def replace(self, events: Iterable[UsageEvent]) -> None:
        payload = "".join(json.dumps(event.to_dict(), ensure_ascii=False) + "\n" for event in events)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with self._lock:
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self._path)

    def reset(self) -> None:
        self.replace(())

    # ---- helpers ----
    def _read(self) -> list[UsageEvent]:
        if not self._path.exists():
            return []
        events: list[UsageEvent] = []
        with self._path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(UsageEvent.from_dict(json.loads(line)))
                except (ValueError, KeyError, TypeError):
                    logger.warning("skipping unreadable usage log line %s in %s", line_no, self._path)
        return events
