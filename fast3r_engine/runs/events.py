"""Append-only JSONL events stream for one process run."""

from __future__ import annotations

import json
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from ..utils import now_utc_iso, sanitize_payload


@dataclass
class EventWriter:
    """Writes one sanitized JSON object per line; safe to share across threads."""

    path: Path
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        event: dict[str, Any] = {"type": event_type, "run_id": self.run_id, "ts": now_utc_iso()}
        # Header fields are never overwritten by payload keys.
        for key, value in sanitize_payload(payload).items():
            event.setdefault(key, value)
        line = json.dumps(event, ensure_ascii=False)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        return event


def emit(events: EventWriter | None, event_type: str, **payload: Any) -> None:
    if events is not None:
        events.emit(event_type, **payload)


def read_events(path: Path, event_type: str | None = None) -> Iterator[dict[str, Any]]:
    """Yield recorded events in write order, optionally only one type."""
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            event = json.loads(line)
            if event_type is None or event.get("type") == event_type:
                yield event
