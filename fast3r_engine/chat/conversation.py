"""Append-only conversation log."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from ..runs.events import EventWriter, emit
from ..utils import now_utc

ROLES = ("user", "assistant")
KINDS = ("text", "image", "video")


@dataclass(frozen=True)
class GroundingLink:
    uri: str
    title: str


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    kind: str = "text"
    media_url: str | None = None
    grounding_links: tuple[GroundingLink, ...] = ()
    timestamp: datetime = field(default_factory=now_utc)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role '{self.role}'.")
        if self.kind not in KINDS:
            raise ValueError(f"Unknown message kind '{self.kind}'.")
        if not self.content and not self.media_url:
            raise ValueError("Message content may only be empty when media_url is set.")
        # Accept any sequence from callers but store an immutable tuple.
        object.__setattr__(self, "grounding_links", tuple(self.grounding_links))


class Conversation:
    def __init__(self, events: EventWriter | None = None) -> None:
        self._messages: list[Message] = []
        self._lock = threading.Lock()
        self._events = events

    def append(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)
            index = len(self._messages) - 1
        emit(
            self._events,
            "message_appended",
            index=index,
            role=message.role,
            kind=message.kind,
            content=message.content,
            media_url=message.media_url,
            grounding_links=len(message.grounding_links),
        )

    def current_log(self) -> Sequence[Message]:
        with self._lock:
            return tuple(self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
