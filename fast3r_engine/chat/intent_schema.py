"""Intent schema for assistant input."""

from __future__ import annotations

from dataclasses import dataclass

CAPABILITIES = ("transcribe", "generate_image", "generate_video", "analyze_image", "chat")


@dataclass(frozen=True)
class Intent:
    capability: str
    raw: str
    prompt: str

    def __post_init__(self) -> None:
        if self.capability not in CAPABILITIES:
            raise ValueError(f"Unknown capability '{self.capability}'.")
