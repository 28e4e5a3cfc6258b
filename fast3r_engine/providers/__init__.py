"""Gateway factory."""

from __future__ import annotations

from ..config import EngineConfig
from ..media.store import MediaStore
from ..models.selectors import ModelSelector
from ..runs.events import EventWriter
from .base import AssistantGateway
from .dryrun import DryRunGateway
from .gemini import GeminiGateway


def build_gateway(
    config: EngineConfig,
    *,
    selector: ModelSelector | None = None,
    media: MediaStore | None = None,
    events: EventWriter | None = None,
) -> AssistantGateway:
    if config.dryrun:
        return DryRunGateway(config, selector=selector, media=media, events=events)
    return GeminiGateway(config, selector=selector, media=media, events=events)
