"""Model registry for the Fast3R assistant."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class ModelSpec:
    name: str
    capabilities: tuple[str, ...]

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities


# Capability tags used by the selection policy:
#   fast       low-latency default text model
#   search     balanced model that may be given live search grounding
#   reasoning  deep-reasoning model that accepts a thinking budget
#   vision     multimodal model for attached images
#   image / video / transcribe / edit / advice  dedicated media or structured models
_DEFAULT_MODELS: tuple[ModelSpec, ...] = (
    ModelSpec("gemini-2.5-flash-lite", ("text", "fast")),
    ModelSpec("gemini-3-flash-preview", ("text", "search", "transcribe", "advice")),
    ModelSpec("gemini-3-pro-preview", ("text", "reasoning", "vision")),
    ModelSpec("gemini-3-pro-image-preview", ("image",)),
    ModelSpec("gemini-2.5-flash-image", ("edit",)),
    ModelSpec("veo-3.1-fast-generate-preview", ("video",)),
)


class ModelRegistry:
    def __init__(self, models: Mapping[str, ModelSpec] | None = None) -> None:
        self._models = dict(models) if models else {model.name: model for model in _DEFAULT_MODELS}

    def by_capability(self, capability: str) -> list[ModelSpec]:
        return [model for model in self._models.values() if model.supports(capability)]

    def first(self, capability: str) -> ModelSpec:
        candidates = self.by_capability(capability)
        if not candidates:
            raise RuntimeError(f"No models available for capability '{capability}'.")
        return candidates[0]
