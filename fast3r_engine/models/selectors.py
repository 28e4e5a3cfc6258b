"""Model selection policy for assistant requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from ..chat.intent_schema import CAPABILITIES
from .registry import ModelRegistry, ModelSpec

EXTENDED_REASONING_BUDGET = 32768

# Identity, news, "today" and general-information questions, in English and Thai.
DEFAULT_LIVE_INFO_TERMS: tuple[str, ...] = (
    "who is",
    "who are",
    "news",
    "today",
    "latest",
    "current",
    "right now",
    "this week",
    "คือใคร",
    "ข่าว",
    "วันนี้",
    "ข้อมูล",
)

DEDICATED_CAPABILITIES = {
    "generate_image": "image",
    "generate_video": "video",
    "transcribe": "transcribe",
    "edit_image": "edit",
    "advice": "advice",
}


class LiveInfoPredicate(Protocol):
    def __call__(self, text: str) -> bool:
        ...


class KeywordLiveInfo:
    """Allow-list predicate: true when any trigger term occurs in the text."""

    def __init__(self, terms: Iterable[str] = DEFAULT_LIVE_INFO_TERMS) -> None:
        self.terms = tuple(term.casefold() for term in terms if term.strip())

    def __call__(self, text: str) -> bool:
        lowered = (text or "").casefold()
        return any(term in lowered for term in self.terms)


@dataclass(frozen=True)
class RequestConfig:
    use_search: bool = False
    thinking_budget: int | None = None


@dataclass(frozen=True)
class ModelSelection:
    model: ModelSpec
    config: RequestConfig
    rule: str


class ModelSelector:
    def __init__(
        self,
        registry: ModelRegistry | None = None,
        live_info: LiveInfoPredicate | None = None,
    ) -> None:
        self.registry = registry or ModelRegistry()
        self.live_info = live_info or KeywordLiveInfo()

    def select(
        self,
        capability: str,
        text: str = "",
        *,
        use_extended_reasoning: bool = False,
        has_attached_image: bool = False,
    ) -> ModelSelection:
        dedicated = DEDICATED_CAPABILITIES.get(capability)
        if dedicated:
            return ModelSelection(self.registry.first(dedicated), RequestConfig(), rule="dedicated")
        if capability not in CAPABILITIES:
            raise ValueError(f"Unknown capability '{capability}'.")

        if use_extended_reasoning:
            return ModelSelection(
                self.registry.first("reasoning"),
                RequestConfig(thinking_budget=EXTENDED_REASONING_BUDGET),
                rule="extended_reasoning",
            )
        if has_attached_image:
            return ModelSelection(self.registry.first("vision"), RequestConfig(), rule="attached_image")
        if self.live_info(text):
            return ModelSelection(self.registry.first("search"), RequestConfig(use_search=True), rule="live_info")
        return ModelSelection(self.registry.first("fast"), RequestConfig(), rule="default")
