"""Provider gateway contract and shared result types."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..chat.conversation import GroundingLink
from ..media.store import MediaReference
from ..reconstruction.jobs import JobSettings
from .google_utils import sniff_image_mime

IMAGE_SIZE_TIERS = ("1K", "2K", "4K")
VIDEO_ASPECT_RATIOS = ("16:9", "9:16")

DEFAULT_ADVICE_SETTINGS = JobSettings(
    resolution="1024",
    mode="pointcloud",
    camera_intrinsics="auto",
    optimization="quality",
)
ADVICE_FALLBACK_EXPLANATION = (
    "Sorry, the recommendation could not be read, so the default settings are shown instead."
)
NO_ANSWER_TEXT = "Sorry, I could not process that request."


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_path(cls, path: str | Path) -> "ImageInput":
        data = Path(path).read_bytes()
        return cls(data=data, mime_type=sniff_image_mime(data) or "image/jpeg")


@dataclass(frozen=True)
class Advice:
    settings: JobSettings
    explanation: str
    recovered: bool = False


@dataclass(frozen=True)
class ChatAnswer:
    text: str
    grounding_links: tuple[GroundingLink, ...] = ()
    model: str | None = None
    rule: str | None = None


class AssistantGateway(Protocol):
    name: str

    async def request_advice(self, image_count: int, subject_label: str) -> Advice:
        ...

    async def chat(
        self,
        text: str,
        use_extended_reasoning: bool = False,
        image: ImageInput | None = None,
    ) -> ChatAnswer:
        ...

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        ...

    async def generate_image(self, prompt: str, size_tier: str = "1K") -> MediaReference:
        ...

    async def generate_video(self, prompt: str, aspect_ratio: str = "16:9") -> MediaReference:
        ...

    async def edit_image(self, image: ImageInput, prompt: str) -> MediaReference:
        ...


def check_size_tier(size_tier: str) -> str:
    normalized = str(size_tier or "").strip().upper()
    if normalized not in IMAGE_SIZE_TIERS:
        raise ValueError(f"Unsupported image size '{size_tier}'; expected one of {', '.join(IMAGE_SIZE_TIERS)}.")
    return normalized


def check_aspect_ratio(aspect_ratio: str) -> str:
    normalized = str(aspect_ratio or "").strip()
    if normalized not in VIDEO_ASPECT_RATIOS:
        raise ValueError(
            f"Unsupported aspect ratio '{aspect_ratio}'; expected one of {', '.join(VIDEO_ASPECT_RATIOS)}."
        )
    return normalized
