"""Dry-run gateway (offline)."""

from __future__ import annotations

import hashlib
import io
import json

from PIL import Image, ImageDraw, ImageFont

from ..config import EngineConfig
from ..errors import GenerationFailed, MalformedProviderResponse
from ..media.poller import MediaGenerationOperation, OperationPoller
from ..media.store import MediaReference, MediaStore, to_data_uri
from ..models.selectors import ModelSelector
from ..runs.events import EventWriter, emit
from .base import (
    ADVICE_FALLBACK_EXPLANATION,
    DEFAULT_ADVICE_SETTINGS,
    Advice,
    ChatAnswer,
    ImageInput,
    check_aspect_ratio,
    check_size_tier,
)
from .schemas import parse_advice

_TIER_PIXELS = {"1K": 1024, "2K": 2048, "4K": 4096}
# Keeps placeholder renders cheap; the tier is still reported in the caption.
_PREVIEW_EDGE = 256
DRYRUN_VIDEO_STEPS = 2


class DryRunGateway:
    name = "dryrun"

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        selector: ModelSelector | None = None,
        media: MediaStore | None = None,
        events: EventWriter | None = None,
    ) -> None:
        self.config = config or EngineConfig(dryrun=True)
        self.selector = selector or ModelSelector()
        self.media = media or MediaStore(self.config.media_dir)
        self._events = events
        self._font = ImageFont.load_default()

    async def request_advice(self, image_count: int, subject_label: str) -> Advice:
        resolution = "2048" if image_count >= 20 else "1024" if image_count >= 5 else "512"
        raw = json.dumps(
            {
                "settings": {
                    "resolution": resolution,
                    "mode": "mesh" if image_count >= 10 else "pointcloud",
                    "cameraIntrinsics": "auto",
                    "optimization": "quality" if image_count >= 5 else "speed",
                },
                "explanation": f"dryrun advice for {image_count} views of {subject_label or 'the subject'}",
            }
        )
        try:
            parsed = parse_advice(raw)
        except MalformedProviderResponse:
            return Advice(settings=DEFAULT_ADVICE_SETTINGS, explanation=ADVICE_FALLBACK_EXPLANATION, recovered=True)
        return Advice(settings=parsed.settings.to_settings(), explanation=parsed.explanation)

    async def chat(
        self,
        text: str,
        use_extended_reasoning: bool = False,
        image: ImageInput | None = None,
    ) -> ChatAnswer:
        selection = self.selector.select(
            "analyze_image" if image is not None else "chat",
            text,
            use_extended_reasoning=use_extended_reasoning,
            has_attached_image=image is not None,
        )
        emit(self._events, "provider_request", provider=self.name, operation="chat", model=selection.model.name)
        answer = f"[dryrun:{selection.model.name}] {text}".strip()
        if image is not None:
            answer = f"{answer} (image {image.mime_type}, {len(image.data)} bytes)"
        return ChatAnswer(text=answer, model=selection.model.name, rule=selection.rule)

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        if not audio:
            return ""
        return f"dryrun transcript ({len(audio)} bytes of {mime_type})"

    async def generate_image(self, prompt: str, size_tier: str = "1K") -> MediaReference:
        size_tier = check_size_tier(size_tier)
        return self._render(f"{size_tier} {_TIER_PIXELS[size_tier]}px\n{prompt[:60]}", prompt)

    async def edit_image(self, image: ImageInput, prompt: str) -> MediaReference:
        try:
            with Image.open(io.BytesIO(image.data)) as source:
                canvas = source.convert("RGB")
        except OSError as exc:
            raise GenerationFailed("Image edit failed: attached image could not be read.") from exc
        canvas.thumbnail((_PREVIEW_EDGE, _PREVIEW_EDGE))
        draw = ImageDraw.Draw(canvas)
        draw.text((8, 8), f"edit\n{prompt[:40]}", fill=(255, 255, 255), font=self._font)
        return _png_reference(canvas)

    async def generate_video(self, prompt: str, aspect_ratio: str = "16:9") -> MediaReference:
        aspect_ratio = check_aspect_ratio(aspect_ratio)
        steps = {"remaining": DRYRUN_VIDEO_STEPS}
        payload = f"dryrun-video {aspect_ratio} {prompt}".encode("utf-8")

        async def refresh(operation: MediaGenerationOperation) -> MediaGenerationOperation:
            steps["remaining"] -= 1
            if steps["remaining"] > 0:
                return MediaGenerationOperation(handle=operation.handle)
            return MediaGenerationOperation(handle=operation.handle, done=True, media_uri="dryrun://video")

        handle = f"dryrun-{hashlib.sha256(payload).hexdigest()[:12]}"
        emit(self._events, "video_submitted", handle=handle, model="dryrun")
        poller = OperationPoller(refresh, interval_s=0.0, timeout_s=None, events=self._events)
        await poller.wait(MediaGenerationOperation(handle=handle))
        return self.media.put(payload, "video/mp4")

    def _render(self, caption: str, seed_text: str) -> MediaReference:
        image = Image.new("RGB", (_PREVIEW_EDGE, _PREVIEW_EDGE), _color_from_prompt(seed_text))
        draw = ImageDraw.Draw(image)
        draw.text((12, 12), f"dryrun\n{caption}", fill=(255, 255, 255), font=self._font)
        return _png_reference(image)


def _png_reference(image: Image.Image) -> MediaReference:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return MediaReference(url=to_data_uri(buffer.getvalue(), "image/png"), mime_type="image/png")


def _color_from_prompt(prompt: str) -> tuple[int, int, int]:
    digest = hashlib.sha256(prompt.encode("utf-8")).digest()
    return digest[0], digest[1], digest[2]
