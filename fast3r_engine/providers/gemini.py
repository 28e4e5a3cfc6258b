"""Gemini gateway for chat, transcription, image and video generation."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..config import EngineConfig
from ..errors import Fast3rError, GenerationFailed, MalformedProviderResponse, ProviderUnavailable
from ..media.poller import MediaGenerationOperation, OperationPoller
from ..media.store import MediaReference, MediaStore, to_data_uri
from ..models.selectors import ModelSelector
from ..runs.events import EventWriter, emit
from .base import (
    ADVICE_FALLBACK_EXPLANATION,
    DEFAULT_ADVICE_SETTINGS,
    NO_ANSWER_TEXT,
    Advice,
    ChatAnswer,
    ImageInput,
    check_aspect_ratio,
    check_size_tier,
)
from .google_utils import extract_grounding_links, extract_image_bytes, extract_text, to_dict, with_credential
from .schemas import AdviceSchema, parse_advice

T = TypeVar("T")

SYSTEM_INSTRUCTION = (
    "You are the Fast3R assistant for a multi-view 3D reconstruction tool. "
    "Answer professionally and concisely, and help the user plan captures, "
    "reconstruction settings and automated workflows."
)
TRANSCRIBE_INSTRUCTION = "Transcribe this recording verbatim. Reply with the transcript only."
VIDEO_RESOLUTION = "720p"


def advice_prompt(image_count: int, subject_label: str) -> str:
    return (
        f"Recommend Fast3R reconstruction settings for {image_count} images of "
        f"{subject_label or 'an unnamed subject'}. Return the settings and a short explanation "
        "of why they suit this capture."
    )


class GeminiGateway:
    name = "gemini"

    def __init__(
        self,
        config: EngineConfig,
        *,
        selector: ModelSelector | None = None,
        media: MediaStore | None = None,
        events: EventWriter | None = None,
        client: Any | None = None,
    ) -> None:
        self.config = config
        self._api_key = config.require_api_key()
        self.selector = selector or ModelSelector()
        self.media = media or MediaStore(config.media_dir)
        self._events = events
        self._client = client or genai.Client(api_key=self._api_key)

    async def request_advice(self, image_count: int, subject_label: str) -> Advice:
        selection = self.selector.select("advice")
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=AdviceSchema,
        )
        response = await self._invoke(
            "advice",
            selection.model.name,
            lambda: self._client.aio.models.generate_content(
                model=selection.model.name,
                contents=advice_prompt(image_count, subject_label),
                config=config,
            ),
        )
        try:
            parsed = parse_advice(getattr(response, "text", None))
        except MalformedProviderResponse as exc:
            emit(self._events, "advice_recovered", model=selection.model.name, error=str(exc))
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
        config_kwargs: dict[str, Any] = {"system_instruction": SYSTEM_INSTRUCTION}
        if selection.config.use_search:
            config_kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        if selection.config.thinking_budget is not None:
            config_kwargs["thinking_config"] = types.ThinkingConfig(thinking_budget=selection.config.thinking_budget)
        config = types.GenerateContentConfig(**config_kwargs)

        parts = [types.Part(text=text)]
        if image is not None:
            parts.append(types.Part(inline_data=types.Blob(data=image.data, mime_type=image.mime_type)))

        response = await self._invoke(
            "chat",
            selection.model.name,
            lambda: self._client.aio.models.generate_content(
                model=selection.model.name,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            ),
            rule=selection.rule,
            request_config=to_dict(selection.config),
        )
        answer = extract_text(response) or NO_ANSWER_TEXT
        links = extract_grounding_links(response) if selection.config.use_search else ()
        return ChatAnswer(text=answer, grounding_links=links, model=selection.model.name, rule=selection.rule)

    async def transcribe(self, audio: bytes, mime_type: str = "audio/webm") -> str:
        selection = self.selector.select("transcribe")
        parts = [
            types.Part(inline_data=types.Blob(data=audio, mime_type=mime_type)),
            types.Part(text=TRANSCRIBE_INSTRUCTION),
        ]
        response = await self._invoke(
            "transcribe",
            selection.model.name,
            lambda: self._client.aio.models.generate_content(
                model=selection.model.name,
                contents=[types.Content(role="user", parts=parts)],
            ),
        )
        return extract_text(response)

    async def generate_image(self, prompt: str, size_tier: str = "1K") -> MediaReference:
        size_tier = check_size_tier(size_tier)
        selection = self.selector.select("generate_image")
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(aspect_ratio="1:1", image_size=size_tier),
        )
        response = await self._invoke(
            "generate_image",
            selection.model.name,
            lambda: self._client.aio.models.generate_content(
                model=selection.model.name,
                contents=[types.Content(role="user", parts=[types.Part(text=prompt)])],
                config=config,
            ),
            size=size_tier,
        )
        return _first_image(response, "Image generation failed")

    async def edit_image(self, image: ImageInput, prompt: str) -> MediaReference:
        selection = self.selector.select("edit_image")
        parts = [
            types.Part(inline_data=types.Blob(data=image.data, mime_type=image.mime_type)),
            types.Part(text=prompt),
        ]
        response = await self._invoke(
            "edit_image",
            selection.model.name,
            lambda: self._client.aio.models.generate_content(
                model=selection.model.name,
                contents=[types.Content(role="user", parts=parts)],
            ),
        )
        return _first_image(response, "Image edit failed")

    async def generate_video(self, prompt: str, aspect_ratio: str = "16:9") -> MediaReference:
        aspect_ratio = check_aspect_ratio(aspect_ratio)
        selection = self.selector.select("generate_video")
        config = types.GenerateVideosConfig(
            number_of_videos=1,
            resolution=VIDEO_RESOLUTION,
            aspect_ratio=aspect_ratio,
        )
        raw_operation = await self._invoke(
            "generate_video",
            selection.model.name,
            lambda: self._client.aio.models.generate_videos(
                model=selection.model.name,
                prompt=prompt,
                config=config,
            ),
            aspect_ratio=aspect_ratio,
        )
        operation = wrap_operation(raw_operation)
        emit(self._events, "video_submitted", handle=operation.handle, model=selection.model.name)

        poller = OperationPoller(
            self._refresh_operation,
            interval_s=self.config.video_poll_interval_s,
            timeout_s=self.config.video_poll_timeout_s,
            events=self._events,
        )
        operation = await poller.wait(operation)
        data = await self._download(operation.media_uri or "")
        reference = self.media.put(data, "video/mp4")
        emit(self._events, "video_resolved", handle=operation.handle, media_url=reference.url, bytes=len(data))
        return reference

    async def _refresh_operation(self, operation: MediaGenerationOperation) -> MediaGenerationOperation:
        raw = await self._invoke(
            "poll_video",
            None,
            lambda: self._client.aio.operations.get(operation.raw),
            quiet=True,
        )
        return wrap_operation(raw)

    async def _download(self, uri: str) -> bytes:
        if not uri:
            raise GenerationFailed("Video operation returned no media link.")
        url = with_credential(uri, self._api_key)
        return await asyncio.to_thread(_download_bytes, url, self.config.download_timeout_s)

    async def _invoke(
        self,
        label: str,
        model: str | None,
        call: Callable[[], Awaitable[T]],
        *,
        quiet: bool = False,
        **payload: Any,
    ) -> T:
        if not quiet:
            emit(self._events, "provider_request", provider=self.name, operation=label, model=model, **payload)
        try:
            return await call()
        except Fast3rError:
            raise
        except genai_errors.APIError as exc:
            emit(self._events, "provider_failed", provider=self.name, operation=label, code=exc.code, error=str(exc))
            raise ProviderUnavailable(
                f"Gemini {label} request failed ({exc.code}): {exc.message or exc.status}",
                status_code=exc.code,
            ) from exc
        except Exception as exc:
            emit(self._events, "provider_failed", provider=self.name, operation=label, error=str(exc))
            raise ProviderUnavailable(f"Gemini {label} request failed: {exc}") from exc


def wrap_operation(raw: Any) -> MediaGenerationOperation:
    error = getattr(raw, "error", None)
    response = getattr(raw, "response", None) or getattr(raw, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    media_uri = None
    if videos:
        video = getattr(videos[0], "video", None)
        uri = getattr(video, "uri", None)
        media_uri = uri if isinstance(uri, str) and uri else None
    return MediaGenerationOperation(
        handle=str(getattr(raw, "name", None) or "operation"),
        done=bool(getattr(raw, "done", False)),
        media_uri=media_uri,
        error=str(error) if error else None,
        raw=raw,
    )


def _first_image(response: Any, failure: str) -> MediaReference:
    candidates = getattr(response, "candidates", None) or []
    blobs = extract_image_bytes(candidates)
    if not blobs:
        raise GenerationFailed(f"{failure}: response contained no image.")
    blob = blobs[0]
    mime_type = blob.get("mime_type") or "image/png"
    return MediaReference(url=to_data_uri(blob["bytes"], mime_type), mime_type=mime_type)


def _download_bytes(url: str, timeout_s: float) -> bytes:
    req = Request(url, method="GET")
    try:
        with urlopen(req, timeout=timeout_s) as response:
            return response.read()
    except HTTPError as exc:
        raise ProviderUnavailable(f"Video download failed ({exc.code}).", status_code=exc.code) from exc
    except URLError as exc:
        raise ProviderUnavailable(f"Video download failed: {exc.reason}") from exc
