"""Assistant session: routes one request at a time into the conversation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable

from ..errors import RecordingUnavailable
from ..media.recording import Recorder, RecordingState
from ..media.store import MediaStore, to_data_uri
from ..providers.base import AssistantGateway, ImageInput, check_aspect_ratio, check_size_tier
from ..runs.events import EventWriter, emit
from .conversation import Conversation, Message
from .intent_parser import parse_intent
from .intent_schema import Intent

GREETING = (
    "Hello! I am the Fast3R assistant. Send me a photo to analyze, or create a 3D concept "
    "image with /image or a model video with /video."
)
APOLOGY_TEXT = "Sorry, something went wrong while processing your request."
ANALYSIS_APOLOGY_TEXT = "Sorry, the image analysis failed."
IMAGE_CAPTION = "Image created:"
VIDEO_CAPTION = "Video created:"
EDIT_CAPTION = "Image edited:"
ANALYSIS_REQUEST_TEXT = "Analyze this image"
ANALYSIS_PROMPT = (
    "Analyze this image in the context of 3D reconstruction and suggest how to retouch it "
    "if that would improve the result."
)


@dataclass(frozen=True)
class TurnOutcome:
    accepted: bool
    capability: str | None = None
    reply: Message | None = None
    transcript: str | None = None
    reason: str | None = None


class AssistantSession:
    def __init__(
        self,
        gateway: AssistantGateway,
        *,
        conversation: Conversation | None = None,
        recorder: Recorder | None = None,
        events: EventWriter | None = None,
        media: MediaStore | None = None,
        greeting: str | None = GREETING,
    ) -> None:
        self.gateway = gateway
        # Handles in the conversation point into this store; it is emptied on close.
        self.media = media if media is not None else getattr(gateway, "media", None)
        self.conversation = conversation or Conversation(events)
        self.recorder = recorder
        self._events = events
        self.use_extended_reasoning = False
        self._image_size = "1K"
        self._video_aspect_ratio = "16:9"
        self.draft: str | None = None
        self._inflight: asyncio.Task | None = None
        self._closed = False
        if greeting:
            self.conversation.append(Message(role="assistant", content=greeting))
        emit(self._events, "session_started", gateway=getattr(gateway, "name", None))

    @property
    def busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def image_size(self) -> str:
        return self._image_size

    @image_size.setter
    def image_size(self, value: str) -> None:
        self._image_size = check_size_tier(value)

    @property
    def video_aspect_ratio(self) -> str:
        return self._video_aspect_ratio

    @video_aspect_ratio.setter
    def video_aspect_ratio(self, value: str) -> None:
        self._video_aspect_ratio = check_aspect_ratio(value)

    async def send(
        self,
        text: str,
        image: ImageInput | None = None,
        audio: bytes | None = None,
        audio_mime_type: str = "audio/webm",
    ) -> TurnOutcome:
        rejection = self._check_accepting()
        if rejection:
            return rejection
        intent = parse_intent(text, has_attached_image=image is not None, has_attached_audio=audio is not None)
        if intent.capability == "transcribe":
            return await self._run(intent.capability, self._transcribe(audio or b"", audio_mime_type))
        if not intent.raw.strip() and image is None:
            return TurnOutcome(accepted=False, reason="empty")

        if image is not None:
            user_message = Message(
                role="user",
                content=intent.raw or ANALYSIS_REQUEST_TEXT,
                kind="image",
                media_url=to_data_uri(image.data, image.mime_type),
            )
        else:
            user_message = Message(role="user", content=intent.raw)
        self.conversation.append(user_message)
        return await self._run(intent.capability, self._answer(intent, image))

    async def analyze_image(self, image: ImageInput) -> TurnOutcome:
        """Upload path: append the image as a user turn and answer with an analysis."""
        return await self.send("", image=image)

    async def edit_image(self, image: ImageInput, prompt: str) -> TurnOutcome:
        rejection = self._check_accepting()
        if rejection:
            return rejection
        self.conversation.append(
            Message(role="user", content=prompt, kind="image", media_url=to_data_uri(image.data, image.mime_type))
        )
        return await self._run("edit_image", self._edit(image, prompt))

    def start_recording(self) -> tuple[bool, str | None]:
        if self.recorder is None:
            return False, "No recorder configured."
        try:
            return self.recorder.start()
        except RecordingUnavailable as exc:
            emit(self._events, "recording_failed", error=str(exc))
            return False, str(exc)

    async def stop_recording(self) -> TurnOutcome:
        """Finish the recording and transcribe it.

        While another request is in flight the recorder keeps running and the
        rejection is returned, so the captured audio is not lost.
        """
        if self.recorder is None or self.recorder.state is not RecordingState.RECORDING:
            return TurnOutcome(accepted=False, reason="not_recording")
        rejection = self._check_accepting()
        if rejection:
            return rejection
        audio = self.recorder.stop()
        if audio is None:
            return TurnOutcome(accepted=False, reason="not_recording")
        return await self.send("", audio=audio, audio_mime_type=self.recorder.mime_type)

    def close(self) -> None:
        self._closed = True
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        if self.recorder is not None:
            self.recorder.stop()
        if self.media is not None:
            self.media.clear()

    def _check_accepting(self) -> TurnOutcome | None:
        if self._closed:
            return TurnOutcome(accepted=False, reason="closed")
        if self.busy:
            emit(self._events, "send_rejected", reason="busy")
            return TurnOutcome(accepted=False, reason="busy")
        return None

    async def _run(self, capability: str, work: Awaitable[TurnOutcome]) -> TurnOutcome:
        task = asyncio.ensure_future(work)
        self._inflight = task
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and self._closed:
                return TurnOutcome(accepted=True, capability=capability, reason="cancelled")
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

    async def _answer(self, intent: Intent, image: ImageInput | None) -> TurnOutcome:
        try:
            reply = await self._reply_for(intent, image)
        except Exception as exc:
            fallback = ANALYSIS_APOLOGY_TEXT if intent.capability == "analyze_image" else APOLOGY_TEXT
            reply = self._failure(intent.capability, exc, fallback)
            return TurnOutcome(accepted=True, capability=intent.capability, reply=reply, reason="failed")
        self.conversation.append(reply)
        return TurnOutcome(accepted=True, capability=intent.capability, reply=reply)

    async def _reply_for(self, intent: Intent, image: ImageInput | None) -> Message:
        if intent.capability == "generate_image":
            media = await self.gateway.generate_image(intent.prompt, self._image_size)
            return Message(role="assistant", content=IMAGE_CAPTION, kind="image", media_url=media.url)
        if intent.capability == "generate_video":
            media = await self.gateway.generate_video(intent.prompt, self._video_aspect_ratio)
            return Message(role="assistant", content=VIDEO_CAPTION, kind="video", media_url=media.url)
        prompt = intent.prompt
        if intent.capability == "analyze_image" and not prompt:
            prompt = ANALYSIS_PROMPT
        answer = await self.gateway.chat(prompt, self.use_extended_reasoning, image)
        return Message(role="assistant", content=answer.text, grounding_links=answer.grounding_links)

    async def _edit(self, image: ImageInput, prompt: str) -> TurnOutcome:
        try:
            media = await self.gateway.edit_image(image, prompt)
        except Exception as exc:
            reply = self._failure("edit_image", exc, APOLOGY_TEXT)
            return TurnOutcome(accepted=True, capability="edit_image", reply=reply, reason="failed")
        reply = Message(role="assistant", content=EDIT_CAPTION, kind="image", media_url=media.url)
        self.conversation.append(reply)
        return TurnOutcome(accepted=True, capability="edit_image", reply=reply)

    async def _transcribe(self, audio: bytes, mime_type: str) -> TurnOutcome:
        try:
            transcript = await self.gateway.transcribe(audio, mime_type)
        except Exception as exc:
            reply = self._failure("transcribe", exc, APOLOGY_TEXT)
            return TurnOutcome(accepted=True, capability="transcribe", reply=reply, reason="failed")
        if transcript:
            self.draft = transcript
        return TurnOutcome(accepted=True, capability="transcribe", transcript=transcript)

    def _failure(self, capability: str, exc: Exception, text: str) -> Message:
        emit(
            self._events,
            "assistant_turn_failed",
            capability=capability,
            kind=getattr(exc, "kind", type(exc).__name__),
            error=str(exc),
        )
        reply = Message(role="assistant", content=text)
        self.conversation.append(reply)
        return reply
