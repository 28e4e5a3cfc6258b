"""Interactive chat loop wrapper."""

from __future__ import annotations

import asyncio
from pathlib import Path

from ..media.recording import RecordingState
from ..providers.base import ImageInput
from .command_registry import CHAT_HELP_COMMANDS
from .conversation import Message
from .intent_parser import parse_repl_command
from .session import AssistantSession, TurnOutcome


def format_message(message: Message) -> str:
    speaker = "you" if message.role == "user" else "fast3r"
    lines = [f"{speaker}> {message.content}"]
    if message.media_url:
        if message.media_url.startswith("data:"):
            lines.append(f"  [{message.kind}: inline data, {len(message.media_url)} chars]")
        else:
            lines.append(f"  [{message.kind}: {message.media_url}]")
    for link in message.grounding_links:
        lines.append(f"  - {link.title}: {link.uri}")
    return "\n".join(lines)


class ChatLoop:
    def __init__(self, session: AssistantSession) -> None:
        self.session = session
        self.attached: ImageInput | None = None

    async def run(self) -> None:
        print("Fast3R assistant started. Type /help for commands.")
        for message in self.session.conversation.current_log():
            print(format_message(message))
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except (EOFError, KeyboardInterrupt):
                    break
                await self.handle(line)
        finally:
            self.session.close()

    async def handle(self, line: str) -> None:
        parsed = parse_repl_command(line)
        if parsed is None:
            # An empty line submits the pending transcript; typed text replaces it.
            draft, self.session.draft = self.session.draft, None
            if draft and not line.strip():
                line = draft
            image, self.attached = self.attached, None
            self._report(await self.session.send(line, image=image))
            return

        spec, args = parsed
        if spec.action == "help":
            print("Commands: " + " ".join(CHAT_HELP_COMMANDS))
            return
        if spec.action == "set_thinking":
            value = (args[0] if args else "").lower()
            self.session.use_extended_reasoning = value in {"on", "1", "true", "yes"}
            print(f"Extended reasoning {'on' if self.session.use_extended_reasoning else 'off'}")
            return
        if spec.action in {"set_image_size", "set_aspect_ratio"}:
            if not args:
                print(f"/{spec.command} requires a value")
                return
            try:
                if spec.action == "set_image_size":
                    self.session.image_size = args[0]
                    print(f"Image size set to {self.session.image_size}")
                else:
                    self.session.video_aspect_ratio = args[0]
                    print(f"Video aspect ratio set to {self.session.video_aspect_ratio}")
            except ValueError as exc:
                print(str(exc))
            return
        if spec.action == "toggle_recording":
            await self._toggle_recording()
            return

        image = self._load_image(args[0] if args else "", spec.command)
        if image is None:
            return
        if spec.action == "attach":
            self.attached = image
            print("Image attached to your next message.")
        elif spec.action == "analyze":
            self._report(await self.session.analyze_image(image))
        elif spec.action == "edit":
            prompt = args[1] if len(args) > 1 else ""
            if not prompt:
                print("/edit requires a path and a prompt")
                return
            self._report(await self.session.edit_image(image, prompt))

    async def _toggle_recording(self) -> None:
        recorder = self.session.recorder
        if recorder is not None and recorder.state is RecordingState.RECORDING:
            outcome = await self.session.stop_recording()
            if outcome.transcript:
                print(f"Transcript: {outcome.transcript}\n  (press Enter to send it, or type a new message)")
            elif outcome.accepted and outcome.reply is None:
                print("No speech recognised.")
            self._report(outcome)
            return
        ok, error = self.session.start_recording()
        print("Recording... type /record again to stop." if ok else f"Recording unavailable: {error}")

    def _load_image(self, raw_path: str, command: str) -> ImageInput | None:
        if not raw_path:
            print(f"/{command} requires a path")
            return None
        path = Path(raw_path).expanduser()
        if not path.exists():
            print(f"File not found ({path})")
            return None
        return ImageInput.from_path(path)

    def _report(self, outcome: TurnOutcome) -> None:
        if not outcome.accepted:
            if outcome.reason == "busy":
                print("Still working on the previous request.")
            return
        if outcome.reply is not None:
            print(format_message(outcome.reply))
