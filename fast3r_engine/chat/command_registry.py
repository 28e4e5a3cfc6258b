"""Shared slash-command metadata for classification and the chat REPL."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandSpec:
    command: str
    action: str
    arg_kind: str


# Checked in order by the classifier; each token selects a generation capability.
MEDIA_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("/image", "generate_image", "prompt"),
    CommandSpec("/video", "generate_video", "prompt"),
)

# Handled by the REPL itself and never sent to the assistant.
REPL_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("attach", "attach", "single_path"),
    CommandSpec("analyze", "analyze", "single_path"),
    CommandSpec("edit", "edit", "path_and_prompt"),
    CommandSpec("think", "set_thinking", "raw"),
    CommandSpec("size", "set_image_size", "raw"),
    CommandSpec("aspect", "set_aspect_ratio", "raw"),
    CommandSpec("record", "toggle_recording", "none"),
    CommandSpec("help", "help", "none"),
)

REPL_COMMAND_MAP = {spec.command: spec for spec in REPL_COMMANDS}

CHAT_HELP_COMMANDS: tuple[str, ...] = (
    "/image <prompt>",
    "/video <prompt>",
    "/attach <path>",
    "/analyze <path>",
    "/edit <path> <prompt>",
    "/think on|off",
    "/size 1K|2K|4K",
    "/aspect 16:9|9:16",
    "/record",
    "/help",
)
