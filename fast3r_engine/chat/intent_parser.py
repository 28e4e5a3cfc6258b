"""Classify assistant input into exactly one capability."""

from __future__ import annotations

import re
import shlex

from .command_registry import MEDIA_COMMANDS, REPL_COMMAND_MAP, CommandSpec
from .intent_schema import Intent

_REPL_PATTERN = re.compile(r"^/(\w+)(?:\s+(.*))?$", re.DOTALL)


def _match_command(text: str, token: str) -> str | None:
    """Return the remainder after ``token`` if ``text`` starts with it, else None.

    Matching is case-insensitive and expects ``text`` to be trimmed already.
    The token must end at whitespace or at the end of the text.
    """
    if text[: len(token)].lower() != token:
        return None
    rest = text[len(token):]
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def parse_intent(
    text: str,
    *,
    has_attached_image: bool = False,
    has_attached_audio: bool = False,
) -> Intent:
    raw = text or ""
    trimmed = raw.strip()
    if has_attached_audio:
        return Intent(capability="transcribe", raw=raw, prompt=trimmed)
    for spec in MEDIA_COMMANDS:
        remainder = _match_command(trimmed, spec.command)
        if remainder is not None:
            return Intent(capability=spec.action, raw=raw, prompt=remainder)
    if has_attached_image:
        return Intent(capability="analyze_image", raw=raw, prompt=trimmed)
    return Intent(capability="chat", raw=raw, prompt=trimmed)


def parse_repl_command(text: str) -> tuple[CommandSpec, list[str]] | None:
    """Split a REPL-only slash command into its spec and arguments.

    Supports quoted paths so spaces work:
      /analyze "/path/with spaces/car.jpg"
    """
    match = _REPL_PATTERN.match((text or "").strip())
    if not match:
        return None
    spec = REPL_COMMAND_MAP.get(match.group(1).lower())
    if spec is None:
        return None
    arg = (match.group(2) or "").strip()
    if spec.arg_kind == "none":
        return spec, []
    if spec.arg_kind == "raw":
        return spec, [arg] if arg else []
    try:
        parts = shlex.split(arg)
    except ValueError:
        parts = arg.split()
    if spec.arg_kind == "path_and_prompt":
        if not parts:
            return spec, []
        return spec, [parts[0], " ".join(parts[1:])]
    return spec, [" ".join(parts)] if parts else []
