"""Shared utilities for the Fast3R engine."""

from __future__ import annotations

import os
import uuid
from dataclasses import fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

# Payload keys whose values never reach the events stream.
REDACTED_KEYS = frozenset({"image", "image_bytes", "audio", "data", "api_key", "key"})


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_utc_iso() -> str:
    return now_utc().isoformat()


def short_id() -> str:
    return uuid.uuid4().hex[:9]


def serialize(value: Any) -> Any:
    """Convert records into JSON-ready values (enums by value, datetimes as ISO)."""
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bytes):
        return f"<bytes:{len(value)}>"
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: serialize(getattr(value, f.name)) for f in fields(value) if f.repr}
    if isinstance(value, Mapping):
        return {str(k): serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [serialize(item) for item in value]
    return str(value)


def sanitize_payload(payload: Any) -> Any:
    """Like ``serialize``, but redacts media bodies, data URIs and credentials."""
    if isinstance(payload, str):
        return f"<data-uri:{len(payload)}>" if payload.startswith("data:") else payload
    if isinstance(payload, Mapping):
        return {
            str(key): "<omitted>" if str(key).lower() in REDACTED_KEYS else sanitize_payload(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple)):
        return [sanitize_payload(item) for item in payload]
    converted = serialize(payload)
    if converted is payload or isinstance(converted, str):
        return converted
    return sanitize_payload(converted)


def getenv_flag(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def getenv_float(key: str, default: float) -> float:
    raw = (os.getenv(key) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def getenv_path(key: str) -> Path | None:
    raw = (os.getenv(key) or "").strip()
    return Path(raw).expanduser() if raw else None
