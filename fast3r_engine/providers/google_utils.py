"""Shared helpers for reading Google GenAI responses."""

from __future__ import annotations

import io
from typing import Any, Mapping, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from PIL import Image, UnidentifiedImageError

from ..chat.conversation import GroundingLink

_PIL_FORMAT_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def sniff_image_mime(data: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _PIL_FORMAT_MIME.get(str(image.format or "").upper())
    except (UnidentifiedImageError, OSError):
        return None


def with_credential(url: str, api_key: str) -> str:
    """Append the ``key`` query parameter required by the media download endpoint."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "key"]
    query.append(("key", api_key))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def extract_image_bytes(candidates: Sequence[Any]) -> list[dict[str, Any]]:
    blobs: list[dict[str, Any]] = []
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or getattr(candidate, "parts", None) or []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            data = getattr(inline_data, "data", None) if inline_data else None
            if data is None:
                continue
            mime_type = getattr(inline_data, "mime_type", None)
            if isinstance(data, str):
                data = data.encode("latin1")
            if isinstance(data, (bytes, bytearray)) and data:
                blobs.append({"bytes": bytes(data), "mime_type": mime_type})
    return blobs


def extract_text(response: Any) -> str:
    candidates = getattr(response, "candidates", None) or []
    parts_out: list[str] = []
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or getattr(candidate, "parts", None) or []
        for part in parts:
            if getattr(part, "thought", False):
                continue
            chunk = getattr(part, "text", None)
            if isinstance(chunk, str) and chunk.strip():
                parts_out.append(chunk.strip())
        if parts_out:
            break
    if parts_out:
        return "\n".join(parts_out).strip()
    # Fall back to the SDK convenience accessor for shapes we do not walk.
    text = getattr(response, "text", None)
    return text.strip() if isinstance(text, str) else ""


def extract_grounding_links(response: Any) -> tuple[GroundingLink, ...]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ()
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    links: list[GroundingLink] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if not isinstance(uri, str) or not uri:
            continue
        title = getattr(web, "title", None)
        links.append(GroundingLink(uri=uri, title=str(title or uri)))
    return tuple(links)


def to_dict(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dict(v) for v in value]
    if hasattr(value, "model_dump"):
        return to_dict(value.model_dump(exclude_none=True))
    if hasattr(value, "__dict__"):
        return {str(k): to_dict(v) for k, v in value.__dict__.items() if not str(k).startswith("_")}
    return str(value)
