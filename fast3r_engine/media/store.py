"""Local storage for generated and fetched media."""

from __future__ import annotations

import base64
import mimetypes
import re
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

BLOB_SCHEME = "blob:fast3r/"
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class MediaReference:
    url: str
    mime_type: str | None = None
    path: Path | None = None


def to_data_uri(data: bytes, mime_type: str | None) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'image/png'};base64,{encoded}"


def parse_data_uri(value: str) -> tuple[bytes, str | None]:
    match = _DATA_URI_RE.match(value or "")
    if not match:
        raise ValueError("Not a data URI.")
    payload = match.group("data")
    if match.group("b64"):
        return base64.b64decode(payload), match.group("mime")
    return payload.encode("utf-8"), match.group("mime")


def extension_for(mime_type: str | None) -> str:
    if not mime_type:
        return ".bin"
    normalized = mime_type.split(";", 1)[0].strip().lower()
    if normalized == "image/jpeg":
        return ".jpg"
    if normalized == "video/mp4":
        return ".mp4"
    return mimetypes.guess_extension(normalized) or ".bin"


class MediaStore:
    """Keeps media bytes on disk and hands out ``blob:`` handles for them."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._paths: dict[str, Path] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes, mime_type: str | None) -> MediaReference:
        self.root.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex
        stamp = int(time.time() * 1000)
        path = self.root / f"media-{stamp}-{token[:8]}{extension_for(mime_type)}"
        path.write_bytes(data)
        handle = f"{BLOB_SCHEME}{token}"
        with self._lock:
            self._paths[handle] = path
        return MediaReference(url=handle, mime_type=mime_type, path=path)

    def resolve(self, handle: str) -> Path | None:
        with self._lock:
            return self._paths.get(handle)

    def read(self, handle: str) -> bytes:
        path = self.resolve(handle)
        if path is None:
            raise KeyError(handle)
        return path.read_bytes()

    def release(self, handle: str) -> None:
        with self._lock:
            path = self._paths.pop(handle, None)
        if path is not None:
            path.unlink(missing_ok=True)

    def clear(self) -> None:
        with self._lock:
            handles = list(self._paths)
        for handle in handles:
            self.release(handle)
