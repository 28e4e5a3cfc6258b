"""Process configuration, read once at startup."""

from __future__ import annotations

import os
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ProviderUnavailable
from .utils import getenv_flag, getenv_float, getenv_path

DEFAULT_VIDEO_POLL_INTERVAL_S = 10.0
DEFAULT_VIDEO_POLL_TIMEOUT_S = 600.0
DEFAULT_RECONSTRUCTION_DELAY_S = 8.0
DEFAULT_DOWNLOAD_TIMEOUT_S = 120.0
PROJECT_NAME = "fast3r"


def _default_media_dir() -> Path:
    return Path(tempfile.gettempdir()) / "fast3r-media"


@dataclass(frozen=True)
class EngineConfig:
    api_key: str | None = field(default=None, repr=False)
    video_poll_interval_s: float = DEFAULT_VIDEO_POLL_INTERVAL_S
    video_poll_timeout_s: float = DEFAULT_VIDEO_POLL_TIMEOUT_S
    reconstruction_delay_s: float = DEFAULT_RECONSTRUCTION_DELAY_S
    download_timeout_s: float = DEFAULT_DOWNLOAD_TIMEOUT_S
    media_dir: Path = field(default_factory=_default_media_dir)
    dryrun: bool = False

    @classmethod
    def from_env(cls, **overrides: object) -> "EngineConfig":
        values: dict[str, object] = {
            "api_key": os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None,
            "video_poll_interval_s": getenv_float("FAST3R_VIDEO_POLL_INTERVAL", DEFAULT_VIDEO_POLL_INTERVAL_S),
            "video_poll_timeout_s": getenv_float("FAST3R_VIDEO_POLL_TIMEOUT", DEFAULT_VIDEO_POLL_TIMEOUT_S),
            "reconstruction_delay_s": getenv_float("FAST3R_RECONSTRUCTION_DELAY", DEFAULT_RECONSTRUCTION_DELAY_S),
            "download_timeout_s": getenv_float("FAST3R_DOWNLOAD_TIMEOUT", DEFAULT_DOWNLOAD_TIMEOUT_S),
            "media_dir": getenv_path("FAST3R_MEDIA_DIR") or _default_media_dir(),
            "dryrun": getenv_flag("FAST3R_DRYRUN", False),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)  # type: ignore[arg-type]

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ProviderUnavailable("GEMINI_API_KEY or GOOGLE_API_KEY not set.")
        return self.api_key


def load_dotenv(path: Path | None = None, override: bool = False) -> bool:
    """Export ``KEY=value`` lines from a .env file; existing variables win unless ``override``."""
    env_path = path or find_dotenv(Path.cwd())
    if env_path is None or not env_path.is_file():
        return False
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        entry = _parse_env_line(raw_line)
        if entry is None:
            continue
        key, value = entry
        if override or key not in os.environ:
            os.environ[key] = value
    return True


def find_dotenv(start: Path) -> Path | None:
    """Prefer the .env at the project root; fall back to one in ``start``."""
    for directory in (start, *start.parents):
        if _is_project_root(directory):
            candidate = directory / ".env"
            if candidate.is_file():
                return candidate
            break
    fallback = start / ".env"
    return fallback if fallback.is_file() else None


def _is_project_root(directory: Path) -> bool:
    pyproject = directory / "pyproject.toml"
    if not pyproject.is_file():
        return False
    try:
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError:
        return False
    return data.get("project", {}).get("name") == PROJECT_NAME


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    line = line.removeprefix("export ").lstrip()
    key, sep, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not sep or not key:
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    return key, value
