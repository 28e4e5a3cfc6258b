"""Structured-output schemas validated at the provider boundary."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import MalformedProviderResponse
from ..reconstruction.jobs import JobSettings


class SettingsSchema(BaseModel):
    resolution: Literal["512", "1024", "2048"]
    mode: Literal["pointcloud", "mesh"]
    camera_intrinsics: Literal["auto", "manual"] = Field(alias="cameraIntrinsics")
    optimization: Literal["speed", "quality"]

    model_config = ConfigDict(populate_by_name=True)

    def to_settings(self) -> JobSettings:
        return JobSettings(
            resolution=self.resolution,
            mode=self.mode,
            camera_intrinsics=self.camera_intrinsics,
            optimization=self.optimization,
        )


class AdviceSchema(BaseModel):
    settings: SettingsSchema
    explanation: str = Field(min_length=1)


def parse_advice(raw: str | None) -> AdviceSchema:
    if not raw or not raw.strip():
        raise MalformedProviderResponse("Advice response was empty.")
    try:
        return AdviceSchema.model_validate_json(_strip_fences(raw))
    except ValidationError as exc:
        raise MalformedProviderResponse(f"Advice response did not match schema: {exc.error_count()} error(s).") from exc


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()
