"""Reconstruction job records and their state manager."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from ..runs.events import EventWriter, emit
from ..utils import now_utc, serialize, short_id

RESOLUTIONS = ("512", "1024", "2048")
MODES = ("pointcloud", "mesh")
CAMERA_INTRINSICS = ("auto", "manual")
OPTIMIZATIONS = ("speed", "quality")


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JobSettings:
    resolution: str = "1024"
    mode: str = "pointcloud"
    camera_intrinsics: str = "auto"
    optimization: str = "quality"

    def __post_init__(self) -> None:
        _check_choice("resolution", self.resolution, RESOLUTIONS)
        _check_choice("mode", self.mode, MODES)
        _check_choice("camera_intrinsics", self.camera_intrinsics, CAMERA_INTRINSICS)
        _check_choice("optimization", self.optimization, OPTIMIZATIONS)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "JobSettings":
        return cls(
            resolution=str(payload.get("resolution", "1024")),
            mode=str(payload.get("mode", "pointcloud")),
            camera_intrinsics=str(payload.get("camera_intrinsics", payload.get("cameraIntrinsics", "auto"))),
            optimization=str(payload.get("optimization", "quality")),
        )


def _check_choice(name: str, value: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise ValueError(f"Invalid {name} '{value}'; expected one of {', '.join(choices)}.")


@dataclass(frozen=True)
class ReconstructionJob:
    id: str
    name: str
    image_count: int
    settings: JobSettings
    status: JobStatus = JobStatus.PROCESSING
    created_at: datetime = field(default_factory=now_utc)
    result_url: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return serialize(self)


class ReconstructionJobStore:
    """Owns the job collection. Timing is driven from outside via ``complete``."""

    def __init__(self, events: EventWriter | None = None) -> None:
        self._jobs: dict[str, ReconstructionJob] = {}
        self._lock = threading.Lock()
        self._events = events

    def create(self, name: str, image_count: int, settings: JobSettings) -> str:
        with self._lock:
            job_id = short_id()
            while job_id in self._jobs:
                job_id = short_id()
            job = ReconstructionJob(id=job_id, name=name, image_count=image_count, settings=settings)
            self._jobs[job_id] = job
        emit(
            self._events,
            "job_created",
            job_id=job_id,
            name=name,
            image_count=image_count,
            settings=settings,
            status=job.status,
        )
        return job_id

    def complete(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status in {JobStatus.COMPLETED, JobStatus.FAILED}:
                return
            self._jobs[job_id] = replace(job, status=JobStatus.COMPLETED)
        emit(self._events, "job_completed", job_id=job_id)

    def fail(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status in {JobStatus.COMPLETED, JobStatus.FAILED}:
                return
            self._jobs[job_id] = replace(job, status=JobStatus.FAILED)
        emit(self._events, "job_failed", job_id=job_id)

    def get(self, job_id: str) -> ReconstructionJob | None:
        with self._lock:
            return self._jobs.get(job_id)

    def list(self) -> list[ReconstructionJob]:
        with self._lock:
            jobs = list(self._jobs.values())
        # dict preserves insertion order; newest first.
        return jobs[::-1]
