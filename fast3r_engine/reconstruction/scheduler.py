"""Placeholder reconstruction pipeline.

No reconstruction is computed. Each submitted job is marked completed after a
constant delay by a per-job event-loop timer, independently of any other job
and of the assistant.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from ..config import DEFAULT_RECONSTRUCTION_DELAY_S
from .jobs import JobSettings, ReconstructionJobStore


class CompletionScheduler:
    def __init__(self, store: ReconstructionJobStore, delay_s: float = DEFAULT_RECONSTRUCTION_DELAY_S) -> None:
        self.store = store
        self.delay_s = max(0.0, float(delay_s))
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def schedule(self, job_id: str) -> None:
        if job_id in self._timers:
            return
        loop = asyncio.get_running_loop()
        self._timers[job_id] = loop.call_later(self.delay_s, self._fire, job_id)

    def _fire(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        self.store.complete(job_id)

    def pending(self) -> list[str]:
        return list(self._timers)

    def cancel_all(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()


class ReconstructionService:
    """Boundary for job creation requests coming from the UI."""

    def __init__(self, store: ReconstructionJobStore, scheduler: CompletionScheduler) -> None:
        self.store = store
        self.scheduler = scheduler

    def submit(self, name: str, images: Sequence[object], settings: JobSettings) -> str:
        name = (name or "").strip()
        if not name:
            raise ValueError("Job name is required.")
        if not images:
            raise ValueError("At least one image is required.")
        job_id = self.store.create(name, len(images), settings)
        self.scheduler.schedule(job_id)
        return job_id
