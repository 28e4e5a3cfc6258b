"""Drive a long-running media generation operation to a terminal state."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..config import DEFAULT_VIDEO_POLL_INTERVAL_S, DEFAULT_VIDEO_POLL_TIMEOUT_S
from ..errors import GenerationFailed, Timeout
from ..runs.events import EventWriter, emit


@dataclass
class MediaGenerationOperation:
    """One in-flight provider operation. Discarded once resolved."""

    handle: str
    done: bool = False
    media_uri: str | None = None
    error: str | None = None
    raw: object | None = field(default=None, repr=False)


RefreshFn = Callable[[MediaGenerationOperation], Awaitable[MediaGenerationOperation]]
SleepFn = Callable[[float], Awaitable[None]]


class OperationPoller:
    """Re-fetch an operation every ``interval_s`` until it is done.

    Cancelling the task that awaits ``wait`` stops polling at the next
    suspension point; no further refresh calls are issued afterwards.
    """

    def __init__(
        self,
        refresh: RefreshFn,
        *,
        interval_s: float = DEFAULT_VIDEO_POLL_INTERVAL_S,
        timeout_s: float | None = DEFAULT_VIDEO_POLL_TIMEOUT_S,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        events: EventWriter | None = None,
    ) -> None:
        self._refresh = refresh
        self.interval_s = max(0.0, float(interval_s))
        self.timeout_s = timeout_s
        self._sleep = sleep
        self._clock = clock
        self._events = events

    async def wait(self, operation: MediaGenerationOperation) -> MediaGenerationOperation:
        started = self._clock()
        polls = 0
        while not operation.done:
            elapsed = self._clock() - started
            delay = self.interval_s
            if self.timeout_s is not None:
                remaining = self.timeout_s - elapsed
                # At least one refresh happens even when the timeout is below the interval.
                if remaining <= 0 and polls > 0:
                    emit(self._events, "video_poll_timeout", handle=operation.handle, polls=polls, elapsed_s=elapsed)
                    raise Timeout(f"Media operation {operation.handle} not done after {elapsed:.1f}s.")
                delay = max(0.0, min(delay, remaining))
            await self._sleep(delay)
            operation = await self._refresh(operation)
            polls += 1
            emit(self._events, "video_poll", handle=operation.handle, poll=polls, done=operation.done)

        if operation.error:
            raise GenerationFailed(f"Media operation failed: {operation.error}")
        if not operation.media_uri:
            raise GenerationFailed("Media operation finished without a media item.")
        return operation
