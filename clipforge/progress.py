"""Progress tracking for ffmpeg's ``-progress`` key=value stream.

One ffmpeg process knows nothing about the job it belongs to. The tracker
turns its ``out_time_us`` / ``out_time_ms`` reports into phase-local
percentages and maps them through a ``ProgressWindow`` so that several
sequential processes drive one continuous 0-100 bar.
"""

import asyncio
import logging
import math
import time
from typing import Callable

from clipforge.models import ProgressWindow

logger = logging.getLogger(__name__)

PROGRESS_EVENT = "ffmpeg-progress"
THROTTLE_SECONDS = 0.1

_TIME_KEYS = {
    "out_time_us": 1_000_000,
    "out_time_ms": 1_000,
}


def parse_elapsed(line: str) -> tuple[str, float] | None:
    """Return ``(key, seconds)`` for a reported-time line, else ``None``."""
    key, sep, value = line.strip().partition("=")
    if not sep or key not in _TIME_KEYS:
        return None
    try:
        raw = int(value.strip())
    except ValueError:
        # ffmpeg prints "N/A" before the first frame is out
        return None
    return key, max(raw, 0) / _TIME_KEYS[key]


class ProgressTracker:
    """Converts one phase's progress lines into overall percentage events.

    Args:
        emit: Listener called with the overall percentage (0-100).
        total: Known duration of the phase in seconds, if any.
        window: Slice of overall progress this phase occupies.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        emit: Callable[[int], None] | None = None,
        total: float | None = None,
        window: ProgressWindow = ProgressWindow(),
        clock: Callable[[], float] = time.monotonic,
        throttle: float = THROTTLE_SECONDS,
    ):
        self.emit = emit
        self.total = total
        self.window = window
        self._clock = clock
        self._throttle = throttle
        self._last_emit: float | None = None
        self._saw_us = False
        self.elapsed = 0.0
        self.last_value: int | None = None

    def phase_percent(self) -> float:
        if not self.total or self.total <= 0:
            return 0.0
        return min(100.0, self.elapsed / self.total * 100.0)

    def overall_percent(self) -> int:
        return math.floor(self.window.map(self.phase_percent()))

    def feed(self, line: str) -> bool:
        """Consume one line; return True if it carried a reported time."""
        parsed = parse_elapsed(line)
        if parsed is None:
            return False
        key, seconds = parsed
        if key == "out_time_us":
            self._saw_us = True
        elif self._saw_us:
            # Microsecond reports are authoritative once seen.
            return True
        self.elapsed = seconds

        now = self._clock()
        if self._last_emit is not None and now - self._last_emit < self._throttle:
            return True
        self._last_emit = now
        self._send(self.overall_percent())
        return True

    def complete(self) -> None:
        """Emit the end of the window, bypassing the throttle."""
        self._send(math.floor(self.window.end))

    def _send(self, value: int) -> None:
        self.last_value = value
        logger.debug("progress %d%% (phase elapsed %.2fs)", value, self.elapsed)
        if self.emit is not None:
            self.emit(value)


class ProgressChannel:
    """Bounded channel of progress percentages owned by the caller.

    ``put`` never blocks: when the buffer is full the oldest pending value
    is dropped, since each value is absolute state rather than a delta.
    Iterate with ``async for`` until ``close()`` is called.
    """

    _CLOSED = object()

    def __init__(self, maxsize: int = 32):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self.closed = False

    def put(self, value: int) -> None:
        if self.closed:
            return
        if self._queue.qsize() >= self._maxsize:
            self._queue.get_nowait()
        self._queue.put_nowait(value)

    __call__ = put

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            # one slot is reserved so the sentinel always fits
            self._queue.put_nowait(self._CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> int:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item
