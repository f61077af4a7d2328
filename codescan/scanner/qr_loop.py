"""
==============================================================================
QR Poll Loop Module
==============================================================================

Cooperative per-frame QR decoding.

Each tick:
---------
1. Camera stopped delivering frames: stop, hand CAMERA_LOST to
   on_camera_error
2. Stream has no frame dimensions yet (warming up): reschedule, no decode
3. Sample the current frame at native size
4. Run the matrix decoder on the buffer
5. Payload found: report it and stop
6. Nothing found: reschedule

The loop yields to the event loop after every tick and checks its
cancellation flag at every tick boundary. It never waits on the camera.

Optional cutoff:
---------------
max_ticks / max_duration (0 = unbounded). When reached the loop stops and
hands a ScanTimeout to on_timeout.

==============================================================================
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Callable, Optional

from codescan.core import exceptions
from codescan.core.exceptions import CameraAccessError, ScanTimeout
from codescan.scanner.camera import CameraStream
from codescan.scanner.engines import MatrixDecodeEngine
from codescan.scanner.sampler import FrameSampler


# Module logger
logger = logging.getLogger(__name__)


class TickOutcome(str, enum.Enum):
    """Result of a single tick."""
    WARMING_UP = "warming_up"
    MISS = "miss"
    HIT = "hit"
    STOPPED = "stopped"
    CAMERA_LOST = "camera_lost"


class QRPollLoop:
    """
    Cancellable self-rescheduling QR decode task.

    Example:
        >>> loop = QRPollLoop(stream, OpenCVMatrixEngine(), arbiter.report_qr)
        >>> loop.start()
        >>> loop.cancel()
    """

    def __init__(
        self,
        stream: CameraStream,
        engine: MatrixDecodeEngine,
        on_result: Callable[[str], None],
        on_timeout: Optional[Callable[[ScanTimeout], None]] = None,
        on_camera_error: Optional[Callable[[CameraAccessError], None]] = None,
        sampler: Optional[FrameSampler] = None,
        tick_interval: float = 1 / 60,
        max_ticks: int = 0,
        max_duration: float = 0.0
    ) -> None:
        self._stream = stream
        self._engine = engine
        self._on_result = on_result
        self._on_timeout = on_timeout
        self._on_camera_error = on_camera_error
        self._sampler = sampler or FrameSampler()
        self._tick_interval = tick_interval
        self._max_ticks = max_ticks
        self._max_duration = max_duration

        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self._finished = False
        self._ticks = 0
        self._started_at: Optional[float] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    @property
    def _stopped(self) -> bool:
        return self._cancelled or self._finished

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop."""
        if self._task is not None:
            raise RuntimeError("QR loop already started")
        loop = asyncio.get_running_loop()
        self._started_at = loop.time()
        self._task = loop.create_task(self._run())
        return self._task

    def cancel(self) -> None:
        """Stop at the next tick boundary. Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    # =========================================================================
    # TICKS
    # =========================================================================

    def tick(self) -> TickOutcome:
        """Run one tick synchronously."""
        if self._stopped or not self._stream.active:
            return TickOutcome.STOPPED

        if self._stream.failed:
            self._finished = True
            logger.error(f"❌ Camera {self._stream.facing.value} lost during scan")
            if self._on_camera_error is not None:
                self._on_camera_error(exceptions.camera_lost(self._stream.facing.value))
            return TickOutcome.CAMERA_LOST

        self._ticks += 1

        buffer = self._sampler.capture(self._stream)
        if buffer is None:
            return TickOutcome.WARMING_UP

        payload = self._engine.decode(buffer.pixels, buffer.width, buffer.height)
        if payload is None:
            return TickOutcome.MISS

        self._finished = True
        logger.debug(f"QR payload found after {self._ticks} ticks")
        self._on_result(payload)
        return TickOutcome.HIT

    def _limit_reached(self, now: float) -> bool:
        if self._max_ticks and self._ticks >= self._max_ticks:
            return True
        if self._max_duration and self._started_at is not None:
            return now - self._started_at >= self._max_duration
        return False

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stopped:
            outcome = self.tick()
            if outcome in (TickOutcome.HIT, TickOutcome.STOPPED, TickOutcome.CAMERA_LOST):
                return

            if self._limit_reached(loop.time()):
                self._finished = True
                elapsed = loop.time() - (self._started_at or loop.time())
                logger.info(f"⏱️ QR loop cutoff after {self._ticks} ticks")
                if self._on_timeout is not None:
                    self._on_timeout(exceptions.scan_timeout(self._ticks, elapsed))
                return

            await asyncio.sleep(self._tick_interval)
