"""
==============================================================================
Decode Arbiter Module
==============================================================================

Single arbitration point for "first successful decode wins".

RaceState transitions:
---------------------
    IDLE ──start──► SCANNING ──first valid report──► RESOLVED
      │                 │
      └────cancel───────┴──────cancel / fail─────────► CANCELLED

RESOLVED and CANCELLED are terminal. Every report, cancel or failure that
arrives in a terminal state is a no-op, which makes late callbacks from
either decoder harmless.

Teardown (loser cancellation, engine unbind, camera release) runs exactly
once per race, on whichever exit path gets there first.

Scheduling is single-threaded, so the state check is a plain flag: only one
report can be executing at a time.

==============================================================================
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from codescan.core.exceptions import ScanException
from codescan.scanner.camera import CameraSource, CameraStream
from codescan.scanner.engines import LinearDecodeEngine
from codescan.scanner.models import BoundingBox, CodeKind, DecodeResult
from codescan.scanner.qr_loop import QRPollLoop
from codescan.utils.validators import BarcodeValidator


# Module logger
logger = logging.getLogger(__name__)


class RaceStatus(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class RaceState:
    """Per-attempt race state. Never reused across scan sessions."""

    def __init__(self) -> None:
        self._status = RaceStatus.IDLE

    @property
    def status(self) -> RaceStatus:
        return self._status

    @property
    def resolved(self) -> bool:
        return self._status is RaceStatus.RESOLVED

    @property
    def cancelled(self) -> bool:
        return self._status is RaceStatus.CANCELLED

    @property
    def is_terminal(self) -> bool:
        return self._status in (RaceStatus.RESOLVED, RaceStatus.CANCELLED)

    @property
    def accepting(self) -> bool:
        return self._status is RaceStatus.SCANNING

    def start(self) -> None:
        if self._status is not RaceStatus.IDLE:
            raise RuntimeError(f"Cannot start race in state {self._status.value}")
        self._status = RaceStatus.SCANNING

    def resolve(self) -> bool:
        """SCANNING → RESOLVED. Returns False if the race was not open."""
        if self._status is not RaceStatus.SCANNING:
            return False
        self._status = RaceStatus.RESOLVED
        return True

    def cancel(self) -> bool:
        """IDLE/SCANNING → CANCELLED. Returns False if already terminal."""
        if self.is_terminal:
            return False
        self._status = RaceStatus.CANCELLED
        return True

    def __repr__(self) -> str:
        return f"RaceState({self._status.value})"


class DecodeArbiter:
    """
    Owns the race between the live linear decoder and the QR poll loop.

    Attributes:
        state: The RaceState of this attempt

    Example:
        >>> arbiter = DecodeArbiter(source, stream, linear, on_result=emit)
        >>> arbiter.attach_qr_loop(QRPollLoop(stream, matrix, arbiter.report_qr))
        >>> arbiter.start()
    """

    def __init__(
        self,
        camera: CameraSource,
        stream: CameraStream,
        linear_engine: LinearDecodeEngine,
        on_result: Callable[[DecodeResult], None],
        on_error: Optional[Callable[[ScanException], None]] = None,
        validator: Optional[BarcodeValidator] = None,
        on_teardown: Optional[Callable[[], None]] = None
    ) -> None:
        self._camera = camera
        self._stream = stream
        self._linear = linear_engine
        self._qr_loop: Optional[QRPollLoop] = None
        self._on_result = on_result
        self._on_error = on_error
        self._validator = validator or BarcodeValidator()
        self._on_teardown = on_teardown
        self._state = RaceState()
        self._torn_down = False

    @property
    def state(self) -> RaceState:
        return self._state

    @property
    def stream(self) -> CameraStream:
        return self._stream

    def attach_qr_loop(self, qr_loop: QRPollLoop) -> None:
        self._qr_loop = qr_loop

    def start(self) -> None:
        self._state.start()
        logger.info("🏁 Scan race started")

    # =========================================================================
    # REPORTS
    # =========================================================================

    def report_barcode(
        self,
        text: str,
        symbology: Optional[str] = None,
        rect: Optional[BoundingBox] = None
    ) -> bool:
        """
        Offer a linear barcode candidate.

        Returns:
            True if this candidate won the race
        """
        is_valid, normalized, error = self._validator.validate(text)
        if not is_valid:
            logger.debug(f"Barcode candidate rejected: {text!r} ({error})")
            return False

        if not self._state.resolve():
            return False

        logger.info(f"✅ Barcode resolved: {normalized}")
        self._stop_qr_loop()
        self._stop_linear()
        self._teardown()
        self._on_result(DecodeResult(
            kind=CodeKind.BARCODE,
            text=normalized,
            symbology=symbology,
            rect=rect,
        ))
        return True

    def report_qr(self, payload: str) -> bool:
        """
        Offer a QR payload. Payloads are free-form and accepted as-is.

        Returns:
            True if this payload won the race
        """
        if not self._state.resolve():
            return False

        logger.info("✅ QR code resolved")
        self._stop_linear()
        self._stop_qr_loop()
        self._teardown()
        self._on_result(DecodeResult(
            kind=CodeKind.QRCODE,
            text=payload,
            symbology="qrcode",
        ))
        return True

    # =========================================================================
    # TERMINATION
    # =========================================================================

    def cancel(self) -> bool:
        """
        End the race without a result (user close or facing switch).

        Returns:
            True if this call cancelled the race
        """
        cancelled = self._state.cancel()
        if cancelled:
            logger.info("🛑 Scan race cancelled")
        self._stop_qr_loop()
        self._stop_linear()
        self._teardown()
        return cancelled

    def fail(self, error: ScanException) -> bool:
        """
        End the race on a terminal error, surfacing it once.

        Returns:
            True if the error was surfaced
        """
        if not self._state.cancel():
            return False

        logger.warning(f"Scan race failed: {error.code}")
        self._stop_qr_loop()
        self._stop_linear()
        self._teardown()
        if self._on_error is not None:
            self._on_error(error)
        return True

    def _stop_qr_loop(self) -> None:
        if self._qr_loop is not None:
            self._qr_loop.cancel()

    def _stop_linear(self) -> None:
        self._linear.off_detected()
        self._linear.stop()

    def _teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        self._camera.release(self._stream)
        if self._on_teardown is not None:
            self._on_teardown()
