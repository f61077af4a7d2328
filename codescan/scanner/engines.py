"""
==============================================================================
Decode Engines Module
==============================================================================

Capability interfaces for the two decode backends and their default
implementations.

Linear (1D) decoding:
--------------------
- LinearDecodeEngine: configure / on_detected / off_detected / start / stop
  for live mode, decode_all/decode_single for still images
- PyzbarLinearEngine: pyzbar (ZBar) implementation. Live mode samples the
  centred region of interest of the stream at a fixed frequency and decodes
  in a small thread pool; detections are delivered on the event loop.

Matrix (QR) decoding:
--------------------
- MatrixDecodeEngine: decode(pixels, width, height) -> payload or None
- OpenCVMatrixEngine: cv2.QRCodeDetector implementation

Engines are substitutable; tests drive the scanner with fakes.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Set

import cv2
import numpy as np
from pyzbar.pyzbar import ZBarSymbol, decode

from codescan.scanner.camera import CameraStream
from codescan.scanner.models import BoundingBox, Detection, FrameBuffer


# Module logger
logger = logging.getLogger(__name__)


DetectedHandler = Callable[[Detection], None]


@dataclass
class LinearEngineConfig:
    """
    Live-mode configuration.

    Attributes:
        symbologies: Allow-listed symbology names (e.g. "code128")
        roi_fraction: Width/height share of the centred scan region
        num_workers: Decode worker threads (performance knob only)
        frequency: Region scans per second
    """
    symbologies: List[str] = field(default_factory=lambda: ["code128"])
    roi_fraction: float = 0.6
    num_workers: int = 4
    frequency: int = 20


def _to_gray(frame: np.ndarray) -> np.ndarray:
    if len(frame.shape) == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    return frame


def crop_roi(frame: np.ndarray, fraction: float) -> tuple:
    """
    Centred sub-rectangle of a frame.

    Returns:
        Tuple of (region, x_offset, y_offset)
    """
    height, width = frame.shape[:2]
    inset_x = int(width * (1.0 - fraction) / 2)
    inset_y = int(height * (1.0 - fraction) / 2)
    region = frame[inset_y:height - inset_y, inset_x:width - inset_x]
    return region, inset_x, inset_y


# =============================================================================
# LINEAR ENGINE
# =============================================================================

class LinearDecodeEngine(ABC):
    """
    Linear barcode decoder capability.

    Single producer: only one detected-handler is bound at a time, and
    binding a new one first unbinds the previous one.
    """

    @abstractmethod
    def configure(self, config: LinearEngineConfig) -> None:
        """Set live-mode configuration; takes effect on the next start()."""

    @abstractmethod
    def on_detected(self, handler: DetectedHandler) -> None:
        """Bind the detected-handler, replacing any previous one."""

    @abstractmethod
    def off_detected(self) -> None:
        """Unbind the detected-handler."""

    @abstractmethod
    def start(self, stream: CameraStream) -> None:
        """Start continuous decoding on a live stream."""

    @abstractmethod
    def stop(self) -> None:
        """Stop live decoding and unbind the handler. Idempotent."""

    @abstractmethod
    def decode_all(
        self,
        buffer: FrameBuffer,
        symbologies: Sequence[str],
        locate: bool = True
    ) -> List[Detection]:
        """Decode one still buffer, returning every symbol found."""

    def decode_single(
        self,
        buffer: FrameBuffer,
        symbologies: Sequence[str],
        locate: bool = True
    ) -> Optional[Detection]:
        """Decode one still buffer, returning the first symbol or None."""
        detections = self.decode_all(buffer, symbologies, locate)
        return detections[0] if detections else None

    @property
    @abstractmethod
    def running(self) -> bool:
        """Whether live decoding is active."""


class PyzbarLinearEngine(LinearDecodeEngine):
    """
    pyzbar-backed linear decoder.

    Example:
        >>> engine = PyzbarLinearEngine()
        >>> engine.configure(LinearEngineConfig(symbologies=["code128"]))
        >>> engine.on_detected(lambda d: print(d.text))
        >>> engine.start(stream)
    """

    def __init__(self, config: Optional[LinearEngineConfig] = None) -> None:
        self._config = config or LinearEngineConfig()
        self._handler: Optional[DetectedHandler] = None
        self._task: Optional[asyncio.Task] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._running = False

    # =========================================================================
    # SYMBOLOGY HELPERS
    # =========================================================================

    @staticmethod
    def zbar_symbols(symbologies: Sequence[str]) -> List[ZBarSymbol]:
        """Map symbology names to ZBarSymbol members."""
        symbols = []
        for name in symbologies:
            try:
                symbols.append(ZBarSymbol[name.upper()])
            except KeyError:
                logger.warning(f"Ignoring unknown symbology: {name}")
        return symbols

    @staticmethod
    def _decode(gray: np.ndarray, symbols: List[ZBarSymbol]) -> list:
        try:
            return decode(gray, symbols=symbols)
        except Exception as e:
            logger.error(f"Decode error: {e}")
            return []

    @staticmethod
    def _to_detection(barcode, x_offset: int = 0, y_offset: int = 0, locate: bool = True) -> Detection:
        rect = None
        if locate:
            rect = BoundingBox(
                x=barcode.rect.left + x_offset,
                y=barcode.rect.top + y_offset,
                width=barcode.rect.width,
                height=barcode.rect.height,
            )
        return Detection(
            text=barcode.data.decode("utf-8", errors="replace"),
            symbology=str(barcode.type).lower(),
            rect=rect,
        )

    def _scan_region(self, frame: np.ndarray, symbols: List[ZBarSymbol]) -> List[Detection]:
        """Worker-thread body: crop, decode, convert."""
        region, x_offset, y_offset = crop_roi(frame, self._config.roi_fraction)
        if region.size == 0:
            return []
        barcodes = self._decode(_to_gray(region), symbols)
        return [self._to_detection(b, x_offset, y_offset) for b in barcodes]

    # =========================================================================
    # LIVE MODE
    # =========================================================================

    @property
    def running(self) -> bool:
        return self._running

    def configure(self, config: LinearEngineConfig) -> None:
        self._config = config

    def on_detected(self, handler: DetectedHandler) -> None:
        self.off_detected()
        self._handler = handler

    def off_detected(self) -> None:
        self._handler = None

    def start(self, stream: CameraStream) -> None:
        if self._running:
            raise RuntimeError("Linear engine already running; stop it first")

        self._running = True
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.num_workers,
            thread_name_prefix="linear-decode",
        )
        self._task = asyncio.get_running_loop().create_task(self._run(stream))
        self._task.add_done_callback(self._on_task_done)
        logger.debug(
            f"Linear engine started: {self._config.symbologies} "
            f"@ {self._config.frequency} Hz, ROI {self._config.roi_fraction:.0%}"
        )

    def stop(self) -> None:
        if not self._running:
            self.off_detected()
            return

        self._running = False
        self.off_detected()

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

        logger.debug("Linear engine stopped")

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task is not self._task:
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Linear engine task error: {error!r}")
        self.stop()

    def _emit(self, detection: Detection) -> None:
        handler = self._handler
        if self._running and handler is not None:
            handler(detection)

    async def _run(self, stream: CameraStream) -> None:
        """Sampling loop; one region decode per worker in flight at most."""
        loop = asyncio.get_running_loop()
        interval = 1.0 / self._config.frequency
        symbols = self.zbar_symbols(self._config.symbologies)
        inflight: Set[asyncio.Future] = set()

        try:
            while self._running and stream.active:
                frame = stream.read_frame()
                if frame is not None and len(inflight) < self._config.num_workers:
                    inflight.add(
                        loop.run_in_executor(self._executor, self._scan_region, frame, symbols)
                    )

                if not inflight:
                    await asyncio.sleep(interval)
                    continue

                done, inflight = await asyncio.wait(inflight, timeout=interval)
                for future in done:
                    for detection in future.result():
                        self._emit(detection)
        finally:
            for future in inflight:
                future.cancel()

    # =========================================================================
    # SINGLE-SHOT MODE
    # =========================================================================

    def decode_all(
        self,
        buffer: FrameBuffer,
        symbologies: Sequence[str],
        locate: bool = True
    ) -> List[Detection]:
        symbols = self.zbar_symbols(symbologies)
        barcodes = self._decode(_to_gray(buffer.pixels), symbols)
        return [self._to_detection(b, locate=locate) for b in barcodes]


# =============================================================================
# MATRIX ENGINE
# =============================================================================

class MatrixDecodeEngine(ABC):
    """QR decoder capability: synchronous, one buffer in, payload or None out."""

    @abstractmethod
    def decode(self, pixels: np.ndarray, width: int, height: int) -> Optional[str]:
        """Decode a pixel buffer of the given dimensions."""


class OpenCVMatrixEngine(MatrixDecodeEngine):
    """cv2.QRCodeDetector implementation."""

    def __init__(self) -> None:
        self._detector = cv2.QRCodeDetector()

    def decode(self, pixels: np.ndarray, width: int, height: int) -> Optional[str]:
        if pixels is None or pixels.size == 0:
            return None

        if pixels.shape[0] != height or pixels.shape[1] != width:
            raise ValueError(
                f"Buffer is {pixels.shape[1]}x{pixels.shape[0]}, expected {width}x{height}"
            )

        try:
            data, _, _ = self._detector.detectAndDecode(_to_gray(pixels))
        except cv2.error as e:
            logger.error(f"QR decode error: {e}")
            return None

        return data or None
