"""
==============================================================================
Camera Source Module
==============================================================================

Acquires and releases the platform camera.

Classes:
--------
- CameraConstraints: Facing mode and minimum resolution for a request
- CameraBackend: Capability interface over the platform camera API
- OpenCVCameraBackend: cv2.VideoCapture implementation
- CameraStream: Handle to an acquired stream (the "live video")
- CameraSession: Bookkeeping for the single active stream
- CameraSource: Owner of the session; acquire/release/torch operations

Resource Rules:
---------------
- At most one session is active engine-wide
- release() is idempotent and safe on an already stopped stream
- Nothing may keep using a stream after release(); reads return None

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from codescan.config import Settings, get_settings
from codescan.core import exceptions
from codescan.scanner.models import FacingMode


# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraConstraints:
    """Constraints for a camera request."""
    facing: FacingMode
    min_width: int
    min_height: int


# =============================================================================
# BACKENDS
# =============================================================================

class CameraBackend(ABC):
    """
    Platform camera capability.

    Handles are opaque to everything except the backend that created them.
    """

    @abstractmethod
    def open(self, constraints: CameraConstraints) -> Any:
        """Open a device. Raises CameraAccessError on failure."""

    @abstractmethod
    def close(self, handle: Any) -> None:
        """Stop all tracks of a handle."""

    @abstractmethod
    def read(self, handle: Any) -> Optional[np.ndarray]:
        """Latest frame, or None when no frame has arrived yet."""

    @abstractmethod
    def frame_size(self, handle: Any) -> Tuple[int, int]:
        """Native (width, height); (0, 0) while warming up."""

    @abstractmethod
    def get_capabilities(self, handle: Any) -> Dict[str, Any]:
        """Track capabilities, e.g. ``{"torch": True}``."""

    @abstractmethod
    def apply_constraints(self, handle: Any, constraints: Dict[str, Any]) -> None:
        """Apply track constraints such as ``{"torch": True}``."""

    def failed(self, handle: Any) -> bool:
        """Whether the device stopped delivering frames for good."""
        return False


class _CaptureHandle:
    """
    Open cv2.VideoCapture plus a grabber thread holding the newest frame.

    The grabber keeps reads non-blocking for the event loop: callers always
    get the most recent frame instead of waiting for the next one. Once a
    read fails the handle is marked failed and serves no more frames.
    """

    def __init__(self, capture: "cv2.VideoCapture", index: int) -> None:
        self.capture = capture
        self.index = index
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._failed = False
        self._running = True
        self._thread = threading.Thread(
            target=self._grab_loop,
            name=f"camera-grabber-{index}",
            daemon=True,
        )
        self._thread.start()

    def _grab_loop(self) -> None:
        while self._running:
            ok, frame = self.capture.read()
            if not ok:
                logger.error(f"❌ Camera {self.index} read failed, stopping grabber")
                with self._lock:
                    self._failed = True
                    self._frame = None
                break
            with self._lock:
                self._frame = frame

    @property
    def failed(self) -> bool:
        with self._lock:
            return self._failed

    def latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def stop(self) -> None:
        self._running = False
        self._thread.join(timeout=1.0)
        self.capture.release()


class OpenCVCameraBackend(CameraBackend):
    """
    cv2.VideoCapture backend.

    Facing mode is mapped to a device index from settings. OpenCV offers no
    portable torch control, so the torch capability is always reported as
    missing.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    def open(self, constraints: CameraConstraints) -> _CaptureHandle:
        index = self._settings.camera_index_for(constraints.facing.value)

        try:
            capture = cv2.VideoCapture(index)
        except cv2.error as e:
            raise exceptions.camera_access_denied(str(e))

        if not capture.isOpened():
            capture.release()
            raise exceptions.no_camera(constraints.facing.value, index)

        # Best effort, drivers may round to the nearest supported mode
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.min_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.min_height)

        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width < constraints.min_width or height < constraints.min_height:
            logger.warning(
                f"Camera {index} delivers {width}x{height}, below requested "
                f"{constraints.min_width}x{constraints.min_height}"
            )

        return _CaptureHandle(capture, index)

    def close(self, handle: _CaptureHandle) -> None:
        handle.stop()

    def read(self, handle: _CaptureHandle) -> Optional[np.ndarray]:
        return handle.latest()

    def frame_size(self, handle: _CaptureHandle) -> Tuple[int, int]:
        frame = handle.latest()
        if frame is None:
            return 0, 0
        height, width = frame.shape[:2]
        return int(width), int(height)

    def get_capabilities(self, handle: _CaptureHandle) -> Dict[str, Any]:
        return {"torch": False}

    def apply_constraints(self, handle: _CaptureHandle, constraints: Dict[str, Any]) -> None:
        if "torch" in constraints:
            raise exceptions.torch_unsupported()

    def failed(self, handle: _CaptureHandle) -> bool:
        return handle.failed


# =============================================================================
# STREAM AND SESSION
# =============================================================================

class CameraStream:
    """
    Handle to an acquired camera stream.

    Plays the part of the live video element: decoders read frames and
    native dimensions from it.
    """

    def __init__(
        self,
        backend: CameraBackend,
        handle: Any,
        constraints: CameraConstraints
    ) -> None:
        self._backend = backend
        self._handle = handle
        self._constraints = constraints
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def facing(self) -> FacingMode:
        return self._constraints.facing

    @property
    def constraints(self) -> CameraConstraints:
        return self._constraints

    @property
    def handle(self) -> Any:
        return self._handle

    @property
    def failed(self) -> bool:
        """True when the device died while the stream was still active."""
        return self._active and self._backend.failed(self._handle)

    def frame_size(self) -> Tuple[int, int]:
        """Native (width, height), (0, 0) while warming up or after stop."""
        if not self._active:
            return 0, 0
        return self._backend.frame_size(self._handle)

    def read_frame(self) -> Optional[np.ndarray]:
        """Latest frame, or None when not available."""
        if not self._active:
            return None
        return self._backend.read(self._handle)

    def stop(self) -> bool:
        """
        Stop all tracks.

        Returns:
            True if this call stopped the stream, False if already stopped
        """
        if not self._active:
            return False
        self._active = False
        self._backend.close(self._handle)
        return True


@dataclass
class CameraSession:
    """The single active camera session."""
    active: bool
    facing: FacingMode
    stream: CameraStream
    constraints: CameraConstraints


class CameraSource:
    """
    Exclusive owner of the camera session.

    Example:
        >>> source = CameraSource()
        >>> stream = await source.acquire(FacingMode.ENVIRONMENT)
        >>> source.release(stream)
    """

    def __init__(
        self,
        backend: Optional[CameraBackend] = None,
        settings: Optional[Settings] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._backend = backend or OpenCVCameraBackend(self._settings)
        self._session: Optional[CameraSession] = None
        self._opening: Optional[FacingMode] = None

    @property
    def session(self) -> Optional[CameraSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.active

    async def acquire(
        self,
        facing: FacingMode,
        min_width: Optional[int] = None,
        min_height: Optional[int] = None
    ) -> CameraStream:
        """
        Request a camera matching the constraints.

        Device opening blocks, so it runs in a worker thread.

        Raises:
            CameraAccessError: Permission denied, no device, or another
                session still holds the camera
        """
        if self.is_active:
            raise exceptions.camera_busy(self._session.facing.value)
        if self._opening is not None:
            raise exceptions.camera_busy(self._opening.value)

        constraints = CameraConstraints(
            facing=FacingMode(facing),
            min_width=min_width or self._settings.camera_min_width,
            min_height=min_height or self._settings.camera_min_height,
        )

        # Reserved until the session is recorded; the open below yields
        self._opening = constraints.facing
        try:
            handle = await asyncio.to_thread(self._backend.open, constraints)
        finally:
            self._opening = None

        stream = CameraStream(self._backend, handle, constraints)
        self._session = CameraSession(
            active=True,
            facing=constraints.facing,
            stream=stream,
            constraints=constraints,
        )

        logger.info(
            f"📷 Camera acquired ({constraints.facing.value}, "
            f"min {constraints.min_width}x{constraints.min_height})"
        )
        return stream

    def release(self, stream: Optional[CameraStream] = None) -> bool:
        """
        Stop all tracks of a stream (the active one by default).

        Safe to call repeatedly and on already stopped streams.

        Returns:
            True if tracks were stopped by this call
        """
        if stream is None:
            if self._session is None:
                return False
            stream = self._session.stream

        stopped = stream.stop()

        if self._session is not None and self._session.stream is stream:
            self._session.active = False
            self._session = None

        if stopped:
            logger.info(f"📷 Camera released ({stream.facing.value})")

        return stopped

    def query_torch_capability(self, stream: CameraStream) -> bool:
        """Whether the stream's video track supports the torch."""
        if not stream.active:
            return False
        capabilities = self._backend.get_capabilities(stream.handle) or {}
        return bool(capabilities.get("torch"))

    def apply_torch(self, stream: CameraStream, on: bool) -> None:
        """
        Switch the torch.

        Raises:
            TorchUnsupported: Track lacks the capability or is stopped
        """
        if not self.query_torch_capability(stream):
            raise exceptions.torch_unsupported()
        self._backend.apply_constraints(stream.handle, {"torch": bool(on)})
