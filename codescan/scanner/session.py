"""
==============================================================================
Scan Controller Module
==============================================================================

The control surface a host screen drives.

Controls:
---------
- start_camera_scan(facing): acquire camera, start the decode race
- stop_camera_scan(): cancel the race, release the camera
- switch_facing(): cancel, release, acquire the other camera, restart
- toggle_torch(): flip the flashlight on the active stream
- decode_uploaded_image(data): static image path

Callbacks:
----------
- on_barcode_detected(text, kind): at most once per scan session
- on_error(kind, message): CameraAccessError, TorchUnsupported,
  UnrecognizedImage, UnsupportedFileType, ScanTimeout

Control operations are serialized with an asyncio.Lock, so two camera
sessions can never be open together and a new race is never wired up
before the previous one is torn down.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from codescan.config import Settings, get_settings
from codescan.core import exceptions
from codescan.core.exceptions import ErrorKind, ScanException
from codescan.scanner.arbiter import DecodeArbiter
from codescan.scanner.camera import CameraSource
from codescan.scanner.consensus import ConsensusBuffer
from codescan.scanner.engines import (
    LinearDecodeEngine,
    LinearEngineConfig,
    MatrixDecodeEngine,
    OpenCVMatrixEngine,
    PyzbarLinearEngine,
)
from codescan.scanner.models import (
    CodeKind,
    DecodeResult,
    Detection,
    FacingMode,
    ScanMode,
)
from codescan.scanner.qr_loop import QRPollLoop
from codescan.scanner.static_path import StaticImageDecodePath
from codescan.scanner.torch import TorchController
from codescan.utils.validators import BarcodeValidator, UploadTypeValidator


# Module logger
logger = logging.getLogger(__name__)


BarcodeCallback = Callable[[str, CodeKind], None]
ErrorCallback = Callable[[ErrorKind, str], None]


class ScanController:
    """
    Live and static scanning behind one callback surface.

    Attributes:
        mode: Active pipeline (camera or upload)
        facing: Facing mode of the current or next camera session

    Example:
        >>> controller = ScanController(on_barcode_detected=print, on_error=print)
        >>> await controller.start_camera_scan(FacingMode.ENVIRONMENT)
        >>> await controller.switch_facing()
        >>> await controller.stop_camera_scan()
    """

    def __init__(
        self,
        on_barcode_detected: BarcodeCallback,
        on_error: Optional[ErrorCallback] = None,
        settings: Optional[Settings] = None,
        camera: Optional[CameraSource] = None,
        linear_engine: Optional[LinearDecodeEngine] = None,
        matrix_engine: Optional[MatrixDecodeEngine] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._on_barcode_detected = on_barcode_detected
        self._on_error = on_error

        self._camera = camera or CameraSource(settings=self._settings)
        self._linear = linear_engine or PyzbarLinearEngine()
        self._matrix = matrix_engine or OpenCVMatrixEngine()
        self._torch = TorchController(self._camera)
        self._validator = BarcodeValidator(self._settings.barcode_max_length)
        self._upload_types = UploadTypeValidator(self._settings.allowed_upload_types)
        self._static_path = StaticImageDecodePath(
            self._linear,
            self._matrix,
            settings=self._settings,
            validator=self._validator,
        )

        self._lock = asyncio.Lock()
        self._mode = ScanMode.CAMERA
        self._facing = FacingMode(self._settings.default_facing)
        self._arbiter: Optional[DecodeArbiter] = None
        self._qr_loop: Optional[QRPollLoop] = None
        self._last_result: Optional[DecodeResult] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def mode(self) -> ScanMode:
        return self._mode

    @property
    def facing(self) -> FacingMode:
        return self._facing

    @property
    def is_scanning(self) -> bool:
        return self._arbiter is not None and self._arbiter.state.accepting

    @property
    def torch_on(self) -> bool:
        return self._torch.state.on

    @property
    def arbiter(self) -> Optional[DecodeArbiter]:
        return self._arbiter

    @property
    def last_result(self) -> Optional[DecodeResult]:
        return self._last_result

    # =========================================================================
    # CAMERA CONTROLS
    # =========================================================================

    async def start_camera_scan(self, facing: Optional[FacingMode] = None) -> bool:
        """
        Start a live scan, replacing any scan in progress.

        Returns:
            True if the race started, False if the camera was unavailable
        """
        async with self._lock:
            self._cancel_current()
            if facing is not None:
                self._facing = FacingMode(facing)
            return await self._start_locked()

    async def stop_camera_scan(self) -> None:
        """Cancel the current race and release the camera."""
        async with self._lock:
            self._cancel_current()

    async def switch_facing(self) -> bool:
        """
        Restart the scan on the other camera.

        The old session is fully torn down before the new camera is
        requested.
        """
        async with self._lock:
            self._cancel_current()
            self._facing = self._facing.opposite()
            logger.info(f"🔄 Switching camera to {self._facing.value}")
            return await self._start_locked()

    def toggle_torch(self) -> Optional[bool]:
        """
        Flip the torch.

        Returns:
            New torch state, or None when unsupported (reported via on_error)
        """
        session = self._camera.session
        stream = session.stream if session is not None else None
        try:
            return self._torch.toggle(stream)
        except exceptions.TorchUnsupported as e:
            logger.warning(f"🔦 {e.message}")
            self._report_error(e)
            return None

    async def close(self) -> None:
        """Release everything; used when the host screen goes away."""
        await self.stop_camera_scan()

    # =========================================================================
    # UPLOAD CONTROL
    # =========================================================================

    async def decode_uploaded_image(
        self,
        data: bytes,
        content_type: Optional[str] = None
    ) -> Optional[DecodeResult]:
        """
        Decode an uploaded image, stopping any live scan first.

        Returns:
            DecodeResult on success, None after reporting an error
        """
        async with self._lock:
            self._cancel_current()
            self._mode = ScanMode.UPLOAD

            try:
                if content_type is not None:
                    is_valid, _ = self._upload_types.validate(content_type)
                    if not is_valid:
                        raise exceptions.unsupported_file_type(content_type)
                result = await asyncio.to_thread(self._static_path.decode, data)
            except ScanException as e:
                logger.info(f"Upload not decoded: {e.code}")
                self._report_error(e)
                return None

            self._emit_result(result)
            return result

    # =========================================================================
    # RACE WIRING
    # =========================================================================

    async def _start_locked(self) -> bool:
        self._mode = ScanMode.CAMERA
        try:
            stream = await self._camera.acquire(self._facing)
        except exceptions.CameraAccessError as e:
            logger.error(f"❌ Camera unavailable: {e.message}")
            self._report_error(e)
            return False

        arbiter = DecodeArbiter(
            self._camera,
            stream,
            self._linear,
            on_result=self._emit_result,
            on_error=self._report_error,
            validator=self._validator,
            on_teardown=self._torch.reset,
        )
        qr_loop = QRPollLoop(
            stream,
            self._matrix,
            on_result=arbiter.report_qr,
            on_timeout=arbiter.fail,
            on_camera_error=arbiter.fail,
            tick_interval=self._settings.qr_tick_interval,
            max_ticks=self._settings.qr_max_ticks,
            max_duration=self._settings.qr_max_duration_seconds,
        )
        arbiter.attach_qr_loop(qr_loop)

        consensus = ConsensusBuffer(
            self._settings.barcode_vote_window,
            self._settings.barcode_vote_threshold,
        )

        def handle_detected(detection: Detection) -> None:
            if not arbiter.state.accepting:
                return
            is_valid, normalized, error = self._validator.validate(detection.text)
            if not is_valid:
                logger.debug(f"Barcode format rejected: {detection.text!r} ({error})")
                return
            winner = consensus.push(normalized)
            if winner is not None:
                arbiter.report_barcode(winner, detection.symbology, detection.rect)

        self._linear.configure(LinearEngineConfig(
            symbologies=list(self._settings.live_symbologies),
            roi_fraction=self._settings.roi_fraction,
            num_workers=self._settings.num_workers,
            frequency=self._settings.scan_frequency,
        ))
        self._linear.on_detected(handle_detected)

        self._arbiter = arbiter
        self._qr_loop = qr_loop
        arbiter.start()
        self._linear.start(stream)
        qr_loop.start()
        return True

    def _cancel_current(self) -> None:
        if self._arbiter is not None:
            self._arbiter.cancel()
        self._arbiter = None
        self._qr_loop = None

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def _emit_result(self, result: DecodeResult) -> None:
        self._last_result = result
        self._on_barcode_detected(result.text, result.kind)

    def _report_error(self, error: ScanException) -> None:
        if self._on_error is not None:
            self._on_error(error.kind, error.message)
