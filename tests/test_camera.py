"""
==============================================================================
Camera Source and Torch Tests
==============================================================================

Tests for acquire/release semantics, torch capability handling and frame
sampling.

==============================================================================
"""

import asyncio

import numpy as np
import pytest

from codescan.config import Settings
from codescan.core import exceptions
from codescan.core.exceptions import CameraAccessError, TorchUnsupported
from codescan.scanner import (
    CameraSource,
    CameraStream,
    FacingMode,
    FrameSampler,
    OpenCVCameraBackend,
    TorchController,
)
from codescan.scanner.camera import _CaptureHandle


class TestCameraSource:
    """Tests for CameraSource."""

    @pytest.mark.asyncio
    async def test_acquire_uses_constraints(self, camera: CameraSource, camera_backend):
        """Test acquire opens one stream with the configured minimums."""
        stream = await camera.acquire(FacingMode.USER)

        assert stream.active
        assert stream.facing is FacingMode.USER
        assert stream.constraints.min_width == 800
        assert stream.constraints.min_height == 600
        assert camera.is_active
        assert camera.session.stream is stream
        assert camera_backend.events == [("open", "user")]

    @pytest.mark.asyncio
    async def test_acquire_explicit_minimums(self, camera: CameraSource):
        stream = await camera.acquire(FacingMode.ENVIRONMENT, 1280, 720)
        assert stream.constraints.min_width == 1280
        assert stream.constraints.min_height == 720

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, camera: CameraSource, camera_backend):
        """Test repeated release stops tracks once."""
        stream = await camera.acquire(FacingMode.ENVIRONMENT)

        assert camera.release(stream) is True
        assert camera.release(stream) is False
        assert camera.release() is False

        assert camera_backend.closes == 1
        assert not stream.active
        assert camera.session is None
        assert stream.read_frame() is None
        assert stream.frame_size() == (0, 0)

    @pytest.mark.asyncio
    async def test_single_active_session(self, camera: CameraSource, camera_backend):
        """Test a second acquire without release is refused."""
        await camera.acquire(FacingMode.ENVIRONMENT)

        with pytest.raises(CameraAccessError) as exc_info:
            await camera.acquire(FacingMode.USER)

        assert exc_info.value.code == "CAMERA_BUSY"
        assert camera_backend.opens == 1

    @pytest.mark.asyncio
    async def test_concurrent_acquire_opens_one_device(self, camera: CameraSource, camera_backend):
        """Test two overlapping acquires never open two devices."""
        results = await asyncio.gather(
            camera.acquire(FacingMode.ENVIRONMENT),
            camera.acquire(FacingMode.USER),
            return_exceptions=True,
        )

        streams = [r for r in results if isinstance(r, CameraStream)]
        errors = [r for r in results if isinstance(r, CameraAccessError)]
        assert len(streams) == 1
        assert len(errors) == 1
        assert errors[0].code == "CAMERA_BUSY"
        assert camera_backend.opens == 1
        assert camera.session.stream is streams[0]

    @pytest.mark.asyncio
    async def test_failed_open_frees_slot(self, camera: CameraSource, camera_backend):
        camera_backend.fail_with = exceptions.no_camera("environment", 0)
        with pytest.raises(CameraAccessError):
            await camera.acquire(FacingMode.ENVIRONMENT)

        camera_backend.fail_with = None
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        assert stream.active

    @pytest.mark.asyncio
    async def test_stream_reports_failed_device(self, camera: CameraSource, camera_backend):
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        assert stream.failed is False

        camera_backend.handles[0].failed = True
        assert stream.failed is True

        camera.release(stream)
        assert stream.failed is False

    @pytest.mark.asyncio
    async def test_access_failure_propagates(self, camera: CameraSource, camera_backend):
        """Test permission denial surfaces as CameraAccessError."""
        camera_backend.fail_with = exceptions.camera_access_denied("denied")

        with pytest.raises(CameraAccessError) as exc_info:
            await camera.acquire(FacingMode.ENVIRONMENT)

        assert exc_info.value.code == "CAMERA_ACCESS_DENIED"
        assert camera.session is None

    @pytest.mark.asyncio
    async def test_torch_capability(self, camera: CameraSource, camera_backend):
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        assert camera.query_torch_capability(stream) is False

        with pytest.raises(TorchUnsupported):
            camera.apply_torch(stream, True)

        camera_backend.torch_supported = True
        camera.apply_torch(stream, True)
        assert camera_backend.applied == [{"torch": True}]

        camera.release(stream)
        assert camera.query_torch_capability(stream) is False


class DyingCapture:
    """VideoCapture stand-in that delivers one frame and then fails."""

    def __init__(self):
        self.reads = 0
        self.released = False

    def read(self):
        self.reads += 1
        if self.reads == 1:
            return True, np.full((480, 640, 3), 255, np.uint8)
        return False, None

    def release(self):
        self.released = True


class TestCaptureHandle:
    """Tests for the OpenCV grabber thread."""

    def test_read_failure_marks_handle_failed(self):
        capture = DyingCapture()
        handle = _CaptureHandle(capture, 0)
        handle._thread.join(timeout=1.0)

        assert handle.failed is True
        assert handle.latest() is None

        backend = OpenCVCameraBackend(Settings(_env_file=None))
        assert backend.failed(handle) is True
        assert backend.frame_size(handle) == (0, 0)

        backend.close(handle)
        assert capture.released


class TestTorchController:
    """Tests for TorchController."""

    @pytest.mark.asyncio
    async def test_toggle_supported(self, camera: CameraSource, camera_backend):
        camera_backend.torch_supported = True
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        torch = TorchController(camera)

        assert torch.state.supported is None
        assert torch.toggle(stream) is True
        assert torch.state.supported is True
        assert torch.toggle(stream) is False
        assert camera_backend.applied == [{"torch": True}, {"torch": False}]

    @pytest.mark.asyncio
    async def test_toggle_unsupported_keeps_off(self, camera: CameraSource):
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        torch = TorchController(camera)

        with pytest.raises(TorchUnsupported):
            torch.toggle(stream)

        assert torch.state.on is False
        assert torch.state.supported is False

    def test_toggle_without_stream(self, camera: CameraSource):
        with pytest.raises(TorchUnsupported):
            TorchController(camera).toggle(None)

    @pytest.mark.asyncio
    async def test_reset(self, camera: CameraSource, camera_backend):
        camera_backend.torch_supported = True
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        torch = TorchController(camera)
        torch.toggle(stream)

        torch.reset()

        assert torch.state.on is False
        assert torch.state.supported is None


class TestFrameSampler:
    """Tests for FrameSampler."""

    @pytest.mark.asyncio
    async def test_warming_up_returns_none(self, camera: CameraSource, camera_backend):
        camera_backend.warming_up = True
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        assert FrameSampler().capture(stream) is None

    @pytest.mark.asyncio
    async def test_buffer_matches_native_size(self, camera: CameraSource):
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        buffer = FrameSampler().capture(stream)

        assert (buffer.width, buffer.height) == (640, 480)
        assert buffer.pixels.shape == (480, 640, 3)

    @pytest.mark.asyncio
    async def test_resizes_to_native(self, camera: CameraSource, camera_backend):
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        camera_backend.handles[0].native_size = (1280, 960)

        buffer = FrameSampler().capture(stream)

        assert (buffer.width, buffer.height) == (1280, 960)
        assert buffer.pixels.shape == (960, 1280, 3)

    @pytest.mark.asyncio
    async def test_buffer_reused(self, camera: CameraSource, camera_backend):
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        sampler = FrameSampler()

        first = sampler.capture(stream)
        camera_backend.handles[0].frame = np.zeros((480, 640, 3), np.uint8)
        second = sampler.capture(stream)

        assert first.pixels is second.pixels
        assert int(second.pixels.max()) == 0
