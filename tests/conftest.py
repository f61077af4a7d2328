"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides fake camera and decoder backends, settings, and a test client with
the scanner dependencies overridden.

==============================================================================
"""

from typing import Any, Dict, Generator, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from codescan.config import Settings
from codescan.core import exceptions
from codescan.core.dependencies import (
    get_camera_source,
    get_linear_engine,
    get_matrix_engine,
    get_static_decoder,
)
from codescan.main import app
from codescan.scanner import (
    CameraBackend,
    CameraConstraints,
    CameraSource,
    Detection,
    FrameBuffer,
    LinearDecodeEngine,
    LinearEngineConfig,
    MatrixDecodeEngine,
    StaticImageDecodePath,
)


# ============================================================================
# FAKE BACKENDS
# ============================================================================

class FakeHandle:
    """Open fake camera."""

    def __init__(self, number: int, constraints: CameraConstraints, frame: Optional[np.ndarray]):
        self.number = number
        self.constraints = constraints
        self.frame = frame
        self.closed = False
        self.failed = False
        self.native_size: Optional[Tuple[int, int]] = None


class FakeCameraBackend(CameraBackend):
    """
    Camera backend recording every open/close in `events`.

    Frames are blank 640x480 images unless `frame` is replaced; set
    `warming_up` to report zero dimensions.
    """

    def __init__(self, torch_supported: bool = False):
        self.torch_supported = torch_supported
        self.fail_with: Optional[Exception] = None
        self.frame: Optional[np.ndarray] = np.full((480, 640, 3), 255, np.uint8)
        self.warming_up = False
        self.events: List[Tuple[str, str]] = []
        self.handles: List[FakeHandle] = []
        self.applied: List[Dict[str, Any]] = []

    @property
    def opens(self) -> int:
        return sum(1 for event, _ in self.events if event == "open")

    @property
    def closes(self) -> int:
        return sum(1 for event, _ in self.events if event == "close")

    def open(self, constraints: CameraConstraints) -> FakeHandle:
        if self.fail_with is not None:
            raise self.fail_with
        handle = FakeHandle(len(self.handles), constraints, self.frame)
        self.handles.append(handle)
        self.events.append(("open", constraints.facing.value))
        return handle

    def close(self, handle: FakeHandle) -> None:
        handle.closed = True
        self.events.append(("close", handle.constraints.facing.value))

    def read(self, handle: FakeHandle) -> Optional[np.ndarray]:
        if self.warming_up:
            return None
        return handle.frame

    def frame_size(self, handle: FakeHandle) -> Tuple[int, int]:
        if self.warming_up or handle.frame is None:
            return 0, 0
        if handle.native_size is not None:
            return handle.native_size
        height, width = handle.frame.shape[:2]
        return width, height

    def get_capabilities(self, handle: FakeHandle) -> Dict[str, Any]:
        return {"torch": self.torch_supported}

    def apply_constraints(self, handle: FakeHandle, constraints: Dict[str, Any]) -> None:
        if not self.torch_supported:
            raise exceptions.torch_unsupported()
        self.applied.append(constraints)

    def failed(self, handle: FakeHandle) -> bool:
        return handle.failed


class FakeLinearEngine(LinearDecodeEngine):
    """Linear engine driven by the test through emit()."""

    def __init__(self, single_result: Optional[Detection] = None):
        self.config: Optional[LinearEngineConfig] = None
        self.handler = None
        self.stream = None
        self._running = False
        self.starts = 0
        self.stops = 0
        self.emitted = 0
        self.single_results: List[Detection] = []
        self.single_result = single_result
        self.single_calls: List[Tuple[FrameBuffer, Sequence[str], bool]] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def single_result(self) -> Optional[Detection]:
        return self.single_results[0] if self.single_results else None

    @single_result.setter
    def single_result(self, detection: Optional[Detection]) -> None:
        self.single_results = [detection] if detection is not None else []

    def configure(self, config: LinearEngineConfig) -> None:
        self.config = config

    def on_detected(self, handler) -> None:
        self.off_detected()
        self.handler = handler

    def off_detected(self) -> None:
        self.handler = None

    def start(self, stream) -> None:
        self.stream = stream
        self._running = True
        self.starts += 1

    def stop(self) -> None:
        self._running = False
        self.off_detected()
        self.stops += 1

    def emit(self, text: str, symbology: str = "code128") -> None:
        if self._running and self.handler is not None:
            self.emitted += 1
            self.handler(Detection(text=text, symbology=symbology))

    def decode_all(self, buffer, symbologies, locate=True) -> List[Detection]:
        self.single_calls.append((buffer, list(symbologies), locate))
        return list(self.single_results)


class FakeMatrixEngine(MatrixDecodeEngine):
    """Matrix engine returning `payload` once `hit_after` calls have missed."""

    def __init__(self, payload: Optional[str] = None, hit_after: int = 0):
        self.payload = payload
        self.hit_after = hit_after
        self.calls: List[Tuple[int, int]] = []

    def decode(self, pixels: np.ndarray, width: int, height: int) -> Optional[str]:
        self.calls.append((width, height))
        if self.payload is None or len(self.calls) <= self.hit_after:
            return None
        return self.payload


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with a fast QR loop."""
    return Settings(
        _env_file=None,
        qr_tick_interval=0.001,
        barcode_vote_window=5,
        barcode_vote_threshold=3,
    )


@pytest.fixture
def camera_backend() -> FakeCameraBackend:
    return FakeCameraBackend()


@pytest.fixture
def camera(camera_backend: FakeCameraBackend, settings: Settings) -> CameraSource:
    return CameraSource(backend=camera_backend, settings=settings)


@pytest.fixture
def linear_engine() -> FakeLinearEngine:
    return FakeLinearEngine()


@pytest.fixture
def linear_engine_factory():
    """For tests that need one linear engine per controller."""
    return FakeLinearEngine


@pytest.fixture
def matrix_engine() -> FakeMatrixEngine:
    return FakeMatrixEngine()


@pytest.fixture
def blank_png() -> bytes:
    """A white PNG with no symbol in it."""
    ok, encoded = cv2.imencode(".png", np.full((240, 320, 3), 255, np.uint8))
    assert ok
    return encoded.tobytes()


@pytest.fixture
def qr_image() -> np.ndarray:
    """A clean BGR QR code encoding https://example.com."""
    encoder = cv2.QRCodeEncoder.create()
    modules = encoder.encode("https://example.com")
    scaled = cv2.resize(modules, None, fx=8, fy=8, interpolation=cv2.INTER_NEAREST)
    padded = cv2.copyMakeBorder(scaled, 40, 40, 40, 40, cv2.BORDER_CONSTANT, value=255)
    return cv2.cvtColor(padded, cv2.COLOR_GRAY2BGR)


@pytest.fixture
def client(
    camera: CameraSource,
    linear_engine: FakeLinearEngine,
    matrix_engine: FakeMatrixEngine,
    settings: Settings,
) -> Generator[TestClient, None, None]:
    """Test client with scanner dependencies replaced by fakes."""
    app.dependency_overrides[get_camera_source] = lambda: camera
    app.dependency_overrides[get_linear_engine] = lambda: linear_engine
    app.dependency_overrides[get_matrix_engine] = lambda: matrix_engine
    app.dependency_overrides[get_static_decoder] = lambda: StaticImageDecodePath(
        linear_engine, matrix_engine, settings=settings
    )

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
