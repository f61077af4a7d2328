"""
==============================================================================
Scanner Package - Live and Static Code Recognition
==============================================================================

Barcode and QR recognition with OpenCV and pyzbar.

Classes:
--------
- CameraSource: Camera acquisition and release
- TorchController: Flashlight toggle
- PyzbarLinearEngine / OpenCVMatrixEngine: Default decode backends
- FrameSampler: Native-size frame capture
- QRPollLoop: Cooperative per-frame QR decoding
- DecodeArbiter: First-match-wins race between the two decoders
- StaticImageDecodePath: Uploaded image decoding
- ScanController: Control and callback surface for a host screen

==============================================================================
"""

from .arbiter import DecodeArbiter, RaceState, RaceStatus
from .camera import (
    CameraBackend,
    CameraConstraints,
    CameraSession,
    CameraSource,
    CameraStream,
    OpenCVCameraBackend,
)
from .consensus import ConsensusBuffer
from .engines import (
    LinearDecodeEngine,
    LinearEngineConfig,
    MatrixDecodeEngine,
    OpenCVMatrixEngine,
    PyzbarLinearEngine,
)
from .models import (
    BoundingBox,
    CodeKind,
    DecodeResult,
    Detection,
    FacingMode,
    FrameBuffer,
    ScanMode,
)
from .qr_loop import QRPollLoop, TickOutcome
from .sampler import FrameSampler
from .session import ScanController
from .static_path import StaticImageDecodePath
from .torch import TorchController, TorchState

__all__ = [
    "BoundingBox",
    "CameraBackend",
    "CameraConstraints",
    "CameraSession",
    "CameraSource",
    "CameraStream",
    "CodeKind",
    "ConsensusBuffer",
    "DecodeArbiter",
    "DecodeResult",
    "Detection",
    "FacingMode",
    "FrameBuffer",
    "FrameSampler",
    "LinearDecodeEngine",
    "LinearEngineConfig",
    "MatrixDecodeEngine",
    "OpenCVCameraBackend",
    "OpenCVMatrixEngine",
    "PyzbarLinearEngine",
    "QRPollLoop",
    "RaceState",
    "RaceStatus",
    "ScanController",
    "ScanMode",
    "StaticImageDecodePath",
    "TickOutcome",
    "TorchController",
    "TorchState",
]
