"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Shared scanner components for routes and WebSocket handlers.

The camera is a single physical resource, so one CameraSource is shared by
every connection. The QR decoder is stateless and shared; each connection
gets its own linear decoder. Tests replace these through
app.dependency_overrides.

==============================================================================
"""

from __future__ import annotations

from functools import lru_cache

from codescan.config import get_settings
from codescan.scanner import (
    CameraSource,
    LinearDecodeEngine,
    MatrixDecodeEngine,
    OpenCVMatrixEngine,
    PyzbarLinearEngine,
    StaticImageDecodePath,
)


@lru_cache(maxsize=1)
def get_camera_source() -> CameraSource:
    """Process-wide camera owner."""
    return CameraSource(settings=get_settings())


@lru_cache(maxsize=1)
def get_matrix_engine() -> MatrixDecodeEngine:
    """Shared QR decoder."""
    return OpenCVMatrixEngine()


def get_linear_engine() -> LinearDecodeEngine:
    """
    Fresh linear decoder.

    Each scan connection binds its own detected-handler, so live engines are
    not shared.
    """
    return PyzbarLinearEngine()


def get_static_decoder() -> StaticImageDecodePath:
    """Upload decoder wired to the default engines."""
    return StaticImageDecodePath(
        get_linear_engine(),
        get_matrix_engine(),
        settings=get_settings(),
    )
