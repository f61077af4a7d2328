"""
==============================================================================
Scanner Models Module
==============================================================================

Shared value types for the scanner package.

- FacingMode / ScanMode / CodeKind: enums for camera direction, active
  pipeline and result kind
- BoundingBox / DecodeResult: Pydantic models handed to callers
- Detection: raw output of a decode backend
- FrameBuffer: pixel buffer captured from a stream or decoded from a file

==============================================================================
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class FacingMode(str, enum.Enum):
    """Which physical camera is active."""
    ENVIRONMENT = "environment"
    USER = "user"

    def opposite(self) -> "FacingMode":
        if self is FacingMode.ENVIRONMENT:
            return FacingMode.USER
        return FacingMode.ENVIRONMENT


class ScanMode(str, enum.Enum):
    """Active pipeline: live camera race or static upload decode."""
    CAMERA = "camera"
    UPLOAD = "upload"


class CodeKind(str, enum.Enum):
    """Kind of decoded code."""
    BARCODE = "barcode"
    QRCODE = "qrcode"


class BoundingBox(BaseModel):
    """Axis-aligned box around a located symbol, in buffer pixels."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class DecodeResult(BaseModel):
    """
    Normalized result of a scan session.

    Attributes:
        kind: Barcode or QR code
        text: Decoded text (barcodes trimmed and upper-cased)
        symbology: Backend symbology name, when known
        rect: Symbol location, when the backend localized it
    """

    model_config = ConfigDict(frozen=True)

    kind: CodeKind
    text: str
    symbology: Optional[str] = None
    rect: Optional[BoundingBox] = None


@dataclass(frozen=True)
class Detection:
    """Raw candidate reported by a decode backend."""
    text: str
    symbology: Optional[str] = None
    rect: Optional[BoundingBox] = None


@dataclass
class FrameBuffer:
    """Pixel buffer with its dimensions."""
    pixels: np.ndarray
    width: int
    height: int

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "FrameBuffer":
        height, width = pixels.shape[:2]
        return cls(pixels=pixels, width=int(width), height=int(height))
