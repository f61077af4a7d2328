"""
==============================================================================
Scan Schemas Module
==============================================================================

Request and response schemas for the decode endpoint and the scan
WebSocket protocol.

==============================================================================
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from codescan.scanner.models import BoundingBox, CodeKind, DecodeResult, FacingMode


class DecodeResponse(BaseModel):
    """Successful upload decode."""
    success: bool = Field(default=True)
    kind: CodeKind
    code: str
    symbology: Optional[str] = None
    rect: Optional[BoundingBox] = None

    @classmethod
    def from_result(cls, result: DecodeResult) -> "DecodeResponse":
        return cls(
            kind=result.kind,
            code=result.text,
            symbology=result.symbology,
            rect=result.rect,
        )


class ScanCommand(BaseModel):
    """Client → server WebSocket message."""
    type: Literal["start", "stop", "switch_facing", "torch"]
    facing: Optional[FacingMode] = None


class DetectionMessage(BaseModel):
    """Server → client: the scan session resolved."""
    type: Literal["detection"] = "detection"
    kind: CodeKind
    text: str


class ErrorMessage(BaseModel):
    """Server → client: a surfaced error."""
    type: Literal["error"] = "error"
    code: str
    message: str


class StatusMessage(BaseModel):
    """Server → client: scanner state after a control command."""
    type: Literal["status"] = "status"
    scanning: bool
    facing: FacingMode
    torch: bool = False


class TorchMessage(BaseModel):
    """Server → client: torch switched."""
    type: Literal["torch"] = "torch"
    on: bool
