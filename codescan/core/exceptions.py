"""
Scan Exception Handling

ScanException base class for all scanning errors with FastAPI integration.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ErrorKind(str, enum.Enum):
    """Error kinds surfaced to the host through ``on_error``."""
    CAMERA_ACCESS = "camera_access"
    TORCH_UNSUPPORTED = "torch_unsupported"
    UNRECOGNIZED_IMAGE = "unrecognized_image"
    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    SCAN_TIMEOUT = "scan_timeout"


class ScanException(Exception):
    """
    Unified scanning exception.

    Provides a consistent error format for the in-process callback surface
    and the HTTP/WebSocket layer.

    Usage:
        raise CameraAccessError("Camera permission denied", "CAMERA_ACCESS_DENIED")
        raise exceptions.unrecognized_image()

    Error Codes:
        Camera:
            - CAMERA_ACCESS_DENIED (403)
            - NO_CAMERA (404)
            - CAMERA_BUSY (409)
            - CAMERA_LOST (503)
            - TORCH_UNSUPPORTED (409)

        Decoding:
            - UNRECOGNIZED_IMAGE (400)
            - UNSUPPORTED_FILE_TYPE (400)
            - SCAN_TIMEOUT (408)
    """

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize scan exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "NO_CAMERA")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


class CameraAccessError(ScanException):
    """Permission denied or no camera device. Fatal to the scan attempt."""
    kind = ErrorKind.CAMERA_ACCESS


class TorchUnsupported(ScanException):
    """The active track has no torch capability. Non-fatal."""
    kind = ErrorKind.TORCH_UNSUPPORTED


class UnrecognizedImage(ScanException):
    """Neither decoder found a payload in an uploaded image."""
    kind = ErrorKind.UNRECOGNIZED_IMAGE


class UnsupportedFileType(ScanException):
    """Upload is not one of the accepted image types."""
    kind = ErrorKind.UNSUPPORTED_FILE_TYPE


class ScanTimeout(ScanException):
    """The configured QR loop cutoff was reached without a result."""
    kind = ErrorKind.SCAN_TIMEOUT


async def scan_exception_handler(request: Request, exc: ScanException) -> JSONResponse:
    """Convert ScanException to consistent JSON error response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ScanException, scan_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def camera_access_denied(reason: Optional[str] = None) -> CameraAccessError:
    """Create camera permission denied exception."""
    details = {"reason": reason} if reason else {}
    return CameraAccessError(
        "Cannot access the camera, check camera permissions",
        "CAMERA_ACCESS_DENIED",
        403,
        details
    )


def no_camera(facing: Optional[str] = None, index: Optional[int] = None) -> CameraAccessError:
    """Create missing camera device exception."""
    details: Dict[str, Any] = {}
    if facing:
        details["facing"] = facing
    if index is not None:
        details["device_index"] = index
    return CameraAccessError("No camera device available", "NO_CAMERA", 404, details)


def camera_busy(facing: str) -> CameraAccessError:
    """Create camera already in use exception."""
    return CameraAccessError(
        "The camera is already in use by another scan",
        "CAMERA_BUSY",
        409,
        {"active_facing": facing}
    )


def camera_lost(facing: str) -> CameraAccessError:
    """Create camera stopped delivering frames exception."""
    return CameraAccessError(
        "The camera stopped delivering frames",
        "CAMERA_LOST",
        503,
        {"facing": facing}
    )


def torch_unsupported() -> TorchUnsupported:
    """Create torch unsupported exception."""
    return TorchUnsupported(
        "This device does not support the torch",
        "TORCH_UNSUPPORTED",
        409
    )


def unrecognized_image(reason: Optional[str] = None) -> UnrecognizedImage:
    """Create unrecognized image exception."""
    details = {"reason": reason} if reason else {}
    return UnrecognizedImage(
        "Cannot read a barcode from the image, please check the image",
        "UNRECOGNIZED_IMAGE",
        400,
        details
    )


def unsupported_file_type(content_type: Optional[str]) -> UnsupportedFileType:
    """Create unsupported upload type exception."""
    return UnsupportedFileType(
        "Unsupported file type",
        "UNSUPPORTED_FILE_TYPE",
        400,
        {"content_type": content_type}
    )


def scan_timeout(ticks: int, elapsed: float) -> ScanTimeout:
    """Create QR loop cutoff exception."""
    return ScanTimeout(
        "No code found before the scan time limit",
        "SCAN_TIMEOUT",
        408,
        {"ticks": ticks, "elapsed_seconds": round(elapsed, 3)}
    )
