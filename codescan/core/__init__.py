"""
==============================================================================
Core Package
==============================================================================

Core infrastructure for the scanning service.

Modules:
--------
- exceptions: ScanException hierarchy, error kinds and factory functions

Usage:
------
    from codescan.core import exceptions
    raise exceptions.no_camera("environment", 0)

==============================================================================
"""

from .exceptions import (
    CameraAccessError,
    ErrorKind,
    ScanException,
    ScanTimeout,
    TorchUnsupported,
    UnrecognizedImage,
    UnsupportedFileType,
    register_exception_handlers,
)

__all__ = [
    "CameraAccessError",
    "ErrorKind",
    "ScanException",
    "ScanTimeout",
    "TorchUnsupported",
    "UnrecognizedImage",
    "UnsupportedFileType",
    "register_exception_handlers",
]
