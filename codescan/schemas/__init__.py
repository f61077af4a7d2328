"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

Request and response schemas using Pydantic for validation.

This package provides:
- DecodeResponse: Upload decode result
- ScanCommand: WebSocket control message
- DetectionMessage / ErrorMessage / StatusMessage / TorchMessage:
  WebSocket server messages

==============================================================================
"""

from .scan import (
    DecodeResponse,
    DetectionMessage,
    ErrorMessage,
    ScanCommand,
    StatusMessage,
    TorchMessage,
)

__all__ = [
    "DecodeResponse",
    "DetectionMessage",
    "ErrorMessage",
    "ScanCommand",
    "StatusMessage",
    "TorchMessage",
]
