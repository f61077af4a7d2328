"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers.

Handlers:
---------
- scanner: Live camera scan control and detection delivery

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
