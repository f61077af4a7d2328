"""
==============================================================================
API v1 Endpoints
==============================================================================

Version 1 of the REST API.

Routers:
--------
- health: Health check endpoints
- barcode: Uploaded image decoding

==============================================================================
"""

from . import barcode, health

__all__ = ["barcode", "health"]
