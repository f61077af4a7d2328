"""
==============================================================================
API Package
==============================================================================

REST endpoints of the scanning service.

==============================================================================
"""

from .router import api_router

__all__ = ["api_router"]
