"""
==============================================================================
Configuration Package
==============================================================================

Centralized configuration management using Pydantic Settings.

Usage:
------
    from codescan.config import get_settings

    settings = get_settings()
    print(settings.live_symbologies)

==============================================================================
"""

from .settings import KNOWN_SYMBOLOGIES, Settings, get_settings

__all__ = [
    "KNOWN_SYMBOLOGIES",
    "Settings",
    "get_settings",
]
