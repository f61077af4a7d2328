"""
==============================================================================
Utilities Package
==============================================================================

Utility classes for the scanning service.

Modules:
--------
- validators: Barcode text and upload type validation

==============================================================================
"""

from .validators import BarcodeValidator, UploadTypeValidator

__all__ = [
    "BarcodeValidator",
    "UploadTypeValidator",
]
