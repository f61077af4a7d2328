"""
==============================================================================
codescan - Real-time Barcode and QR Code Recognition
==============================================================================

Live camera scanning races a continuous linear barcode decoder against a
per-frame QR decoder and resolves to the first valid result. Uploaded still
images are decoded QR first, then across the full linear symbology set.

==============================================================================
"""

__version__ = "1.0.0"
