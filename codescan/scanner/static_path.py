"""
==============================================================================
Static Image Decode Module
==============================================================================

Decodes an uploaded still image.

Order:
------
1. Decode the file bytes into a pixel buffer once
2. Matrix (QR) decoder on the full-resolution buffer
3. Linear decoder over the whole image, full symbology set, localization
   on, on a copy scaled so its longest side is `input_size`; the first
   symbol that passes validation wins
4. Neither: UnrecognizedImage

Exactly one outcome: a DecodeResult is returned or an exception raised.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import cv2
import numpy as np

from codescan.config import Settings, get_settings
from codescan.core import exceptions
from codescan.scanner.engines import LinearDecodeEngine, MatrixDecodeEngine
from codescan.scanner.models import CodeKind, DecodeResult, FrameBuffer
from codescan.utils.validators import BarcodeValidator


# Module logger
logger = logging.getLogger(__name__)


class StaticImageDecodePath:
    """
    Still-image decoder.

    Example:
        >>> path = StaticImageDecodePath(PyzbarLinearEngine(), OpenCVMatrixEngine())
        >>> result = path.decode(Path("label.png").read_bytes())
    """

    def __init__(
        self,
        linear_engine: LinearDecodeEngine,
        matrix_engine: MatrixDecodeEngine,
        settings: Optional[Settings] = None,
        validator: Optional[BarcodeValidator] = None
    ) -> None:
        self._settings = settings or get_settings()
        self._linear = linear_engine
        self._matrix = matrix_engine
        self._validator = validator or BarcodeValidator(self._settings.barcode_max_length)

    @property
    def symbologies(self) -> Sequence[str]:
        return self._settings.upload_symbologies

    @staticmethod
    def load(data: bytes) -> FrameBuffer:
        """
        Decode file bytes into a pixel buffer.

        Raises:
            UnrecognizedImage: Empty or unreadable bytes
        """
        if not data:
            raise exceptions.unrecognized_image("empty file")

        array = np.frombuffer(data, np.uint8)
        pixels = cv2.imdecode(array, cv2.IMREAD_COLOR)
        if pixels is None:
            raise exceptions.unrecognized_image("unreadable image")

        return FrameBuffer.from_array(pixels)

    def _scaled(self, buffer: FrameBuffer) -> FrameBuffer:
        size = self._settings.upload_input_size
        longest = max(buffer.width, buffer.height)
        if longest == size:
            return buffer
        scale = size / longest
        width = max(1, round(buffer.width * scale))
        height = max(1, round(buffer.height * scale))
        interpolation = cv2.INTER_AREA if scale < 1 else cv2.INTER_LINEAR
        resized = cv2.resize(buffer.pixels, (width, height), interpolation=interpolation)
        return FrameBuffer.from_array(resized)

    def decode_buffer(self, buffer: FrameBuffer) -> DecodeResult:
        """
        Run matrix then linear decoding on an already loaded buffer.

        Raises:
            UnrecognizedImage: No decoder found a valid payload
        """
        payload = self._matrix.decode(buffer.pixels, buffer.width, buffer.height)
        if payload is not None:
            logger.info("✅ QR code found in uploaded image")
            return DecodeResult(kind=CodeKind.QRCODE, text=payload, symbology="qrcode")

        detections = self._linear.decode_all(self._scaled(buffer), self.symbologies, locate=True)
        if not detections:
            raise exceptions.unrecognized_image()

        error = None
        for detection in detections:
            is_valid, normalized, error = self._validator.validate(detection.text)
            if not is_valid:
                logger.debug(f"Uploaded barcode rejected: {detection.text!r} ({error})")
                continue

            logger.info(f"✅ Barcode found in uploaded image: {normalized}")
            return DecodeResult(
                kind=CodeKind.BARCODE,
                text=normalized,
                symbology=detection.symbology,
                rect=detection.rect,
            )

        raise exceptions.unrecognized_image(error)

    def decode(self, data: bytes) -> DecodeResult:
        """Load file bytes and decode them."""
        return self.decode_buffer(self.load(data))
