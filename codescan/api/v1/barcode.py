"""
==============================================================================
Barcode Decode Endpoints
==============================================================================

Decode a barcode or QR code from an uploaded image.

Accepted types: image/png, image/jpeg, image/webp (configurable).

==============================================================================
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, UploadFile

from codescan.config import get_settings
from codescan.core import exceptions
from codescan.core.dependencies import get_static_decoder
from codescan.scanner import StaticImageDecodePath
from codescan.schemas import DecodeResponse
from codescan.utils.validators import UploadTypeValidator


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/barcode", tags=["Barcode"])


class BarcodeController:
    """Controller for upload decode operations."""

    def __init__(self, decoder: StaticImageDecodePath):
        self._decoder = decoder
        self._types = UploadTypeValidator(get_settings().allowed_upload_types)

    async def decode_upload(self, upload: UploadFile) -> DecodeResponse:
        """Validate the upload type, then run the static decode path."""
        is_valid, error = self._types.validate(upload.content_type)
        if not is_valid:
            logger.info(f"Rejected upload: {error}")
            raise exceptions.unsupported_file_type(upload.content_type)

        data = await upload.read()
        result = await asyncio.to_thread(self._decoder.decode, data)
        return DecodeResponse.from_result(result)


@router.post("/decode", response_model=DecodeResponse)
async def decode_image(
    barcode_image: UploadFile = File(..., alias="barcodeImage"),
    decoder: StaticImageDecodePath = Depends(get_static_decoder)
):
    """
    Decode an uploaded image.

    QR codes take priority; otherwise the full linear symbology set is tried.
    """
    controller = BarcodeController(decoder)
    return await controller.decode_upload(barcode_image)
