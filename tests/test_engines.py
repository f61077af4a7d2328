"""
==============================================================================
Decode Engine Tests
==============================================================================

Tests for the default OpenCV and pyzbar backends.

==============================================================================
"""

import asyncio

import numpy as np
import pytest
from pyzbar.pyzbar import ZBarSymbol

from codescan.scanner import (
    CameraSource,
    FacingMode,
    FrameBuffer,
    LinearEngineConfig,
    OpenCVMatrixEngine,
    PyzbarLinearEngine,
)
from codescan.scanner.engines import crop_roi


class TestCropRoi:
    """Tests for the centred region of interest."""

    def test_sixty_percent_region(self):
        frame = np.zeros((600, 1000, 3), np.uint8)
        region, x_offset, y_offset = crop_roi(frame, 0.6)

        assert (x_offset, y_offset) == (200, 120)
        assert region.shape == (360, 600, 3)

    def test_full_frame(self):
        frame = np.zeros((100, 200), np.uint8)
        region, x_offset, y_offset = crop_roi(frame, 1.0)

        assert (x_offset, y_offset) == (0, 0)
        assert region.shape == (100, 200)


class TestOpenCVMatrixEngine:
    """Tests for the QR backend."""

    def test_decodes_qr(self, qr_image: np.ndarray):
        height, width = qr_image.shape[:2]
        assert OpenCVMatrixEngine().decode(qr_image, width, height) == "https://example.com"

    def test_blank_frame(self):
        blank = np.full((240, 320, 3), 255, np.uint8)
        assert OpenCVMatrixEngine().decode(blank, 320, 240) is None

    def test_dimension_mismatch(self):
        blank = np.full((240, 320, 3), 255, np.uint8)
        with pytest.raises(ValueError):
            OpenCVMatrixEngine().decode(blank, 640, 480)


class TestPyzbarLinearEngine:
    """Tests for the linear backend."""

    def test_symbol_mapping(self):
        symbols = PyzbarLinearEngine.zbar_symbols(["code128", "ean13", "bogus"])
        assert symbols == [ZBarSymbol.CODE128, ZBarSymbol.EAN13]

    def test_decode_single_blank(self):
        buffer = FrameBuffer.from_array(np.full((200, 300, 3), 255, np.uint8))
        assert PyzbarLinearEngine().decode_all(buffer, ["code128", "ean13"]) == []
        assert PyzbarLinearEngine().decode_single(buffer, ["code128", "ean13"]) is None

    def test_rebinding_replaces_handler(self):
        engine = PyzbarLinearEngine()
        first, second = [], []

        engine.on_detected(first.append)
        engine.on_detected(second.append)

        assert engine._handler == second.append
        engine.off_detected()
        assert engine._handler is None

    @pytest.mark.asyncio
    async def test_live_start_stop(self, camera: CameraSource):
        """Test the sampling loop runs on a blank stream and stops cleanly."""
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        seen = []
        engine = PyzbarLinearEngine(LinearEngineConfig(num_workers=2, frequency=50))
        engine.on_detected(seen.append)

        engine.start(stream)
        assert engine.running
        with pytest.raises(RuntimeError):
            engine.start(stream)

        await asyncio.sleep(0.1)
        engine.stop()
        engine.stop()
        await asyncio.sleep(0.01)

        assert not engine.running
        assert seen == []
        assert engine._handler is None

    @pytest.mark.asyncio
    async def test_worker_error_stops_engine(self, camera: CameraSource):
        """Test a crashing region decode ends live mode instead of hanging."""
        stream = await camera.acquire(FacingMode.ENVIRONMENT)
        engine = PyzbarLinearEngine(LinearEngineConfig(num_workers=1, frequency=50))

        def broken_scan(frame, symbols):
            raise RuntimeError("cvtColor failed")

        engine._scan_region = broken_scan
        engine.on_detected(lambda d: None)
        engine.start(stream)

        for _ in range(50):
            await asyncio.sleep(0.01)
            if not engine.running:
                break

        assert not engine.running
        assert engine._handler is None
        assert engine._executor is None
