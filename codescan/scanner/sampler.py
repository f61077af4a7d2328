"""
==============================================================================
Frame Sampler Module
==============================================================================

Captures the current frame of a live stream into an off-screen buffer sized
to the stream's native resolution.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional

import cv2
import numpy as np

from codescan.scanner.camera import CameraStream
from codescan.scanner.models import FrameBuffer


# Module logger
logger = logging.getLogger(__name__)


class FrameSampler:
    """
    Draws the current stream frame into a reusable buffer.

    The buffer is reallocated only when the native dimensions change.
    """

    def __init__(self) -> None:
        self._buffer: Optional[np.ndarray] = None

    def capture(self, stream: CameraStream) -> Optional[FrameBuffer]:
        """
        Capture the current frame.

        Returns:
            FrameBuffer at native size, or None while the stream has no frame
        """
        width, height = stream.frame_size()
        if width <= 0 or height <= 0:
            return None

        frame = stream.read_frame()
        if frame is None:
            return None

        if frame.shape[1] != width or frame.shape[0] != height:
            frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)

        if self._buffer is None or self._buffer.shape != frame.shape:
            logger.debug(f"Allocating {width}x{height} sample buffer")
            self._buffer = np.empty_like(frame)

        np.copyto(self._buffer, frame)
        return FrameBuffer(pixels=self._buffer, width=width, height=height)
