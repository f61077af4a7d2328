"""
==============================================================================
Torch Controller Module
==============================================================================

Toggles the camera flashlight on the active stream.

The capability is queried lazily on the first toggle and cached until the
camera stops, when the state is reset to off/unknown.

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from codescan.core import exceptions
from codescan.scanner.camera import CameraSource, CameraStream


# Module logger
logger = logging.getLogger(__name__)


@dataclass
class TorchState:
    """supported is None until the capability has been queried."""
    supported: Optional[bool] = None
    on: bool = False


class TorchController:
    """
    Torch switch bound to a CameraSource.

    Example:
        >>> torch = TorchController(source)
        >>> torch.toggle(stream)
        True
    """

    def __init__(self, source: CameraSource) -> None:
        self._source = source
        self._state = TorchState()

    @property
    def state(self) -> TorchState:
        return self._state

    def toggle(self, stream: Optional[CameraStream]) -> bool:
        """
        Flip the torch.

        Returns:
            New torch state

        Raises:
            TorchUnsupported: No active stream or no torch on the track
        """
        if stream is None or not stream.active:
            raise exceptions.torch_unsupported()

        if self._state.supported is None:
            self._state.supported = self._source.query_torch_capability(stream)
            logger.debug(f"Torch capability: {self._state.supported}")

        if not self._state.supported:
            raise exceptions.torch_unsupported()

        target = not self._state.on
        self._source.apply_torch(stream, target)
        self._state.on = target

        logger.info(f"🔦 Torch {'on' if target else 'off'}")
        return target

    def reset(self) -> None:
        """Forget capability and switch state; called when the camera stops."""
        self._state = TorchState()
