"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Drives a live camera scan over a WebSocket connection.

Protocol:
---------
Client → server:
    {"type": "start", "facing": "environment" | "user"}
    {"type": "stop"}
    {"type": "switch_facing"}
    {"type": "torch"}

Server → client:
    {"type": "status", "scanning": bool, "facing": str, "torch": bool}
    {"type": "detection", "kind": "barcode" | "qrcode", "text": str}
    {"type": "torch", "on": bool}
    {"type": "error", "code": str, "message": str}

One ScanController per connection; disconnecting releases the camera.

==============================================================================
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from codescan.core.dependencies import (
    get_camera_source,
    get_linear_engine,
    get_matrix_engine,
)
from codescan.core.exceptions import ErrorKind
from codescan.scanner import (
    CameraSource,
    CodeKind,
    LinearDecodeEngine,
    MatrixDecodeEngine,
    ScanController,
)
from codescan.schemas import (
    DetectionMessage,
    ErrorMessage,
    ScanCommand,
    StatusMessage,
    TorchMessage,
)


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScannerWebSocketHandler:
    """
    Handler for live scan WebSocket connections.

    Controller callbacks run on the event loop and only enqueue messages;
    a sender task drains the queue to the socket.
    """

    def __init__(
        self,
        websocket: WebSocket,
        camera: CameraSource,
        linear_engine: LinearDecodeEngine,
        matrix_engine: MatrixDecodeEngine
    ):
        self._websocket = websocket
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._controller = ScanController(
            on_barcode_detected=self._on_detected,
            on_error=self._on_error,
            camera=camera,
            linear_engine=linear_engine,
            matrix_engine=matrix_engine,
        )

    # =========================================================================
    # CONTROLLER CALLBACKS
    # =========================================================================

    def _on_detected(self, text: str, kind: CodeKind) -> None:
        logger.info(f"📤 Detection ({kind.value}): {text}")
        self._outbox.put_nowait(DetectionMessage(kind=kind, text=text))

    def _on_error(self, kind: ErrorKind, message: str) -> None:
        self._outbox.put_nowait(ErrorMessage(code=kind.value.upper(), message=message))

    def _queue_status(self) -> None:
        self._outbox.put_nowait(StatusMessage(
            scanning=self._controller.is_scanning,
            facing=self._controller.facing,
            torch=self._controller.torch_on,
        ))

    async def _drain_outbox(self) -> None:
        while True:
            message = await self._outbox.get()
            await self._websocket.send_json(message.model_dump(mode="json"))

    # =========================================================================
    # COMMANDS
    # =========================================================================

    async def handle_command(self, data: dict) -> None:
        """Dispatch one client message."""
        try:
            command = ScanCommand.model_validate(data)
        except ValidationError:
            self._outbox.put_nowait(
                ErrorMessage(code="INVALID_COMMAND", message=f"Unknown command: {data!r}")
            )
            return

        if command.type == "start":
            await self._controller.start_camera_scan(command.facing)
        elif command.type == "stop":
            await self._controller.stop_camera_scan()
        elif command.type == "switch_facing":
            await self._controller.switch_facing()
        elif command.type == "torch":
            on = self._controller.toggle_torch()
            if on is not None:
                self._outbox.put_nowait(TorchMessage(on=on))
            return

        self._queue_status()

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scanner WebSocket connected")

        sender = asyncio.create_task(self._drain_outbox())

        try:
            while True:
                data = await self._websocket.receive_json()
                await self.handle_command(data)

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except ValueError as e:
            logger.error(f"WebSocket protocol error: {e}")
            await self._websocket.close(code=1003)
        finally:
            await self._controller.close()
            sender.cancel()
            logger.info("✅ Scanner WebSocket closed")


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    camera: CameraSource = Depends(get_camera_source),
    linear_engine: LinearDecodeEngine = Depends(get_linear_engine),
    matrix_engine: MatrixDecodeEngine = Depends(get_matrix_engine)
):
    """Live barcode/QR scanning controlled over a WebSocket."""
    handler = ScannerWebSocketHandler(websocket, camera, linear_engine, matrix_engine)
    await handler.run()
