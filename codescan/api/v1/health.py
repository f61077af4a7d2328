"""
==============================================================================
Health Check Endpoints
==============================================================================

Service status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from codescan.config import get_settings
from codescan.core.dependencies import get_camera_source
from codescan.scanner import CameraSource


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, camera: CameraSource):
        self._camera = camera
        self._settings = get_settings()

    def check_camera(self) -> dict:
        """Report whether a camera session is currently held."""
        session = self._camera.session
        if session is not None and session.active:
            return {"status": "in_use", "facing": session.facing.value}
        return {"status": "idle", "facing": None}

    def get_health(self) -> dict:
        """Get full health status."""
        return {
            "status": "healthy",
            "components": {
                "api": "healthy",
                "camera": self.check_camera(),
            },
            "details": {
                "live_symbologies": self._settings.live_symbologies,
                "upload_symbologies": self._settings.upload_symbologies,
            }
        }


@router.get("")
async def health_check(camera: CameraSource = Depends(get_camera_source)):
    """
    Health check endpoint.

    Returns service status including camera usage.
    """
    controller = HealthController(camera)
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
