"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the scanning service using Pydantic Settings.

A single cached Settings instance is shared by the HTTP layer and the
scanner components.

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

Groups:
-------
- Application / server
- Camera acquisition constraints
- Live linear decoder (region of interest, symbologies, workers)
- Upload decoding (full symbology set, input size, accepted types)
- QR poll loop pacing and optional cutoff
- Barcode confirmation voting and validation

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


# Linear symbologies understood by the default decoder backend
KNOWN_SYMBOLOGIES = frozenset({
    "code128",
    "code39",
    "code93",
    "codabar",
    "ean13",
    "ean8",
    "upca",
    "upce",
    "i25",
})


class Settings(BaseSettings):
    """
    Service settings loaded from environment variables.

    Attributes:
        app_name: Display name for the service
        app_env: Environment mode (development/staging/production)
        debug: Enable debug logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        camera_min_width: Minimum requested frame width
        camera_min_height: Minimum requested frame height
        default_facing: Facing mode used when a scan starts without one
        environment_camera_index: Device index of the rear camera
        user_camera_index: Device index of the front camera
        roi_fraction: Width/height share of the centred scan region
        live_symbologies: Symbologies the live decoder accepts
        num_workers: Decode worker threads for the live decoder
        scan_frequency: Live decoder scans per second
        upload_symbologies: Symbologies tried on uploaded images
        upload_input_size: Longest side of the upload buffer for linear decode
        allowed_upload_types: Accepted upload MIME types
        qr_tick_interval: Seconds between QR poll ticks
        qr_max_ticks: Tick cutoff for the QR loop (0 = unbounded)
        qr_max_duration_seconds: Time cutoff for the QR loop (0 = unbounded)
        barcode_vote_window: Recent live candidates kept for voting
        barcode_vote_threshold: Agreeing candidates needed to accept
        barcode_max_length: Longest accepted barcode text
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Code Scanner Service",
        description="Display name for the service"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(default="0.0.0.0", description="Server bind address")

    port: int = Field(default=8000, ge=1, le=65535, description="Server port number")

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # CAMERA SETTINGS
    # =========================================================================
    camera_min_width: int = Field(default=800, ge=1, description="Minimum frame width")

    camera_min_height: int = Field(default=600, ge=1, description="Minimum frame height")

    default_facing: str = Field(
        default="environment",
        description="Facing mode used when none is given: environment or user"
    )

    environment_camera_index: int = Field(
        default=0,
        ge=0,
        description="Device index of the rear (environment) camera"
    )

    user_camera_index: int = Field(
        default=1,
        ge=0,
        description="Device index of the front (user) camera"
    )

    # =========================================================================
    # LIVE LINEAR DECODER SETTINGS
    # =========================================================================
    roi_fraction: float = Field(
        default=0.6,
        gt=0.0,
        le=1.0,
        description="Share of frame width/height scanned by the live decoder"
    )

    live_symbologies: List[str] = Field(
        default=["code128"],
        description="Symbologies accepted in live mode"
    )

    num_workers: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Decode worker threads for the live decoder"
    )

    scan_frequency: int = Field(
        default=20,
        ge=1,
        le=60,
        description="Live decoder scans per second"
    )

    # =========================================================================
    # UPLOAD SETTINGS
    # =========================================================================
    upload_symbologies: List[str] = Field(
        default=["ean13", "upca", "upce", "code128", "code39", "codabar"],
        description="Symbologies tried on uploaded images"
    )

    upload_input_size: int = Field(
        default=800,
        ge=64,
        le=4096,
        description="Longest side of the buffer used for linear upload decode"
    )

    allowed_upload_types: List[str] = Field(
        default=["image/png", "image/jpeg", "image/webp"],
        description="Accepted upload MIME types"
    )

    # =========================================================================
    # QR POLL LOOP SETTINGS
    # =========================================================================
    qr_tick_interval: float = Field(
        default=1 / 60,
        ge=0.0,
        le=1.0,
        description="Seconds between QR poll ticks"
    )

    qr_max_ticks: int = Field(
        default=0,
        ge=0,
        description="Stop the QR loop after this many ticks (0 = unbounded)"
    )

    qr_max_duration_seconds: float = Field(
        default=0.0,
        ge=0.0,
        description="Stop the QR loop after this many seconds (0 = unbounded)"
    )

    # =========================================================================
    # BARCODE CONFIRMATION SETTINGS
    # =========================================================================
    barcode_vote_window: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Recent live candidates kept for majority voting"
    )

    barcode_vote_threshold: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Agreeing candidates required to accept a live barcode"
    )

    barcode_max_length: int = Field(
        default=50,
        ge=1,
        le=200,
        description="Longest accepted barcode text"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """Normalize the environment name, falling back to development."""
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("default_facing")
    @classmethod
    def validate_default_facing(cls, value: str) -> str:
        """Accept only the two facing modes."""
        normalized = value.lower().strip()
        if normalized not in {"environment", "user"}:
            raise ValueError(
                f"Unsupported facing mode: {value}. Supported: environment, user"
            )
        return normalized

    @field_validator("live_symbologies", "upload_symbologies")
    @classmethod
    def validate_symbologies(cls, value: List[str]) -> List[str]:
        """
        Normalize symbology names and reject unknown ones.

        Accepts reader-style names such as ``code_128_reader`` as well as
        plain names such as ``code128``.

        Raises:
            ValueError: If a symbology is unknown or the list is empty
        """
        normalized = []
        for name in value:
            key = name.lower().strip().replace("_reader", "").replace("_", "").replace("-", "")
            if key == "ean":
                key = "ean13"
            elif key == "upc":
                key = "upca"
            if key not in KNOWN_SYMBOLOGIES:
                raise ValueError(
                    f"Unsupported symbology: {name}. "
                    f"Supported: {', '.join(sorted(KNOWN_SYMBOLOGIES))}"
                )
            if key not in normalized:
                normalized.append(key)

        if not normalized:
            raise ValueError("At least one symbology is required")

        return normalized

    @field_validator("allowed_upload_types")
    @classmethod
    def validate_upload_types(cls, value: List[str]) -> List[str]:
        """Lowercase MIME types."""
        return [v.lower().strip() for v in value if v.strip()]

    @model_validator(mode="after")
    def validate_vote_threshold(self) -> "Settings":
        """The vote threshold cannot exceed the window it is counted in."""
        if self.barcode_vote_threshold > self.barcode_vote_window:
            raise ValueError(
                f"barcode_vote_threshold ({self.barcode_vote_threshold}) "
                f"exceeds barcode_vote_window ({self.barcode_vote_window})"
            )
        return self

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from JSON string to list."""
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    def camera_index_for(self, facing: str) -> int:
        """Device index configured for a facing mode."""
        if facing == "user":
            return self.user_camera_index
        return self.environment_camera_index

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"debug={self.debug})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
