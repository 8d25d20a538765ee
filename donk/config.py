"""Configuration management for the Donk server."""

import os
from pathlib import Path
from typing import Optional

from PIL import Image
from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    """Application-level configuration."""

    # Directories
    data_dir: Path = Field(
        default=Path.cwd() / "data",
        description="Root directory of the blob store",
    )
    default_source_image: Path = Field(
        default=Path("assets") / "paper4.jpg",
        description="Source image used when a create request names none",
    )

    # Grid defaults
    default_step_count_x: int = Field(default=6, ge=1, description="Default grid columns")
    default_step_count_y: int = Field(default=6, ge=1, description="Default grid rows")

    # Encoding
    composite_quality: int = Field(default=90, ge=1, le=100, description="JPEG quality of composites")
    background_quality: int = Field(default=100, ge=1, le=100, description="JPEG quality of session backgrounds")
    max_image_pixels: Optional[int] = Field(
        default=None,
        ge=1,
        description="Decoder pixel limit for source images and edits (Pillow default if None)",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address for `donk serve`")
    port: int = Field(default=8000, description="Port for `donk serve`")

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration from environment and defaults."""
        return cls(
            data_dir=Path(os.environ.get("DONK_DATA_DIR", str(cls.model_fields["data_dir"].default))),
            default_source_image=Path(
                os.environ.get(
                    "DONK_DEFAULT_SOURCE_IMAGE",
                    str(cls.model_fields["default_source_image"].default),
                )
            ),
            host=os.environ.get("DONK_HOST", cls.model_fields["host"].default),
            port=int(os.environ.get("DONK_PORT", cls.model_fields["port"].default)),
            max_image_pixels=_optional_int(os.environ.get("DONK_MAX_IMAGE_PIXELS")),
        )

    def ensure_directories(self) -> None:
        """Create necessary directories."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def apply_image_limits(self) -> None:
        """Raise or lower Pillow's decompression-bomb limit for large canvases."""
        if self.max_image_pixels is not None:
            Image.MAX_IMAGE_PIXELS = self.max_image_pixels


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create global configuration."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config
