"""Environment-based configuration for TensorCanvas."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline settings loaded from TENSORCANVAS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TENSORCANVAS_",
        case_sensitive=False,
    )

    # Profile selection ("auto" infers the output range from the tensor)
    profile: str = "style_transfer"
    output_profile: str = "auto"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=1, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)

    # Logging
    log_level: str = "INFO"


def get_settings() -> Settings:
    """Create and return pipeline settings."""
    return Settings()
