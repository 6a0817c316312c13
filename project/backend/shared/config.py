"""
Configuration management.

Centralized environment variable management and validation.
"""

from pathlib import Path
from typing import List, Literal, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError

# project/backend
BACKEND_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # LOG_DIR: directory for the rotating JSON log file, empty to log to stdout only
    log_dir: Optional[str] = "logs"

    # Filesystem layout
    # APP_ROOT: deployment root searched for a bundled ffmpeg (ffmpeg/bin, bin)
    app_root: Path = BACKEND_ROOT
    # WORK_ROOT: parent of the per-job working directories (job_<uuid>)
    work_root: Path = BACKEND_ROOT / "temp"
    output_dir: Path = BACKEND_ROOT / "output"
    music_dir: Path = BACKEND_ROOT / "music"

    # FFmpeg configuration
    # FFMPEG_PATH / FFPROBE_PATH: explicit binaries, skip bundled/PATH lookup when set
    ffmpeg_path: Optional[str] = None
    ffprobe_path: Optional[str] = None
    # FFMPEG_TIMEOUT: per-invocation deadline in seconds, 0 disables the deadline
    ffmpeg_timeout: float = 300.0

    # Process lifecycle
    process_sweep_interval: float = 300.0  # 5 minutes

    # Upload limits
    max_upload_images: int = 500

    # CORS
    cors_origins: List[str] = ["*"]

    @field_validator("ffmpeg_timeout")
    @classmethod
    def validate_ffmpeg_timeout(cls, v: float) -> float:
        """Validate FFmpeg timeout (0 = no deadline)."""
        if v < 0:
            raise ConfigError("FFMPEG_TIMEOUT must be >= 0")
        return v

    @field_validator("process_sweep_interval")
    @classmethod
    def validate_sweep_interval(cls, v: float) -> float:
        """Validate sweep interval."""
        if v <= 0:
            raise ConfigError("PROCESS_SWEEP_INTERVAL must be greater than 0")
        return v

    @field_validator("max_upload_images")
    @classmethod
    def validate_max_upload_images(cls, v: int) -> int:
        """Validate upload limit."""
        if v < 1:
            raise ConfigError("MAX_UPLOAD_IMAGES must be at least 1")
        return v

    @property
    def deadline(self) -> Optional[float]:
        """FFmpeg deadline in seconds, or None when disabled."""
        return self.ffmpeg_timeout or None


# Singleton instance
try:
    settings = Settings()
except Exception as e:
    # Re-raise as ConfigError for consistency
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
