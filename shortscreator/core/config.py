"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Shorts Creator Composer", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional log file path (rotated)")

    # ========================================================================
    # Renderer (ffmpeg / ffprobe)
    # ========================================================================
    ffmpeg_binary: str = Field(default="ffmpeg", description="Renderer executable used for composition and concat")
    ffprobe_binary: str = Field(default="ffprobe", description="Probe executable used for duration/dimension lookups")
    probe_timeout_seconds: float = Field(
        default=10.0,
        description="Hard timeout for metadata probing sub-operations (default: 10s)",
    )
    render_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Optional job-level timeout for the main render call (default: none, bounded by the caller)",
    )
    diagnostics_tail_lines: int = Field(
        default=200,
        description="Number of renderer diagnostic lines kept for error reports (default: 200)",
    )

    # ========================================================================
    # Video Output
    # ========================================================================
    video_width: int = Field(
        default=1080,
        description="Video output width in pixels (default: 1080 for vertical format)",
    )
    video_height: int = Field(
        default=1920,
        description="Video output height in pixels (default: 1920 for vertical format)",
    )
    background_seek_randomized: bool = Field(
        default=True,
        description="Start the background at a random offset when it is longer than the narration (default: true)",
    )

    # ========================================================================
    # Subtitle Defaults
    # ========================================================================
    subtitle_font: str = Field(default="Arial", description="Default subtitle font family")
    subtitle_color: str = Field(default="#FFFFFF", description="Default subtitle colour (#RRGGBB)")
    subtitle_position: str = Field(default="bottom", description="Default subtitle position: top, center or bottom")
    subtitle_font_size: int = Field(default=18, description="Subtitle font size in cue-script units (default: 18)")
    subtitle_margin_v: int = Field(default=40, description="Subtitle vertical margin in cue-script units (default: 40)")

    # ========================================================================
    # Title Card
    # ========================================================================
    title_card_width: int = Field(default=750, description="Width of generated story title cards in pixels (default: 750)")
    title_card_font: Optional[str] = Field(
        default=None,
        description="TrueType font for generated title cards (default: first system font found)",
    )

    # ========================================================================
    # Narration Audio
    # ========================================================================
    narration_audio_format: str = Field(
        default="mp3",
        description="Container/extension of combined narration audio (default: mp3)",
    )

    # ========================================================================
    # Parallelism Settings
    # ========================================================================
    max_parallel_api_calls: int = Field(
        default=5,
        description="Maximum number of parallel synthesis calls within a single job (default: 5)",
    )

    # ========================================================================
    # Storage Paths
    # ========================================================================
    temp_dir: str = Field(default="storage/tmp", description="Directory for per-job temporary artifacts")
    output_dir: str = Field(default="storage/videos", description="Directory for final rendered videos")
    fonts_dir: Optional[str] = Field(default=None, description="Directory with fonts for subtitle burn-in")

    @property
    def temp_path(self) -> Path:
        """Temporary artifact directory as a Path."""
        return Path(self.temp_dir)

    @property
    def fonts_path(self) -> Optional[Path]:
        """Fonts directory as a Path, if configured."""
        return Path(self.fonts_dir) if self.fonts_dir else None


# Global settings instance
settings = Settings()
