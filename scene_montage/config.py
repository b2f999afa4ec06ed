"""
Configuration for the scene montage service.
Holds the Settings object passed to every component and the fixed constants
of the composition pipeline.
"""

import os
import tempfile
from pathlib import Path
from typing import List, Literal, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
MAX_SUBTITLE_LINE_LENGTH = 45
MAX_SUBTITLE_LINES = 2
RATIO_TOLERANCE = 0.1
FALLBACK_DIMENSIONS = (1080, 1920)
STATUS_SUFFIX = ".json"


class Settings(BaseSettings):
    """Service settings, read from MONTAGE_* environment variables or a .env file."""

    model_config = SettingsConfigDict(env_prefix="MONTAGE_", env_file=".env", extra="ignore")

    # --- Blob storage ---
    storage_backend: Literal["local", "http"] = "local"
    container: str = "videos"
    container_url: Optional[str] = None
    sas_token: Optional[str] = None
    local_storage_dir: Path = Field(default_factory=lambda: Path(os.getcwd()) / "storage")

    # --- Workspaces and job ledger ---
    workspace_root: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "scene-montage")
    database_url: str = "sqlite:///./jobs.db"

    # --- Dispatch ---
    dispatch_mode: Literal["thread", "celery"] = "thread"
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_backend_url: str = "redis://localhost:6379/0"
    job_workers: int = Field(default=2, ge=1)

    # --- External tools ---
    ffmpeg_cmd: str = "ffmpeg"
    ffprobe_cmd: str = "ffprobe"

    # --- Concurrency and timeouts (seconds) ---
    download_workers: int = Field(default=8, ge=1)
    render_workers: int = Field(default_factory=lambda: max(1, (os.cpu_count() or 2) // 2), ge=1)
    download_timeout: float = 120.0
    probe_timeout: float = 30.0
    clip_timeout: float = 600.0
    concat_timeout: float = 300.0
    mix_timeout: float = 600.0
    subtitle_timeout: float = 900.0
    upload_timeout: float = 300.0

    # --- Composition policy ---
    music_volume: float = 0.2
    mix_policy: Literal["first", "longest"] = "first"
    default_format_policy: Literal["warn", "abort", "ignore"] = "warn"
    allowed_extensions: Tuple[str, ...] = (".mp4", ".mov", ".mkv")
    max_name_length: int = 100

    # --- Encoding ---
    frame_rate: int = 30
    x264_preset: str = "veryfast"
    x264_crf: int = 23
    audio_bitrate: str = "192k"
    audio_sample_rate: int = 44100

    # --- Subtitle style ---
    subtitle_font_size: int = 18
    subtitle_margin_v: int = 40

    # --- HTTP ---
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    host: str = "127.0.0.1"
    port: int = 8000
