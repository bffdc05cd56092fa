"""
Worker Settings Configuration
"""

import os
import tempfile
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WorkerSettings(BaseSettings):
    """Render worker settings loaded from environment variables.

    Built once by the process entry point and handed to every component.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Worker identity and scheduling
    worker_id: str = Field(default="fly-gif-worker")
    poll_interval_ms: int = Field(default=5000, gt=0)

    # Job queue
    queue_backend: Literal["http", "database"] = Field(default="http")
    worker_api_url: Optional[str] = Field(default=None)
    worker_secret: Optional[str] = Field(default=None)
    queue_request_timeout_s: float = Field(default=30.0, gt=0)
    database_url: str = Field(default="sqlite:///./data/render_jobs.db")

    # Lease on claimed jobs (0 disables)
    lease_ttl_s: int = Field(default=300, ge=0)
    heartbeat_interval_s: float = Field(default=60.0, gt=0)

    # Object storage
    publisher_backend: Literal["supabase", "local"] = Field(default="supabase")
    supabase_url: Optional[str] = Field(default=None)
    supabase_service_key: Optional[str] = Field(default=None)
    storage_bucket: str = Field(default="renders")
    storage_prefix: str = Field(default="videos")
    static_root: str = Field(default="/var/lib/render-worker/static")
    static_url_prefix: str = Field(default="/static")
    upload_timeout_s: float = Field(default=120.0, gt=0)

    # Media fetch
    download_timeout_s: float = Field(default=30.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)
    user_agent: str = Field(default="MusicScan-Worker/1.0")

    # FFmpeg
    ffmpeg_path: str = Field(default="ffmpeg")
    ffprobe_path: str = Field(default="ffprobe")
    work_dir: str = Field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "render-worker")
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    @model_validator(mode="after")
    def _check_backends(self) -> "WorkerSettings":
        if self.queue_backend == "http":
            if not self.worker_api_url:
                raise ValueError("WORKER_API_URL is required for the http queue backend")
            if not self.worker_secret:
                raise ValueError("WORKER_SECRET is required for the http queue backend")
            self.worker_api_url = self.worker_api_url.rstrip("/")

        if self.publisher_backend == "supabase":
            if not self.supabase_url or not self.supabase_service_key:
                raise ValueError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase publisher"
                )
            self.supabase_url = self.supabase_url.rstrip("/")

        if self.lease_ttl_s and self.heartbeat_interval_s >= self.lease_ttl_s:
            raise ValueError("HEARTBEAT_INTERVAL_S must be shorter than LEASE_TTL_S")

        self.storage_prefix = self.storage_prefix.strip("/")
        return self

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def lease_enabled(self) -> bool:
        return self.lease_ttl_s > 0


def load_settings(**overrides) -> WorkerSettings:
    """
    Build worker settings from the environment

    Args:
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Validated WorkerSettings

    Raises:
        pydantic.ValidationError: If required settings are missing or invalid
    """
    return WorkerSettings(**overrides)
