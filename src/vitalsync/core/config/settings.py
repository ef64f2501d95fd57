"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """VitalSync server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; this server holds health data and has no auth layer.
    vitalsync_host: str = "127.0.0.1"
    vitalsync_port: int = 8001
    vitalsync_log_level: str = "info"
    # Must be set true to bind a non-loopback host.
    vitalsync_allow_insecure_bind: bool = False

    # Storage. An empty key runs the server without persistence.
    db_path: str = "~/.vitalsync/health.db"
    encryption_key: str = ""

    # Platform adapters
    adapter_timeout_seconds: float = 10.0
    fitbit_api_base_url: str = "https://api.fitbit.com"
    google_fit_api_base_url: str = "https://www.googleapis.com/fitness/v1"
    platform_priority: list[str] = ["apple-health", "fitbit", "google-fit", "manual"]

    # Insights
    trend_window: int = 7
    trend_threshold_pct: float = 5.0
    history_limit: int = 60


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
