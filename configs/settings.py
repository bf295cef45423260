"""
Centralized configuration — loaded once at process startup.

Why a single settings module?
  - The collector, the probe and the API all read the same env vars.
  - Pydantic validates types at import time so we fail fast on bad config.
  - No scattered os.getenv() calls across the codebase.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Immutable, validated application settings from environment."""

    app_name: str = Field(default="podmeter")

    # ── API ─────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)

    # ── Logging ─────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render logs as JSON lines")

    # ── Sample window ───────────────────────────────────────
    window_size: int = Field(default=1000, ge=1, description="Most recent observations kept for percentiles")
    simulated_work_ms: float = Field(default=20.0, ge=0.0, description="Sleep inside the measured / handler")

    # ── Sidecar probe ───────────────────────────────────────
    sidecar_probe_enabled: bool = Field(default=True, description="TCP-probe the local sidecar admin port")
    sidecar_probe_host: str = Field(default="127.0.0.1")
    sidecar_probe_port: int = Field(default=15000, description="Envoy admin port inside an Istio pod")
    sidecar_probe_timeout_ms: float = Field(default=50.0, gt=0.0)
    sidecar_probe_cooldown_seconds: float = Field(default=30.0, ge=0.0)

    # ── Host facts ──────────────────────────────────────────
    disk_path: str = Field(default="/", description="Filesystem reported in disk_* stats")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton accessor — parsed once and cached for the process lifetime.
        from configs.settings import get_settings
        cfg = get_settings()
    """
    return Settings()
