"""Configuration helpers for the avatar studio service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


@dataclass
class Settings:
    """Centralized environment-driven configuration.

    Only the HeyGen key is a secret; it stays on the server and is never echoed
    back to clients. The polling knobs bound how long a single generation may
    be observed (interval x attempts).
    """

    heygen_api_key: Optional[str] = os.getenv("HEYGEN_KEY")
    heygen_base_url: str = os.getenv("HEYGEN_BASE_URL", "https://api.heygen.com")
    heygen_timeout_seconds: float = float(os.getenv("HEYGEN_TIMEOUT_SECONDS", "30"))
    poll_interval_seconds: float = float(os.getenv("VIDEO_POLL_INTERVAL_SECONDS", "3"))
    poll_max_attempts: int = int(os.getenv("VIDEO_POLL_MAX_ATTEMPTS", "100"))
    download_dir: str = os.getenv("VIDEO_DOWNLOAD_DIR", "downloads")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""

    return Settings()


settings = get_settings()
