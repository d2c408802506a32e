"""
Console Settings

Environment-driven settings for the telemetry console. Every value can be
overridden with a ``DASHBOARD_<NAME>`` environment variable.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

ENV_PREFIX = "DASHBOARD_"


class Settings(BaseModel):
    """Runtime settings for the console telemetry core."""

    # Backend
    BASE_URL: str = Field("http://localhost:8080", description="Backend base URL")
    WS_PATH: str = Field("/ws/metrics", description="Push channel path")
    HTTP_TIMEOUT_SECONDS: float = Field(10.0, description="REST request timeout")

    # Transport timing
    POLL_INTERVAL_SECONDS: float = Field(2.0, description="Fallback poll period")
    RECONNECT_DELAY_SECONDS: float = Field(
        3.0, description="Delay before reconnecting the push channel"
    )
    PROGRESS_GRACE_SECONDS: float = Field(
        3.0, description="Delay before hiding the progress indicator"
    )

    # Store bounds
    SERIES_CAPACITY: int = Field(60, description="Points kept per series")
    LOG_HISTORY_LIMIT: int = Field(1000, description="Entries kept for the viewer")
    LOG_TAIL_LIMIT: int = Field(100, description="Entries kept in the live tail")
    INITIAL_LOG_LIMIT: int = Field(100, description="Logs fetched on startup")
    HISTORY_POINTS: int = Field(60, description="Throughput points backfilled")

    # Logging
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_FORMAT: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log record format",
    )
    LOG_FILE: Optional[str] = Field(None, description="Optional log file path")
    APP_DEBUG: bool = Field(False, description="Include debug detail in errors")

    @property
    def ws_url(self) -> str:
        base = self.BASE_URL.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        return base + self.WS_PATH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``DASHBOARD_*`` environment variables."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                continue
            values[name] = raw
        return cls(**values)


def configure_logging(cfg: Settings) -> None:
    """Configure root logging for console processes."""
    logging.basicConfig(
        level=getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO),
        format=cfg.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(cfg.LOG_FILE) if cfg.LOG_FILE else logging.NullHandler(),
        ],
    )

    # Per-frame and per-request chatter from the transport libraries.
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


settings = Settings.from_env()
