"""Runtime settings, read from environment variables (``.env`` is loaded by the entry points)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_API_URL = "https://www.xceleraterecruiting.com"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s %r; defaulting to %s", name, raw, default)
        return default


@dataclass
class SyncSettings:
    """Controls where the layer talks to and how eagerly it refreshes."""

    api_url: str = _DEFAULT_API_URL
    api_token: str = ""
    db_path: Path = field(default_factory=lambda: Path("data/recruit_sync.db"))
    probe_url: str = ""
    connectivity_poll_seconds: float = 15.0
    cache_stale_seconds: float = 300.0
    outreach_refresh_minutes: float = 15.0
    stream_word_delay_ms: float = 30.0
    request_timeout_seconds: float = 20.0

    @property
    def resolved_probe_url(self) -> str:
        """The probe target, defaulting to the backend's health endpoint."""
        return self.probe_url or f"{self.api_url.rstrip('/')}/api/health"

    @classmethod
    def from_env(cls) -> SyncSettings:
        """Build SyncSettings from environment variables."""
        return cls(
            api_url=os.environ.get("RECRUIT_API_URL", _DEFAULT_API_URL),
            api_token=os.environ.get("RECRUIT_API_TOKEN", ""),
            db_path=Path(os.environ.get("RECRUIT_DB_PATH", "data/recruit_sync.db")),
            probe_url=os.environ.get("RECRUIT_PROBE_URL", ""),
            connectivity_poll_seconds=_env_float("CONNECTIVITY_POLL_SECONDS", 15.0),
            cache_stale_seconds=_env_float("CACHE_STALE_SECONDS", 300.0),
            outreach_refresh_minutes=_env_float("OUTREACH_REFRESH_MINUTES", 15.0),
            stream_word_delay_ms=_env_float("STREAM_WORD_DELAY_MS", 30.0),
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", 20.0),
        )
