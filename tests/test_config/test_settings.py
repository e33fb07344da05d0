"""Tests for SyncSettings.from_env()."""

from pathlib import Path

import pytest

from recruit_sync.config import SyncSettings

_ENV_VARS = (
    "RECRUIT_API_URL",
    "RECRUIT_API_TOKEN",
    "RECRUIT_DB_PATH",
    "RECRUIT_PROBE_URL",
    "CONNECTIVITY_POLL_SECONDS",
    "CACHE_STALE_SECONDS",
    "OUTREACH_REFRESH_MINUTES",
    "STREAM_WORD_DELAY_MS",
    "REQUEST_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    def test_defaults(self) -> None:
        settings = SyncSettings.from_env()
        assert settings.api_url == "https://www.xceleraterecruiting.com"
        assert settings.api_token == ""
        assert settings.db_path == Path("data/recruit_sync.db")
        assert settings.connectivity_poll_seconds == 15.0
        assert settings.cache_stale_seconds == 300.0
        assert settings.outreach_refresh_minutes == 15.0
        assert settings.stream_word_delay_ms == 30.0

    def test_reads_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RECRUIT_API_URL", "http://localhost:3000/")
        monkeypatch.setenv("RECRUIT_API_TOKEN", "tok")
        monkeypatch.setenv("RECRUIT_DB_PATH", "/tmp/x.db")
        monkeypatch.setenv("CACHE_STALE_SECONDS", "60")

        settings = SyncSettings.from_env()

        assert settings.api_url == "http://localhost:3000/"
        assert settings.api_token == "tok"
        assert settings.db_path == Path("/tmp/x.db")
        assert settings.cache_stale_seconds == 60.0

    def test_invalid_number_falls_back_to_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONNECTIVITY_POLL_SECONDS", "often")
        assert SyncSettings.from_env().connectivity_poll_seconds == 15.0

    def test_probe_url_defaults_to_health_endpoint(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RECRUIT_API_URL", "http://localhost:3000/")
        assert SyncSettings.from_env().resolved_probe_url == "http://localhost:3000/api/health"

    def test_explicit_probe_url_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RECRUIT_PROBE_URL", "http://probe.test/ping")
        assert SyncSettings.from_env().resolved_probe_url == "http://probe.test/ping"
