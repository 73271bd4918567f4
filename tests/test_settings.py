"""Tests for environment settings."""

from pathlib import Path

import pytest

from termsim.config import Settings

ENV_VARS = (
    "TERMSIM_BACKEND_URL",
    "TERMSIM_API_KEY",
    "TERMSIM_STORE_PATH",
    "TERMSIM_THEME",
    "TERMSIM_FRAME_MS",
    "TERMSIM_SCAN_MIN_MS",
    "TERMSIM_SCAN_ASSUMED_MAX_MS",
    "TERMSIM_SCAN_TIMEOUT_MS",
    "TERMSIM_HELP_THRESHOLD",
    "TERMSIM_HOSTNAME",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for Settings.from_env."""

    def test_defaults(self) -> None:
        settings = Settings.from_env()

        assert settings.backend_url is None
        assert settings.frame_ms == 80
        assert settings.scan_min_ms == 1500
        assert settings.scan_timeout_ms is None
        assert settings.help_threshold == 3
        assert settings.store_path.name == "session.json"

    def test_overrides(self, monkeypatch, tmp_path) -> None:
        monkeypatch.setenv("TERMSIM_BACKEND_URL", "http://localhost:8787/api")
        monkeypatch.setenv("TERMSIM_STORE_PATH", str(tmp_path / "s.json"))
        monkeypatch.setenv("TERMSIM_THEME", "nord")
        monkeypatch.setenv("TERMSIM_SCAN_TIMEOUT_MS", "2500")
        monkeypatch.setenv("TERMSIM_HELP_THRESHOLD", "5")
        monkeypatch.setenv("TERMSIM_HOSTNAME", "bastion")

        settings = Settings.from_env()

        assert settings.backend_url == "http://localhost:8787/api"
        assert settings.store_path == Path(tmp_path / "s.json")
        assert settings.theme == "nord"
        assert settings.scan_timeout_ms == 2500
        assert settings.help_threshold == 5
        assert settings.hostname == "bastion"

    @pytest.mark.parametrize("raw", ["abc", "-20", "  "])
    def test_invalid_numbers_use_defaults(self, monkeypatch, raw) -> None:
        monkeypatch.setenv("TERMSIM_FRAME_MS", raw)
        monkeypatch.setenv("TERMSIM_SCAN_TIMEOUT_MS", raw)

        settings = Settings.from_env()

        assert settings.frame_ms == 80
        assert settings.scan_timeout_ms is None
