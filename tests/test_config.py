"""Tests for the settings layer."""

from __future__ import annotations

import pytest

from src.core.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("WEATHER_TIMEOUT_SECONDS", "PYTHON_TIMEOUT_SECONDS", "PYTHON_MAX_OUTPUT_BYTES"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.weather_timeout_seconds == 8.0
        assert settings.python_timeout_seconds == 10.0
        assert settings.python_max_output_bytes == 1024 * 1024

    def test_only_used_options_are_declared(self) -> None:
        assert "debug" not in Settings.model_fields

    def test_llm_configured(self) -> None:
        assert Settings(_env_file=None, OPENROUTER_API_KEY=None, GROQ_API_KEY="gsk-test").llm_configured
        assert not Settings(_env_file=None, OPENROUTER_API_KEY=None, GROQ_API_KEY=None).llm_configured
