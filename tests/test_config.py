"""
Tests for src/config.py - settings layering and API key checks.
"""

import pytest

from src.config import Settings, load_settings, require_api_key
from src.errors import ConfigurationError


def test_defaults():
    settings = load_settings(environ={})

    assert settings == Settings()
    assert settings.cap == 50
    assert settings.concurrency == 3
    assert settings.timeout_seconds == 300.0


def test_environment_overrides_defaults():
    settings = load_settings(environ={"CIRCULARID_CONCURRENCY": "5", "CIRCULARID_TEMPERATURE": "0"})

    assert settings.concurrency == 5
    assert settings.temperature == 0.0


def test_yaml_overrides_environment(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("concurrency: 4\nlanguage: FR\ntimeout_seconds: null\n", encoding="utf-8")

    settings = load_settings(path, environ={"CIRCULARID_CONCURRENCY": "5"})

    assert settings.concurrency == 4
    assert settings.language == "fr"
    assert settings.timeout_seconds is None


def test_explicit_overrides_win(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("cap: 20\n", encoding="utf-8")

    settings = load_settings(path, overrides={"cap": 7, "mode": None}, environ={})

    assert settings.cap == 7
    assert settings.mode == "mock"


@pytest.mark.parametrize(
    "environ",
    [
        {"CIRCULARID_CONCURRENCY": "0"},
        {"CIRCULARID_CAP": "many"},
        {"CIRCULARID_PROVIDER": "anthropic"},
        {"CIRCULARID_LANGUAGE": "de"},
        {"CIRCULARID_TIMEOUT_SECONDS": "-1"},
    ],
)
def test_invalid_values_rejected(environ):
    with pytest.raises(ConfigurationError):
        load_settings(environ=environ)


def test_unknown_yaml_key_rejected(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("workers: 4\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="workers"):
        load_settings(path, environ={})


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings(path, environ={})


class TestRequireApiKey:
    def test_present(self):
        assert require_api_key("gemini", {"GEMINI_API_KEY": "g-123"}) == "g-123"

    def test_missing(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            require_api_key("openai", {})

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            require_api_key("anthropic", {})
