from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from src.errors import ConfigurationError

PROVIDERS = ("openai", "gemini")
MODES = ("mock", "live")
LANGUAGES = ("en", "fr")

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

ENV_PREFIX = "CIRCULARID_"


@dataclass(frozen=True)
class Settings:
    mode: str = "mock"
    provider: str = "openai"
    cap: int = 50
    concurrency: int = 3
    timeout_seconds: Optional[float] = 300.0
    max_output_tokens: int = 4096
    temperature: float = 0.2
    language: str = "en"
    blocker_display_limit: int = 10

    def validate(self) -> "Settings":
        if self.mode not in MODES:
            raise ConfigurationError(f"Unsupported mode: {self.mode}")
        if self.provider not in PROVIDERS:
            raise ConfigurationError(f"Unsupported provider: {self.provider}")
        if self.language not in LANGUAGES:
            raise ConfigurationError(f"Unsupported language: {self.language}")
        if self.cap < 1:
            raise ConfigurationError("cap must be at least 1")
        if self.concurrency < 1:
            raise ConfigurationError("concurrency must be at least 1")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigurationError("timeout_seconds must be positive")
        if self.blocker_display_limit < 0:
            raise ConfigurationError("blocker_display_limit must not be negative")
        return self


def _coerce(name: str, raw: Any) -> Any:
    target = {f.name: f.type for f in fields(Settings)}[name]
    if raw is None:
        if "Optional" in target:
            return None
        raise ConfigurationError(f"Missing value for {name}")
    try:
        if "int" in target:
            return int(raw)
        if "float" in target:
            if "Optional" in target and isinstance(raw, str) and raw.strip().lower() in ("", "none"):
                return None
            return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from exc
    return str(raw).strip().lower()


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field in fields(Settings):
        key = ENV_PREFIX + field.name.upper()
        if key in environ:
            values[field.name] = _coerce(field.name, environ[key])
    return values


def _from_yaml(path: Path) -> Dict[str, Any]:
    try:
        loaded = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(loaded) - known)
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {path}: {', '.join(unknown)}")
    return {key: _coerce(key, value) for key, value in loaded.items()}


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Defaults < CIRCULARID_* env vars < YAML file < explicit overrides."""
    settings = Settings()
    settings = replace(settings, **_from_env(os.environ if environ is None else environ))
    if config_path is not None:
        settings = replace(settings, **_from_yaml(config_path))
    if overrides:
        settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})
    return settings.validate()


def require_api_key(provider: str, environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    key_name = API_KEY_ENV.get(provider)
    if key_name is None:
        raise ConfigurationError(f"Unsupported provider: {provider}")
    value = environ.get(key_name)
    if not value:
        raise ConfigurationError(
            f"Missing required API key: {key_name}. Create a .env file from .env.example and set the key."
        )
    return value
