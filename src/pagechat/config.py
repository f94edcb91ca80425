"""Configuration loading and validation for the PageChat shell."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from platformdirs import user_config_path, user_state_path
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError

import tomllib  # stdlib since Python 3.11 (project requires >=3.11)

LOGGER = logging.getLogger(__name__)

APP_NAME = "pagechat"

CONFIG_DIR = user_config_path(APP_NAME)
CONFIG_PATH = CONFIG_DIR / "config.toml"
STATE_DIR = user_state_path(APP_NAME)

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
OPENROUTER_API_KEY_ENV = "OPENROUTER_API_KEY"


def _require_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


def _validate_http_url(value: str, field_name: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme.lower() not in {"http", "https"}:
        raise ValueError(f"{field_name} must use http or https scheme.")
    if not (parsed.hostname or "").strip():
        raise ValueError(f"{field_name} must include a hostname.")
    return value.rstrip("/")


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "PageChat"
    start_url: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        return _require_string(value)

    @field_validator("start_url", mode="before")
    @classmethod
    def _normalize_start_url(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("start_url must be a string.")
        return value.strip()


class BridgeConfig(BaseModel):
    """Startup probing of the remote-call bridge."""

    startup_ping_attempts: int = Field(default=20, ge=1, le=1000)
    startup_ping_delay_seconds: float = Field(default=0.5, ge=0.0, le=60.0)


class OllamaConfig(BaseModel):
    """Locally hosted model endpoint."""

    host: str = "http://localhost:11434"
    timeout: int = Field(default=120, ge=1, le=3600)
    system_prompt: str = (
        "You answer questions about the web page whose content is provided. "
        "Base your answer on that content."
    )

    @field_validator("host", mode="before")
    @classmethod
    def _validate_host(cls, value: Any) -> str:
        return _validate_http_url(_require_string(value), "ollama.host")

    @field_validator("system_prompt", mode="before")
    @classmethod
    def _normalize_prompt(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()


class OpenRouterConfig(BaseModel):
    """Remotely routed model endpoint."""

    base_url: str = "https://openrouter.ai/api/v1"
    api_key: str = ""
    default_model: str = "google/gemini-2.0-flash-exp:free"
    fallback_models: list[str] = Field(default_factory=list)
    timeout: int = Field(default=120, ge=1, le=3600)

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        return _validate_http_url(_require_string(value), "openrouter.base_url")

    @field_validator("default_model", mode="before")
    @classmethod
    def _validate_default_model(cls, value: Any) -> str:
        return _require_string(value)

    @field_validator("api_key", mode="before")
    @classmethod
    def _normalize_api_key(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("api_key must be a string.")
        return value.strip()

    @field_validator("fallback_models", mode="before")
    @classmethod
    def _validate_fallback_models(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("fallback_models must be a list of model names.")
        normalized: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError("Each fallback model must be a string.")
            candidate = item.strip()
            if candidate and candidate not in normalized:
                normalized.append(candidate)
        return normalized

    @model_validator(mode="after")
    def _apply_environment_key(self) -> OpenRouterConfig:
        if not self.api_key:
            self.api_key = os.environ.get(OPENROUTER_API_KEY_ENV, "").strip()
        return self


class UIConfig(BaseModel):
    """Timing of front-end coordination."""

    show_timestamps: bool = True
    layout_debounce_seconds: float = Field(default=0.05, ge=0.0, le=5.0)
    metadata_retry_delay_seconds: float = Field(default=3.0, ge=0.0, le=60.0)
    navigation_refresh_delay_seconds: float = Field(default=1.0, ge=0.0, le=60.0)
    shortcut_autosave_delay_seconds: float = Field(default=0.4, ge=0.0, le=10.0)
    long_press_seconds: float = Field(default=0.2, ge=0.0, le=5.0)


class PagesConfig(BaseModel):
    """Page fetching used to ground answers."""

    fetch_timeout_seconds: float = Field(default=20.0, ge=1.0, le=300.0)
    max_content_chars: int = Field(default=20_000, ge=500, le=2_000_000)
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 PageChat"

    @field_validator("user_agent", mode="before")
    @classmethod
    def _validate_user_agent(cls, value: Any) -> str:
        return _require_string(value)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = str(STATE_DIR / "app.log")

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        return _require_string(value)


class PersistenceConfig(BaseModel):
    """Locations of the preference, settings and shortcut files."""

    preferences_path: str = str(STATE_DIR / "preferences.json")
    settings_path: str = str(STATE_DIR / "backend-settings.json")
    shortcuts_path: str = str(STATE_DIR / "shortcuts.json")

    @field_validator("preferences_path", "settings_path", "shortcuts_path", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Path value must be a string.")
        return _require_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    app: AppConfig = AppConfig()
    bridge: BridgeConfig = BridgeConfig()
    ollama: OllamaConfig = OllamaConfig()
    openrouter: OpenRouterConfig = OpenRouterConfig()
    ui: UIConfig = UIConfig()
    pages: PagesConfig = PagesConfig()
    logging: LoggingConfig = LoggingConfig()
    persistence: PersistenceConfig = PersistenceConfig()


def _build_default_config() -> dict[str, dict[str, Any]]:
    data = Config().model_dump(by_alias=True)
    # Environment-derived secrets never become part of the merge base.
    data["openrouter"]["api_key"] = ""
    return data


DEFAULT_CONFIG: dict[str, dict[str, Any]] = _build_default_config()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _safe_default_config() -> dict[str, dict[str, Any]]:
    """Return validated defaults, still honouring environment-provided secrets."""
    return Config.model_validate(deepcopy(DEFAULT_CONFIG)).model_dump(by_alias=True)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump(by_alias=True)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (
            Exception
        ) as exc:  # noqa: BLE001 - we must not crash on invalid user config.
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = (
        _deep_merge(DEFAULT_CONFIG, raw_data)
        if isinstance(raw_data, dict)
        else deepcopy(DEFAULT_CONFIG)
    )
    return _validate_config(merged)
