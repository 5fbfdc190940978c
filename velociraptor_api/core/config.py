"""
Configuration Management.

Two kinds of configuration feed the client:

Credentials (YAML, one file per server instance):
    Generated on the server with `velociraptor config api_client`.
    Looked up in $XDG_CONFIG_HOME/velociraptor/ unless a path is given.

Settings (YAML, optional):
    application.yaml - Connection identity, query, flow polling and fetch tuning
    logging.yaml     - Logging configuration

    Read from config/settings/ under the project root (marked by a
    .project_root file) or from VELOCIRAPTOR_API_SETTINGS_DIR. Missing files
    fall back to the schema defaults.

Environment (VELOCIRAPTOR_API_*):
    CONFIG, INSTANCE, SETTINGS_DIR
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from velociraptor_api.core.config_schema import (
    ApplicationSchema,
    ConnectionConfig,
    LoggingSchema,
)
from velociraptor_api.core.exceptions import ConfigError


class Settings(BaseSettings):
    """Defaults taken from the environment. CLI options override them."""

    config: Path | None = None
    instance: str | None = None
    settings_dir: Path | None = None

    model_config = SettingsConfigDict(
        env_prefix="VELOCIRAPTOR_API_",
        case_sensitive=False,
        extra="ignore",
    )


def find_project_root() -> Path:
    """Find project root by looking for .project_root marker file."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".project_root").exists():
            return current
        current = current.parent
    raise RuntimeError("Project root not found. Ensure .project_root file exists.")


def find_settings_dir() -> Path | None:
    """Locate the settings directory, or None when running without one."""
    configured = get_settings().settings_dir
    if configured is not None:
        return configured
    try:
        candidate = find_project_root() / "config" / "settings"
    except RuntimeError:
        return None
    return candidate if candidate.is_dir() else None


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML settings file. Returns an empty dict if it does not exist."""
    settings_dir = find_settings_dir()
    if settings_dir is None:
        return {}

    config_path = settings_dir / filename
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e


def _load_validated(schema_cls: type, filename: str) -> Any:
    """Load YAML and validate against schema. Returns typed model instance."""
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration in {filename}:\n{e}"
        ) from e


class AppConfig:
    """
    Client settings loaded from YAML files.

    Each file is validated against its Pydantic schema at load time.
    Properties return typed Pydantic model instances with attribute access.
    """

    def __init__(self) -> None:
        self._application = _load_validated(ApplicationSchema, "application.yaml")
        self._logging = _load_validated(LoggingSchema, "logging.yaml")

    @property
    def application(self) -> ApplicationSchema:
        """Application settings."""
        return self._application

    @property
    def logging(self) -> LoggingSchema:
        """Logging settings."""
        return self._logging


@lru_cache
def get_settings() -> Settings:
    """Get cached environment settings."""
    return Settings()


@lru_cache
def get_app_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()


def user_config_dir() -> Path:
    """Per-user configuration directory ($XDG_CONFIG_HOME or ~/.config)."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def default_credentials_path(instance: str | None = None) -> Path:
    """
    Default credential file location.

    Args:
        instance: Optional server instance name. Selects
            apiclient-<instance>.yaml instead of apiclient.yaml.
    """
    filename = f"apiclient-{instance}.yaml" if instance else "apiclient.yaml"
    return user_config_dir() / "velociraptor" / filename


def resolve_credentials_path(
    config: Path | None = None,
    instance: str | None = None,
) -> Path:
    """
    Pick the credential file from explicit arguments or the environment.

    Raises:
        ConfigError: If both a config path and an instance are given.
    """
    settings = get_settings()
    if config is None and instance is None:
        config, instance = settings.config, settings.instance

    if config is not None and instance is not None:
        raise ConfigError("can't use config and instance simultaneously")
    if config is not None:
        return config
    return default_credentials_path(instance)


def load_connection_config(path: str | Path) -> ConnectionConfig:
    """
    Read API client credentials from a YAML file.

    Raises:
        ConfigError: If the file cannot be read or lacks required fields.
    """
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"read config: {path} {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"read config: {path} {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"read config: {path} is not a mapping")

    try:
        return ConnectionConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"read config: {path}\n{e}") from e
