"""
API Client for CLI.

Builds the APIClient the commands share from the global --config and
--instance options (or their VELOCIRAPTOR_API_* environment defaults).
"""

from pathlib import Path

from velociraptor_api.api.client import APIClient
from velociraptor_api.core.config import resolve_credentials_path
from velociraptor_api.core.logging import get_logger, log_with_source

logger = get_logger(__name__)

_config_path: Path | None = None
_instance: str | None = None
_client: APIClient | None = None


def configure(config: Path | None = None, instance: str | None = None) -> None:
    """Record the credential selection made on the command line."""
    global _config_path, _instance, _client
    _config_path = config
    _instance = instance
    _client = None


def get_api_client() -> APIClient:
    """
    Get or create the API client singleton.

    Raises:
        ConfigError: If the credential file cannot be located or loaded.
    """
    global _client
    if _client is None:
        path = resolve_credentials_path(_config_path, _instance)
        log_with_source(logger, "cli", "debug", "Loading credentials", path=str(path))
        _client = APIClient.from_config_file(path)
    return _client


def reset_api_client() -> None:
    """Forget the API client and the credential selection."""
    configure(None, None)
