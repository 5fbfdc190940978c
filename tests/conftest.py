"""
Root Pytest Fixtures.

Shared fixtures available to all test types.

Configuration is cached with lru_cache in velociraptor_api.core.config.
Every test starts with a fresh cache and no VELOCIRAPTOR_API_* variables
leaking in from the developer's environment.
"""

from collections.abc import Generator

import pytest

from velociraptor_api.core.config import get_app_config, get_settings


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Clear config caches and environment overrides around each test."""
    for name in ("VELOCIRAPTOR_API_CONFIG", "VELOCIRAPTOR_API_INSTANCE", "VELOCIRAPTOR_API_SETTINGS_DIR"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


@pytest.fixture
def pem() -> str:
    """Syntactically PEM-shaped text. Not a usable certificate."""
    return "-----BEGIN CERTIFICATE-----\nMIIBfake\n-----END CERTIFICATE-----\n"


@pytest.fixture
def credentials(pem: str) -> dict[str, str]:
    """Raw credential file content as written by `velociraptor config api_client`."""
    return {
        "ca_certificate": pem,
        "client_cert": pem,
        "client_private_key": pem.replace("CERTIFICATE", "PRIVATE KEY"),
        "api_connection_string": "127.0.0.1:8001",
        "name": "api-test",
    }
