"""
Connection Builder.

Turns API client credentials into a reusable mutual-TLS connection
descriptor. The server is authenticated against the CA from the credential
file under a fixed certificate name; the client presents its own
certificate and key.

A fresh gRPC channel is opened for every operation and closed when the
operation ends. Nothing is pooled between calls.

Usage:
    from velociraptor_api.api.connection import Connection

    connection = Connection(load_connection_config(path))
    async with connection.open() as stub:
        call = stub.Query(args)
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import grpc

from velociraptor_api.api.proto import APIStub
from velociraptor_api.core.config_schema import ConnectionConfig
from velociraptor_api.core.exceptions import (
    ApplicationError,
    CallError,
    ConfigError,
    TransportError,
)
from velociraptor_api.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SERVER_NAME = "VelociraptorServer"

_PEM_MARKER = "-----BEGIN "


def _require_pem(label: str, value: str) -> bytes:
    if _PEM_MARKER not in value:
        raise ConfigError(f"{label} is not PEM encoded")
    return value.encode()


def parse_address(address: str) -> str:
    """
    Validate a `host:port` connection string and return the gRPC target.

    IPv6 hosts must be bracketed (`[::1]:8001`).

    Raises:
        TransportError: If the address is malformed.
    """
    candidate = address.strip()
    if not candidate or any(c in candidate for c in "/ \t?#@"):
        raise TransportError(f"Malformed API address: {address!r}")

    host, sep, port = candidate.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise TransportError(f"Malformed API address: {address!r}")
    if ":" in host and not (host.startswith("[") and host.endswith("]")):
        raise TransportError(f"Malformed API address: {address!r}")
    if not 0 < int(port) < 65536:
        raise TransportError(f"Port out of range in API address: {address!r}")

    return f"{host}:{int(port)}"


def translate_rpc_error(error: grpc.RpcError) -> ApplicationError:
    """Map a gRPC failure onto the client's error taxonomy."""
    code = error.code() if hasattr(error, "code") else None
    details = error.details() if hasattr(error, "details") else str(error)

    if code == grpc.StatusCode.UNAVAILABLE:
        return TransportError(f"Connection failed: {details}")
    status = code.name if code is not None else "UNKNOWN"
    return CallError(f"API call failed ({status}): {details}", status=status)


class Connection:
    """
    Mutual-TLS connection descriptor for the API server.

    Holds no network state. Each `open()` establishes a new channel.
    """

    def __init__(self, config: ConnectionConfig, server_name: str = DEFAULT_SERVER_NAME) -> None:
        """
        Args:
            config: API client credentials
            server_name: Name the server certificate must be issued for

        Raises:
            ConfigError: If the certificates or key are not PEM text.
            TransportError: If the connection string is malformed.
        """
        root_certificates = _require_pem("ca_certificate", config.ca_certificate)
        certificate_chain = _require_pem("client_cert", config.client_cert)
        private_key = _require_pem("client_private_key", config.client_private_key)

        self.target = parse_address(config.api_connection_string)
        self.server_name = server_name
        self.client_name = config.name

        try:
            self._credentials = grpc.ssl_channel_credentials(
                root_certificates=root_certificates,
                private_key=private_key,
                certificate_chain=certificate_chain,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid TLS credentials: {e}") from e

        self._options = (("grpc.ssl_target_name_override", server_name),)

    @asynccontextmanager
    async def open(self) -> AsyncIterator[APIStub]:
        """Open a channel for one operation and yield an API stub bound to it."""
        logger.debug("Opening channel", target=self.target, client=self.client_name)
        try:
            channel = grpc.aio.secure_channel(self.target, self._credentials, options=self._options)
        except (TypeError, ValueError) as e:
            raise TransportError(f"TLS setup failed for {self.target}: {e}") from e
        try:
            yield APIStub(channel)
        finally:
            await channel.close()
