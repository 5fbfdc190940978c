"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML file the
client reads. Settings files are validated with extra='forbid' so a typo
in config/settings/*.yaml is reported at startup instead of being ignored.

    ApplicationSchema  → config/settings/application.yaml
    LoggingSchema      → config/settings/logging.yaml
    ConnectionConfig   → API client credential file written by
                         `velociraptor config api_client`
"""

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ConnectionSchema(_StrictBase):
    server_name: str = "VelociraptorServer"


class QuerySchema(_StrictBase):
    max_row: int = Field(default=10, gt=0)
    error_prefix: str = "VQL Error:"


class FlowsSchema(_StrictBase):
    poll_interval: float = Field(default=0.1, ge=0)
    max_polls: int | None = Field(default=None, gt=0)


class FilesSchema(_StrictBase):
    chunk_length: int = Field(default=1024, gt=0)


class ApplicationSchema(_StrictBase):
    name: str = "velociraptor-api"
    version: str = "0.1.0"
    connection: ConnectionSchema = ConnectionSchema()
    query: QuerySchema = QuerySchema()
    flows: FlowsSchema = FlowsSchema()
    files: FilesSchema = FilesSchema()


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool = True


class FileHandlerSchema(_StrictBase):
    enabled: bool = False
    path: str = "logs/system.jsonl"
    max_bytes: int = 5242880
    backup_count: int = 3


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema = ConsoleHandlerSchema()
    file: FileHandlerSchema = FileHandlerSchema()


class LoggingSchema(_StrictBase):
    level: str = "WARNING"
    format: str = "console"
    handlers: HandlersSchema = HandlersSchema()


# =============================================================================
# API client credentials
# =============================================================================


class ConnectionConfig(BaseModel):
    """Credentials for the gRPC API, as generated by the server.

    Certificates and the key are PEM text. Keys the client does not use
    are ignored so files from newer server versions still load.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    ca_certificate: str
    client_cert: str
    client_private_key: str
    api_connection_string: str
    name: str
