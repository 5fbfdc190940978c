"""
API Client.

Entry point for library users. Bundles a connection with the query
executor, the file fetcher and flow scheduling, using the tuning values
from application.yaml.

Usage:
    from velociraptor_api.api.client import APIClient

    api = APIClient.from_config_file("~/.config/velociraptor/apiclient.yaml")

    rows = await api.query("SELECT * FROM clients()")

    endpoint = api.new_client_unchecked("C.1234567890abcdef")
    flow = await endpoint.schedule_flow("Linux.Sys.BashShell", "uname -a")
    results = await flow.fetch(row_type=ShellResult, check_log=False)

    data = await api.fetch("downloads/C.123/F.456/host-C.123-F.456.zip")
"""

from pathlib import Path, PurePosixPath
from typing import Any

from velociraptor_api.api.connection import Connection
from velociraptor_api.api.files import FileFetcher
from velociraptor_api.api.flows import (
    DiagnosticSink,
    Flow,
    FlowMonitor,
    FlowScheduler,
)
from velociraptor_api.api.query import (
    QueryExecutor,
    QueryInput,
    QueryOptions,
    QueryResultSet,
)
from velociraptor_api.core.config import get_app_config, load_connection_config
from velociraptor_api.core.config_schema import ApplicationSchema, ConnectionConfig


class APIClient:
    """Client for the server's gRPC API."""

    def __init__(
        self,
        config: ConnectionConfig,
        settings: ApplicationSchema | None = None,
        sink: DiagnosticSink | None = None,
    ) -> None:
        """
        Args:
            config: API client credentials
            settings: Tuning values. Defaults to application.yaml.
            sink: Receives flow warnings and errors. Defaults to stderr.
        """
        self.settings = settings or get_app_config().application
        self.connection = Connection(config, server_name=self.settings.connection.server_name)
        self.executor = QueryExecutor(self.connection, error_prefix=self.settings.query.error_prefix)
        self.fetcher = FileFetcher(self.connection, chunk_length=self.settings.files.chunk_length)
        self.sink = sink

    @classmethod
    def from_config_file(cls, path: str | Path, **kwargs: Any) -> "APIClient":
        """Build a client from a credential file."""
        return cls(load_connection_config(Path(path).expanduser()), **kwargs)

    def default_options(self, **overrides: Any) -> QueryOptions:
        """QueryOptions with max_row taken from settings."""
        overrides.setdefault("max_row", self.settings.query.max_row)
        return QueryOptions(**overrides)

    async def query(
        self,
        queries: QueryInput,
        options: QueryOptions | None = None,
        row_type: Any = Any,
    ) -> QueryResultSet:
        """Issue a server-side VQL query. See QueryExecutor.execute."""
        return await self.executor.execute(queries, options or self.default_options(), row_type)

    async def fetch(self, path: str | PurePosixPath) -> bytes:
        """Fetch a downloadable file from the server."""
        return await self.fetcher.fetch(path)

    def new_client_unchecked(self, client_id: str) -> "EndpointClient":
        """Address a managed endpoint without checking that it exists."""
        return EndpointClient(self, client_id)

    def monitor(self, flow: Flow) -> FlowMonitor:
        """Monitor for an existing flow."""
        flows = self.settings.flows
        return FlowMonitor(
            self.executor,
            flow,
            poll_interval=flows.poll_interval,
            max_polls=flows.max_polls,
            sink=self.sink,
        )


class EndpointClient:
    """One managed endpoint, addressed by its client id."""

    def __init__(self, api: APIClient, client_id: str) -> None:
        self.api = api
        self.client_id = client_id
        self._scheduler = FlowScheduler(api.executor)

    async def schedule_flow(self, artifact: str, command: str) -> FlowMonitor:
        """Collect artifact on this endpoint and return a monitor for the new flow."""
        flow_id = await self._scheduler.schedule(self.client_id, artifact, command)
        return self.api.monitor(Flow(self.client_id, flow_id, artifact))
