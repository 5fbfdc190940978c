"""
Query Executor.

Runs one or more named VQL queries on the server in a single streaming
`Query` call and demultiplexes the response stream into per-query row
lists.

Every response message may carry a JSON row batch for one of the submitted
queries, a log line, or both. Row batches are appended to their query's
list in arrival order. A log line starting with the error prefix aborts
the whole call. The stream ending is the only completion signal.

Usage:
    executor = QueryExecutor(connection)
    result = await executor.execute("SELECT * FROM info()")
    # {"query": [{...}]}

    result = await executor.execute(
        [Query(name="clients", vql="SELECT * FROM clients()")],
        QueryOptions(org_id="O123", max_row=100),
    )
"""

from collections.abc import Sequence
from typing import Any, Union

import grpc
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from velociraptor_api.api.connection import Connection, translate_rpc_error
from velociraptor_api.api.proto import VQLCollectorArgs, VQLEnv, VQLRequest
from velociraptor_api.core.exceptions import DecodeError, QueryError
from velociraptor_api.core.logging import get_logger

logger = get_logger(__name__)

ROOT_ORG = ""
DEFAULT_ERROR_PREFIX = "VQL Error:"


class Query(BaseModel):
    """A VQL text and the caller-chosen name its rows are returned under."""

    model_config = ConfigDict(frozen=True)

    name: str
    vql: str


class QueryOptions(BaseModel):
    """
    Per-call query options.

    env: Environment pairs bound in the query scope, sent in order.
        Duplicate keys are all sent.
    org_id: Organization to run in. None selects the root organization.
    max_row: Rows per response batch.
    """

    model_config = ConfigDict(frozen=True)

    env: list[tuple[str, str]] = Field(default_factory=list)
    org_id: str | None = None
    max_row: int = Field(default=10, gt=0)


QueryInput = Union[str, Query, Sequence[Union[str, Query, tuple[str, str]]]]
QueryResultSet = dict[str, list[Any]]


def as_queries(queries: QueryInput) -> list[Query]:
    """
    Normalize the accepted query shapes into a list of Query.

    A single string is named "query". Strings inside a list are named
    "query-<index>". Pairs are taken as (name, vql).
    """
    if isinstance(queries, Query):
        return [queries]
    if isinstance(queries, str):
        return [Query(name="query", vql=queries)]

    normalized = []
    for index, item in enumerate(queries):
        if isinstance(item, Query):
            normalized.append(item)
        elif isinstance(item, str):
            normalized.append(Query(name=f"query-{index}", vql=item))
        else:
            name, vql = item
            normalized.append(Query(name=name, vql=vql))
    return normalized


def build_collector_args(queries: list[Query], options: QueryOptions) -> Any:
    """Build the VQLCollectorArgs request message."""
    return VQLCollectorArgs(
        env=[VQLEnv(key=key, value=value) for key, value in options.env],
        org_id=options.org_id if options.org_id is not None else ROOT_ORG,
        max_row=options.max_row,
        Query=[VQLRequest(Name=q.name, VQL=q.vql) for q in queries],
    )


class QueryExecutor:
    """Executes VQL on the server over a fresh channel per call."""

    def __init__(self, connection: Connection, error_prefix: str = DEFAULT_ERROR_PREFIX) -> None:
        self._connection = connection
        self.error_prefix = error_prefix

    async def execute(
        self,
        queries: QueryInput,
        options: QueryOptions | None = None,
        row_type: Any = Any,
    ) -> QueryResultSet:
        """
        Run queries and collect their rows.

        Args:
            queries: One query or several, see as_queries()
            options: Environment, organization and batch size
            row_type: Type every row is validated as. Any keeps the
                decoded JSON values.

        Returns:
            Rows per query name, names in order of first appearance

        Raises:
            QueryError: If the server logs a VQL error
            DecodeError: If a row batch is not valid JSON for row_type
            TransportError: If the server cannot be reached
            CallError: If the server fails the call
        """
        query_list = as_queries(queries)
        options = options or QueryOptions()
        request = build_collector_args(query_list, options)
        adapter = TypeAdapter(list[row_type])

        logger.debug(
            "Executing query",
            queries=[q.name for q in query_list],
            org_id=request.org_id,
            env_keys=[key for key, _ in options.env],
        )

        result: QueryResultSet = {}
        try:
            async with self._connection.open() as stub:
                async for message in stub.Query(request):
                    if message.Response:
                        rows = self._decode(adapter, message.Response)
                        result.setdefault(message.Query.Name, []).extend(rows)
                    if message.log:
                        logger.debug("Query log", query=message.Query.Name, log=message.log)
                        if message.log.startswith(self.error_prefix):
                            raise QueryError(message.log)
        except grpc.RpcError as e:
            raise translate_rpc_error(e) from e

        return result

    @staticmethod
    def _decode(adapter: TypeAdapter, batch: str) -> list[Any]:
        try:
            return adapter.validate_json(batch)
        except ValidationError as e:
            raise DecodeError(f"Malformed row batch: {e}") from e
