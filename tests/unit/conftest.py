"""
Unit Test Fixtures.

Fixtures for unit tests - the gRPC layer is replaced by scripted fakes.
Unit tests never open a network connection.
"""

import json
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import grpc
import pytest
from pydantic import TypeAdapter

from velociraptor_api.api.proto import VFSFileBuffer, VQLRequest, VQLResponse
from velociraptor_api.api.query import QueryOptions, as_queries


# =============================================================================
# gRPC fakes
# =============================================================================


class FakeRpcError(grpc.RpcError):
    """RpcError carrying a status code, like grpc.aio.AioRpcError."""

    def __init__(self, code: grpc.StatusCode, details: str = "") -> None:
        super().__init__(details)
        self._code = code
        self._details = details

    def code(self) -> grpc.StatusCode:
        return self._code

    def details(self) -> str:
        return self._details


def vql_response(name: str = "query", rows: list | None = None, log: str = "", raw: str | None = None) -> Any:
    """Build one VQLResponse message."""
    if raw is None:
        raw = json.dumps(rows) if rows is not None else ""
    return VQLResponse(Query=VQLRequest(Name=name), Response=raw, log=log)


class FakeStreamCall:
    """Server-streaming call yielding scripted messages, optionally failing after them."""

    def __init__(self, messages: list[Any], error: Exception | None = None) -> None:
        self._messages = messages
        self._error = error

    def __aiter__(self) -> AsyncIterator[Any]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Any]:
        for message in self._messages:
            yield message
        if self._error is not None:
            raise self._error


class FakeStub:
    """
    Stand-in for APIStub.

    query_script: list of responses per Query call, each a list of messages
        or a FakeStreamCall.
    chunks: data returned by successive VFSGetBuffer calls.
    """

    def __init__(self, query_script: list | None = None, chunks: list[bytes] | None = None) -> None:
        self._query_script = list(query_script or [])
        self._chunks = list(chunks or [])
        self.query_requests: list[Any] = []
        self.buffer_requests: list[Any] = []

    def Query(self, request: Any) -> FakeStreamCall:
        self.query_requests.append(request)
        script = self._query_script.pop(0) if self._query_script else []
        if isinstance(script, FakeStreamCall):
            return script
        return FakeStreamCall(script)

    async def VFSGetBuffer(self, request: Any) -> Any:
        copy = VFSFileBuffer()
        copy.CopyFrom(request)
        self.buffer_requests.append(copy)
        data = self._chunks.pop(0) if self._chunks else b""
        return VFSFileBuffer(data=data)


class FakeConnection:
    """Stand-in for Connection that hands out one FakeStub."""

    def __init__(self, stub: FakeStub) -> None:
        self.stub = stub
        self.opened = 0
        self.closed = 0

    @asynccontextmanager
    async def open(self) -> AsyncIterator[FakeStub]:
        self.opened += 1
        try:
            yield self.stub
        finally:
            self.closed += 1


class ScriptedExecutor:
    """
    Stand-in for QueryExecutor keyed by query name.

    Each name maps to a list of row lists returned by successive calls.
    Rows are validated against row_type the way the real executor does.
    """

    def __init__(self, script: dict[str, list[list[Any]]]) -> None:
        self._script = {name: list(batches) for name, batches in script.items()}
        self.calls: list[tuple[str, QueryOptions]] = []

    def count(self, name: str) -> int:
        return sum(1 for called, _ in self.calls if called == name)

    async def execute(self, queries: Any, options: QueryOptions | None = None, row_type: Any = Any) -> dict:
        query = as_queries(queries)[0]
        self.calls.append((query.name, options or QueryOptions()))
        batches = self._script.get(query.name, [])
        rows = batches.pop(0) if len(batches) > 1 else (batches[0] if batches else [])
        if not rows:
            return {}
        return {query.name: TypeAdapter(list[row_type]).validate_python(rows)}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_connection() -> Callable[..., FakeConnection]:
    """Factory for a FakeConnection around a FakeStub."""

    def _make(query_script: list | None = None, chunks: list[bytes] | None = None) -> FakeConnection:
        return FakeConnection(FakeStub(query_script=query_script, chunks=chunks))

    return _make


@pytest.fixture
def sleeps() -> list[float]:
    """Records every backoff delay requested by a poller."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    """Sleep replacement that returns immediately and records the delay."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def vql() -> Callable[..., Any]:
    """Builder for VQLResponse messages, see vql_response()."""
    return vql_response


@pytest.fixture
def rpc_error() -> Callable[..., FakeRpcError]:
    """Factory for gRPC errors with a given status code."""
    return FakeRpcError


@pytest.fixture
def stream_call() -> Callable[..., FakeStreamCall]:
    """Factory for scripted streaming calls that may fail part way."""
    return FakeStreamCall


@pytest.fixture
def make_executor() -> Callable[..., ScriptedExecutor]:
    """Factory for a ScriptedExecutor."""
    return ScriptedExecutor
