"""
Flow Scheduling and Monitoring.

A flow is a unit of work the server runs on one managed endpoint (client).
It is created by collecting an artifact on the client and then observed by
polling three server-side tables: its status, its log and its results.

Lifecycle as seen by the monitor:

    schedule ──► status polls ──► log polls ──► result polls
                 (while RUNNING)  (while empty)  (while empty)

Status, log and result retrieval are ordinary VQL queries run through the
QueryExecutor. "Not ready yet" is the only condition absorbed locally.
Errors from the executor propagate on first occurrence.

A terminal status of ERROR does not stop the monitor. Failure is detected
from ERROR entries in the flow log.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, TextIO

from pydantic import BaseModel, ConfigDict, Field

from velociraptor_api.api.query import Query, QueryExecutor, QueryOptions
from velociraptor_api.core.exceptions import (
    DecodeError,
    EmptyResultError,
    FlowFailedError,
)
from velociraptor_api.core.logging import get_logger
from velociraptor_api.core.polling import poll_until
from velociraptor_api.core.utils import from_unix_timestamp

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 0.1

SCHEDULE_VQL = (
    "SELECT collect_client(client_id=client_id, artifacts=artifact, "
    "env=dict(Command=Command)).flow_id AS flow_id FROM scope()"
)
STATUS_VQL = "SELECT state FROM flows(client_id=client_id, flow_id=flow_id)"
LOG_VQL = (
    "SELECT client_time, level, message "
    "FROM flow_logs(client_id=client_id, flow_id=flow_id)"
)
RESULTS_VQL = "SELECT * FROM flow_results(client_id=client_id, flow_id=flow_id)"
ARTIFACT_RESULTS_VQL = (
    "SELECT * FROM flow_results(client_id=client_id, flow_id=flow_id, artifact=artifact)"
)


class FlowState(str, Enum):
    """Flow states as reported by the server."""

    UNSET = "UNSET"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"

    @classmethod
    def parse(cls, value: str | int | None) -> "FlowState":
        """Accept enum names or wire numbers. Anything else is UNSET."""
        if isinstance(value, int):
            members = list(cls)
            return members[value] if 0 <= value < len(members) else cls.UNSET
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.UNSET


class FlowLogEntry(BaseModel):
    """One row of a flow's log."""

    model_config = ConfigDict(extra="ignore")

    client_time: int = 0
    level: str = ""
    message: str = ""

    @property
    def timestamp(self) -> datetime:
        try:
            return from_unix_timestamp(self.client_time)
        except (OverflowError, OSError, ValueError) as e:
            raise DecodeError(f"Invalid client_time in flow log: {self.client_time}") from e

    def render(self) -> str:
        return f"{self.timestamp.isoformat()} {self.level}: {self.message}"


class _ScheduledRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    flow_id: str | None = None


class _StatusRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state: str | int | None = None


class ShellResult(BaseModel):
    """Row produced by the shell-command artifacts."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    stdout: str = Field(default="", alias="Stdout")
    stderr: str = Field(default="", alias="Stderr")
    returncode: int = Field(default=0, alias="ReturnCode")
    finished: bool = Field(default=False, alias="Complete")

    @classmethod
    def fold(cls, rows: Iterable["ShellResult"]) -> "ShellResult":
        """Concatenate stdout and stderr of all rows in order."""
        stdout, stderr = [], []
        for row in rows:
            stdout.append(row.stdout)
            stderr.append(row.stderr)
        return cls(stdout="".join(stdout), stderr="".join(stderr))


class DiagnosticSink(Protocol):
    """Receives human-readable diagnostic lines (flow warnings and errors)."""

    def write_line(self, line: str) -> None: ...


class StreamSink:
    """DiagnosticSink writing to a text stream, stderr by default."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def write_line(self, line: str) -> None:
        stream = self._stream or sys.stderr
        stream.write(line + "\n")
        stream.flush()


@dataclass(frozen=True)
class Flow:
    """Identity of a scheduled flow."""

    client_id: str
    flow_id: str
    artifact: str | None = None

    def __str__(self) -> str:
        return self.flow_id

    @property
    def env(self) -> list[tuple[str, str]]:
        env = [("client_id", self.client_id), ("flow_id", self.flow_id)]
        if self.artifact:
            env.append(("artifact", self.artifact))
        return env


class FlowScheduler:
    """Creates flows by collecting an artifact on a client."""

    def __init__(self, executor: QueryExecutor) -> None:
        self._executor = executor

    async def schedule(self, client_id: str, artifact: str, command: str) -> str:
        """
        Schedule artifact on client_id with its Command parameter set.

        Returns:
            The new flow's identifier

        Raises:
            EmptyResultError: If the server returned no flow identifier
        """
        options = QueryOptions(
            env=[("client_id", client_id), ("artifact", artifact), ("Command", command)],
        )
        result = await self._executor.execute(
            Query(name="schedule", vql=SCHEDULE_VQL), options, row_type=_ScheduledRow,
        )

        rows = next(iter(result.values()), [])
        if not rows or not rows[0].flow_id:
            raise EmptyResultError(
                f"Scheduling {artifact} on {client_id} returned no flow id"
            )

        flow_id = rows[0].flow_id
        logger.debug("Flow scheduled", client_id=client_id, artifact=artifact, flow_id=flow_id)
        return flow_id


class FlowMonitor:
    """
    Polls one flow until its results are available.

    Args:
        executor: Query executor used for every poll
        flow: Flow to observe
        poll_interval: Seconds to wait between polls that found nothing
        max_polls: Optional bound on polls per phase. None polls forever.
        sink: Where WARN and ERROR log entries are written
        sleep: Sleep coroutine, replaceable in tests
    """

    def __init__(
        self,
        executor: QueryExecutor,
        flow: Flow,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int | None = None,
        sink: DiagnosticSink | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._executor = executor
        self.flow = flow
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._sink = sink or StreamSink()
        self._sleep = sleep

    def __str__(self) -> str:
        return str(self.flow)

    async def _rows(self, name: str, vql: str, row_type: Any = Any) -> list[Any]:
        result = await self._executor.execute(
            Query(name=name, vql=vql), QueryOptions(env=self.flow.env), row_type=row_type,
        )
        return result.get(name, [])

    async def _poll(self, fetch: Callable[[], Awaitable[Any]], not_ready: Callable[[Any], bool], what: str) -> Any:
        return await poll_until(
            fetch,
            not_ready,
            interval=self.poll_interval,
            max_polls=self.max_polls,
            sleep=self._sleep,
            description=what,
            flow_id=self.flow.flow_id,
        )

    async def status(self) -> FlowState:
        """Poll the flow state once. No row means UNSET."""
        rows = await self._rows("status", STATUS_VQL, row_type=_StatusRow)
        state = FlowState.parse(rows[0].state) if rows else FlowState.UNSET
        logger.debug("Flow status", flow_id=self.flow.flow_id, state=state.value)
        return state

    async def wait(self) -> FlowState:
        """Poll the state until it is anything but RUNNING."""
        return await self._poll(self.status, lambda state: state is FlowState.RUNNING, "status")

    async def fetch_log(self) -> list[FlowLogEntry]:
        """Poll the flow log until it has at least one entry."""
        return await self._poll(
            lambda: self._rows("log", LOG_VQL, row_type=FlowLogEntry),
            lambda entries: not entries,
            "log",
        )

    def check_log(self, entries: list[FlowLogEntry]) -> None:
        """
        Report WARN and ERROR entries to the sink.

        Raises:
            FlowFailedError: After reporting, if any entry is an ERROR
        """
        failed = False
        for entry in entries:
            logger.debug(
                "Flow log",
                flow_id=self.flow.flow_id,
                timestamp=entry.timestamp.isoformat(),
                level=entry.level,
                message=entry.message,
            )
            if entry.level in ("ERROR", "WARN"):
                self._sink.write_line(entry.render())
            if entry.level == "ERROR":
                failed = True

        if failed:
            raise FlowFailedError(self.flow.client_id, self.flow.flow_id)

    async def fetch_results(self, row_type: Any = Any) -> list[Any]:
        """Poll the flow's results until at least one row is available."""
        vql = ARTIFACT_RESULTS_VQL if self.flow.artifact else RESULTS_VQL
        return await self._poll(
            lambda: self._rows("results", vql, row_type=row_type),
            lambda rows: not rows,
            "results",
        )

    async def fetch(self, row_type: Any = Any, check_log: bool = True) -> list[Any]:
        """
        Wait for the flow to stop running, vet its log, then return its results.

        Args:
            row_type: Type every result row is validated as
            check_log: Fetch and vet the log before fetching results
        """
        await self.wait()
        if check_log:
            self.check_log(await self.fetch_log())
        return await self.fetch_results(row_type)
