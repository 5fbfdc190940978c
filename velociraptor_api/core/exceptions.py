"""
Custom Exceptions.

Client-specific exception classes for consistent error handling.
Every failure surfaced by the API layer is an ApplicationError subclass,
so callers can catch the whole family or inspect one kind.
"""


class ApplicationError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class ConfigError(ApplicationError):
    """Raised when the credential file or settings cannot be read or parsed."""

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(message, code="CFG_INVALID")


class TransportError(ApplicationError):
    """Raised when the channel cannot be set up or the connection is lost."""

    def __init__(self, message: str = "Transport error") -> None:
        super().__init__(message, code="NET_TRANSPORT")


class CallError(ApplicationError):
    """Raised when the service answers a call with a non-OK status."""

    def __init__(self, message: str = "API call failed", status: str | None = None) -> None:
        self.status = status
        super().__init__(message, code="API_CALL_FAILED")


class DecodeError(ApplicationError):
    """Raised when a row batch is not valid structured data."""

    def __init__(self, message: str = "Could not decode response") -> None:
        super().__init__(message, code="API_DECODE")


class QueryError(ApplicationError):
    """Raised when the service reports a VQL execution failure in its log stream."""

    def __init__(self, log: str) -> None:
        self.log = log
        super().__init__(log, code="VQL_ERROR")


class EmptyResultError(ApplicationError):
    """Raised when an operation that needs at least one row received none."""

    def __init__(self, message: str = "Query returned no rows") -> None:
        super().__init__(message, code="API_EMPTY_RESULT")


class FlowFailedError(ApplicationError):
    """Raised when a flow's log contains an ERROR entry."""

    def __init__(self, client_id: str, flow_id: str) -> None:
        self.client_id = client_id
        self.flow_id = flow_id
        super().__init__(f"Flow {flow_id} failed.", code="FLOW_FAILED")


class PollingExhaustedError(ApplicationError):
    """Raised when a bounded poll gives up before the flow is ready."""

    def __init__(self, what: str, flow_id: str, attempts: int) -> None:
        self.flow_id = flow_id
        self.attempts = attempts
        super().__init__(
            f"Flow {flow_id}: {what} not ready after {attempts} polls",
            code="FLOW_POLL_EXHAUSTED",
        )
