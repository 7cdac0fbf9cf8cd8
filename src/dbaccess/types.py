"""Shared types and exceptions for the database access layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DatabaseType(str, Enum):
    """Supported backing-store kinds."""

    POSTGRES = "postgres"
    ORACLE = "oracle"


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        cause: The underlying driver exception, if any
        code: Stable machine-readable error kind
    """

    code: str = "DATABASE_ERROR"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ConnectionError(DatabaseError):
    """Pool or connection lifecycle failure."""

    code = "CONNECTION_ERROR"


class QueryError(DatabaseError):
    """Statement execution or transaction-protocol failure.

    Attributes:
        sql: Statement text, when available
        params: Statement parameters, when available
    """

    code = "QUERY_ERROR"

    def __init__(
        self,
        message: str,
        sql: str | None = None,
        params: Any = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.sql = sql
        self.params = params


class TimeoutError(DatabaseError):
    """A query exceeded its deadline.

    Attributes:
        timeout_ms: The deadline that was exceeded, in milliseconds
    """

    code = "TIMEOUT_ERROR"

    def __init__(self, message: str, timeout_ms: float, cause: BaseException | None = None):
        super().__init__(message, cause)
        self.timeout_ms = timeout_ms


# Type aliases for rows and parameters
Row = dict[str, Any]
QueryParams = list[Any] | tuple[Any, ...] | dict[str, Any]


@dataclass(frozen=True)
class QueryOptions:
    """Per-query execution options.

    Attributes:
        timeout_ms: Deadline in milliseconds; None means wait indefinitely
        max_rows: Upper bound on fetched rows; None means driver default
    """

    timeout_ms: float | None = None
    max_rows: int | None = None


@dataclass(frozen=True)
class DatabaseResult:
    """Canonical query result."""

    rows: list[Row]
    row_count: int
    fields: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class PoolStatus:
    """Point-in-time occupancy snapshot of a pool."""

    total_connections: int = 0
    active_connections: int = 0
    idle_connections: int = 0
    pending_requests: int = 0


@dataclass(frozen=True)
class QueryOutcome:
    """Result-or-error of a query, for callers that prefer branching to catching."""

    result: DatabaseResult | None = None
    error: DatabaseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str | None:
        """Error class name (``ConnectionError``, ``QueryError``, ``TimeoutError``)."""
        return type(self.error).__name__ if self.error is not None else None
