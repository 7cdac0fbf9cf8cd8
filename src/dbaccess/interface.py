"""Abstract connection pool.

This module implements the pool contract once: lazy and lock-guarded
initialization, timeout racing, parameter and result normalization, error
wrapping and connection release. Driver subclasses only provide the native
hooks (create/close the vendor pool, acquire/release, execute, transaction
directives and occupancy counters).
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Mapping, Sequence
from typing import Any, TypeVar

from common.logger import get_logger

from .config import PoolConfig
from .normalize import RawResult, normalize_params, normalize_result
from .transaction import Transaction
from .types import ConnectionError as DBConnectionError
from .types import DatabaseError, DatabaseResult, PoolStatus, QueryError, QueryOptions, QueryOutcome
from .types import TimeoutError as QueryTimeoutError

logger = get_logger(__name__)

T = TypeVar("T")

HEALTH_CHECK_TIMEOUT_MS = 5000


def preview(sql: str, limit: int = 100) -> str:
    """Shorten a statement for log output."""
    return sql if len(sql) <= limit else f"{sql[:limit]}..."


class ConnectionPool(ABC):
    """Pool of reusable connections to one backing store.

    Every operation funnels through lazy initialization, so callers do not
    have to call initialize() themselves. The native pool handle is owned
    exclusively by this object and is only written under ``_lock``.
    """

    #: Human-readable backend name used in messages
    label: str = "database"
    #: Whether the driver only understands positional binds
    positional_params: bool = True

    health_check_query: str = "SELECT 1 AS health_check"
    version_query: str = "SELECT version() AS version"
    current_database_query: str = "SELECT current_database() AS database"
    current_user_query: str = 'SELECT current_user AS "user"'

    def __init__(self, config: PoolConfig):
        """Initialize an uninitialized pool.

        Args:
            config: Immutable pool configuration
        """
        self.config = config
        self._native: Any = None
        self._initialized = False
        self._lock = asyncio.Lock()
        self._abandoned: set[asyncio.Future] = set()
        # Native pool each checked-out connection came from
        self._owners: dict[Any, Any] = {}

    # ------------------------------------------------------------------
    # Native hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _create_native_pool(self) -> Any:
        """Build and open the vendor pool, registering event observers."""

    @abstractmethod
    async def _close_native_pool(self, native: Any) -> None:
        """Tear down the vendor pool."""

    @abstractmethod
    async def _acquire(self, native: Any) -> Any:
        """Check one connection out of the vendor pool."""

    @abstractmethod
    async def _release(self, native: Any, conn: Any) -> None:
        """Give a connection back to the vendor pool."""

    @abstractmethod
    async def _execute(
        self, conn: Any, sql: str, params: list[Any] | dict[str, Any], options: QueryOptions
    ) -> RawResult:
        """Run one statement on a checked-out connection."""

    @abstractmethod
    async def _begin(self, conn: Any) -> None:
        """Start a transaction on a checked-out connection."""

    @abstractmethod
    async def _commit(self, conn: Any) -> None:
        """Commit the transaction open on a connection."""

    @abstractmethod
    async def _rollback(self, conn: Any) -> None:
        """Roll back the transaction open on a connection."""

    @abstractmethod
    def _native_counts(self, native: Any) -> tuple[int, int, int]:
        """Return (total, idle, pending) counters of the vendor pool."""

    @abstractmethod
    def _native_closed(self, native: Any) -> bool:
        """Whether the vendor pool reports itself as closed."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Create the native pool and verify it with a self-test query.

        Idempotent. Concurrent callers wait on the same lock, so only one
        native pool is ever built.

        Raises:
            ConnectionError: If the native pool cannot be created or the
                self-test query fails. No partial state is retained.
        """
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            logger.info(f"Creating {self.label} connection pool")
            native = None
            try:
                native = await self._create_native_pool()
                await self._self_test(native)
            except Exception as e:
                logger.error(f"Failed to create {self.label} connection pool: {e}")
                if native is not None:
                    await self._discard(native)
                raise DBConnectionError(
                    f"Failed to create {self.label} connection pool: {e}", e
                ) from e

            self._native = native
            self._initialized = True
            logger.info(
                f"{self.label} connection pool created with "
                f"{self.config.max_connections} max connections"
            )

    async def close(self) -> None:
        """Tear down the native pool.

        Idempotent. State is reset even when teardown fails.

        Raises:
            ConnectionError: If the native pool fails to close
        """
        async with self._lock:
            native = self._native
            self._native = None
            self._initialized = False
            if native is None:
                return

            logger.info(f"Closing {self.label} connection pool")
            try:
                await self._close_native_pool(native)
            except Exception as e:
                logger.error(f"Failed to close {self.label} connection pool: {e}")
                raise DBConnectionError(
                    f"Failed to close {self.label} connection pool: {e}", e
                ) from e
            logger.info(f"{self.label} connection pool closed")

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def _self_test(self, native: Any) -> None:
        """Run the health-check query directly on a freshly built native pool."""
        conn = await self._acquire(native)
        try:
            raw = await self._run_with_timeout(
                self._execute(conn, self.health_check_query, [], QueryOptions()),
                HEALTH_CHECK_TIMEOUT_MS,
            )
        finally:
            await self._safe_release(native, conn)

        if not self._is_healthy(normalize_result(raw)):
            raise DBConnectionError("health check query returned an unexpected result")

    async def _discard(self, native: Any) -> None:
        try:
            await self._close_native_pool(native)
        except Exception as e:
            logger.warning(f"Failed to discard half-built {self.label} pool: {e}")

    def _on_pool_event(self, event: str, detail: Any = None) -> None:
        """Observer for native pool events; only logs."""
        if event == "error":
            logger.error(f"{self.label} pool error: {detail}")
        elif event == "connect":
            logger.debug(f"New {self.label} connection established")
        elif event == "remove":
            logger.debug(f"{self.label} connection removed from pool")
        else:
            logger.debug(f"{self.label} pool event {event}: {detail}")

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    async def get_connection(self) -> Any:
        """Check a connection out of the pool.

        The caller owns the connection until it hands it back with
        release_connection().

        Raises:
            ConnectionError: If initialization or acquisition fails
        """
        native, conn = await self._checkout()
        self._owners[conn] = native
        return conn

    async def release_connection(self, conn: Any) -> None:
        """Return a connection to the native pool it was taken from. Never raises."""
        await self._safe_release(self._owners.pop(conn, self._native), conn)

    async def _checkout(self) -> tuple[Any, Any]:
        """Acquire a connection, paired with the native pool that lent it."""
        await self._ensure_initialized()
        native = self._native
        if native is None:
            raise DBConnectionError(f"Failed to get {self.label} connection: pool is closed")
        try:
            conn = await self._acquire(native)
        except Exception as e:
            logger.error(f"Failed to get {self.label} connection: {e}")
            raise DBConnectionError(f"Failed to get {self.label} connection: {e}", e) from e
        logger.debug(f"{self.label} connection acquired from pool")
        return native, conn

    async def _safe_release(self, native: Any, conn: Any) -> None:
        if native is None:
            logger.warning(f"Cannot release {self.label} connection: pool is closed")
            return
        if self._native_closed(native):
            logger.warning(f"Returning {self.label} connection to a pool that was closed")
        try:
            await self._release(native, conn)
            logger.debug(f"{self.label} connection returned to pool")
        except Exception as e:
            logger.warning(f"Failed to release {self.label} connection: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
        options: QueryOptions | None = None,
    ) -> DatabaseResult:
        """Execute a statement on a pooled connection.

        Args:
            sql: Statement text
            params: Positional sequence or named mapping
            options: Timeout and row cap

        Returns:
            Normalized result

        Raises:
            ConnectionError: If no connection could be obtained
            TimeoutError: If the deadline passed first. The native call is
                abandoned, not cancelled, and may still complete later.
            QueryError: If the statement failed
        """
        options = options or QueryOptions()
        bound = self._bind(sql, params)
        native, conn = await self._checkout()
        start = time.monotonic()

        logger.debug(f"Executing {self.label} query: {preview(sql)}")
        try:
            raw = await self._run_with_timeout(
                self._execute(conn, sql, bound, options), self._timeout_for(options)
            )
        except QueryTimeoutError:
            logger.error(f"{self.label} query timed out after {self._elapsed_ms(start)}ms")
            raise
        except Exception as e:
            logger.error(f"{self.label} query failed after {self._elapsed_ms(start)}ms: {e}")
            raise QueryError(f"{self.label} query failed: {e}", sql, params, e) from e
        finally:
            await self._safe_release(native, conn)

        result = normalize_result(raw)
        logger.debug(
            f"{self.label} query executed in {self._elapsed_ms(start)}ms, "
            f"returned {len(result.rows)} rows"
        )
        return result

    async def try_query(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
        options: QueryOptions | None = None,
    ) -> QueryOutcome:
        """Like query(), but returns the taxonomy error instead of raising it."""
        try:
            return QueryOutcome(result=await self.query(sql, params, options))
        except DatabaseError as e:
            return QueryOutcome(error=e)

    async def begin_transaction(self) -> Transaction:
        """Check out a connection and open a transaction on it.

        Raises:
            ConnectionError: If no connection could be obtained
            QueryError: If the begin directive failed; the connection is
                released before raising
        """
        native, conn = await self._checkout()
        try:
            await self._begin(conn)
        except Exception as e:
            logger.error(f"Failed to begin {self.label} transaction: {e}")
            await self._safe_release(native, conn)
            raise QueryError(f"Failed to begin {self.label} transaction: {e}", cause=e) from e
        logger.debug(f"{self.label} transaction started")
        return Transaction(self, conn, native)

    def _bind(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None
    ) -> list[Any] | dict[str, Any]:
        try:
            return normalize_params(params, positional=self.positional_params)
        except TypeError as e:
            raise QueryError(str(e), sql, params, e) from e

    def _timeout_for(self, options: QueryOptions) -> float | None:
        if options.timeout_ms is not None:
            return options.timeout_ms
        return self.config.query_timeout_ms

    async def _run_with_timeout(self, call: Awaitable[T], timeout_ms: float | None) -> T:
        """Race a native call against a timer.

        On expiry the native call keeps running in the background; it is
        only abandoned, and its eventual outcome is logged.
        """
        if not timeout_ms:
            return await call

        task = asyncio.ensure_future(call)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            if task.done():
                return task.result()
            self._abandon(task)
            raise QueryTimeoutError(f"Query timeout after {timeout_ms}ms", timeout_ms, e) from e
        except asyncio.CancelledError:
            if not task.done():
                self._abandon(task)
            raise

    def _abandon(self, task: asyncio.Future) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._settle_abandoned)

    def _settle_abandoned(self, task: asyncio.Future) -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Abandoned {self.label} query failed: {error}")
        else:
            logger.debug(f"Abandoned {self.label} query completed")

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.monotonic() - start) * 1000)

    # ------------------------------------------------------------------
    # Health and status
    # ------------------------------------------------------------------

    async def health_check(self) -> bool:
        """Run a trivial round-trip query. Never raises.

        Returns:
            True if the round-trip succeeded, False otherwise
        """
        try:
            result = await self.query(
                self.health_check_query, options=QueryOptions(timeout_ms=HEALTH_CHECK_TIMEOUT_MS)
            )
            return self._is_healthy(result)
        except Exception as e:
            logger.warning(f"{self.label} health check failed: {e}")
            return False

    @staticmethod
    def _is_healthy(result: DatabaseResult) -> bool:
        if len(result.rows) != 1:
            return False
        values = list(result.rows[0].values())
        return bool(values) and values[0] == 1

    def get_pool_status(self) -> PoolStatus:
        """Snapshot of pool occupancy; all zeros when not initialized."""
        if not self._initialized or self._native is None:
            return PoolStatus()

        total, idle, pending = self._native_counts(self._native)
        return PoolStatus(
            total_connections=total,
            active_connections=total - idle,
            idle_connections=idle,
            pending_requests=pending,
        )

    def is_connected(self) -> bool:
        return (
            self._initialized
            and self._native is not None
            and not self._native_closed(self._native)
        )

    # ------------------------------------------------------------------
    # Server introspection
    # ------------------------------------------------------------------

    async def get_version(self) -> str:
        return await self._scalar_or_unknown(self.version_query, "version")

    async def get_current_database(self) -> str:
        return await self._scalar_or_unknown(self.current_database_query, "current database")

    async def get_current_user(self) -> str:
        return await self._scalar_or_unknown(self.current_user_query, "current user")

    async def _scalar_or_unknown(self, sql: str, what: str) -> str:
        try:
            result = await self.query(sql)
        except DatabaseError as e:
            logger.warning(f"Failed to get {self.label} {what}: {e}")
            return "Unknown"
        if not result.rows:
            return "Unknown"
        value = next(iter(result.rows[0].values()), None)
        return str(value) if value is not None else "Unknown"

    async def __aenter__(self) -> "ConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self.is_connected() else "disconnected"
        return (
            f"{type(self).__name__}(host={self.config.host}, port={self.config.port}, "
            f"status={status})"
        )
