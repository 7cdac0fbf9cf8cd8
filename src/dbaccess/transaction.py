"""Single-use transaction bound to one pooled connection."""

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from common.logger import get_logger

from .normalize import normalize_result
from .types import DatabaseResult, QueryError, QueryOptions
from .types import TimeoutError as QueryTimeoutError

if TYPE_CHECKING:
    from .interface import ConnectionPool

logger = get_logger(__name__)


class TransactionState(str, Enum):
    """Lifecycle of a transaction. Everything but ACTIVE is terminal."""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class Transaction:
    """A unit of work on one connection checked out from a pool.

    Obtained from ``ConnectionPool.begin_transaction()``. Exactly one of
    commit() or rollback() ends it; the connection goes back to the pool at
    that point, even if the directive itself fails. A failed commit or
    rollback leaves the transaction in the FAILED state and it cannot be
    retried; start a new transaction instead.

    Example:
        >>> async with await pool.begin_transaction() as tx:
        ...     await tx.query("UPDATE accounts SET balance = %s WHERE id = %s", [10, 1])
    """

    def __init__(self, pool: "ConnectionPool", connection: Any, native: Any):
        self._pool = pool
        self._conn = connection
        # Vendor pool the connection goes back to, even if the owner re-initializes
        self._native = native
        self._state = TransactionState.ACTIVE
        self._released = False

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_completed(self) -> bool:
        return self._state is not TransactionState.ACTIVE

    def _ensure_active(self) -> None:
        if self.is_completed:
            raise QueryError(
                f"Transaction already completed ({self._state.value})"
            )

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
        options: QueryOptions | None = None,
    ) -> DatabaseResult:
        """Execute a statement inside the transaction.

        Raises:
            QueryError: If the transaction is completed or the statement fails
            TimeoutError: If options.timeout_ms passed before the statement
                finished
        """
        self._ensure_active()
        options = options or QueryOptions()
        bound = self._pool._bind(sql, params)

        try:
            raw = await self._pool._run_with_timeout(
                self._pool._execute(self._conn, sql, bound, options),
                self._pool._timeout_for(options),
            )
        except QueryTimeoutError:
            raise
        except Exception as e:
            raise QueryError(
                f"{self._pool.label} transaction query failed: {e}", sql, params, e
            ) from e
        return normalize_result(raw)

    async def commit(self) -> None:
        """Commit and release the connection.

        Raises:
            QueryError: If already completed or the commit directive failed
        """
        self._ensure_active()
        # Terminal from here on, whatever the directive does
        self._state = TransactionState.FAILED
        try:
            await self._pool._commit(self._conn)
            self._state = TransactionState.COMMITTED
        except Exception as e:
            raise QueryError(
                f"{self._pool.label} transaction commit failed: {e}", cause=e
            ) from e
        finally:
            await self._release()
        logger.debug(f"{self._pool.label} transaction committed")

    async def rollback(self) -> None:
        """Roll back and release the connection.

        Raises:
            QueryError: If already completed or the rollback directive failed
        """
        self._ensure_active()
        self._state = TransactionState.FAILED
        try:
            await self._pool._rollback(self._conn)
            self._state = TransactionState.ROLLED_BACK
        except Exception as e:
            raise QueryError(
                f"{self._pool.label} transaction rollback failed: {e}", cause=e
            ) from e
        finally:
            await self._release()
        logger.debug(f"{self._pool.label} transaction rolled back")

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True
        await self._pool._safe_release(self._native, self._conn)

    async def __aenter__(self) -> "Transaction":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Commit on clean exit, roll back when the block raised."""
        if self.is_completed:
            return False
        if exc_type is not None:
            try:
                await self.rollback()
            except QueryError as e:
                logger.warning(f"Rollback after error failed: {e}")
        else:
            await self.commit()
        return False
