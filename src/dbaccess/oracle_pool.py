"""Oracle connection pool.

Wraps python-oracledb's asyncio pool (thin mode) to implement the
ConnectionPool contract. Oracle accepts named binds natively, so mapping
parameters are passed through instead of being flattened.
"""

from typing import Any

try:
    import oracledb
except ImportError as e:
    raise ImportError(
        "Oracle dependencies not installed. Install with: pip install -e . (oracledb)"
    ) from e

from .interface import ConnectionPool
from .normalize import RawResult
from .types import QueryOptions

DEFAULT_MAX_ROWS = 1000
PING_INTERVAL_SECONDS = 60
STATEMENT_CACHE_SIZE = 30


class OracleConnectionPool(ConnectionPool):
    """Oracle pool built on oracledb.create_pool_async().

    Plain pool queries run with autocommit enabled; begin_transaction()
    switches the checked-out connection to explicit commit.
    """

    label = "Oracle"
    positional_params = False

    health_check_query = "SELECT 1 AS health_check FROM DUAL"
    version_query = "SELECT banner AS version FROM v$version WHERE ROWNUM = 1"
    current_database_query = "SELECT SYS_CONTEXT('USERENV', 'DB_NAME') AS db_name FROM DUAL"
    current_user_query = "SELECT USER AS username FROM DUAL"

    async def _create_native_pool(self) -> Any:
        # CLOBs as str, BLOBs as bytes
        oracledb.defaults.fetch_lobs = False

        return oracledb.create_pool_async(
            user=self.config.user,
            password=self.config.password,
            dsn=self.config.dsn,
            min=self.config.min_connections,
            max=self.config.max_connections,
            increment=self.config.increment,
            timeout=max(1, self.config.idle_timeout_ms // 1000),
            getmode=oracledb.POOL_GETMODE_TIMEDWAIT,
            wait_timeout=self.config.connection_timeout_ms,
            ping_interval=PING_INTERVAL_SECONDS,
            stmtcachesize=STATEMENT_CACHE_SIZE,
        )

    async def _close_native_pool(self, native: Any) -> None:
        await native.close(force=True)

    async def _acquire(self, native: Any) -> Any:
        conn = await native.acquire()
        conn.autocommit = True
        return conn

    async def _release(self, native: Any, conn: Any) -> None:
        await native.release(conn)

    async def _execute(
        self,
        conn: Any,
        sql: str,
        params: list[Any] | dict[str, Any],
        options: QueryOptions,
    ) -> RawResult:
        cursor = conn.cursor()
        try:
            await cursor.execute(sql, params or None)
            if cursor.description is None:
                return RawResult(rows=[], row_count=cursor.rowcount)

            columns = [col.name for col in cursor.description]
            cursor.rowfactory = lambda *values: dict(zip(columns, values))
            rows = await cursor.fetchmany(options.max_rows or DEFAULT_MAX_ROWS)
            fields = [
                {
                    "name": col.name,
                    "type_code": col.type_code,
                    "internal_size": col.internal_size,
                    "precision": col.precision,
                    "scale": col.scale,
                    "nullable": col.null_ok,
                }
                for col in cursor.description
            ]
            return RawResult(rows=rows, row_count=cursor.rowcount, fields=fields)
        finally:
            cursor.close()

    async def _begin(self, conn: Any) -> None:
        # Oracle opens the transaction implicitly with the first DML
        conn.autocommit = False

    async def _commit(self, conn: Any) -> None:
        await conn.commit()

    async def _rollback(self, conn: Any) -> None:
        await conn.rollback()

    def _native_counts(self, native: Any) -> tuple[int, int, int]:
        # The driver does not expose its wait queue length
        return native.opened, native.opened - native.busy, 0

    def _native_closed(self, native: Any) -> bool:
        try:
            native.opened
        except oracledb.InterfaceError:
            return True
        return False
