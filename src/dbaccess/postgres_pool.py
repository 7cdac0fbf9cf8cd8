"""PostgreSQL connection pool.

Wraps psycopg3's AsyncConnectionPool to implement the ConnectionPool
contract. Connections run in autocommit mode, so transactions are driven by
explicit BEGIN / COMMIT / ROLLBACK statements.
"""

import math
from typing import Any

try:
    import psycopg
    from psycopg.conninfo import make_conninfo
    from psycopg.rows import dict_row
    from psycopg_pool import AsyncConnectionPool
except ImportError as e:
    raise ImportError(
        "PostgreSQL dependencies not installed. "
        "Install with: pip install -e . (psycopg[binary] and psycopg-pool)"
    ) from e

from .interface import ConnectionPool
from .normalize import RawResult
from .types import QueryOptions

CLOSE_DRAIN_SECONDS = 10.0


class PostgresConnectionPool(ConnectionPool):
    """PostgreSQL pool built on psycopg_pool.AsyncConnectionPool."""

    label = "PostgreSQL"
    positional_params = True

    health_check_query = "SELECT 1 AS health_check"
    version_query = "SELECT version() AS version"
    current_database_query = "SELECT current_database() AS database"
    current_user_query = 'SELECT current_user AS "user"'

    @property
    def conninfo(self) -> str:
        """libpq connection string built from the configuration."""
        params: dict[str, Any] = {
            "host": self.config.host,
            "port": self.config.port,
            "dbname": self.config.database,
            "user": self.config.user,
            "password": self.config.password,
            "application_name": self.config.application_name,
            # libpq only accepts whole seconds
            "connect_timeout": max(1, math.ceil(self.config.connection_timeout_ms / 1000)),
        }
        ssl = self.config.ssl
        if ssl is not None:
            params["sslmode"] = "verify-full" if ssl.reject_unauthorized else "require"
            for key, value in (("sslrootcert", ssl.ca), ("sslcert", ssl.cert), ("sslkey", ssl.key)):
                if value:
                    params[key] = value
        return make_conninfo(**params)

    async def _create_native_pool(self) -> AsyncConnectionPool:
        pool = AsyncConnectionPool(
            self.conninfo,
            min_size=self.config.min_connections,
            max_size=self.config.max_connections,
            kwargs={"autocommit": True, "row_factory": dict_row},
            configure=self._configure_connection,
            reconnect_failed=self._reconnect_failed,
            max_idle=self.config.idle_timeout_ms / 1000,
            timeout=self.config.connection_timeout_ms / 1000,
            name=self.config.application_name,
            open=False,
        )
        try:
            await pool.open(wait=True, timeout=self.config.connection_timeout_ms / 1000)
        except Exception:
            await pool.close()
            raise
        return pool

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        self._on_pool_event("connect")
        await conn.execute("SET timezone = 'UTC'")

    def _reconnect_failed(self, pool: AsyncConnectionPool) -> None:
        self._on_pool_event("error", f"pool {pool.name} failed to reconnect")

    async def _close_native_pool(self, native: AsyncConnectionPool) -> None:
        await native.close(timeout=CLOSE_DRAIN_SECONDS)

    async def _acquire(self, native: AsyncConnectionPool) -> psycopg.AsyncConnection:
        return await native.getconn()

    async def _release(self, native: AsyncConnectionPool, conn: psycopg.AsyncConnection) -> None:
        await native.putconn(conn)

    async def _execute(
        self,
        conn: psycopg.AsyncConnection,
        sql: str,
        params: list[Any] | dict[str, Any],
        options: QueryOptions,
    ) -> RawResult:
        async with conn.cursor() as cur:
            # No params means no placeholder parsing, so a literal % survives
            await cur.execute(sql, params or None)
            if cur.description is None:
                return RawResult(rows=[], row_count=cur.rowcount)

            fields = [
                {
                    "name": col.name,
                    "type_code": col.type_code,
                    "internal_size": col.internal_size,
                    "precision": col.precision,
                    "scale": col.scale,
                }
                for col in cur.description
            ]
            if options.max_rows:
                rows = await cur.fetchmany(options.max_rows)
            else:
                rows = await cur.fetchall()
            return RawResult(rows=rows, row_count=cur.rowcount, fields=fields)

    async def _begin(self, conn: psycopg.AsyncConnection) -> None:
        await conn.execute("BEGIN")

    async def _commit(self, conn: psycopg.AsyncConnection) -> None:
        await conn.execute("COMMIT")

    async def _rollback(self, conn: psycopg.AsyncConnection) -> None:
        await conn.execute("ROLLBACK")

    def _native_counts(self, native: AsyncConnectionPool) -> tuple[int, int, int]:
        stats = native.get_stats()
        return (
            stats.get("pool_size", 0),
            stats.get("pool_available", 0),
            stats.get("requests_waiting", 0),
        )

    def _native_closed(self, native: AsyncConnectionPool) -> bool:
        return native.closed
