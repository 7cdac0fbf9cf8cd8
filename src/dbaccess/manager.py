"""Process-wide registry of connection pools.

Holds at most one initialized pool per backing-store kind and hands it out
to callers. The module-level helpers use a shared default manager.
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from common.env import env
from common.logger import get_logger

from .config import PoolConfig
from .factory import create_pool
from .interface import ConnectionPool
from .sql_helpers import SqlHelper
from .types import DatabaseResult, DatabaseType, PoolStatus, QueryOptions

logger = get_logger(__name__)


class DatabaseManager:
    """Lazily creates, shares and tears down pools per database type."""

    def __init__(
        self,
        config_loader: Callable[[DatabaseType], PoolConfig] = PoolConfig.from_env,
        pool_factory: Callable[[PoolConfig], ConnectionPool] = create_pool,
    ):
        """Initialize an empty manager.

        Args:
            config_loader: Builds the configuration for a database type
            pool_factory: Builds a pool from a configuration
        """
        self._config_loader = config_loader
        self._pool_factory = pool_factory
        self._pools: dict[DatabaseType, ConnectionPool] = {}
        self._helpers: dict[DatabaseType, SqlHelper] = {}
        # Serializes first use, per database type
        self._locks: dict[DatabaseType, asyncio.Lock] = {}

    @staticmethod
    def get_database_type() -> DatabaseType:
        """Database type selected by the environment."""
        return DatabaseType(env.database_type().lower())

    def _resolve(self, db_type: DatabaseType | str | None) -> DatabaseType:
        if db_type is None:
            return self.get_database_type()
        return DatabaseType(db_type.lower() if isinstance(db_type, str) else db_type)

    async def get_pool(self, db_type: DatabaseType | str | None = None) -> ConnectionPool:
        """Get the initialized pool for a database type, creating it on first use.

        Raises:
            ConnectionError: If the pool cannot be initialized; nothing is
                registered in that case
        """
        kind = self._resolve(db_type)
        pool = self._pools.get(kind)
        if pool is not None:
            return pool

        async with self._locks.setdefault(kind, asyncio.Lock()):
            pool = self._pools.get(kind)
            if pool is None:
                logger.info(f"Initializing {kind.value} connection pool")
                pool = self._pool_factory(self._config_loader(kind))
                await pool.initialize()
                self._pools[kind] = pool
        return pool

    async def get_sql_helper(self, db_type: DatabaseType | str | None = None) -> SqlHelper:
        kind = self._resolve(db_type)
        pool = await self.get_pool(kind)
        helper = self._helpers.get(kind)
        if helper is None or helper.pool is not pool:
            helper = SqlHelper(pool, kind)
            self._helpers[kind] = helper
        return helper

    async def query(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
        options: QueryOptions | None = None,
        db_type: DatabaseType | str | None = None,
    ) -> DatabaseResult:
        pool = await self.get_pool(db_type)
        return await pool.query(sql, params, options)

    async def health_check(self) -> dict[DatabaseType, bool]:
        """Health of every pool created so far."""
        return {kind: await pool.health_check() for kind, pool in list(self._pools.items())}

    def get_pool_status(self) -> dict[DatabaseType, PoolStatus]:
        return {kind: pool.get_pool_status() for kind, pool in self._pools.items()}

    async def close_all(self) -> None:
        """Close every pool and forget them.

        All pools are attempted; the first failure is re-raised afterwards.
        """
        logger.info("Closing all database connections")
        pools = list(self._pools.values())
        self._pools.clear()
        self._helpers.clear()

        results = await asyncio.gather(*(pool.close() for pool in pools), return_exceptions=True)
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]
        logger.info("All database connections closed")

    async def reconnect(self, db_type: DatabaseType | str | None = None) -> ConnectionPool:
        """Close everything and build a fresh pool for the given type."""
        logger.info("Reconnecting database connections")
        await self.close_all()
        pool = await self.get_pool(db_type)
        logger.info("Database connections reestablished")
        return pool


_default_manager: DatabaseManager | None = None


def get_manager() -> DatabaseManager:
    """Shared default manager."""
    global _default_manager
    if _default_manager is None:
        _default_manager = DatabaseManager()
    return _default_manager


async def get_database(db_type: DatabaseType | str | None = None) -> ConnectionPool:
    return await get_manager().get_pool(db_type)


async def execute_query(
    sql: str,
    params: Sequence[Any] | Mapping[str, Any] | None = None,
    options: QueryOptions | None = None,
) -> DatabaseResult:
    return await get_manager().query(sql, params, options)


def get_database_type() -> DatabaseType:
    return DatabaseManager.get_database_type()


async def close_database_connections() -> None:
    await get_manager().close_all()
