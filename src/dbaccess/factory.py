"""Database factory for creating connection pools.

This module selects the pool implementation for a backing-store kind.
Driver modules are imported lazily so that using one backend does not
require the other's driver to be installed.
"""

from .config import PoolConfig, SslConfig
from .interface import ConnectionPool
from .types import DatabaseType

__all__ = ["PoolConfig", "SslConfig", "create_pool", "get_pool"]


def create_pool(config: PoolConfig) -> ConnectionPool:
    """Create an uninitialized pool for the configured backing store.

    The pool initializes itself on first use; call ``initialize()`` to
    connect eagerly.

    Args:
        config: Pool configuration

    Returns:
        Pool instance

    Raises:
        ImportError: If the backend's driver is not installed
        ValueError: If the database type is unsupported

    Example:
        >>> config = PoolConfig(
        ...     db_type="postgres",
        ...     host="localhost",
        ...     database="app",
        ...     user="postgres",
        ...     max_connections=5,
        ... )
        >>> pool = create_pool(config)
        >>> result = await pool.query("SELECT * FROM users WHERE id = %s", [1])
    """
    if config.db_type == DatabaseType.POSTGRES:
        from .postgres_pool import PostgresConnectionPool

        return PostgresConnectionPool(config)

    elif config.db_type == DatabaseType.ORACLE:
        from .oracle_pool import OracleConnectionPool

        return OracleConnectionPool(config)

    else:
        # This should never happen due to enum validation
        raise ValueError(f"Unsupported database type: {config.db_type}")


def get_pool(db_type: DatabaseType | str | None = None) -> ConnectionPool:
    """Create a pool using environment configuration.

    Args:
        db_type: Backing-store kind; DATABASE_TYPE / APP_ENV decide when None

    Returns:
        Uninitialized pool
    """
    return create_pool(PoolConfig.from_env(db_type))
