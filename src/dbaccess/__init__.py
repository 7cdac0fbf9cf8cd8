"""Asynchronous database access core.

This package wraps vendor connection pools (PostgreSQL via psycopg_pool,
Oracle via python-oracledb) behind one contract: lazy initialization,
query timeouts, parameter/result normalization, single-use transactions
and a closed error taxonomy.

Example:
    >>> from dbaccess import PoolConfig, QueryOptions, create_pool
    >>>
    >>> config = PoolConfig(db_type="postgres", database="app", user="postgres")
    >>> async with create_pool(config) as pool:
    ...     result = await pool.query(
    ...         "SELECT * FROM users WHERE id = %s", {"id": 5}, QueryOptions(timeout_ms=2000)
    ...     )
    ...     async with await pool.begin_transaction() as tx:
    ...         await tx.query("UPDATE users SET active = %s WHERE id = %s", [True, 5])
"""

from .config import PoolConfig, SslConfig
from .factory import create_pool, get_pool
from .interface import ConnectionPool
from .manager import (
    DatabaseManager,
    close_database_connections,
    execute_query,
    get_database,
    get_database_type,
)
from .normalize import RawResult, normalize_params, normalize_result
from .sql_helpers import SqlHelper
from .transaction import Transaction, TransactionState
from .types import (
    ConnectionError,
    DatabaseError,
    DatabaseResult,
    DatabaseType,
    PoolStatus,
    QueryError,
    QueryOptions,
    QueryOutcome,
    Row,
    TimeoutError,
)

__all__ = [
    # Factory
    "PoolConfig",
    "SslConfig",
    "create_pool",
    "get_pool",
    # Pool and transaction
    "ConnectionPool",
    "Transaction",
    "TransactionState",
    # Manager
    "DatabaseManager",
    "get_database",
    "execute_query",
    "get_database_type",
    "close_database_connections",
    "SqlHelper",
    # Normalization
    "RawResult",
    "normalize_result",
    "normalize_params",
    # Types and exceptions
    "DatabaseType",
    "DatabaseResult",
    "PoolStatus",
    "QueryOptions",
    "QueryOutcome",
    "Row",
    "DatabaseError",
    "ConnectionError",
    "QueryError",
    "TimeoutError",
]
