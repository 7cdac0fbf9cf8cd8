"""Tests for the psycopg_pool-backed PostgreSQL pool.

The vendor pool is replaced with a mock; live tests are in test_live.py.
"""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from psycopg.conninfo import conninfo_to_dict

from dbaccess.config import PoolConfig, SslConfig
from dbaccess.postgres_pool import PostgresConnectionPool
from dbaccess.types import ConnectionError as DBConnectionError
from dbaccess.types import PoolStatus, QueryError, QueryOptions

HEALTH = ([{"health_check": 1}], ["health_check"], 1)


class FakeCursor:
    def __init__(self, rows, names, rowcount):
        self.rows = rows
        self.description = (
            None
            if names is None
            else [
                SimpleNamespace(name=n, type_code=23, internal_size=4, precision=None, scale=None)
                for n in names
            ]
        )
        self.rowcount = rowcount
        self.executed = []
        self.error = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql, params=None):
        self.executed.append((sql, params))
        if self.error is not None:
            raise self.error

    async def fetchall(self):
        return list(self.rows)

    async def fetchmany(self, size):
        return list(self.rows[:size])


class FakePgConnection:
    """Hands out one scripted cursor per statement."""

    def __init__(self):
        self.results = []
        self.cursors = []
        self.execute = AsyncMock()

    def script(self, rows, names=None, rowcount=None, error=None):
        names = names if names is not None or not rows else list(rows[0])
        self.results.append((rows, names, len(rows) if rowcount is None else rowcount, error))

    def cursor(self):
        if self.results:
            rows, names, rowcount, error = self.results.pop(0)
        else:
            (rows, names, rowcount), error = HEALTH, None
        cursor = FakeCursor(rows, names, rowcount)
        cursor.error = error
        self.cursors.append(cursor)
        return cursor


@pytest.fixture
def config():
    return PoolConfig(
        db_type="postgres",
        host="pg.local",
        port=5433,
        database="app",
        user="svc",
        password="secret",
        max_connections=5,
    )


@pytest.fixture
def conn():
    return FakePgConnection()


@pytest.fixture
def native(conn):
    native = MagicMock()
    native.open = AsyncMock()
    native.close = AsyncMock()
    native.getconn = AsyncMock(return_value=conn)
    native.putconn = AsyncMock()
    native.get_stats.return_value = {"pool_size": 4, "pool_available": 3, "requests_waiting": 2}
    native.closed = False
    native.name = "dbaccess"
    return native


@pytest.fixture
def pool_cls(native):
    with patch("dbaccess.postgres_pool.AsyncConnectionPool", return_value=native) as cls:
        yield cls


@pytest.fixture
def pool(config, pool_cls):
    return PostgresConnectionPool(config)


class TestConninfo:
    """Tests for the libpq connection string."""

    def test_basic_fields(self, config):
        """Test connection info fields."""
        info = conninfo_to_dict(PostgresConnectionPool(config).conninfo)

        assert info["host"] == "pg.local"
        assert info["port"] == "5433"
        assert info["dbname"] == "app"
        assert info["user"] == "svc"
        assert info["password"] == "secret"
        assert info["application_name"] == "dbaccess"
        assert info["connect_timeout"] == "2"
        assert "sslmode" not in info

    def test_connect_timeout_rounds_up_to_a_second(self):
        """Test sub-second connect timeouts round up."""
        config = PoolConfig(
            db_type="postgres", database="app", user="svc", connection_timeout_ms=300
        )
        info = conninfo_to_dict(PostgresConnectionPool(config).conninfo)

        assert info["connect_timeout"] == "1"

    def test_ssl_require(self):
        """Test sslmode=require."""
        config = PoolConfig(db_type="postgres", database="app", user="svc", ssl=SslConfig())
        info = conninfo_to_dict(PostgresConnectionPool(config).conninfo)

        assert info["sslmode"] == "require"
        assert "sslrootcert" not in info

    def test_ssl_verify(self):
        """Test certificate verification settings."""
        ssl = SslConfig(reject_unauthorized=True, ca="/ca.pem", cert="/c.pem", key="/k.pem")
        config = PoolConfig(db_type="postgres", database="app", user="svc", ssl=ssl)
        info = conninfo_to_dict(PostgresConnectionPool(config).conninfo)

        assert info["sslmode"] == "verify-full"
        assert (info["sslrootcert"], info["sslcert"], info["sslkey"]) == (
            "/ca.pem",
            "/c.pem",
            "/k.pem",
        )


class TestLifecycle:
    """Tests for native pool creation and teardown."""

    @pytest.mark.asyncio
    async def test_initialize_builds_native_pool(self, pool, pool_cls, native, conn):
        """Test native pool settings and self-test."""
        await pool.initialize()

        kwargs = pool_cls.call_args.kwargs
        assert kwargs["min_size"] == 1
        assert kwargs["max_size"] == 5
        assert kwargs["kwargs"]["autocommit"] is True
        assert kwargs["open"] is False
        assert kwargs["max_idle"] == 30.0
        assert kwargs["timeout"] == 2.0
        native.open.assert_awaited_once_with(wait=True, timeout=2.0)

        # Self-test ran and its connection went back
        assert conn.cursors[0].executed == [("SELECT 1 AS health_check", None)]
        native.putconn.assert_awaited_once_with(conn)
        assert pool.is_connected()

    @pytest.mark.asyncio
    async def test_open_failure_closes_half_built_pool(self, pool, native):
        """Test a failed open closes the native pool."""
        native.open.side_effect = RuntimeError("could not connect")

        with pytest.raises(DBConnectionError, match="could not connect"):
            await pool.initialize()

        native.close.assert_awaited()
        assert not pool.is_initialized

    @pytest.mark.asyncio
    async def test_close(self, pool, native):
        """Test closing the native pool."""
        await pool.initialize()
        await pool.close()

        native.close.assert_awaited_once_with(timeout=10.0)
        assert not pool.is_connected()

    @pytest.mark.asyncio
    async def test_configure_hook_sets_utc(self, pool, caplog):
        """Test new connections are configured for UTC."""
        connection = MagicMock()
        connection.execute = AsyncMock()

        with caplog.at_level(logging.DEBUG, logger="dbaccess.interface"):
            await pool._configure_connection(connection)

        connection.execute.assert_awaited_once_with("SET timezone = 'UTC'")
        assert "New PostgreSQL connection established" in caplog.text

    def test_reconnect_failure_is_logged(self, pool, native, caplog):
        """Test the reconnect_failed hook logs an error."""
        with caplog.at_level(logging.ERROR):
            pool._reconnect_failed(native)

        assert "failed to reconnect" in caplog.text


class TestQueries:
    """Tests for statement execution through psycopg cursors."""

    @pytest.mark.asyncio
    async def test_select(self, pool, conn):
        """Test a SELECT through psycopg."""
        await pool.initialize()
        conn.script([{"id": 5, "name": "x"}])

        result = await pool.query("SELECT id, name FROM users WHERE id = %s", {"id": 5})

        assert conn.cursors[-1].executed == [("SELECT id, name FROM users WHERE id = %s", [5])]
        assert result.rows == [{"id": 5, "name": "x"}]
        assert result.row_count == 1
        assert [f["name"] for f in result.fields] == ["id", "name"]
        assert result.fields[0]["type_code"] == 23

    @pytest.mark.asyncio
    async def test_no_params_skips_placeholder_parsing(self, pool, conn):
        """Test statements without parameters pass None."""
        await pool.initialize()
        conn.script([{"pct": 1}])

        await pool.query("SELECT 1 AS pct WHERE 'a' LIKE 'a%'")

        assert conn.cursors[-1].executed[0][1] is None

    @pytest.mark.asyncio
    async def test_max_rows_uses_fetchmany(self, pool, conn):
        """Test the row cap uses fetchmany."""
        await pool.initialize()
        conn.script([{"id": i} for i in range(5)])

        result = await pool.query("SELECT id FROM users", options=QueryOptions(max_rows=2))

        assert [row["id"] for row in result.rows] == [0, 1]

    @pytest.mark.asyncio
    async def test_dml_without_result_set(self, pool, conn):
        """Test DML without a result set."""
        await pool.initialize()
        conn.results.append(([], None, 3, None))

        result = await pool.query("UPDATE users SET active = %s", [False])

        assert result.rows == []
        assert result.row_count == 3
        assert result.fields == []

    @pytest.mark.asyncio
    async def test_driver_error_becomes_query_error(self, pool, conn, native):
        """Test psycopg errors become QueryError."""
        await pool.initialize()
        conn.script([], names=[], error=ValueError("relation does not exist"))

        with pytest.raises(QueryError, match="relation does not exist"):
            await pool.query("SELECT * FROM missing")

        assert native.putconn.await_count == native.getconn.await_count


class TestTransactions:
    """Tests for explicit BEGIN / COMMIT / ROLLBACK."""

    @pytest.mark.asyncio
    async def test_commit(self, pool, conn, native):
        """Test committing a PostgreSQL transaction."""
        tx = await pool.begin_transaction()
        conn.script([], names=[], rowcount=1)
        await tx.query("INSERT INTO t (a) VALUES (%s)", [1])
        await tx.commit()

        assert [c.args[0] for c in conn.execute.await_args_list] == ["BEGIN", "COMMIT"]
        assert native.putconn.await_count == native.getconn.await_count

    @pytest.mark.asyncio
    async def test_rollback(self, pool, conn):
        """Test rolling back a PostgreSQL transaction."""
        tx = await pool.begin_transaction()
        await tx.rollback()

        assert [c.args[0] for c in conn.execute.await_args_list] == ["BEGIN", "ROLLBACK"]


class TestStatus:
    """Tests for occupancy mapped from get_stats()."""

    @pytest.mark.asyncio
    async def test_status_from_stats(self, pool):
        """Test status from pool stats."""
        await pool.initialize()

        assert pool.get_pool_status() == PoolStatus(
            total_connections=4,
            active_connections=1,
            idle_connections=3,
            pending_requests=2,
        )

    @pytest.mark.asyncio
    async def test_missing_stats_default_to_zero(self, pool, native):
        """Test missing stats count as zero."""
        await pool.initialize()
        native.get_stats.return_value = {}

        assert pool.get_pool_status() == PoolStatus()

    @pytest.mark.asyncio
    async def test_is_connected_follows_native_pool(self, pool, native):
        """Test is_connected follows the native closed flag."""
        await pool.initialize()
        native.closed = True

        assert not pool.is_connected()
