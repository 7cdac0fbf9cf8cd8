"""Tests for the dbaccess command-line interface."""

from unittest.mock import Mock

import pytest

from dbaccess import cli
from dbaccess.types import DatabaseResult, PoolStatus
from fakes import FakeConnectionPool


@pytest.fixture
def pool():
    return FakeConnectionPool()


@pytest.fixture
def get_pool(monkeypatch, pool):
    factory = Mock(return_value=pool)
    monkeypatch.setattr(cli, "get_pool", factory)
    monkeypatch.setattr(cli, "setup_logging", Mock())
    return factory


class TestParser:
    """Tests for argument parsing."""

    def test_query_arguments(self):
        """Test parsing of the query subcommand and its options."""
        args = cli.create_parser().parse_args(
            ["--db-type", "oracle", "query", "SELECT :1 FROM DUAL", "-p", "1", "-p", "2", "--timeout-ms", "500"]
        )

        assert args.db_type == "oracle"
        assert args.command == "query"
        assert args.sql == "SELECT :1 FROM DUAL"
        assert args.param == ["1", "2"]
        assert args.timeout_ms == 500

    def test_rejects_unknown_db_type(self):
        """Test that an unsupported --db-type is rejected."""
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["--db-type", "mysql", "health"])

    def test_no_command_prints_help(self, capsys):
        """Test that running without a command prints usage."""
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out


class TestCommands:
    """Tests for command exit codes and output."""

    def test_health_ok(self, get_pool, pool, capsys):
        """Test health command on a reachable database."""
        assert cli.main(["health"]) == 0

        assert "reachable" in capsys.readouterr().out
        assert pool.close_calls == 1
        get_pool.assert_called_once_with(None)

    def test_health_failure(self, get_pool, pool, capsys):
        """Test health command exit code when the database is down."""
        pool.create_error = OSError("connection refused")

        assert cli.main(["--db-type", "postgres", "health"]) == 1

        assert "health check failed" in capsys.readouterr().err
        get_pool.assert_called_once_with("postgres")

    def test_status(self, get_pool, pool, capsys):
        """Test status command output."""
        assert cli.main(["status"]) == 0

        out = capsys.readouterr().out
        assert "Total connections" in out
        assert "Pending requests" in out
        assert not pool.is_connected()

    def test_query(self, get_pool, pool, capsys):
        """Test query command prints rows and passes parameters."""
        assert cli.main(["query", "SELECT * FROM users WHERE id = %s", "-p", "1"]) == 0

        out = capsys.readouterr().out
        assert "alice" in out
        assert "1 row(s)" in out
        assert pool.natives[0]._idle[-1].statements[-1] == (
            "SELECT * FROM users WHERE id = %s",
            ["1"],
        )

    def test_query_failure(self, get_pool, pool, capsys):
        """Test query command reports a failed statement."""
        pool.execute_error = RuntimeError("syntax error")

        assert cli.main(["query", "SELEC 1"]) == 1

        assert "QueryError" in capsys.readouterr().err
        assert pool.close_calls == 1


    def test_invalid_configuration(self, monkeypatch, capsys):
        """Test a configuration error exits with 1 and a message instead of a traceback."""
        monkeypatch.setattr(cli, "get_pool", Mock(side_effect=ValueError("Unknown environment: PROD9")))
        monkeypatch.setattr(cli, "setup_logging", Mock())

        assert cli.main(["health"]) == 1

        assert "Unknown environment: PROD9" in capsys.readouterr().err

class TestRendering:
    """Tests for rich table rendering."""

    def test_render_rows_shows_null(self):
        """Test that None values render as NULL."""
        table = cli.render_rows(DatabaseResult(rows=[{"id": 1, "name": None}], row_count=1))

        assert [c.header for c in table.columns] == ["id", "name"]
        assert list(table.columns[1].cells) == ["NULL"]

    def test_render_rows_uses_fields_without_rows(self):
        """Test that column headers come from fields when there are no rows."""
        result = DatabaseResult(rows=[], row_count=0, fields=[{"name": "id"}])

        assert [c.header for c in cli.render_rows(result).columns] == ["id"]

    def test_render_status(self):
        """Test rendering pool occupancy."""
        table = cli.render_status(PoolStatus(4, 1, 3, 0))

        assert list(table.columns[1].cells) == ["4", "1", "3", "0"]
