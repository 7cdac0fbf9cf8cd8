"""Statement builders for common CRUD patterns.

SqlHelper builds dialect-specific statements (placeholders, RETURNING,
catalog queries) and runs them through a ConnectionPool. Values always go
through bind parameters; identifiers are validated since they cannot be
bound.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from common.logger import get_logger

from .interface import ConnectionPool
from .types import DatabaseResult, DatabaseType, QueryOptions, Row

logger = get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.$]*$")


def validate_identifier(name: str) -> str:
    """Reject table/column names that are not plain (optionally dotted) identifiers.

    Raises:
        ValueError: If the name could inject SQL
    """
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class SqlHelper:
    """CRUD helpers bound to one pool and dialect.

    Example:
        >>> helper = SqlHelper(pool, DatabaseType.POSTGRES)
        >>> await helper.insert("users", {"name": "alice", "age": 30})
        >>> await helper.select_one("SELECT * FROM users WHERE name = %s", ["alice"])
    """

    def __init__(self, pool: ConnectionPool, db_type: DatabaseType | str):
        self.pool = pool
        self.db_type = DatabaseType(db_type)

    @property
    def is_postgres(self) -> bool:
        return self.db_type == DatabaseType.POSTGRES

    def placeholder(self, index: int) -> str:
        """Bind placeholder for the 1-based parameter position."""
        return "%s" if self.is_postgres else f":{index}"

    def build_where_clause(
        self, conditions: Mapping[str, Any] | None, start: int = 1
    ) -> tuple[str, list[Any]]:
        """Build an AND-joined equality clause.

        Args:
            conditions: Column -> value; empty or None matches every row
            start: Position of the first placeholder

        Returns:
            Tuple of (clause, params)
        """
        if not conditions:
            return "1=1", []
        clauses = [
            f"{validate_identifier(column)} = {self.placeholder(start + i)}"
            for i, column in enumerate(conditions)
        ]
        return " AND ".join(clauses), list(conditions.values())

    # Queries

    async def select_one(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> Row | None:
        result = await self.pool.query(sql, params, QueryOptions(max_rows=1))
        return result.rows[0] if result.rows else None

    async def select_many(
        self,
        sql: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
        options: QueryOptions | None = None,
    ) -> list[Row]:
        result = await self.pool.query(sql, params, options)
        return result.rows

    async def count(self, table: str, where: Mapping[str, Any] | None = None) -> int:
        clause, params = self.build_where_clause(where)
        row = await self.select_one(
            f"SELECT COUNT(*) AS total FROM {validate_identifier(table)} WHERE {clause}", params
        )
        if row is None:
            return 0
        return int(next(iter(row.values())))

    async def exists(self, table: str, where: Mapping[str, Any]) -> bool:
        return await self.count(table, where) > 0

    # Writes

    async def insert(self, table: str, data: Mapping[str, Any]) -> DatabaseResult:
        """Insert one row. PostgreSQL returns the inserted row."""
        if not data:
            raise ValueError("insert requires at least one column")
        columns = [validate_identifier(column) for column in data]
        placeholders = ", ".join(self.placeholder(i + 1) for i in range(len(columns)))
        sql = f"INSERT INTO {validate_identifier(table)} ({', '.join(columns)}) VALUES ({placeholders})"
        if self.is_postgres:
            sql += " RETURNING *"

        logger.debug(f"Inserting into {table}: {list(columns)}")
        return await self.pool.query(sql, list(data.values()))

    async def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> DatabaseResult:
        """Insert several rows sharing the first record's columns.

        PostgreSQL uses a single multi-row VALUES statement; Oracle uses
        INSERT ALL.
        """
        if not records:
            return DatabaseResult(rows=[], row_count=0)

        columns = [validate_identifier(column) for column in records[0]]
        column_list = ", ".join(columns)
        params = [record[column] for record in records for column in columns]
        width = len(columns)

        def values_for(row: int) -> str:
            return ", ".join(self.placeholder(row * width + i + 1) for i in range(width))

        table = validate_identifier(table)
        if self.is_postgres:
            rows = ", ".join(f"({values_for(r)})" for r in range(len(records)))
            sql = f"INSERT INTO {table} ({column_list}) VALUES {rows} RETURNING *"
        else:
            intos = " ".join(
                f"INTO {table} ({column_list}) VALUES ({values_for(r)})" for r in range(len(records))
            )
            sql = f"INSERT ALL {intos} SELECT 1 FROM DUAL"

        logger.debug(f"Bulk inserting {len(records)} records into {table}")
        return await self.pool.query(sql, params)

    async def update(
        self, table: str, data: Mapping[str, Any], where: Mapping[str, Any]
    ) -> DatabaseResult:
        if not data:
            raise ValueError("update requires at least one column")
        set_clause = ", ".join(
            f"{validate_identifier(column)} = {self.placeholder(i + 1)}"
            for i, column in enumerate(data)
        )
        where_clause, where_params = self.build_where_clause(where, start=len(data) + 1)
        sql = f"UPDATE {validate_identifier(table)} SET {set_clause} WHERE {where_clause}"
        if self.is_postgres:
            sql += " RETURNING *"

        logger.debug(f"Updating {table} WHERE {where_clause}")
        return await self.pool.query(sql, [*data.values(), *where_params])

    async def delete(self, table: str, where: Mapping[str, Any]) -> DatabaseResult:
        """Delete matching rows. An empty condition is refused."""
        if not where:
            raise ValueError("delete requires at least one condition")
        where_clause, params = self.build_where_clause(where)
        sql = f"DELETE FROM {validate_identifier(table)} WHERE {where_clause}"
        if self.is_postgres:
            sql += " RETURNING *"

        logger.debug(f"Deleting from {table} WHERE {where_clause}")
        return await self.pool.query(sql, params)

    # Catalog

    async def table_exists(self, table: str, schema: str | None = None) -> bool:
        validate_identifier(table)
        if self.is_postgres:
            sql = (
                "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
                "WHERE table_schema = %s AND table_name = %s) AS present"
            )
            params = [schema or "public", table]
        elif schema:
            sql = "SELECT COUNT(*) AS present FROM ALL_TABLES WHERE TABLE_NAME = :1 AND OWNER = :2"
            params = [table.upper(), schema.upper()]
        else:
            sql = "SELECT COUNT(*) AS present FROM USER_TABLES WHERE TABLE_NAME = :1"
            params = [table.upper()]

        row = await self.select_one(sql, params)
        if row is None:
            return False
        return bool(next(iter(row.values())))

    async def get_table_columns(self, table: str, schema: str | None = None) -> list[dict[str, Any]]:
        """Column name, type, nullability and default for a table."""
        validate_identifier(table)
        if self.is_postgres:
            rows = await self.select_many(
                "SELECT column_name, data_type, is_nullable, column_default "
                "FROM information_schema.columns "
                "WHERE table_schema = %s AND table_name = %s ORDER BY ordinal_position",
                [schema or "public", table],
            )
            return [
                {
                    "name": row["column_name"],
                    "type": row["data_type"],
                    "nullable": row["is_nullable"] == "YES",
                    "default": row["column_default"],
                }
                for row in rows
            ]

        if schema:
            sql = (
                "SELECT COLUMN_NAME, DATA_TYPE, NULLABLE, DATA_DEFAULT FROM ALL_TAB_COLUMNS "
                "WHERE TABLE_NAME = :1 AND OWNER = :2 ORDER BY COLUMN_ID"
            )
            params = [table.upper(), schema.upper()]
        else:
            sql = (
                "SELECT COLUMN_NAME, DATA_TYPE, NULLABLE, DATA_DEFAULT FROM USER_TAB_COLUMNS "
                "WHERE TABLE_NAME = :1 ORDER BY COLUMN_ID"
            )
            params = [table.upper()]
        rows = await self.select_many(sql, params)
        return [
            {
                "name": row["COLUMN_NAME"],
                "type": row["DATA_TYPE"],
                "nullable": row["NULLABLE"] == "Y",
                "default": row["DATA_DEFAULT"],
            }
            for row in rows
        ]
