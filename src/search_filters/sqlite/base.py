# src/search_filters/sqlite/base.py
import logging
import re
from datetime import date, datetime
from logging import LoggerAdapter
from typing import Any, Dict, List, Mapping, Union, get_args, get_origin

import aiosqlite

from ..base.query import SQLQuery, quote_identifier
from ..registry.model_registry import PRIMARY_KEY, ModelRegistry

logger = logging.getLogger(__name__)  # Module-level logger


def _sqlite_column_type(hint: Any) -> str:
    """Maps a field annotation to an SQLite column type."""
    origin = get_origin(hint)
    if origin is Union:
        non_none = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(non_none) != 1:
            return "TEXT"
        hint = non_none[0]

    if hint is int or hint is bool:
        return "INTEGER"
    if hint is float:
        return "REAL"
    if hint is bytes:
        return "BLOB"
    return "TEXT"


def _prepare_value_for_sqlite(value: Any) -> Any:
    """Prepares a single basic Python value for SQLite."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SQLiteSearchExecutor:
    """
    Runs assembled search queries against SQLite using aiosqlite.

    Expects an open `aiosqlite.Connection`, managed by the caller.
    """

    def __init__(self, db_connection: aiosqlite.Connection):
        if not isinstance(db_connection, aiosqlite.Connection):
            raise TypeError("db_connection must be an instance of aiosqlite.Connection")
        self._conn = db_connection
        self._conn.row_factory = aiosqlite.Row

    @staticmethod
    def render(query: SQLQuery) -> tuple:
        """The query as SQLite SQL with '?' placeholders, and its parameters."""
        sql, params = query.to_sql()
        sql = re.sub(r"\$\d+", "?", sql)
        params = [
            _prepare_value_for_sqlite(value) for value in params
        ]
        return sql, params

    async def create_schema(
        self, registry: ModelRegistry, logger_adapter: LoggerAdapter
    ) -> None:
        """Creates a table per registered entity type and per many-many join table."""
        statements = []
        for entity_type in registry.entity_types:
            cols_def = []
            for name, hint in registry.column_types_of(entity_type).items():
                if name == PRIMARY_KEY:
                    cols_def.append(f"{quote_identifier(name)} INTEGER PRIMARY KEY")
                else:
                    cols_def.append(
                        f"{quote_identifier(name)} {_sqlite_column_type(hint)}"
                    )
            statements.append(
                f"CREATE TABLE IF NOT EXISTS "
                f"{quote_identifier(registry.table_of(entity_type))} "
                f"({', '.join(cols_def)})"
            )

        for definition in registry.many_many_tables():
            statements.append(
                f"CREATE TABLE IF NOT EXISTS {quote_identifier(definition.join_table)} "
                f"({quote_identifier(PRIMARY_KEY)} INTEGER PRIMARY KEY, "
                f"{quote_identifier(definition.parent_key)} INTEGER, "
                f"{quote_identifier(definition.child_key)} INTEGER)"
            )

        try:
            for statement in statements:
                logger_adapter.debug(f"Schema creation SQL: {statement}")
                await self._conn.execute(statement)
            await self._conn.commit()
        except Exception as e:
            await self._conn.rollback()
            logger_adapter.error(f"Error during schema creation: {e}", exc_info=True)
            raise
        logger_adapter.info(f"Created {len(statements)} table(s).")

    async def insert(
        self, table: str, values: Mapping[str, Any], logger_adapter: LoggerAdapter
    ) -> int:
        """Inserts one row and returns its row id."""
        fields = list(values.keys())
        query = (
            f"INSERT INTO {quote_identifier(table)} "
            f"({', '.join(quote_identifier(f) for f in fields)}) "
            f"VALUES ({', '.join('?' for _ in fields)})"
        )
        params = [_prepare_value_for_sqlite(values[f]) for f in fields]
        try:
            async with self._conn.execute(query, params) as cursor:
                last_id = cursor.lastrowid
            await self._conn.commit()
        except Exception as e:
            await self._conn.rollback()
            logger_adapter.error(f"Error during insert into '{table}': {e}", exc_info=True)
            raise
        return last_id

    async def fetch_all(
        self, query: SQLQuery, logger_adapter: LoggerAdapter
    ) -> List[Dict[str, Any]]:
        sql, params = self.render(query)
        logger_adapter.debug(f"SQLite Query: {sql}")
        logger_adapter.debug(f"SQLite Params: {params}")
        try:
            async with self._conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        except Exception as e:
            logger_adapter.error(f"Error during search: {e}", exc_info=True)
            raise
        return [dict(row) for row in rows]

    async def count(self, query: SQLQuery, logger_adapter: LoggerAdapter) -> int:
        sql, params = self.render(query)
        count_sql = f"SELECT COUNT(*) FROM ({sql})"
        logger_adapter.debug(f"SQLite Count Query: {count_sql}")
        try:
            async with self._conn.execute(count_sql, params) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            logger_adapter.error(f"Error during count: {e}", exc_info=True)
            raise
        return row[0] if row else 0
