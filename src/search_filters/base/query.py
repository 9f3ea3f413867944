# src/search_filters/base/query.py
import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import FilterConfigurationError

# --- Setup Logging ---
log = logging.getLogger(__name__)


def quote_identifier(identifier: str) -> str:
    """Quote an identifier with double quotes, escaping embedded quotes."""
    safe_identifier = identifier.replace('"', '""')
    return f'"{safe_identifier}"'


# --- Query Operator Enum ---
class QueryOperator(Enum):
    """Enumeration of predicate operators a filter can add."""

    # Comparison
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    LT = "lt"
    GTE = "ge"
    LTE = "le"
    # Membership
    IN = "in"
    NIN = "nin"
    # String Specific
    LIKE = "like"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"
    # Existence
    EXISTS = "exists"


class JoinType(Enum):
    INNER = "INNER"
    LEFT = "LEFT"


# --- Query Parts ---
@dataclass(frozen=True)
class ColumnRef:
    """A table-qualified column reference, '<table>.<column>'."""

    table: str
    column: str

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"

    def sql(self) -> str:
        return f"{quote_identifier(self.table)}.{quote_identifier(self.column)}"


@dataclass(frozen=True)
class JoinCondition:
    """Equality between two qualified columns, used as a join's ON clause."""

    left: ColumnRef
    right: ColumnRef

    def sql(self) -> str:
        return f"{self.left.sql()} = {self.right.sql()}"


@dataclass(frozen=True)
class JoinClause:
    """
    A join of table, optionally under an alias.

    Columns of the joined table are referenced through name: the alias when
    one is set, the table name otherwise.
    """

    join_type: JoinType
    table: str
    on: JoinCondition
    alias: Optional[str] = None

    @property
    def name(self) -> str:
        return self.alias or self.table

    def sql(self) -> str:
        target = quote_identifier(self.table)
        if self.alias:
            target += f" AS {quote_identifier(self.alias)}"
        return f"{self.join_type.value} JOIN {target} ON {self.on.sql()}"


@dataclass(frozen=True)
class Condition:
    """A single predicate: column <operator> value."""

    column: ColumnRef
    operator: QueryOperator
    value: Any = None


# --- Query Builder ---
class SQLQuery:
    """
    Mutable accumulator for a SELECT statement.

    Joins are keyed by the name they are referenced by (alias or table) and
    kept in insertion order. Adding the same join twice is a no-op; adding a
    different join under a name that is already joined raises
    FilterConfigurationError. Where conditions are combined with AND.
    """

    def __init__(
        self,
        from_table: Optional[str] = None,
        select: Optional[List[ColumnRef]] = None,
        distinct: bool = False,
    ):
        self.from_table = from_table
        self.select: List[ColumnRef] = list(select or [])
        self.distinct = distinct
        self._joins: Dict[str, JoinClause] = {}
        self.where: List[Condition] = []

    @property
    def joins(self) -> List[JoinClause]:
        return list(self._joins.values())

    @property
    def joined_tables(self) -> List[str]:
        """Reference names of the joined tables, in join order."""
        return list(self._joins.keys())

    def get_join(self, name: str) -> Optional[JoinClause]:
        return self._joins.get(name)

    def add_join(self, clause: JoinClause) -> "SQLQuery":
        existing = self._joins.get(clause.name)
        if existing == clause:
            log.debug(f"Join on '{clause.name}' already present, skipping")
            return self
        if existing is not None or clause.name == self.from_table:
            raise FilterConfigurationError(
                f"'{clause.name}' is already used by another join of this query; "
                f"join it under a different alias."
            )
        log.debug(f"Adding join: {clause!r}")
        self._joins[clause.name] = clause
        return self

    def add_inner_join(self, table: str, on: JoinCondition) -> "SQLQuery":
        return self.add_join(JoinClause(JoinType.INNER, table, on))

    def add_left_join(self, table: str, on: JoinCondition) -> "SQLQuery":
        return self.add_join(JoinClause(JoinType.LEFT, table, on))

    def add_where(self, condition: Condition) -> "SQLQuery":
        if not isinstance(condition, Condition):
            raise TypeError(
                f"add_where() requires a Condition, got {type(condition).__name__}"
            )
        log.debug(f"Adding where condition: {condition!r}")
        self.where.append(condition)
        return self

    def add_where_equals(self, column: ColumnRef, value: Any) -> "SQLQuery":
        return self.add_where(Condition(column, QueryOperator.EQ, value))

    def copy(self) -> "SQLQuery":
        """Creates a copy whose joins and conditions can be changed independently."""
        duplicate = copy.copy(self)
        duplicate.select = list(self.select)
        duplicate._joins = dict(self._joins)
        duplicate.where = list(self.where)
        return duplicate

    def __repr__(self) -> str:
        return (
            f"SQLQuery(from_table={self.from_table!r}, joins={self.joins!r}, "
            f"where={self.where!r})"
        )

    # --- Rendering ---

    def to_sql(self, start_index: int = 1) -> Tuple[str, List[Any]]:
        """Renders the query with $n placeholders. Returns (sql, params)."""
        if not self.from_table:
            raise ValueError("SQLQuery has no FROM table.")

        columns = ", ".join(col.sql() for col in self.select) if self.select else "*"
        query = f"SELECT {'DISTINCT ' if self.distinct else ''}{columns} "
        query += f"FROM {quote_identifier(self.from_table)}"
        for clause in self._joins.values():
            query += f" {clause.sql()}"

        where_clause, params, _ = self._transform_conditions(start_index)
        if where_clause:
            query += f" WHERE {where_clause}"
        return query, params

    def _transform_conditions(self, start_index: int) -> Tuple[str, List[Any], int]:
        clauses = []
        params: List[Any] = []
        current_index = start_index

        sql_op_map = {
            QueryOperator.EQ: "=",
            QueryOperator.NE: "!=",
            QueryOperator.GT: ">",
            QueryOperator.GTE: ">=",
            QueryOperator.LT: "<",
            QueryOperator.LTE: "<=",
        }

        for condition in self.where:
            sql_field_expr = condition.column.sql()
            operator = condition.operator
            value = condition.value

            if operator in sql_op_map:
                if value is None and operator in (QueryOperator.EQ, QueryOperator.NE):
                    negate = "NOT " if operator == QueryOperator.NE else ""
                    clause = f"{sql_field_expr} IS {negate}NULL"
                else:
                    clause = f"{sql_field_expr} {sql_op_map[operator]} ${current_index}"
                    params.append(value)
                    current_index += 1
            elif operator in (QueryOperator.IN, QueryOperator.NIN):
                if not isinstance(value, (list, tuple)):
                    raise ValueError(f"Value for {operator.value} must be list/tuple")
                if not value:
                    clause = "0" if operator == QueryOperator.IN else "1"
                else:
                    placeholders = [f"${current_index + i}" for i in range(len(value))]
                    sql_operator = "IN" if operator == QueryOperator.IN else "NOT IN"
                    clause = f"{sql_field_expr} {sql_operator} ({', '.join(placeholders)})"
                    params.extend(value)
                    current_index += len(value)
            elif operator == QueryOperator.LIKE:
                clause = f"{sql_field_expr} LIKE '%' || ${current_index} || '%'"
                params.append(value)
                current_index += 1
            elif operator == QueryOperator.STARTSWITH:
                clause = f"{sql_field_expr} LIKE ${current_index} || '%'"
                params.append(value)
                current_index += 1
            elif operator == QueryOperator.ENDSWITH:
                clause = f"{sql_field_expr} LIKE '%' || ${current_index}"
                params.append(value)
                current_index += 1
            elif operator == QueryOperator.EXISTS:
                clause = f"{sql_field_expr} IS {'NOT ' if value else ''}NULL"
            else:
                raise ValueError(f"Unsupported operator: {operator}")
            clauses.append(f"({clause})")

        return " AND ".join(clauses), params, current_index
