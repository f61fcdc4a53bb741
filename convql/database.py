"""Database handle: table access, schema hints, SQL statements and quoting.

This module provides the root object of convql. A Database wraps a
Connection, owns the ConventionRegistry that relations are inferred from,
builds the SELECT/INSERT/UPDATE/DELETE statements issued by results and rows,
and reports every statement to an optional query observer.
"""

from __future__ import annotations

import datetime
import decimal
import logging
from contextlib import contextmanager
from typing import Any, Callable, Mapping, Optional, Sequence

from .connection import Connection, connect
from .conventions import ConventionRegistry, split_relation_name
from .literal import Literal
from .result import Result
from .row import Row
from .transaction import TransactionManager

logger = logging.getLogger("convql")

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_UNSET = object()


class Database:
    """Root handle of convql.

    Examples:
        db = Database("sqlite:////tmp/blog.sqlite3")
        db.conventions.set_alias("author", "user")
        for post in db.table("post").where("is_published", 1):
            print(post["title"], post.related("author").fetch()["name"])
    """

    def __init__(
        self,
        connection: Connection | str | Callable[[], str],
        conventions: Optional[ConventionRegistry] = None,
        identifier_delimiter: Optional[str] = _UNSET,
        on_query: Optional[Callable[[str, Any], None]] = None,
    ):
        if not isinstance(connection, Connection):
            connection = connect(connection)
        self.connection = connection
        self.conventions = conventions if conventions is not None else ConventionRegistry()
        if identifier_delimiter is _UNSET:
            identifier_delimiter = connection.dialect.IDENTIFIER_DELIMITER
        self.identifier_delimiter = identifier_delimiter
        self.on_query = on_query
        self._transactions = TransactionManager(connection, self._execute)

    # table and relation access

    def table(self, name: str, id: Any = None) -> Result | Row | None:
        """Return a result for table ``name``, or the row with primary key ``id``.

        A ``List`` suffix on ``name`` is ignored. For compound primary keys,
        ``id`` must be a mapping of column to value. Returns None when no row
        has the given id.
        """
        name, _ = split_relation_name(name)
        result = self.create_result(self, name)
        if id is None:
            return result
        if not isinstance(id, Mapping):
            primary = self.conventions.get_primary(self.conventions.get_alias(name))
            if isinstance(primary, list):
                raise ValueError(
                    f"Table {name} has a compound primary key {primary}; pass the id as a mapping"
                )
            id = {primary: id}
        return result.where(id).fetch()

    def create_row(self, name: str, properties: Optional[Mapping[str, Any]] = None,
                   result: Optional[Result] = None) -> Row:
        """Create a row of table (or alias) ``name``, optionally bound to ``result``."""
        return Row(self, name, properties, result)

    def create_result(self, parent: Database | Result | Row, name: str) -> Result:
        """Create a result for table ``name``, or for relation ``name`` of a row or result."""
        if parent is self:
            return Result.for_table(self, name)
        return Result.for_relation(parent, name)

    def literal(self, value: str) -> Literal:
        """Create an SQL literal, e.g. ``db.literal("CURRENT_TIMESTAMP")``."""
        return Literal(value)

    # executor

    def last_insert_id(self, sequence: Optional[str] = None) -> Any:
        return self.connection.last_insert_id(sequence)

    def begin(self) -> bool:
        return self._transactions.begin()

    def commit(self) -> bool:
        return self._transactions.commit()

    def rollback(self) -> bool:
        return self._transactions.rollback()

    @contextmanager
    def transaction(self):
        """Run the enclosed block in a transaction (a SAVEPOINT when nested)."""
        with self._transactions.transaction() as t:
            yield t

    def _execute(self, sql: str, params: Sequence[Any] | Mapping[str, Any] = ()):
        """Report a statement to the logger and the observer, then run it."""
        logger.debug("%s %r", sql, params)
        if self.on_query is not None:
            self.on_query(sql, params)
        return self.connection.execute(sql, params)

    # statements

    def select(
        self,
        table: str,
        exprs: Optional[str | Sequence[str]] = None,
        where: Sequence[str] = (),
        order_by: Sequence[str] = (),
        limit_count: Optional[int] = None,
        limit_offset: Optional[int] = None,
        params: Sequence[Any] | Mapping[str, Any] = (),
    ) -> list[dict[str, Any]]:
        """Run ``SELECT exprs FROM table ...`` and return rows as dicts."""
        sql = "SELECT "
        if not exprs:
            sql += "*"
        elif isinstance(exprs, str):
            sql += exprs
        else:
            sql += ", ".join(exprs)
        sql += " FROM " + self.quote_identifier(self.conventions.rewrite_table(table))
        sql += self._suffix(where, order_by, limit_count, limit_offset)
        cursor = self._execute(sql, params)
        return self.connection.fetch_all(cursor)

    def insert(self, table: str, rows: Mapping[str, Any] | Sequence[Mapping[str, Any]],
               method: Optional[str] = None):
        """Insert one or more rows into a table.

        The ``method`` parameter selects one of the following insert methods:

        - ``"prepared"``: prepare one statement and execute it once per row
          with bound parameters (literals are bound as their text);
        - ``"batch"``: a single statement with one value list per row;
        - ``None``: one statement per row with quoted values.

        Returns the cursor of the last statement, or None if nothing was issued.
        """
        if method not in (None, "prepared", "batch"):
            raise ValueError(f"Unknown insert method: {method!r}")
        if isinstance(rows, Mapping):
            rows = [rows]
        rows = list(rows)
        if not rows:
            return None

        # union of all columns, in order of appearance
        columns = list(dict.fromkeys(column for row in rows for column in row))
        if not columns:
            return None

        quoted_columns = ", ".join(map(self.quote_identifier, columns))
        sql = f"INSERT INTO {self.quote_identifier(self.conventions.rewrite_table(table))} ({quoted_columns}) VALUES "

        cursor = None
        if method == "prepared":
            placeholder = self.connection.dialect.PLACEHOLDER
            sql += "(" + ", ".join(placeholder for _ in columns) + ")"
            for row in rows:
                values = [self._bindable(row.get(column)) for column in columns]
                cursor = self._execute(sql, values)
            return cursor

        lists = [
            "(" + ", ".join(self.quote(row.get(column)) for column in columns) + ")"
            for row in rows
        ]
        if method == "batch":
            return self._execute(sql + ", ".join(lists))
        for values in lists:
            cursor = self._execute(sql + values)
        return cursor

    def update(self, table: str, data: Mapping[str, Any], where: Sequence[str] = (),
               params: Sequence[Any] | Mapping[str, Any] = ()):
        """Run ``UPDATE table SET data [WHERE where]``; empty data issues nothing."""
        if not data:
            return None
        assignments = ", ".join(
            f"{self.quote_identifier(column)} = {self.quote(value)}" for column, value in data.items()
        )
        sql = f"UPDATE {self.quote_identifier(self.conventions.rewrite_table(table))} SET {assignments}"
        sql += self._suffix(where)
        return self._execute(sql, params)

    def delete(self, table: str, where: Sequence[str] = (),
               params: Sequence[Any] | Mapping[str, Any] = ()):
        """Run ``DELETE FROM table [WHERE where]``."""
        sql = f"DELETE FROM {self.quote_identifier(self.conventions.rewrite_table(table))}"
        sql += self._suffix(where)
        return self._execute(sql, params)

    @staticmethod
    def _suffix(where: Sequence[str], order_by: Sequence[str] = (),
                limit_count: Optional[int] = None, limit_offset: Optional[int] = None) -> str:
        """WHERE / ORDER BY / LIMIT suffix shared by all statements."""
        suffix = ""
        if where:
            if len(where) > 1:
                where = [f"({condition})" for condition in where]
            suffix += " WHERE " + " AND ".join(where)
        if order_by:
            suffix += " ORDER BY " + ", ".join(order_by)
        if limit_count is not None:
            suffix += f" LIMIT {int(limit_count)}"
            if limit_offset is not None:
                suffix += f" OFFSET {int(limit_offset)}"
        return suffix

    # predicates

    def is_(self, column: str, value: Any, not_: bool = False) -> str:
        """Build an SQL condition expressing that "column is value".

        Lists and tuples mean "column is in value"; None and literals are
        handled. An empty list matches nothing (``0=1``), or everything when
        negated (``1=1``).
        """
        column = self.quote_identifier(column)
        if not isinstance(value, (list, tuple)):
            value = [value]

        if len(value) == 1:
            value = value[0]
            if value is None:
                return f"{column} IS NOT NULL" if not_ else f"{column} IS NULL"
            return f"{column} {'!=' if not_ else '='} {self.quote(value)}"

        if not value:
            return "1=1" if not_ else "0=1"

        values = [self.quote(v) for v in value if v is not None]
        has_null = any(v is None for v in value)
        clauses = []
        if values:
            clauses.append(f"{column} {'NOT IN' if not_ else 'IN'} ({', '.join(values)})")
        if has_null:
            clauses.append(f"{column} IS NOT NULL" if not_ else f"{column} IS NULL")
        # De Morgan: "in set or null" negates to "not in set and not null"
        return (" AND " if not_ else " OR ").join(clauses)

    def is_not(self, column: str, value: Any) -> str:
        """Build an SQL condition expressing that "column is not value" (or not in it)."""
        return self.is_(column, value, not_=True)

    # quoting

    def format(self, value: Any) -> Any:
        """Format dates and datetimes as ``YYYY-MM-DD HH:MM:SS``; other values pass through."""
        if isinstance(value, (datetime.datetime, datetime.date)):
            return value.strftime(DATETIME_FORMAT)
        return value

    def quote(self, value: Any) -> str:
        """Quote a value for SQL."""
        value = self.format(value)
        if value is None:
            return "NULL"
        if value is False:
            return "'0'"
        if value is True:
            return "'1'"
        if isinstance(value, int):
            return f"'{value}'"
        if isinstance(value, float):
            return f"'{decimal.Decimal(repr(value)):f}'"
        if isinstance(value, decimal.Decimal):
            return f"'{value:f}'"
        if isinstance(value, Literal):
            return value.value
        return self.connection.quote_string(str(value))

    def _bindable(self, value: Any) -> Any:
        """Value as bound to a prepared statement parameter."""
        value = self.format(value)
        if isinstance(value, Literal):
            return value.value
        return value

    def quote_identifier(self, identifier: str) -> str:
        """Quote an identifier, part by part for dotted names; no-op without delimiter."""
        d = self.identifier_delimiter
        if not d:
            return identifier
        return ".".join(d + part.replace(d, d + d) + d for part in identifier.split("."))

    def close(self) -> None:
        self.connection.close()
