"""Executor boundary: a DB-API 2.0 connection paired with its dialect."""

import logging
import urllib.parse
from typing import Any, Callable, Optional, Sequence, Mapping

from .dialects import Dialect, get_dialect_for_scheme

logger = logging.getLogger(__name__)


class Connection:
    """Executes statements on a raw driver connection.

    All the rest of convql talks to the database through this object: run a
    statement, read rows as dicts, quote a string, fetch the last generated id.
    """

    def __init__(self, raw: Any, dialect: Dialect):
        self.raw = raw
        self.dialect = dialect
        self._last_cursor = None

    def execute(self, sql: str, parameters: Optional[Sequence[Any] | Mapping[str, Any]] = None):
        """Run one statement and return its cursor.

        Statements without parameters are executed without a parameter
        argument, so that drivers using ``%s`` placeholders leave ``%`` alone.
        The cursor of the previous statement is closed.
        """
        if self._last_cursor is not None:
            self._last_cursor.close()
            self._last_cursor = None
        cursor = self.raw.cursor()
        if parameters:
            cursor.execute(self.dialect.prepare(sql), parameters)
        else:
            cursor.execute(sql)
        self._last_cursor = cursor
        return cursor

    @staticmethod
    def fetch_all(cursor) -> list[dict[str, Any]]:
        """Return the remaining rows of ``cursor`` as column name -> value dicts."""
        if cursor.description is None:
            return []
        names = [column[0] for column in cursor.description]
        return [dict(zip(names, row)) for row in cursor.fetchall()]

    def quote_string(self, value: str) -> str:
        return self.dialect.quote_string(value)

    def last_insert_id(self, sequence: Optional[str] = None) -> Any:
        """Id generated by the last INSERT; ``sequence`` is used by sequence-based engines."""
        return self.dialect.last_insert_id(self.raw, self._last_cursor, sequence)

    def close(self) -> None:
        if self._last_cursor is not None:
            self._last_cursor.close()
            self._last_cursor = None
        self.raw.close()


def connect(database_url: str | Callable[[], str]) -> Connection:
    """Open a connection for a URL such as ``sqlite:////tmp/db.sqlite3``.

    ``database_url`` may also be a callable returning the URL.
    """
    if callable(database_url):
        database_url = database_url()
    if not isinstance(database_url, str):
        raise ValueError("`database_url` should be either a `str`, or a method returning a `str`")
    parsed_url = urllib.parse.urlparse(database_url)
    dialect = get_dialect_for_scheme(parsed_url.scheme)
    return Connection(dialect.connect(database_url), dialect)
