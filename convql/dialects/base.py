"""Base Dialect type: subclasses implement connect() for each engine."""

import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from pydantic import BaseModel

_QUOTED_LITERAL = re.compile(r"'[^']*'")


class Dialect(BaseModel, ABC):
    """Base for database dialects; subclasses implement connect() for a given URL."""

    model_config = {"arbitrary_types_allowed": True}

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ()
    """URL schemes this dialect handles (e.g. ('sqlite',), ('postgresql', 'postgres'))."""

    IDENTIFIER_DELIMITER: ClassVar[Optional[str]] = '"'
    """Character used to quote identifiers; None disables quoting."""

    PLACEHOLDER: ClassVar[str] = "?"
    """Positional parameter marker understood by the driver (DB-API paramstyle)."""

    @abstractmethod
    def connect(self, url: str) -> Any:
        """Return a new raw driver connection for the given URL, in autocommit mode.

        The return value is engine-specific (e.g. sqlite3.Connection, pymysql.Connection).
        """
        ...  # pylint: disable=unnecessary-ellipsis

    def prepare(self, sql: str) -> str:
        """Statement as sent to the driver together with parameters.

        Drivers with ``%s`` placeholders interpolate the whole statement, so
        ``%`` inside quoted literals is doubled.
        """
        if self.PLACEHOLDER != "%s":
            return sql
        return _QUOTED_LITERAL.sub(lambda m: m.group(0).replace("%", "%%"), sql)

    def quote_string(self, value: str) -> str:
        """Quote a string as an SQL literal (standard SQL: double the single quotes)."""
        return "'" + value.replace("'", "''") + "'"

    def last_insert_id(self, connection: Any, cursor: Any, sequence: Optional[str] = None) -> Any:
        """Return the id generated by the last INSERT executed on ``cursor``."""
        return getattr(cursor, "lastrowid", None)
