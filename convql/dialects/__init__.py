"""Database engines convql can talk to, looked up by URL scheme."""

from .base import Dialect
from .sqlite import SqliteDialect
from .mysql import MysqlDialect
from .postgres import PostgresDialect

_DIALECTS_BY_SCHEME: dict[str, type[Dialect]] = {
    scheme: dialect_cls
    for dialect_cls in (SqliteDialect, MysqlDialect, PostgresDialect)
    for scheme in dialect_cls.SUPPORTED_SCHEMA
}


def get_dialect_for_scheme(scheme: str) -> Dialect:
    """Dialect for a URL scheme; driver suffixes are ignored (``postgresql+psycopg2``)."""
    dialect_cls = _DIALECTS_BY_SCHEME.get((scheme or "").split("+")[0].lower())
    if dialect_cls is None:
        raise ValueError(f"Unsupported database scheme: {scheme}")
    return dialect_cls()


__all__ = [
    "Dialect",
    "SqliteDialect",
    "MysqlDialect",
    "PostgresDialect",
    "get_dialect_for_scheme",
]
