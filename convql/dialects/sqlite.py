"""SQLite dialect."""

import logging
import urllib.parse

from typing import ClassVar, Optional

from .base import Dialect

logger = logging.getLogger(__name__)


class SqliteDialect(Dialect):
    """Dialect for SQLite (scheme sqlite)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("sqlite",)
    IDENTIFIER_DELIMITER: ClassVar[Optional[str]] = "`"

    def connect(self, url: str):
        import sqlite3
        parsed = urllib.parse.urlparse(url)
        path = (parsed.path or "")[1:] or parsed.hostname
        logger.info("Connecting to SQLite database %s", path)
        # isolation_level=None: no implicit transactions, BEGIN/COMMIT are explicit
        conn = sqlite3.connect(path, isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn
