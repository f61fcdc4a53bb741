"""PostgreSQL dialect."""

import logging
import urllib.parse
from typing import ClassVar, Optional

from .base import Dialect

logger = logging.getLogger(__name__)


class PostgresDialect(Dialect):
    """Dialect for PostgreSQL (scheme postgresql)."""

    SUPPORTED_SCHEMA: ClassVar[tuple[str, ...]] = ("postgresql", "postgres")
    IDENTIFIER_DELIMITER: ClassVar[Optional[str]] = '"'
    PLACEHOLDER: ClassVar[str] = "%s"

    def connect(self, url: str):
        import psycopg2  # pylint: disable=import-outside-toplevel,import-error
        parsed = urllib.parse.urlparse(url)
        logger.info("Connecting to PostgreSQL database %s on %s", parsed.path[1:], parsed.hostname)
        conn = psycopg2.connect(
            host=parsed.hostname,
            user=parsed.username,
            password=parsed.password,
            database=(parsed.path or "")[1:] or None,
            port=parsed.port,
        )
        conn.autocommit = True
        return conn

    def last_insert_id(self, connection, cursor, sequence: Optional[str] = None):
        """Ids come from sequences: read the current value of ``sequence``."""
        if sequence is None:
            return None
        c = connection.cursor()
        try:
            c.execute("SELECT currval(%s)", (sequence,))
            return c.fetchone()[0]
        finally:
            c.close()
