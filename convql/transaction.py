"""Caller-managed transactions, with SAVEPOINT support for nesting."""

import logging
from contextlib import contextmanager

from .errors import TransactionError

logger = logging.getLogger("convql")


class TransactionManager:

    def __init__(self, connection, execute=None):
        """
        Initialize the transaction manager.

        Args:
            connection: The convql Connection statements are issued on
            execute: Runs statements issued through Transaction handles;
                defaults to ``connection.execute``
        """
        self._connection = connection
        self._execute = execute or connection.execute
        self._level = 0

    def _run(self, sql: str) -> None:
        logger.debug(sql)
        self._connection.execute(sql)

    # explicit control

    def begin(self) -> bool:
        """Start a transaction."""
        self._run("BEGIN")
        return True

    def commit(self) -> bool:
        """Commit the current transaction."""
        self._run("COMMIT")
        return True

    def rollback(self) -> bool:
        """Roll back the current transaction."""
        self._run("ROLLBACK")
        return True

    # transaction level

    @property
    def level(self) -> int:
        """Current transaction nesting level (0 outside of any transaction())."""
        return self._level

    # actual transaction itself

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with SAVEPOINT support.

        Yields:
            Transaction: Transaction object for executing statements
        """
        self._level += 1
        level = self._level

        # Create savepoint name for nested transactions
        savepoint_name = f"savepoint_{level}" if level > 1 else None

        transaction_obj = Transaction(self, level)

        try:
            if savepoint_name:
                self._run(f"SAVEPOINT {savepoint_name}")
            else:
                self.begin()

            try:
                yield transaction_obj

                if savepoint_name:
                    self._run(f"RELEASE SAVEPOINT {savepoint_name}")
                else:
                    self.commit()

            except Exception:
                if savepoint_name:
                    self._run(f"ROLLBACK TO SAVEPOINT {savepoint_name}")
                else:
                    self.rollback()
                raise
        finally:
            transaction_obj._active = False
            self._level = max(0, self._level - 1)


class Transaction:

    def __init__(self, manager, level):
        self._manager = manager
        self._level = level
        self._active = True

    @property
    def level(self) -> int:
        return self._level

    def execute(self, sql, parameters=()):
        """
        Execute a statement within this transaction.

        Args:
            sql: SQL statement to execute
            parameters: Statement parameters

        Returns:
            The driver cursor

        Raises:
            TransactionError: If the transaction ended or a nested one is running
        """
        if not self._active:
            raise TransactionError("Transaction is no longer active")

        current_level = self._manager.level
        if current_level > self._level:
            raise TransactionError(
                f"Cannot use transaction level {self._level} from level {current_level}. "
                "Higher-level transactions cannot be accessed from nested transactions."
            )
        return self._manager._execute(sql, parameters)
