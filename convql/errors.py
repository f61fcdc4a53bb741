"""Exceptions raised by convql."""


class ConvqlError(Exception):
    """Base class for all convql errors."""
    pass


class LogicError(ConvqlError):
    """Programmer error: the operation is not valid in the current state."""
    pass


class ScopeViolation(LogicError):
    """Operation not allowed on a result with (or without) a parent scope."""
    pass


class MissingKeyColumn(LogicError):
    """Key column requested from a result whose rows do not have it."""

    def __init__(self, key: str, table: str):
        super().__init__(f'"{key}" does not exist in "{table}" result')
        self.key = key
        self.table = table


class UnresolvableGraph(LogicError):
    """Recursive save cannot make progress (missing or circular required values)."""
    pass


class CleanWithoutId(LogicError):
    """A row cannot be marked clean before its primary key is known."""
    pass


class TransactionError(ConvqlError):
    """Custom exception for transaction-related errors"""
    pass
