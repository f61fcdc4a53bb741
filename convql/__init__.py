"""convql: convention-based SQL access to rows, their references and back references."""

from .connection import Connection, connect
from .conventions import ConventionRegistry
from .database import Database
from .errors import (
    CleanWithoutId,
    ConvqlError,
    LogicError,
    MissingKeyColumn,
    ScopeViolation,
    TransactionError,
    UnresolvableGraph,
)
from .literal import Literal
from .result import Result
from .row import Row, RowList
