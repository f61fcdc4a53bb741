"""Lazy, filterable sets of rows, and relations between them."""

from __future__ import annotations

import json
import re
from typing import Any, Iterator, Mapping, Optional

from pydantic import BaseModel, Field, PrivateAttr

from .conventions import Cardinality, split_relation_name
from .errors import LogicError, MissingKeyColumn, ScopeViolation

# "where" conditions made of a single (possibly dotted or quoted) column name
# are shorthands for "column is value"
_COLUMN_NAME = re.compile(r'^[a-z0-9_.`"]+$', re.IGNORECASE)

_ORDER_DIRECTIONS = ("ASC", "DESC")


def _match_key(value: Any) -> Any:
    """Key as compared between parent and related rows.

    Keys are quoted as strings in SQL, so the database matches ``2`` and
    ``"2"``; so must the local filter.
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


class Result(BaseModel):
    """Rows of one table, optionally restricted to the relation of a parent.

    A root result (``db.table("post")``) selects rows of its table. A related
    result (``post.related("author")``, ``posts.related("categorizationList")``)
    has a parent row or result: its rows are fetched once for all the rows of
    the parent's root result, then filtered down to the ones the parent
    references. Builder methods return modified copies; nothing is executed
    until rows are actually requested.
    """

    model_config = {"arbitrary_types_allowed": True}

    db: Any = Field(exclude=True)
    """Owning Database."""
    table: str
    """Actual (aliased) table name."""
    select_expressions: list[str] = Field(default_factory=list)
    """SELECT expressions; empty means ``*``."""
    where_conditions: list[str] = Field(default_factory=list)
    """SQL conditions, joined with AND."""
    where_params: list[Any] = Field(default_factory=list)
    """Positional parameters of raw conditions."""
    where_named_params: dict[str, Any] = Field(default_factory=dict)
    """Named parameters of raw conditions."""
    order_by_expressions: list[str] = Field(default_factory=list)
    limit_count: Optional[int] = None
    limit_offset: Optional[int] = None
    parent: Any = Field(default=None, exclude=True)
    """Parent Row or Result of a related result; None for root results."""
    cardinality: Optional[Cardinality] = None
    """Singular or plural relation; None for root results."""
    key: Optional[str] = None
    """Column of this table matched against the parent's keys."""
    parent_key: Optional[str] = None
    """Column of the parent's table providing the keys."""

    _rows: Optional[list] = PrivateAttr(default=None)
    _global_rows: Optional[list] = PrivateAttr(default=None)
    _cache: dict[str, list] = PrivateAttr(default_factory=dict)
    _cursor: int = PrivateAttr(default=0)

    # construction

    @classmethod
    def for_table(cls, db, name: str) -> Result:
        """Root result for a table (or alias)."""
        return cls(db=db, table=db.conventions.get_alias(name))

    @classmethod
    def for_relation(cls, parent, name: str) -> Result:
        """Result for relation ``name`` of a parent row or result.

        Singular names (``author``) follow a reference stored on the parent;
        plural names (``postList``) follow back references to the parent.
        """
        db = parent.db
        conventions = db.conventions
        base_name, cardinality = split_relation_name(name)
        table = conventions.get_alias(base_name)
        if cardinality is Cardinality.SINGULAR:
            key = conventions.get_primary(table)
            parent_key = conventions.get_reference(parent.table, base_name)
        else:
            key = conventions.get_back_reference(parent.table, base_name)
            parent_key = conventions.get_primary(parent.table)
        if isinstance(key, list) or isinstance(parent_key, list):
            raise LogicError(
                f"Cannot relate {parent.table} to {table} through a compound primary key"
            )
        return cls(db=db, table=table, parent=parent, cardinality=cardinality,
                   key=key, parent_key=parent_key)

    def clone_result_with(self, **changes) -> Result:
        """Return a new, unexecuted Result with the same state except for the given overrides."""
        d = {name: getattr(self, name) for name in type(self).model_fields}
        for name in ("select_expressions", "where_conditions", "where_params", "order_by_expressions"):
            d[name] = list(d[name])
        d["where_named_params"] = dict(d["where_named_params"])
        for k, v in changes.items():
            if k in d:
                d[k] = v
        return type(self)(**d)

    def is_single(self) -> bool:
        return self.cardinality is Cardinality.SINGULAR

    # builders

    def select(self, *expressions: str) -> Result:
        """Add SELECT expressions (e.g. ``"id"``, ``"COUNT(*) AS n"``)."""
        return self.clone_result_with(select_expressions=self.select_expressions + list(expressions))

    def where(self, condition: str | Mapping[str, Any], *params: Any) -> Result:
        """Add a WHERE condition.

        - ``where("column", value)``: column is value (None, scalars, lists);
          several values mean "column is in values", none matches nothing;
        - ``where({"column": value, ...})``: one such condition per item;
        - ``where("raw SQL with ?", *params)``: raw condition with positional
          parameters, or ``where("raw SQL with :name", {"name": value})``.
        """
        if isinstance(condition, Mapping):
            result = self
            for column, value in condition.items():
                result = result.where(column, value)
            return result

        if _COLUMN_NAME.match(condition):
            value = params[0] if len(params) == 1 else list(params)
            return self.clone_result_with(
                where_conditions=self.where_conditions + [self.db.is_(condition, value)]
            )

        where_params = self.where_params
        where_named_params = self.where_named_params
        if len(params) == 1 and isinstance(params[0], Mapping):
            where_named_params = {**where_named_params, **params[0]}
        elif len(params) == 1 and isinstance(params[0], (list, tuple)):
            where_params = where_params + list(params[0])
        else:
            where_params = where_params + list(params)
        return self.clone_result_with(
            where_conditions=self.where_conditions + [condition],
            where_params=where_params,
            where_named_params=where_named_params,
        )

    def where_not(self, column: str | Mapping[str, Any], value: Any = None) -> Result:
        """Add a "column is not value" condition; ``where_not("c")`` means ``c IS NOT NULL``."""
        if isinstance(column, Mapping):
            result = self
            for c, v in column.items():
                result = result.where_not(c, v)
            return result
        return self.clone_result_with(where_conditions=self.where_conditions + [self.db.is_not(column, value)])

    def order_by(self, column: str, direction: str = "ASC") -> Result:
        direction = direction.upper()
        if direction not in _ORDER_DIRECTIONS:
            raise ValueError(f"Order direction should be one of {_ORDER_DIRECTIONS}, got {direction!r}")
        expression = f"{self.db.quote_identifier(column)} {direction}"
        return self.clone_result_with(order_by_expressions=self.order_by_expressions + [expression])

    def limit(self, count: int, offset: Optional[int] = None) -> Result:
        """Limit the number of rows. Related results cannot be limited."""
        if self.parent is not None:
            raise ScopeViolation("Cannot limit a related result")
        return self.clone_result_with(limit_count=count, limit_offset=offset)

    def paged(self, page_size: int, page: int) -> Result:
        """Rows of page ``page`` (starting at 1)."""
        return self.limit(page_size, (page - 1) * page_size)

    def via(self, key: str) -> Result:
        """Use ``key`` as the relation column instead of the conventional one.

        For singular relations, this is the referencing column on the parent's
        table; for plural ones, the back-referencing column on this table.
        """
        if self.parent is None:
            raise ScopeViolation("Cannot set the key of a root result")
        if self.is_single():
            return self.clone_result_with(parent_key=key)
        return self.clone_result_with(key=key)

    # relations

    def related(self, name: str, where: Optional[str | Mapping[str, Any]] = None, *params: Any) -> Result:
        """Rows related to the rows of this result, e.g. ``posts.related("author")``."""
        result = self.db.create_result(self, name)
        if where is not None:
            result = result.where(where, *params)
        return result

    def create_row(self, properties: Optional[Mapping[str, Any]] = None):
        """Create an unsaved row of this result's table, bound to this result."""
        return self.db.create_row(self.table, properties, self)

    # execution

    def _params(self) -> list[Any] | dict[str, Any]:
        if self.where_named_params:
            if self.where_params:
                raise ValueError("Cannot mix positional and named parameters in where()")
            return self.where_named_params
        return self.where_params

    def _effective_where(self) -> list[str]:
        """User conditions, followed by the relation restriction for related results."""
        conditions = list(self.where_conditions)
        if self.parent is not None:
            conditions.append(self.db.is_(self.key, self.parent.get_global_keys(self.parent_key)))
        return conditions

    def _definition(self, where: list[str]) -> str:
        return json.dumps(
            [self.table, self.select_expressions, where, self.where_params, self.where_named_params,
             self.order_by_expressions, self.limit_count, self.limit_offset],
            default=str,
        )

    def execute(self) -> Result:
        """Fetch rows, once.

        Related results first resolve their parent, then select rows matching
        the keys of the parent's whole root result. Identical selections
        below the same root are served from the root's cache.
        """
        if self._rows is not None:
            return self

        where = self._effective_where()
        definition = self._definition(where)
        root = self.get_root()
        rows = root.get_cache(definition)
        if rows is None:
            rows = []
            for data in self.db.select(self.table, self.select_expressions, where,
                                       self.order_by_expressions, self.limit_count,
                                       self.limit_offset, self._params()):
                row = self.db.create_row(self.table, data, self)
                row.mark_fetched()
                rows.append(row)
            root.set_cache(definition, rows)

        self._global_rows = rows
        if self.parent is None:
            self._rows = rows
        else:
            keys = {_match_key(k) for k in self.parent.get_local_keys(self.parent_key)}
            self._rows = [row for row in rows if _match_key(row.get(self.key)) in keys]
        return self

    def fetch(self):
        """Next row, or None when exhausted."""
        self.execute()
        if self._cursor >= len(self._rows):
            return None
        row = self._rows[self._cursor]
        self._cursor += 1
        return row

    def fetch_all(self) -> list:
        self.execute()
        return list(self._rows)

    def row_count(self) -> int:
        self.execute()
        return len(self._rows)

    def __iter__(self) -> Iterator:
        return iter(self.fetch_all())

    def __len__(self) -> int:
        return self.row_count()

    def to_list(self) -> list[dict[str, Any]]:
        """Rows as (nested) dicts."""
        return [row.to_dict() for row in self.fetch_all()]

    # keys

    def _collect_keys(self, rows: list, key: str) -> list[Any]:
        keys = {}
        for row in rows:
            if key not in row:
                raise MissingKeyColumn(key, self.table)
            value = row[key]
            if value is not None:
                keys[value] = None
        return list(keys)

    def get_local_keys(self, key: str) -> list[Any]:
        """Distinct non-null values of column ``key`` over this result's rows."""
        self.execute()
        return self._collect_keys(self._rows, key)

    def get_global_keys(self, key: str) -> list[Any]:
        """Distinct non-null values of column ``key`` over all rows fetched with this result."""
        self.execute()
        return self._collect_keys(self._global_rows, key)

    # cache

    def get_root(self):
        """Unscoped ancestor whose cache serves this result."""
        if self.parent is None:
            return self
        return self.parent.get_root()

    def get_cache(self, key: str) -> Optional[list]:
        return self._cache.get(key)

    def set_cache(self, key: str, rows: list) -> None:
        self._cache[key] = rows

    # writes

    def insert(self, rows, method: Optional[str] = None):
        """Insert rows into this result's table; see :meth:`Database.insert`."""
        return self.db.insert(self.table, rows, method)

    def update(self, data: Mapping[str, Any]):
        """Update the rows of this result.

        Related or limited results are first resolved to the primary keys of
        their rows.
        """
        if self.parent is not None or self.limit_count is not None:
            return self.primary_result().update(data)
        return self.db.update(self.table, data, self.where_conditions, self._params())

    def delete(self):
        """Delete the rows of this result."""
        if self.parent is not None or self.limit_count is not None:
            return self.primary_result().delete()
        return self.db.delete(self.table, self.where_conditions, self._params())

    def primary_result(self) -> Result:
        """Root result selecting exactly the rows of this one, by primary key."""
        result = self.db.create_result(self.db, self.table)
        primary = self.db.conventions.get_primary(self.table)
        if isinstance(primary, list):
            clauses = []
            for row in self.fetch_all():
                clauses.append("(" + " AND ".join(self.db.is_(column, row[column]) for column in primary) + ")")
            return result.where(" OR ".join(clauses) or "0=1")
        return result.where(primary, self.get_local_keys(primary))

    # aggregates

    def aggregate(self, function: str) -> Any:
        """Value of an aggregate expression over this result, e.g. ``aggregate("AVG(price)")``."""
        if self.parent is not None:
            raise ScopeViolation("Cannot aggregate a related result")
        rows = self.db.select(self.table, function, self.where_conditions, self.order_by_expressions,
                              self.limit_count, self.limit_offset, self._params())
        if not rows:
            return None
        return next(iter(rows[0].values()), None)

    def count(self, expression: str = "*") -> Any:
        return self.aggregate(f"COUNT({expression})")

    def min(self, column: str) -> Any:
        return self.aggregate(f"MIN({column})")

    def max(self, column: str) -> Any:
        return self.aggregate(f"MAX({column})")

    def sum(self, column: str) -> Any:
        return self.aggregate(f"SUM({column})")
