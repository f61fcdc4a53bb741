"""Rows: mutable property maps with change tracking and recursive saving."""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping, Optional

from .conventions import Cardinality, split_relation_name
from .errors import CleanWithoutId, UnresolvableGraph
from .literal import Literal

logger = logging.getLogger("convql")


class RowList(list):
    """Rows held by a plural property, such as ``post["categorizationList"]``."""


class Row:
    """A row of a table.

    Properties are column values or nested rows: a Row under a singular
    name (``post["author"]``) or a RowList under a plural one
    (``post["categorizationList"]``). Changes are tracked until the row is
    saved, and :meth:`save` writes a whole graph of nested rows in an order
    satisfying the references between them.
    """

    def __init__(self, db, name: str, properties: Optional[Mapping[str, Any]] = None, result=None):
        self.db = db
        self.table = db.conventions.get_alias(name)
        self.result = result
        self._properties: dict[str, Any] = {}
        self._modified: dict[str, Any] = {}
        self._original_id = None
        self._cache: dict[str, list] = {}
        self.set_data(properties or {})

    def __repr__(self) -> str:
        return f"Row({self.table!r}, {self._properties!r})"

    # properties

    def get(self, column: str) -> Any:
        """Property value, or None when absent."""
        return self._properties.get(column)

    def set(self, column: str, value: Any) -> Row:
        """Set a property, marking it modified unless the value is unchanged.

        Mappings under singular names become rows, lists under plural names
        become lists of rows.
        """
        if column in self._properties:
            current = self._properties[column]
            if current is value or (type(current) is type(value) and current == value):
                return self
        value = self._convert(column, value)
        self._properties[column] = value
        self._modified[column] = value
        return self

    def _convert(self, column: str, value: Any) -> Any:
        if isinstance(value, (Row, RowList)):
            return value
        name, cardinality = split_relation_name(column)
        if cardinality is Cardinality.PLURAL and isinstance(value, (list, tuple)):
            table = self.db.conventions.get_alias(name)
            return RowList(
                item if isinstance(item, Row) else self.db.create_row(table, item)
                for item in value
            )
        if isinstance(value, Mapping):
            if cardinality is Cardinality.PLURAL:
                raise TypeError(f"{column} holds a list of rows, got a mapping")
            return self.db.create_row(self.db.conventions.get_alias(name), value)
        if isinstance(value, (list, tuple)):
            raise TypeError(f"{column} holds a single value, got a {type(value).__name__}")
        return value

    def unset(self, column: str) -> Row:
        self._properties.pop(column, None)
        self._modified.pop(column, None)
        return self

    def has(self, column: str) -> bool:
        return column in self._properties

    def set_data(self, data: Mapping[str, Any]) -> Row:
        for column, value in data.items():
            self.set(column, value)
        return self

    __getitem__ = get
    __setitem__ = set
    __delitem__ = unset
    __contains__ = has

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._properties))

    def __len__(self) -> int:
        return len(self._properties)

    def keys(self) -> list[str]:
        return list(self._properties)

    def items(self) -> list[tuple[str, Any]]:
        return list(self._properties.items())

    def get_data(self) -> dict[str, Any]:
        """Column values, without nested rows."""
        return {k: v for k, v in self._properties.items() if not isinstance(v, (Row, RowList))}

    def get_modified(self) -> dict[str, Any]:
        """Modified column values, without nested rows."""
        return {k: v for k, v in self._modified.items() if not isinstance(v, (Row, RowList))}

    def to_dict(self) -> dict[str, Any]:
        """Properties as plain values, nested rows included."""
        data = {}
        for column, value in self._properties.items():
            if isinstance(value, Row):
                value = value.to_dict()
            elif isinstance(value, RowList):
                value = [row.to_dict() for row in value]
            elif isinstance(value, Literal):
                value = str(value)
            else:
                value = self.db.format(value)
            data[column] = value
        return data

    # identity and state

    def get_id(self) -> Any:
        """Primary key value; a dict for compound keys. None while any part is unset."""
        primary = self.db.conventions.get_primary(self.table)
        if isinstance(primary, list):
            id = {}
            for column in primary:
                value = self.get(column)
                if value is None:
                    return None
                id[column] = value
            return id
        return self.get(primary)

    def get_original_id(self) -> Any:
        """Primary key as of the last save or fetch; None if the row is not stored."""
        return self._original_id

    def exists(self) -> bool:
        return self._original_id is not None

    def is_clean(self) -> bool:
        return not self._modified

    def set_clean(self) -> Row:
        """Mark as stored and unmodified."""
        id = self.get_id()
        if id is None:
            raise CleanWithoutId(f'Cannot set Row "clean" without id ({self.table})')
        self._original_id = id
        self._modified = {}
        return self

    def set_dirty(self) -> Row:
        """Mark every property as modified."""
        self._modified = dict(self._properties)
        return self

    def mark_fetched(self) -> Row:
        """Mark as read from the database.

        Rows fetched without their primary key (e.g. through ``select()``)
        are unmodified but cannot be identified, so they do not exist.
        """
        if self.get_id() is None:
            self._modified = {}
            return self
        return self.set_clean()

    def get_missing(self) -> list[str]:
        """Required columns that are still absent or null."""
        return [column for column in self.db.conventions.get_required(self.table) if self.get(column) is None]

    # references

    def update_references(self) -> Row:
        """Copy the ids of nested rows to the referencing columns."""
        for column, value in list(self._properties.items()):
            if isinstance(value, Row):
                id = value.get_id()
                if isinstance(id, dict):
                    continue
                self.set(self.db.conventions.get_reference(self.table, column), id)
        return self

    def update_back_references(self) -> Row:
        """Copy this row's id to the back-referencing columns of nested row lists."""
        id = self.get_id()
        if id is None or isinstance(id, dict):
            return self
        for column, value in list(self._properties.items()):
            if isinstance(value, RowList):
                name, _ = split_relation_name(column)
                key = self.db.conventions.get_back_reference(self.table, name)
                for row in value:
                    row.set(key, id)
        return self

    # persistence

    def _flatten(self, rows: Optional[list] = None) -> list:
        """This row and its nested rows, depth first."""
        if rows is None:
            rows = []
        rows.append(self)
        for value in self._properties.values():
            if isinstance(value, Row):
                value._flatten(rows)
            elif isinstance(value, RowList):
                for row in value:
                    row._flatten(rows)
        return rows

    def _id_condition(self, id: Any) -> dict[str, Any]:
        if isinstance(id, dict):
            return id
        return {self.db.conventions.get_primary(self.table): id}

    def save(self, recursive: bool = True) -> Row:
        """Write this row, and with ``recursive`` every nested row.

        Nested rows are saved repeatedly until all are clean: rows with
        missing required columns wait until the rows they reference are
        saved and their ids propagated.

        Raises:
            UnresolvableGraph: If a pass makes no progress.
        """
        if not recursive:
            return self._save_self()

        rows = self._flatten()
        for n in range(len(rows) + 1):
            logger.debug("Saving %s row graph, pass %d over %d rows", self.table, n + 1, len(rows))
            progress = False
            for row in rows:
                row.update_references()
                was_clean = row.is_clean()
                if row.get_missing():
                    continue
                row._save_self()
                row.update_back_references()
                if not was_clean:
                    progress = True
            if all(row.is_clean() for row in rows):
                return self
            if not progress:
                break
        raise UnresolvableGraph(
            f"Cannot save {self.table} row: nested rows keep missing required columns"
        )

    def _save_self(self) -> Row:
        self.update_references()
        if self.is_clean():
            return self
        conventions = self.db.conventions
        table = self.db.create_result(self.db, self.table)
        if self.exists():
            table.where(self._id_condition(self._original_id)).update(self.get_modified())
        else:
            cursor = table.insert(self.get_data())
            primary = conventions.get_primary(self.table)
            if cursor is not None and not isinstance(primary, list) and self.get(primary) is None:
                id = self.db.last_insert_id(conventions.get_sequence(self.table))
                if id is not None:
                    self.set(primary, id)
        return self.set_clean()

    def update(self, data: Mapping[str, Any], recursive: bool = True) -> Row:
        """Set properties, then save."""
        self.set_data(data)
        return self.save(recursive)

    def delete(self) -> Row:
        """Delete the stored row; it then becomes a dirty, unsaved row."""
        if self._original_id is None:
            return self
        self.db.create_result(self.db, self.table).where(self._id_condition(self._original_id)).delete()
        self._original_id = None
        return self.set_dirty()

    # relations

    def related(self, name: str, where=None, *params: Any):
        """Related rows, e.g. ``post.related("author").fetch()`` or ``user.related("postList")``."""
        result = self.db.create_result(self, name)
        if where is not None:
            result = result.where(where, *params)
        return result

    def get_root(self):
        if self.result is not None:
            return self.result.get_root()
        return self

    def get_cache(self, key: str) -> Optional[list]:
        return self._cache.get(key)

    def set_cache(self, key: str, rows: list) -> None:
        self._cache[key] = rows

    def get_local_keys(self, key: str) -> list[Any]:
        value = self.get(key)
        return [value] if value is not None else []

    def get_global_keys(self, key: str) -> list[Any]:
        if self.result is not None:
            return self.result.get_global_keys(key)
        return self.get_local_keys(key)
