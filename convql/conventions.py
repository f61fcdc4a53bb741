"""Naming conventions and per-table schema hints.

Relations between tables are inferred from names: a relation ``user`` on
table ``post`` is stored in ``post.user_id`` (a reference), while the plural
relation ``postList`` on table ``user`` is found through ``post.user_id``
(a back reference). Every convention can be overridden per table.
"""

import enum
from typing import Callable, Optional

from pydantic import BaseModel, Field

PLURAL_SUFFIX = "List"


class Cardinality(enum.Enum):
    """Whether a relation name designates one row or a list of rows."""

    SINGULAR = "singular"
    PLURAL = "plural"


def split_relation_name(name: str) -> tuple[str, Cardinality]:
    """Strip the plural suffix from a relation name.

    >>> split_relation_name("postList")
    ('post', <Cardinality.PLURAL: 'plural'>)
    """
    if name.endswith(PLURAL_SUFFIX) and len(name) > len(PLURAL_SUFFIX):
        return name[: -len(PLURAL_SUFFIX)], Cardinality.PLURAL
    return name, Cardinality.SINGULAR


class ConventionRegistry(BaseModel):
    """Schema hints with convention-based defaults.

    Owned by a :class:`~convql.database.Database`; setters return the registry
    so hints can be chained.
    """

    model_config = {"arbitrary_types_allowed": True}

    primary: dict[str, str | list[str]] = Field(default_factory=dict)
    references: dict[str, dict[str, str]] = Field(default_factory=dict)
    back_references: dict[str, dict[str, str]] = Field(default_factory=dict)
    aliases: dict[str, str] = Field(default_factory=dict)
    required: dict[str, dict[str, bool]] = Field(default_factory=dict)
    sequences: dict[str, str] = Field(default_factory=dict)
    rewrite: Optional[Callable[[str], str]] = Field(default=None, exclude=True)

    # primary keys

    def get_primary(self, table: str) -> str | list[str]:
        """Primary key of a table; a list for compound keys. Convention is ``id``."""
        return self.primary.get(table, "id")

    def set_primary(self, table: str, key: str | list[str] | tuple[str, ...]) -> "ConventionRegistry":
        """Set the primary key of a table. Always set it for compound keys.

        Compound keys are never generated by the database, so their columns
        are marked as required.
        """
        if isinstance(key, (list, tuple)):
            key = list(key)
            for column in key:
                self.set_required(table, column)
        self.primary[table] = key
        return self

    # references

    def get_reference(self, table: str, name: str) -> str:
        """How would ``table`` reference another table under ``name``? Convention is ``<name>_id``."""
        return self.references.get(table, {}).get(name, f"{name}_id")

    def set_reference(self, table: str, name: str, key: str) -> "ConventionRegistry":
        self.references.setdefault(table, {})[name] = key
        return self

    def get_back_reference(self, table: str, name: str) -> str:
        """How would ``table`` be referenced by another table under ``name``? Convention is ``<table>_id``."""
        return self.back_references.get(table, {}).get(name, f"{table}_id")

    def set_back_reference(self, table: str, name: str, key: str) -> "ConventionRegistry":
        self.back_references.setdefault(table, {})[name] = key
        return self

    # aliases

    def get_alias(self, alias: str) -> str:
        """Table name for an alias; unknown aliases are table names themselves."""
        return self.aliases.get(alias, alias)

    def set_alias(self, alias: str, table: str) -> "ConventionRegistry":
        self.aliases[alias] = table
        return self

    # required columns

    def is_required(self, table: str, column: str) -> bool:
        return self.required.get(table, {}).get(column, False)

    def get_required(self, table: str) -> list[str]:
        """Columns that must have a value before a row of ``table`` is inserted."""
        return [column for column, flag in self.required.get(table, {}).items() if flag]

    def set_required(self, table: str, column: str, required: bool = True) -> "ConventionRegistry":
        self.required.setdefault(table, {})[column] = required
        return self

    # sequences

    def get_sequence(self, table: str) -> Optional[str]:
        """Sequence holding generated ids (PostgreSQL). Convention is ``<rewritten table>_<primary>_seq``.

        Compound keys have no sequence.
        """
        if table in self.sequences:
            return self.sequences[table]
        primary = self.get_primary(table)
        if isinstance(primary, list):
            return None
        return f"{self.rewrite_table(table)}_{primary}_seq"

    def set_sequence(self, table: str, sequence: str) -> "ConventionRegistry":
        self.sequences[table] = sequence
        return self

    # table name rewriting

    def rewrite_table(self, table: str) -> str:
        """Apply the rewrite function (e.g. a prefix), right before SQL is emitted."""
        if self.rewrite is None:
            return table
        return self.rewrite(table)

    def set_rewrite(self, rewrite: Optional[Callable[[str], str]]) -> "ConventionRegistry":
        self.rewrite = rewrite
        return self
