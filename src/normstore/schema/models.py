"""Pydantic models describing table fields and foreign keys.

This module contains the declarative pieces of a schema:
- ``ForeignKeyDef``: what a caller writes to declare a foreign key
- ``FieldSchema``: the resolved descriptor a ``TableSchema`` exposes through
  ``fields`` and ``relations``

Usage:
    from normstore.schema.models import ForeignKeyDef

    fk = ForeignKeyDef(field="author_id", references="authors", relation_name="posts")
    fk.resolved_prop_name
    # 'author'
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

PK = "PK"
FK = "FK"

Constraint = Literal["PK", "FK"]

# Attribute names a record view defines itself; fields cannot reuse them
VIEW_ATTRIBUTES = frozenset({"id", "table", "value", "field", "update", "delete"})


class ForeignKeyDef(BaseModel):
    """Foreign key declared on the table that holds the referencing field.

    Example:
        >>> fk = ForeignKeyDef(field="author_id", references="authors")
        >>> fk.resolved_prop_name
        'author'
    """

    field: str                          # FK column on this table
    references: str                     # referenced table name
    prop_name: str | None = None        # view attribute for the forward lookup
    relation_name: str | None = None    # view attribute on the referenced table

    @property
    def resolved_prop_name(self) -> str:
        """View attribute name, defaulting to the field without its ``_id`` suffix."""
        if self.prop_name:
            return self.prop_name
        if self.field.endswith("_id") and len(self.field) > 3:
            return self.field[:-3]
        return self.field


class FieldSchema(BaseModel):
    """Resolved field descriptor.

    ``table`` is the name of the table that declares the field.  For a
    reverse relation the same descriptor appears in the referenced table's
    ``relations``, so ``table`` then names the *other* table.

    Example:
        >>> f = FieldSchema(name="id", prop_name="id", constraint="PK", table="authors")
        >>> f.is_foreign_key
        False
    """

    model_config = ConfigDict(frozen=True)

    name: str
    prop_name: str
    constraint: Constraint | None = None
    table: str
    references: str | None = None
    relation_name: str | None = None

    @property
    def is_foreign_key(self) -> bool:
        return self.constraint == FK
