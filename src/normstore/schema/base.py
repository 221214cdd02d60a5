"""Schema protocol definition.

Defines the ``Schema`` Protocol that ``Table`` and ``ViewFactory`` rely on.
``TableSchema`` is the bundled implementation; anything with the same
shape can be handed to a ``Session``.

Usage:
    from normstore.schema.base import Schema

    def describe(schema: Schema) -> str:
        return f"{schema.name} ({len(schema.fields)} fields)"
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from normstore.schema.models import FieldSchema
from normstore.snapshot import Record, TableSnapshot


class Schema(Protocol):
    """Description of one table.

    Implementations must be immutable once a Session has been built from
    them: view shapes derived from a schema are cached by name.
    """

    name: str
    pk: str

    @property
    def fields(self) -> Sequence[FieldSchema]:
        """Fields declared on this table (primary key and foreign keys)."""
        ...

    @property
    def relations(self) -> Sequence[FieldSchema]:
        """Foreign keys of other tables that reference this one."""
        ...

    def normalize(self, data: Any) -> dict[str, TableSnapshot]:
        """Normalize an arbitrary payload into per-table snapshots.

        Args:
            data: A record mapping, a sequence of them, or a ``TableSnapshot``.

        Returns:
            Dict mapping every touched table name to a snapshot of the
            records found for it, in input order.  Tables reached through
            embedded relations are included.
        """
        ...

    def get_primary_key(self, data: Mapping[str, Any]) -> str:
        """Return the primary key of ``data`` as a string."""
        ...

    def is_modified(self, old: Record, new: Record) -> bool:
        """True when applying ``new`` over ``old`` would change the record."""
        ...
