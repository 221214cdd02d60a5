"""Record views and the factory that builds them.

A ``RecordView`` is a handle of ``(id, table)``; every read goes back to the
table's current snapshot, so a view never goes stale relative to its Table.
Foreign keys and reverse relations are exposed as attributes through a
per-table ``ViewShape`` dispatch table built once by a ``ViewFactory``.

Usage:
    post = session.tables["posts"].get("10")
    post.title             # scalar field
    post.author            # forward FK -> RecordView | None
    post.author.posts      # reverse relation -> RecordSetView
    post.author = "2"      # writes posts.author_id through update()
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, TypeVar

from normstore.errors import InvalidOperationError, UnregisteredTableError
from normstore.schema.models import FieldSchema

if TYPE_CHECKING:
    from normstore.schema.base import Schema
    from normstore.session import Table

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORWARD = "forward"
RELATION = "relation"


# ============================================================================
# View shapes
# ============================================================================


@dataclass(frozen=True)
class ViewShape:
    """Relational attributes of one table's views.

    ``accessors`` maps an attribute name to ``(kind, field)`` where kind is
    ``FORWARD`` for a foreign key on the table itself and ``RELATION`` for
    a foreign key of another table pointing back at it.
    """

    table: str
    accessors: Mapping[str, tuple[str, FieldSchema]]

    @classmethod
    def from_schema(cls, schema: Schema) -> ViewShape:
        accessors: dict[str, tuple[str, FieldSchema]] = {}
        for f in schema.fields:
            if f.is_foreign_key:
                accessors[f.prop_name] = (FORWARD, f)
        for f in schema.relations:
            if f.relation_name:
                accessors[f.relation_name] = (RELATION, f)
        return cls(table=schema.name, accessors=accessors)


class ViewFactory:
    """Builds record views and resolves their relational fields.

    Shapes are cached by schema name for the factory's lifetime; schemas
    are assumed immutable once seen.  The cache is filled under a lock so a
    factory can be shared by sessions living in different threads.
    """

    def __init__(self) -> None:
        self._shapes: dict[str, ViewShape] = {}
        self._lock = threading.Lock()

    def shape_for(self, schema: Schema) -> ViewShape:
        shape = self._shapes.get(schema.name)
        if shape is None:
            with self._lock:
                shape = self._shapes.get(schema.name)
                if shape is None:
                    shape = ViewShape.from_schema(schema)
                    self._shapes[schema.name] = shape
                    logger.debug(
                        f"Built view shape for {schema.name}: {sorted(shape.accessors)}"
                    )
        return shape

    def new_record_view(self, record_id: str, table: Table) -> RecordView:
        """Return the table's view for ``record_id``, creating it once."""
        view = table.view_cache.get(record_id)
        if view is None:
            view = RecordView(record_id, table, self.shape_for(table.schema))
            table.view_cache[record_id] = view
        return view

    def new_record_field(
        self,
        field: FieldSchema,
        record: RecordView,
        *,
        reverse: bool = False,
    ) -> RecordField | RecordView | RecordSetView | None:
        """Resolve ``field`` in the context of ``record``.

        Args:
            field: Field descriptor from the record's schema.
            record: The view being read.
            reverse: Resolve as a reverse relation even when ``field`` is
                declared on the record's own table (self-referencing FK).

        Returns:
            The referenced view (or None) for a forward foreign key, a
            ``RecordSetView`` for a reverse relation, otherwise a
            ``RecordField`` mirroring the value.

        Raises:
            UnregisteredTableError: If the other table is not in the
                record's session.
        """
        tables = record.table.session.tables
        own_table = field.table == record.table.name

        if field.is_foreign_key and field.references and own_table and not reverse:
            ref_table = tables.get(field.references)
            if ref_table is None:
                raise UnregisteredTableError(field.references, field.name)
            value = record.value or {}
            return ref_table.get_or_default(value.get(field.name))

        if field.is_foreign_key and field.relation_name and (reverse or not own_table):
            ref_table = tables.get(field.table)
            if ref_table is None:
                raise UnregisteredTableError(field.table, field.name)
            refs = ref_table.filter(lambda r: _references(r.value, field.name, record.id))
            return RecordSetView(refs, ref_table, RecordField(field, record))

        return RecordField(field, record)


@lru_cache
def get_default_view_factory() -> ViewFactory:
    """Get cached process-wide factory instance."""
    return ViewFactory()


def _references(value: Mapping[str, Any] | None, field_name: str, record_id: str) -> bool:
    if not value:
        return False
    ref = value.get(field_name)
    return ref is not None and str(ref) == record_id


# ============================================================================
# Views
# ============================================================================


class RecordView:
    """Live handle on one record.

    Scalar fields of the record read as attributes, except names the view
    defines itself (``VIEW_ATTRIBUTES``); ``TableSchema`` refuses to declare
    those, and undeclared keys by those names read through ``value``.  Views
    compare equal when they point at the same id in a table of the same name.
    """

    __slots__ = ("id", "table", "_shape")

    def __init__(self, record_id: str, table: Table, shape: ViewShape):
        object.__setattr__(self, "id", record_id)
        object.__setattr__(self, "table", table)
        object.__setattr__(self, "_shape", shape)

    @property
    def value(self) -> Mapping[str, Any] | None:
        """Current record from the table snapshot (None once deleted)."""
        return self.table.state.by_id.get(self.id)

    def field(self, name: str) -> RecordField:
        for f in self.table.schema.fields:
            if f.name == name:
                return RecordField(f, self)
        return RecordField(FieldSchema(name=name, prop_name=name, table=self.table.name), self)

    def update(self, data: Mapping[str, Any]) -> RecordView:
        self.table.update({**data, self.table.schema.pk: self.id})
        return self

    def delete(self) -> None:
        self.table.delete(self.id)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        accessor = self._shape.accessors.get(name)
        if accessor is not None:
            kind, f = accessor
            return self.table.session.view_factory.new_record_field(
                f, self, reverse=kind == RELATION
            )
        value = self.value
        if value is not None and name in value:
            return value[name]
        raise AttributeError(f'"{self.table.name}" record {self.id} has no field {name!r}')

    def __setattr__(self, name: str, value: Any) -> None:
        accessor = self._shape.accessors.get(name)
        if accessor is None:
            raise AttributeError(
                f"Cannot set {name!r} on a record view; use update() for scalar fields"
            )
        kind, f = accessor
        if kind == RELATION:
            raise InvalidOperationError(
                f'Invalid attempt to set the relation "{name}" of "{self.table.name}"'
            )
        if isinstance(value, RecordView):
            value = value.id
        self.update({f.name: value})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordView):
            return NotImplemented
        return self.id == other.id and self.table.name == other.table.name

    def __hash__(self) -> int:
        return hash((self.table.name, self.id))

    def __repr__(self) -> str:
        return f"<RecordView {self.table.name}:{self.id}>"


class RecordField:
    """Scalar wrapper; ``value`` mirrors ``record.value[name]``."""

    def __init__(self, schema: FieldSchema, record: RecordView):
        self.name = schema.name
        self.schema = schema
        self.record = record

    @property
    def value(self) -> Any:
        value = self.record.value
        return None if value is None else value.get(self.name)

    def __repr__(self) -> str:
        return f"<RecordField {self.record.table.name}.{self.name}={self.value!r}>"


class RecordSetView(Sequence[RecordView]):
    """Records of another table that reference one record (reverse relation).

    Read-only: writing through a relation is not supported.
    """

    def __init__(self, records: Iterable[RecordView], table: Table, referenced_from: RecordField):
        self.records = list(records)
        self.table = table
        self.referenced_from = referenced_from

    def __getitem__(self, index):
        return self.records[index]

    def __len__(self) -> int:
        return len(self.records)

    @property
    def ids(self) -> list[str]:
        return [r.id for r in self.records]

    def map(self, callback: Callable[[RecordView], T]) -> list[T]:
        return [callback(r) for r in self.records]

    def insert(self, data: Any) -> None:
        raise InvalidOperationError(
            f'Cannot insert into "{self.table.name}" through a relation; use the table'
        )

    def update(self, data: Any) -> None:
        raise InvalidOperationError(
            f'Cannot update "{self.table.name}" through a relation; use the table'
        )

    def __repr__(self) -> str:
        return f"<RecordSetView {self.table.name} {self.ids}>"
