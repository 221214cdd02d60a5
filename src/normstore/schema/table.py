"""Bundled schema implementation: ``TableSchema`` and ``StoreSchema``.

A ``TableSchema`` declares one table (primary key, scalar fields, foreign
keys).  A ``StoreSchema`` links a set of them together so that nested
payloads can be normalized across tables and reverse relations are known
on the referenced side.

Usage:
    from normstore.schema import ForeignKeyDef, StoreSchema, TableSchema

    schema = StoreSchema([
        TableSchema("authors", fields=["name"]),
        TableSchema(
            "posts",
            fields=["title"],
            foreign_keys=[
                ForeignKeyDef(field="author_id", references="authors", relation_name="posts"),
            ],
        ),
    ])

    schema["posts"].normalize({"id": 10, "title": "Hi", "author": {"id": 1, "name": "Ada"}})
    # {'posts': TableSnapshot(ids=('10',), ...), 'authors': TableSnapshot(ids=('1',), ...)}
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from normstore.errors import SchemaError
from normstore.schema.models import FK, PK, VIEW_ATTRIBUTES, FieldSchema, ForeignKeyDef
from normstore.snapshot import Record, TableSnapshot, merge_records

if TYPE_CHECKING:
    from normstore.config.models import StoreConfig

logger = logging.getLogger(__name__)


class TableSchema:
    """Declaration of one table.

    ``relations`` stays empty until the schema is linked into a
    ``StoreSchema``; after that the schema must be treated as immutable.
    """

    def __init__(
        self,
        name: str,
        pk: str = "id",
        fields: Iterable[str] = (),
        foreign_keys: Iterable[ForeignKeyDef] = (),
    ):
        self.name = name
        self.pk = pk
        self.foreign_keys = tuple(foreign_keys)
        self.store: StoreSchema | None = None

        declared = [FieldSchema(name=pk, prop_name=pk, constraint=PK, table=name)]
        declared.extend(
            FieldSchema(name=field_name, prop_name=field_name, table=name)
            for field_name in fields
            if field_name != pk
        )
        fk_names = {fk.field for fk in self.foreign_keys}
        declared = [f for f in declared if f.name not in fk_names]
        declared.extend(
            FieldSchema(
                name=fk.field,
                prop_name=fk.resolved_prop_name,
                constraint=FK,
                table=name,
                references=fk.references,
                relation_name=fk.relation_name,
            )
            for fk in self.foreign_keys
        )

        seen: set[str] = set()
        for f in declared:
            if f.name in seen:
                raise SchemaError(f'Field "{f.name}" declared twice on table "{name}"')
            seen.add(f.name)
            reserved = VIEW_ATTRIBUTES - {"id"} if f.constraint == PK else VIEW_ATTRIBUTES
            clash = sorted({f.name, f.prop_name} & reserved)
            if clash:
                raise SchemaError(
                    f'Field "{f.name}" on table "{name}" uses the reserved attribute "{clash[0]}"'
                )

        self._fields: tuple[FieldSchema, ...] = tuple(declared)
        self._relations: list[FieldSchema] = []

        # Payload keys that may carry an embedded referenced record
        self._fk_by_key: dict[str, FieldSchema] = {}
        for f in self._fields:
            if f.constraint == FK:
                self._fk_by_key[f.name] = f
                self._fk_by_key[f.prop_name] = f

    def __repr__(self) -> str:
        return f"TableSchema({self.name!r}, pk={self.pk!r})"

    @property
    def fields(self) -> Sequence[FieldSchema]:
        return self._fields

    @property
    def relations(self) -> Sequence[FieldSchema]:
        return tuple(self._relations)

    # ------------------------------------------------------------------
    # Schema protocol
    # ------------------------------------------------------------------

    def get_primary_key(self, data: Mapping[str, Any]) -> str:
        """Primary key of ``data`` as a string.

        Raises:
            SchemaError: If ``data`` is not a mapping or has no primary key.
        """
        if not isinstance(data, Mapping):
            raise SchemaError(
                f'Cannot read a "{self.name}" primary key from {type(data).__name__}'
            )
        value = data.get(self.pk)
        if value is None:
            raise SchemaError(f'"{self.name}" record has no primary key "{self.pk}": {dict(data)}')
        return str(value)

    def is_modified(self, old: Record, new: Record) -> bool:
        """True if any field of ``new`` is missing from or differs in ``old``."""
        return any(key not in old or old[key] != value for key, value in new.items())

    def normalize(self, data: Any) -> dict[str, TableSnapshot]:
        """Split a nested payload into per-table snapshots.

        Embedded objects under a foreign key (field name or its
        ``prop_name``) go to the referenced table and are replaced by their
        id.  Lists under a reverse ``relation_name`` go to the child table
        with the child's foreign key pointing at this record.  A record met
        twice is merged into the slot of its first occurrence.

        Raises:
            SchemaError: For non-mapping records, records without a primary
                key, or embedded tables this schema is not linked to.
        """
        collected: dict[str, dict[str, dict[str, Any]]] = {}
        for item in self._iter_payload(data):
            self._collect(item, collected)
        return {
            name: TableSnapshot(ids=list(records), by_id=records)
            for name, records in collected.items()
        }

    # ------------------------------------------------------------------
    # Normalization internals
    # ------------------------------------------------------------------

    def _iter_payload(self, data: Any) -> Iterable[Any]:
        if isinstance(data, TableSnapshot):
            return data.records()
        if isinstance(data, Mapping):
            return [data]
        if isinstance(data, (str, bytes)) or not isinstance(data, Iterable):
            raise SchemaError(f'Cannot normalize {type(data).__name__} into "{self.name}"')
        return data

    def _collect(self, data: Any, collected: dict[str, dict[str, dict[str, Any]]]) -> str:
        pk = self.get_primary_key(data)
        bucket = collected.setdefault(self.name, {})
        previous = bucket.get(pk)
        bucket[pk] = {}  # reserve the slot so nested records come after it

        record: dict[str, Any] = {}
        for key, value in data.items():
            fk = self._fk_by_key.get(key)
            if fk is not None:
                if isinstance(value, Mapping):
                    value = self._linked(fk.references)._collect(value, collected)
                record[fk.name] = value
                continue

            relation = self._relation_by_name(key)
            if relation is not None and isinstance(value, (list, tuple)):
                child_schema = self._linked(relation.table)
                for child in value:
                    if not isinstance(child, Mapping):
                        raise SchemaError(
                            f'Relation "{key}" of "{self.name}" expects records, '
                            f"got {type(child).__name__}"
                        )
                    child_schema._collect({**child, relation.name: pk}, collected)
                continue

            record[key] = value

        record[self.pk] = pk
        bucket[pk] = merge_records(previous, record) if previous else record
        return pk

    def _relation_by_name(self, key: str) -> FieldSchema | None:
        for relation in self._relations:
            if relation.relation_name == key:
                return relation
        return None

    def _linked(self, name: str) -> TableSchema:
        if self.store is None or name not in self.store:
            raise SchemaError(
                f'Table "{self.name}" embeds "{name}" but no linked store defines it'
            )
        return self.store[name]


class StoreSchema:
    """The set of table schemas a Session is built from.

    Construction links every foreign key to its referenced table and
    registers reverse relations there.

    Raises:
        SchemaError: On duplicate table names, foreign keys to unknown
            tables, or attribute-name clashes on the referenced table.
    """

    def __init__(self, tables: Iterable[TableSchema]):
        self.tables: list[TableSchema] = list(tables)
        self._by_name: dict[str, TableSchema] = {}

        for table in self.tables:
            if table.name in self._by_name:
                raise SchemaError(f'Table "{table.name}" declared twice')
            if table.store is not None and table.store is not self:
                raise SchemaError(f'Table "{table.name}" already belongs to another store')
            table.store = self
            self._by_name[table.name] = table

        for table in self.tables:
            for f in table.fields:
                if f.constraint != FK:
                    continue
                referenced = self._by_name.get(f.references or "")
                if referenced is None:
                    raise SchemaError(
                        f'Foreign key "{table.name}.{f.name}" references unknown table "{f.references}"'
                    )
                if not f.relation_name:
                    continue
                taken = {x.prop_name for x in referenced.fields}
                taken.update(VIEW_ATTRIBUTES)
                taken.update(r.relation_name for r in referenced.relations)
                if f.relation_name in taken:
                    raise SchemaError(
                        f'Relation "{f.relation_name}" clashes with an attribute of "{referenced.name}"'
                    )
                referenced._relations.append(f)

        logger.debug(f"Linked store schema: {', '.join(self._by_name)}")

    def __iter__(self) -> Iterator[TableSchema]:
        return iter(self.tables)

    def __len__(self) -> int:
        return len(self.tables)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __getitem__(self, name: str) -> TableSchema:
        return self._by_name[name]

    @property
    def names(self) -> list[str]:
        return list(self._by_name)

    @classmethod
    def from_config(cls, config: StoreConfig) -> StoreSchema:
        """Build a linked schema from a loaded ``StoreConfig``.

        Example:
            config = load_store_config(Path("store.toml"))
            schema = StoreSchema.from_config(config)
        """
        tables = []
        for name, table_config in config.tables.items():
            foreign_keys = [
                ForeignKeyDef(
                    field=field_name,
                    references=fk.references,
                    prop_name=fk.prop_name,
                    relation_name=fk.relation_name,
                )
                for field_name, fk in table_config.foreign_keys.items()
            ]
            tables.append(
                TableSchema(
                    name,
                    pk=table_config.pk,
                    fields=table_config.fields,
                    foreign_keys=foreign_keys,
                )
            )
        return cls(tables)
