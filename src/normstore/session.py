"""Session and Table: normalized CRUD over immutable table snapshots.

A ``Session`` is checked out from a top-level state (table name ->
``TableSnapshot``), holds one ``Table`` per schema, and produces a new
top-level state on ``commit()``.  Writes to one table fan out to every
other table the normalized payload touched.

Usage:
    from normstore import Session

    session = Session(state, schema)
    author = session.tables["authors"].insert({"id": "1", "name": "Ada"})
    post = session.tables["posts"].insert({"id": "10", "title": "Hi", "author_id": "1"})
    post.author.value["name"]
    # 'Ada'
    new_state = session.commit()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from normstore.errors import RecordNotFoundError, SchemaError, UnregisteredTableError
from normstore.schema.base import Schema
from normstore.snapshot import TableSnapshot, index_by, merge_records
from normstore.views import RecordView, ViewFactory, get_default_view_factory

logger = logging.getLogger(__name__)


class Table:
    """One table of a Session.

    ``state`` is only ever replaced by a new ``TableSnapshot``; the
    snapshot a caller held before a write is left untouched.
    """

    def __init__(self, session: Session, state: TableSnapshot | None, schema: Schema):
        self.session = session
        self.schema = schema
        self.initial_state = state if state is not None else TableSnapshot.empty()
        self.state = self.initial_state
        self.view_cache: dict[str, RecordView] = {}

    @property
    def name(self) -> str:
        return self.schema.name

    def __repr__(self) -> str:
        return f"<Table {self.name} ({len(self.state)} records)>"

    def _view(self, record_id: str) -> RecordView:
        return self.session.view_factory.new_record_view(record_id, self)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def exists(self, record_id: Any) -> bool:
        return record_id is not None and str(record_id) in self.state.by_id

    def get(self, record_id: Any) -> RecordView:
        """Return the view for ``record_id``.

        Raises:
            RecordNotFoundError: If no such record exists.
        """
        record_id = str(record_id)
        if not self.exists(record_id):
            raise RecordNotFoundError(self.name, record_id)
        return self._view(record_id)

    def get_or_default(self, record_id: Any) -> RecordView | None:
        return self.get(record_id) if self.exists(record_id) else None

    def all(self) -> list[RecordView]:
        return [self._view(record_id) for record_id in self.state.ids]

    def filter(self, predicate: Callable[[RecordView], bool]) -> list[RecordView]:
        return [view for view in self.all() if predicate(view)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, data: Any) -> RecordView:
        return self._first(self.insert_many(data))

    def insert_many(self, data: Any) -> list[RecordView]:
        """Normalize ``data`` and add this table's records.

        New ids are appended after the existing ones; an id that is already
        present keeps its position and its record is replaced.  The whole
        normalized payload is then propagated to the other tables.

        Returns:
            Views for this table's records, in normalized order.

        Raises:
            UnregisteredTableError: If the payload names a table outside the
                session; nothing is written.
        """
        payload = self.schema.normalize(data)
        portion = payload.get(self.name, TableSnapshot.empty())
        self.session.check_registered(payload)

        if portion:
            self.state = self.state.with_records(portion.by_id)
            logger.debug(f"Inserted {len(portion)} record(s) into {self.name}")

        self.session.upsert(payload, origin=self)
        return [self._view(record_id) for record_id in portion.ids]

    def update(self, data: Any) -> RecordView:
        return self._first(self.update_many(data))

    def update_many(self, data: Any) -> list[RecordView]:
        """Normalize ``data`` and merge it into existing records.

        Every id is checked before anything is written.  Records the schema
        reports as unmodified keep their object identity, and the snapshot
        itself is only replaced when at least one record changed.

        Returns:
            Views for this table's records in normalized order, modified
            or not.

        Raises:
            RecordNotFoundError: If any id is not in the table.
            UnregisteredTableError: If the payload names a table outside the
                session.
        """
        payload = self.schema.normalize(data)
        portion = payload.get(self.name, TableSnapshot.empty())
        self.session.check_registered(payload)

        for record_id in portion.ids:
            if record_id not in self.state.by_id:
                raise RecordNotFoundError(self.name, record_id, action="update")

        changes = {}
        for record_id in portion.ids:
            old_record = self.state.by_id[record_id]
            new_record = portion.by_id[record_id]
            if self.schema.is_modified(old_record, new_record):
                changes[record_id] = merge_records(old_record, new_record)

        if changes:
            self.state = self.state.with_records(changes)
            logger.debug(f"Updated {len(changes)} of {len(portion)} record(s) in {self.name}")

        self.session.upsert(payload, origin=self)
        return [self._view(record_id) for record_id in portion.ids]

    def upsert(self, data: Mapping[str, Any]) -> RecordView:
        """Update the record if its primary key exists, insert it otherwise."""
        if self.exists(self.schema.get_primary_key(data)):
            return self.update(data)
        return self.insert(data)

    def upsert_many(self, data: Any) -> list[RecordView]:
        """Upsert a sequence of records or a normalized ``TableSnapshot``.

        Returns:
            Views in input order.
        """
        if isinstance(data, TableSnapshot):
            records = data.records()
        elif isinstance(data, Mapping):
            records = [data]
        else:
            records = list(data)

        keys = [self.schema.get_primary_key(record) for record in records]
        updates = [r for r, key in zip(records, keys) if self.exists(key)]
        inserts = [r for r, key in zip(records, keys) if not self.exists(key)]

        if updates:
            self.update_many(updates)
        if inserts:
            self.insert_many(inserts)
        return [self._view(key) for key in keys]

    def delete(self, record_id: Any) -> None:
        """Remove a record; does nothing if it is absent.  No cascade."""
        record_id = str(record_id)
        state = self.state.without(record_id)
        if state is not self.state:
            self.state = state
            logger.debug(f"Deleted {self.name} record {record_id}")

    def _first(self, views: list[RecordView]) -> RecordView:
        if not views:
            raise SchemaError(f'Payload contains no "{self.name}" record')
        return views[0]


class Session:
    """All tables of one top-level state snapshot.

    Args:
        state: Top-level state to check out (table name -> snapshot).
        schemas: Table schemas, e.g. a ``StoreSchema``; one Table each.
        view_factory: Factory for record views (defaults to the shared one).
    """

    def __init__(
        self,
        state: Mapping[str, TableSnapshot] | None = None,
        schemas: Iterable[Schema] = (),
        *,
        view_factory: ViewFactory | None = None,
    ):
        self.state: Mapping[str, TableSnapshot] = state if state is not None else {}
        self.view_factory = view_factory or get_default_view_factory()
        self.tables: dict[str, Table] = index_by(
            (Table(self, self.state.get(schema.name), schema) for schema in schemas),
            lambda table: table.name,
        )

    def __getitem__(self, name: str) -> Table:
        return self.tables[name]

    def check_registered(self, payload: Mapping[str, TableSnapshot]) -> None:
        """Raise UnregisteredTableError if the payload names an unknown table."""
        for name in payload:
            if name not in self.tables:
                raise UnregisteredTableError(name)

    def upsert(self, payload: Mapping[str, TableSnapshot], origin: Table | None = None) -> None:
        """Apply a normalized payload to every table except ``origin``.

        Raises:
            UnregisteredTableError: If the payload names an unknown table.
        """
        self.check_registered(payload)
        for name, portion in payload.items():
            if origin is not None and name == origin.name:
                continue
            table = self.tables[name]
            source = origin.name if origin is not None else "session"
            logger.debug(f"Propagating {len(portion)} {name} record(s) from {source}")
            table.upsert_many(portion)

    def changed_tables(self) -> list[str]:
        """Names of tables whose snapshot differs from ``state``."""
        return [
            name
            for name, table in self.tables.items()
            if table.state is not self.state.get(name, table.initial_state)
        ]

    def commit(self) -> Mapping[str, TableSnapshot]:
        """Produce the new top-level state.

        Only the keys of written tables are replaced; every other table
        keeps its snapshot object.  When nothing was written the current
        state mapping itself is returned.
        """
        changed = self.changed_tables()
        if changed:
            state = dict(self.state)
            for name in changed:
                state[name] = self.tables[name].state
            self.state = state
            logger.debug(f"Committed tables: {', '.join(changed)}")
        return self.state
