"""Immutable table snapshots and the diff utilities shared by the store.

A ``TableSnapshot`` is the normalized form of one table: an ordered tuple of
ids plus a read-only id -> record mapping.  Writes never touch an existing
snapshot; they build a new one and swap the reference.

Usage:
    from normstore.snapshot import TableSnapshot, changed_tables

    snap = TableSnapshot.empty().with_records({"1": {"id": "1", "name": "Ada"}})
    snap.ids
    # ('1',)
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar

Record = Mapping[str, Any]

T = TypeVar("T")


@dataclass(frozen=True)
class TableSnapshot:
    """Ordered ids plus an id -> record mapping.

    ``ids`` holds exactly the keys of ``by_id``, without duplicates, in
    insertion order.  Records are shared between snapshots, never copied.

    Example:
        snap = TableSnapshot(ids=["1"], by_id={"1": {"id": "1"}})
        "1" in snap
        # True
    """

    ids: tuple[str, ...] = ()
    by_id: Mapping[str, Record] = field(default_factory=dict)

    def __post_init__(self) -> None:
        ids = tuple(self.ids)
        by_id = dict(self.by_id)
        if len(set(ids)) != len(ids) or set(ids) != by_id.keys():
            raise ValueError(
                f"Snapshot ids {list(ids)} do not match record keys {list(by_id)}"
            )
        object.__setattr__(self, "ids", ids)
        object.__setattr__(self, "by_id", MappingProxyType(by_id))

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self.by_id

    @classmethod
    def empty(cls) -> "TableSnapshot":
        return cls()

    def records(self) -> list[Record]:
        """Records in table order."""
        return [self.by_id[record_id] for record_id in self.ids]

    def with_records(self, records: Mapping[str, Record]) -> "TableSnapshot":
        """Return a snapshot with ``records`` merged in.

        Ids not yet present are appended in the order given; records for
        ids already present replace the stored record in place.
        """
        ids = list(self.ids)
        ids.extend(record_id for record_id in records if record_id not in self.by_id)
        return TableSnapshot(ids=ids, by_id={**self.by_id, **records})

    def without(self, record_id: str) -> "TableSnapshot":
        """Return a snapshot without ``record_id`` (self when absent)."""
        if record_id not in self.by_id:
            return self
        by_id = dict(self.by_id)
        del by_id[record_id]
        return TableSnapshot(
            ids=[i for i in self.ids if i != record_id],
            by_id=by_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON form: ``{"ids": [...], "byId": {...}}``."""
        return {
            "ids": list(self.ids),
            "byId": {record_id: dict(record) for record_id, record in self.by_id.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TableSnapshot":
        """Build a snapshot from its JSON form (``byId`` or ``by_id`` key)."""
        by_id = data.get("byId", data.get("by_id", {}))
        return cls(ids=[str(i) for i in data.get("ids", [])], by_id={str(k): v for k, v in by_id.items()})


# Top-level state: table name -> snapshot
TopState = dict[str, TableSnapshot]


# ============================================================================
# Shared utilities
# ============================================================================


def merge_records(old: Record, new: Record) -> dict[str, Any]:
    """Shallow merge: fields of ``old`` overridden by fields of ``new``."""
    return {**old, **new}


def index_by(items: Iterable[T], key: Callable[[T], str]) -> dict[str, T]:
    """Map each item by ``key(item)``, keeping input order."""
    return {key(item): item for item in items}


def changed_tables(old: Mapping[str, TableSnapshot], new: Mapping[str, TableSnapshot]) -> list[str]:
    """Names of tables whose snapshot object differs between two states.

    Comparison is by identity: an untouched table keeps its snapshot object
    across commits, so reference inequality means "was written".
    """
    names = list(new)
    names.extend(name for name in old if name not in new)
    return [name for name in names if old.get(name) is not new.get(name)]


def state_to_dict(state: Mapping[str, TableSnapshot]) -> dict[str, dict[str, Any]]:
    """JSON form of a whole top-level state."""
    return {name: snapshot.to_dict() for name, snapshot in state.items()}


def state_from_dict(data: Mapping[str, Mapping[str, Any]]) -> TopState:
    """Inverse of ``state_to_dict``."""
    return {name: TableSnapshot.from_dict(table) for name, table in data.items()}
