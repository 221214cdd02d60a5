"""normstore: in-memory normalized relational store with immutable snapshots.

Holds domain data as normalized tables (ordered ids + id -> record maps)
inside an application's state, and presents relationship-aware record
views over it: foreign keys resolve to records, reverse relations to
record sets.

Usage:
    from normstore import Session, StoreSchema, TableSchema, ForeignKeyDef
    from normstore import TableSnapshot, changed_tables
    from normstore import load_store_config, StoreConfig
    from normstore import RecordNotFoundError, UnregisteredTableError
"""

__version__ = "0.1.0"

# Session and tables
from normstore.session import Session, Table

# Snapshots
from normstore.snapshot import (
    TableSnapshot,
    TopState,
    changed_tables,
    merge_records,
    state_from_dict,
    state_to_dict,
)

# Schema
from normstore.schema import FieldSchema, ForeignKeyDef, Schema, StoreSchema, TableSchema

# Views
from normstore.views import (
    RecordField,
    RecordSetView,
    RecordView,
    ViewFactory,
    get_default_view_factory,
)

# Config
from normstore.config import StoreConfig, StoreOptions, load_store_config

# Errors
from normstore.errors import (
    InvalidOperationError,
    NormStoreError,
    RecordNotFoundError,
    SchemaError,
    UnregisteredTableError,
)

__all__ = [
    # Session
    "Session",
    "Table",
    # Snapshots
    "TableSnapshot",
    "TopState",
    "changed_tables",
    "merge_records",
    "state_to_dict",
    "state_from_dict",
    # Schema
    "Schema",
    "FieldSchema",
    "ForeignKeyDef",
    "TableSchema",
    "StoreSchema",
    # Views
    "RecordView",
    "RecordField",
    "RecordSetView",
    "ViewFactory",
    "get_default_view_factory",
    # Config
    "load_store_config",
    "StoreConfig",
    "StoreOptions",
    # Errors
    "NormStoreError",
    "RecordNotFoundError",
    "UnregisteredTableError",
    "InvalidOperationError",
    "SchemaError",
]
