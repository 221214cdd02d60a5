"""Table schemas: the protocol, field descriptors and bundled implementation.

Provides the ``Schema`` protocol a ``Session`` depends on, the pydantic
descriptors (``FieldSchema``, ``ForeignKeyDef``), and ``TableSchema`` /
``StoreSchema`` which normalize nested payloads.

Usage:
    from normstore.schema import StoreSchema, TableSchema, ForeignKeyDef
    from normstore.schema import Schema, FieldSchema
"""

from normstore.schema.base import Schema
from normstore.schema.models import FK, PK, FieldSchema, ForeignKeyDef
from normstore.schema.table import StoreSchema, TableSchema

__all__ = [
    "Schema",
    "FieldSchema",
    "ForeignKeyDef",
    "TableSchema",
    "StoreSchema",
    "PK",
    "FK",
]
