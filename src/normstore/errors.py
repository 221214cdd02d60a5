"""Exception types raised by the store.

Every error is synchronous and fatal for the operation that raised it.
Probing calls (``Table.get_or_default``, ``Table.delete`` of a missing id)
never raise.
"""


class NormStoreError(Exception):
    """Base class for all store errors."""

    pass


class RecordNotFoundError(NormStoreError):
    """Raised when a record that must exist is absent from its table."""

    def __init__(self, table: str, record_id: str, action: str | None = None):
        self.table = table
        self.record_id = record_id
        prefix = f"Failed to apply {action}. " if action else ""
        super().__init__(f'{prefix}No "{table}" record with id: {record_id} exists.')


class UnregisteredTableError(NormStoreError):
    """Raised when a field or payload names a table the session does not hold."""

    def __init__(self, table: str, field: str | None = None):
        self.table = table
        self.field = field
        if field:
            message = f"The foreign key {field} references an unregistered table: {table}"
        else:
            message = f"Table is not registered in this session: {table}"
        super().__init__(message)


class InvalidOperationError(NormStoreError):
    """Raised on writes through read-only relation views."""

    pass


class SchemaError(NormStoreError):
    """Raised for invalid schema declarations or unkeyed payloads."""

    pass
