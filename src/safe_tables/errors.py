"""Exception types raised by safe_tables.

Every error derives from SafeTablesError and from the builtin exception a
caller would naturally catch for the same condition (KeyError for lookups,
ValueError for bad data, OSError for I/O), so both styles of handling work.
"""

from __future__ import annotations

from typing import Any


class SafeTablesError(Exception):
    """Base class for all safe_tables errors."""


class TableAlreadyExistsError(SafeTablesError, ValueError):
    """A table with this name already exists in the database."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table '{table}' already exists")


class TableNotFoundError(SafeTablesError, KeyError):
    """No table with this name exists in the database."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table '{table}' not found")

    def __str__(self) -> str:
        return self.args[0]


class ColumnNotFoundError(SafeTablesError, KeyError):
    """No column with this name exists in the schema or projection."""

    def __init__(self, column: str, available: list[str] | None = None) -> None:
        self.column = column
        self.available = list(available or [])
        message = f"Column '{column}' not found"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]


class DuplicateColumnError(SafeTablesError, ValueError):
    """Two columns in one schema share a name."""

    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f"Duplicate column '{column}'")


class EmptySchemaError(SafeTablesError, ValueError):
    """A schema was built with no columns."""

    def __init__(self) -> None:
        super().__init__("Schema must have at least one column")


class SchemaViolationError(SafeTablesError, ValueError):
    """A row does not conform to its table's schema."""

    def __init__(self, message: str, table: str | None = None, column: str | None = None) -> None:
        self.table = table
        self.column = column
        if table is not None:
            message = f"{message} (table '{table}')"
        super().__init__(message)


class TypeMismatchError(SafeTablesError, TypeError):
    """A value was requested or supplied as a kind it does not have."""

    def __init__(self, expected: Any, actual: Any, column: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.column = column
        where = f" for column '{column}'" if column is not None else ""
        super().__init__(f"Type mismatch{where}: expected {_kind_name(expected)}, got {_kind_name(actual)}")


class ValueRangeError(SafeTablesError, ValueError):
    """A native value does not fit the kind it was tagged with."""


class CorruptFileError(SafeTablesError, ValueError):
    """A byte stream is not a well-formed database file."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} at offset {offset}"
        super().__init__(message)


class IntegrityError(SafeTablesError, ValueError):
    """The stored checksum does not match the payload."""

    def __init__(self, expected: bytes, actual: bytes, path: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        self.path = path
        source = f" in {path}" if path else ""
        super().__init__(
            f"Checksum mismatch{source}: stored {expected.hex()[:16]}..., computed {actual.hex()[:16]}..."
        )


class StorageIOError(SafeTablesError, OSError):
    """Reading or writing a database file failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class WhereSyntaxError(SafeTablesError, SyntaxError):
    """A where-expression could not be parsed."""


def _kind_name(kind: Any) -> str:
    if isinstance(kind, type):
        return kind.__name__
    name = getattr(kind, "type_name", None)
    if isinstance(name, str):
        return name
    return str(kind)
