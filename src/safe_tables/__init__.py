"""Safe Tables - An embedded, schema-typed table store persisted to one file."""

from safe_tables.config import Settings, get_settings
from safe_tables.database import Database
from safe_tables.errors import (
    ColumnNotFoundError,
    CorruptFileError,
    DuplicateColumnError,
    EmptySchemaError,
    IntegrityError,
    SafeTablesError,
    SchemaViolationError,
    StorageIOError,
    TableAlreadyExistsError,
    TableNotFoundError,
    TypeMismatchError,
    ValueRangeError,
    WhereSyntaxError,
)
from safe_tables.logging import get_logger, setup_logging
from safe_tables.query import Query, QueryResult, QueryState
from safe_tables.row import Row, RowView
from safe_tables.schema import Column, Schema
from safe_tables.table import Table, TableScan
from safe_tables.types import ArrayTypeDef, TypeDef, Value, array_of

__all__ = [
    # Main API
    "Database",
    "Table",
    "TableScan",
    "Schema",
    "Column",
    "Row",
    "RowView",
    # Values
    "TypeDef",
    "ArrayTypeDef",
    "Value",
    "array_of",
    # Queries
    "Query",
    "QueryResult",
    "QueryState",
    # Configuration
    "Settings",
    "get_settings",
    "setup_logging",
    "get_logger",
    # Errors
    "SafeTablesError",
    "TableAlreadyExistsError",
    "TableNotFoundError",
    "ColumnNotFoundError",
    "DuplicateColumnError",
    "EmptySchemaError",
    "SchemaViolationError",
    "TypeMismatchError",
    "ValueRangeError",
    "CorruptFileError",
    "IntegrityError",
    "StorageIOError",
    "WhereSyntaxError",
]

__version__ = "0.1.0"
