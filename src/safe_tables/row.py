"""Rows and the read-only row accessor handed to predicates."""

from __future__ import annotations

from typing import Any, Iterator, Sequence

from safe_tables.errors import SchemaViolationError, TypeMismatchError, ValueRangeError
from safe_tables.schema import Schema
from safe_tables.types import ArrayTypeDef, Value, format_native, require_kind


class Row:
    """An immutable, ordered tuple of values.

    A None entry is a null. Rows carry no identity beyond their position in
    their table.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Sequence[Value | None]) -> None:
        self._values: tuple[Value | None, ...] = tuple(values)

    @property
    def values(self) -> tuple[Value | None, ...]:
        return self._values

    def validate_against(self, schema: Schema, table: str | None = None) -> None:
        """Check arity and per-position kind against a schema.

        Raises:
            SchemaViolationError: If the row does not conform.
        """
        if len(self._values) != len(schema):
            raise SchemaViolationError(
                f"Row has {len(self._values)} values but schema has {len(schema)} columns",
                table=table,
            )
        for column, value in zip(schema.columns, self._values):
            if value is None:
                if not column.nullable:
                    raise SchemaViolationError(
                        f"Column '{column.name}' is not nullable", table=table, column=column.name
                    )
                continue
            if not isinstance(value, Value):
                raise SchemaViolationError(
                    f"Column '{column.name}' expects a Value, got {type(value).__name__}",
                    table=table,
                    column=column.name,
                )
            if value.kind != column.type_def:
                raise SchemaViolationError(
                    f"Column '{column.name}' expects {column.type_def.type_name}, "
                    f"got {value.kind.type_name}",
                    table=table,
                    column=column.name,
                )

    def replace(self, index: int, value: Value | None) -> Row:
        """Return a new row with the value at `index` replaced."""
        values = list(self._values)
        values[index] = value
        return Row(values)

    def natives(self) -> tuple[Any, ...]:
        return tuple(_native(v) for v in self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Value | None]:
        return iter(self._values)

    def __getitem__(self, index: int) -> Value | None:
        return self._values[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return self._values == other._values

    def __hash__(self) -> int:
        return hash(self._values)

    def __repr__(self) -> str:
        return f"Row({', '.join(repr(v) for v in self._values)})"


def _native(value: Value | None) -> Any:
    if value is None:
        return None
    if isinstance(value.kind, ArrayTypeDef):
        return list(value.data)
    return value.data


def build_row(schema: Schema, values: Sequence[Any], table: str | None = None) -> Row:
    """Build and validate a row for a schema from Values and natives.

    A native is tagged with its column's declared kind, which only succeeds
    when the Python type belongs to that kind (an int never becomes a string,
    a bool never becomes an int). Explicit Values must match exactly.

    Raises:
        SchemaViolationError: On arity mismatch, kind mismatch, an
            out-of-range native, or a null in a non-nullable column.
    """
    if len(values) != len(schema):
        raise SchemaViolationError(
            f"Row has {len(values)} values but schema has {len(schema)} columns", table=table
        )
    tagged: list[Value | None] = []
    for column, native in zip(schema.columns, values):
        if native is None or isinstance(native, Value):
            tagged.append(native)
            continue
        try:
            tagged.append(Value(column.type_def, native))
        except (TypeMismatchError, ValueRangeError) as e:
            raise SchemaViolationError(
                f"Column '{column.name}': {e}", table=table, column=column.name
            ) from e
    row = Row(tagged)
    row.validate_against(schema, table=table)
    return row


class RowView:
    """Read-only, name-based access to one row."""

    __slots__ = ("_schema", "_row")

    def __init__(self, schema: Schema, row: Row) -> None:
        self._schema = schema
        self._row = row

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def row(self) -> Row:
        return self._row

    def get(self, name: str, requested: Any) -> Any:
        """Return the value of a column, checked against a requested type.

        Args:
            name: Column name.
            requested: A TypeDef/ArrayTypeDef, or one of bool, int, float,
                str, bytes, list.

        Returns:
            The native value, or None if the column is null.

        Raises:
            ColumnNotFoundError: If the schema has no such column.
            TypeMismatchError: If the column's kind does not match `requested`.
        """
        index = self._schema.index_of(name)
        column = self._schema.columns[index]
        require_kind(column.type_def, requested, column=name)
        return _native(self._row[index])

    def value(self, name: str) -> Value | None:
        """Return the tagged Value of a column (None if null)."""
        return self._row[self._schema.index_of(name)]

    def __getitem__(self, name: str) -> Any:
        return _native(self.value(name))

    def __contains__(self, name: object) -> bool:
        return name in self._schema

    def keys(self) -> list[str]:
        return self._schema.names

    def as_dict(self) -> dict[str, Any]:
        return {c.name: _native(v) for c, v in zip(self._schema.columns, self._row)}

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{c.name}={format_native(_native(v))}" for c, v in zip(self._schema.columns, self._row)
        )
        return f"RowView({fields})"
