"""In-memory storage for a single typed table."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, Sequence

from safe_tables.errors import SchemaViolationError, TypeMismatchError, ValueRangeError
from safe_tables.logging import get_logger
from safe_tables.query import PredicateLike, Query, to_predicate
from safe_tables.row import Row, RowView, build_row
from safe_tables.schema import Schema
from safe_tables.types import ArrayTypeDef, Value, format_native

logger = get_logger(__name__)


class TableScan:
    """A restartable view over a table's rows, in insertion order.

    Each iteration walks the rows present when that iteration starts.
    """

    def __init__(self, table: Table) -> None:
        self._table = table

    def __iter__(self) -> Iterator[RowView]:
        schema = self._table.schema
        for row in self._table.snapshot():
            yield RowView(schema, row)

    def __len__(self) -> int:
        return len(self._table)


class Table:
    """A named, ordered collection of rows sharing one schema.

    Every row in the table conforms to the schema. Mutations either apply
    completely or raise without changing the table.
    """

    def __init__(self, name: str, schema: Schema) -> None:
        """Initialize an empty table.

        Args:
            name: Table name, unique within its database.
            schema: Column definitions every row must satisfy.
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Table name must be a non-empty string")
        if not isinstance(schema, Schema):
            raise TypeError(f"Expected Schema, got {type(schema).__name__}")
        self._name = name
        self._schema = schema
        self._rows: list[Row] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def count(self) -> int:
        """Return the number of rows in the table."""
        return len(self._rows)

    def snapshot(self) -> tuple[Row, ...]:
        """Return the current rows as an immutable sequence."""
        return tuple(self._rows)

    def insert(self, values: Sequence[Any]) -> int:
        """Validate a row and append it.

        Args:
            values: One Value or native per column, in schema order. None
                marks a null in a nullable column.

        Returns:
            Position of the new row.

        Raises:
            SchemaViolationError: If the row does not conform to the schema.
        """
        row = build_row(self._schema, list(values), table=self._name)
        self._rows.append(row)
        return len(self._rows) - 1

    def insert_many(self, rows: Iterable[Sequence[Any]]) -> int:
        """Validate a batch of rows and append them all, or none."""
        built = [build_row(self._schema, list(values), table=self._name) for values in rows]
        self._rows.extend(built)
        return len(built)

    def insert_row(self, row: Row) -> int:
        """Append an already-built Row after validating it."""
        row.validate_against(self._schema, table=self._name)
        self._rows.append(row)
        return len(self._rows) - 1

    def scan(self) -> TableScan:
        """Return a restartable iterable of RowViews in insertion order."""
        return TableScan(self)

    def get_at(self, index: int) -> RowView:
        """Get the row at a position.

        Raises:
            IndexError: If the position is out of range.
        """
        if index < 0 or index >= len(self._rows):
            raise IndexError(f"Index {index} out of range [0, {len(self._rows)})")
        return RowView(self._schema, self._rows[index])

    def _matching_positions(self, predicate: PredicateLike) -> tuple[tuple[Row, ...], list[int]]:
        """Evaluate a predicate against a snapshot and return (snapshot, positions)."""
        check = to_predicate(predicate)
        snapshot = self.snapshot()
        positions = [i for i, row in enumerate(snapshot) if check(RowView(self._schema, row))]
        return snapshot, positions

    def delete_where(self, predicate: PredicateLike) -> int:
        """Remove every row the predicate accepts.

        The predicate is evaluated against a snapshot taken at call time; if
        it raises, no row is removed.

        Returns:
            Number of rows removed.
        """
        snapshot, positions = self._matching_positions(predicate)
        if positions:
            doomed = set(positions)
            self._rows = [row for i, row in enumerate(snapshot) if i not in doomed]
            logger.debug("rows_deleted", table=self._name, count=len(positions))
        return len(positions)

    def _rewrite_where(
        self,
        predicate: PredicateLike,
        column: str,
        transform: Callable[[Value | None], Value | None],
    ) -> int:
        """Replace matching rows with copies whose `column` went through `transform`.

        All replacement rows are built and validated before any is stored.
        """
        index = self._schema.index_of(column)
        snapshot, positions = self._matching_positions(predicate)
        replacements: dict[int, Row] = {}
        for position in positions:
            row = snapshot[position]
            try:
                new_value = transform(row[index])
            except (TypeMismatchError, ValueRangeError) as e:
                raise SchemaViolationError(
                    f"Column '{column}': {e}", table=self._name, column=column
                ) from e
            new_row = row.replace(index, new_value)
            new_row.validate_against(self._schema, table=self._name)
            replacements[position] = new_row
        if replacements:
            self._rows = [replacements.get(i, row) for i, row in enumerate(snapshot)]
            logger.debug("rows_updated", table=self._name, column=column, count=len(replacements))
        return len(replacements)

    def update_where(self, predicate: PredicateLike, column: str, value: Any) -> int:
        """Set `column` to `value` on every row the predicate accepts.

        A native value is tagged with the column's declared kind.

        Returns:
            Number of rows updated.
        """
        kind = self._schema.column(column).type_def

        def assign(_: Value | None) -> Value | None:
            if value is None or isinstance(value, Value):
                return value
            return Value(kind, value)

        return self._rewrite_where(predicate, column, assign)

    def increment_where(self, predicate: PredicateLike, column: str, by: int | float = 1) -> int:
        """Add `by` to a numeric column on every row the predicate accepts.

        Null values are left null. Overflowing the column's width raises
        SchemaViolationError and leaves the table unchanged.
        """
        kind = self._schema.column(column).type_def
        if not kind.is_numeric:
            raise TypeMismatchError("a numeric column", kind, column=column)

        def add(current: Value | None) -> Value | None:
            if current is None:
                return None
            return Value(kind, current.data + by)

        return self._rewrite_where(predicate, column, add)

    def push_where(self, predicate: PredicateLike, column: str, item: Any) -> int:
        """Append `item` to an array column on every row the predicate accepts.

        A null array is treated as empty.
        """
        kind = self._schema.column(column).type_def
        if not isinstance(kind, ArrayTypeDef):
            raise TypeMismatchError("an array column", kind, column=column)
        if isinstance(item, Value):
            if item.kind != kind.element:
                raise TypeMismatchError(kind.element, item.kind, column=column)
            item = item.data

        def push(current: Value | None) -> Value | None:
            items = list(current.data) if current is not None else []
            items.append(item)
            return Value(kind, items)

        return self._rewrite_where(predicate, column, push)

    def query(self) -> Query:
        """Start an empty query over this table."""
        return Query(self)

    def filter(self, predicate: PredicateLike) -> Query:
        """Start a query keeping rows the predicate accepts."""
        return Query(self).filter(predicate)

    def get_where(self, predicate: PredicateLike) -> Query:
        """Alias of filter()."""
        return self.filter(predicate)

    def where(self, expression: str) -> Query:
        """Start a query filtered by a where-expression."""
        return Query(self).where(expression)

    def rows(self, names: Sequence[str] | str) -> Query:
        """Start a query projecting the given columns."""
        return Query(self).rows(names)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[RowView]:
        return iter(self.scan())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return (
            self._name == other._name
            and self._schema == other._schema
            and self._rows == other._rows
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Table({self._name!r}, {self._schema!r}, rows={len(self._rows)})"

    def __str__(self) -> str:
        """Render the table as an aligned text grid."""
        headers = [str(c) for c in self._schema.columns]
        cells = [[format_native(v) for v in row.natives()] for row in self._rows]
        widths = [len(h) for h in headers]
        for line in cells:
            for i, cell in enumerate(line):
                widths[i] = max(widths[i], len(cell))

        def render(parts: list[str]) -> str:
            return "| " + " | ".join(p.ljust(w) for p, w in zip(parts, widths)) + " |"

        separator = "+-" + "-+-".join("-" * w for w in widths) + "-+"
        lines = [f"{self._name} ({len(self._rows)} rows)", separator, render(headers), separator]
        lines.extend(render(line) for line in cells)
        lines.append(separator)
        return "\n".join(lines)
