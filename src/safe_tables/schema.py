"""Column and schema definitions for typed tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from safe_tables.errors import ColumnNotFoundError, DuplicateColumnError, EmptySchemaError
from safe_tables.types import ArrayTypeDef, Kind, TypeDef, parse_type_name


@dataclass(frozen=True)
class Column:
    """Definition of a column within a schema."""

    name: str
    type_def: Kind
    nullable: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Column name must be a non-empty string")
        if isinstance(self.type_def, str):
            object.__setattr__(self, "type_def", parse_type_name(self.type_def))
        elif not isinstance(self.type_def, (TypeDef, ArrayTypeDef)):
            raise TypeError(f"Column '{self.name}' has invalid type {self.type_def!r}")

    def as_nullable(self) -> Column:
        """Return a copy of this column that accepts nulls."""
        return Column(self.name, self.type_def, nullable=True)

    def __str__(self) -> str:
        suffix = "?" if self.nullable else ""
        return f"{self.name}: {self.type_def.type_name}{suffix}"


class Schema:
    """Ordered column definitions shared by every row of a table.

    Column order is fixed once the schema is built: it defines both the arity
    rows must satisfy and the on-disk row layout.
    """

    def __init__(self, columns: Sequence[Column]) -> None:
        """Initialize a schema.

        Args:
            columns: Column definitions, in row order.

        Raises:
            EmptySchemaError: If no columns are given.
            DuplicateColumnError: If two columns share a name.
        """
        columns = tuple(columns)
        if not columns:
            raise EmptySchemaError()

        index: dict[str, int] = {}
        for i, column in enumerate(columns):
            if not isinstance(column, Column):
                raise TypeError(f"Expected Column, got {type(column).__name__}")
            if column.name in index:
                raise DuplicateColumnError(column.name)
            index[column.name] = i

        self._columns = columns
        self._index = index

    @classmethod
    def of(cls, **columns: Kind | str) -> Schema:
        """Build a schema from keyword arguments, e.g. Schema.of(id="int64", name=TypeDef.STRING)."""
        return cls([Column(name, type_def) for name, type_def in columns.items()])  # type: ignore[arg-type]

    @property
    def columns(self) -> tuple[Column, ...]:
        return self._columns

    @property
    def names(self) -> list[str]:
        return [c.name for c in self._columns]

    def column(self, name: str) -> Column:
        """Get a column by name.

        Raises:
            ColumnNotFoundError: If the schema has no such column.
        """
        return self._columns[self.index_of(name)]

    def index_of(self, name: str) -> int:
        """Get the position of a column by name."""
        try:
            return self._index[name]
        except KeyError:
            raise ColumnNotFoundError(name, self.names) from None

    def has_column(self, name: str) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self._columns)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self._columns == other._columns

    def __hash__(self) -> int:
        return hash(self._columns)

    def __repr__(self) -> str:
        return f"Schema([{', '.join(str(c) for c in self._columns)}])"
