"""Query pipeline: filter, project, execute, extract typed columns."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator, Sequence, Union

from safe_tables.errors import ColumnNotFoundError, DuplicateColumnError
from safe_tables.parsing import compile_where
from safe_tables.row import RowView
from safe_tables.types import Kind, require_kind

if TYPE_CHECKING:
    from safe_tables.table import Table

Predicate = Callable[[RowView], bool]
PredicateLike = Union[Predicate, str]


def to_predicate(predicate: PredicateLike) -> Predicate:
    """Accept either a callable or a where-expression string."""
    if isinstance(predicate, str):
        return compile_where(predicate)
    if not callable(predicate):
        raise TypeError(f"Predicate must be callable or a where-expression, got {type(predicate).__name__}")
    return predicate


class QueryState(Enum):
    """How far a query description has been built."""

    UNBUILT = "unbuilt"
    FILTERED = "filtered"
    PROJECTED = "projected"
    EXECUTED = "executed"


@dataclass
class QueryResult:
    """Materialized result of a query execution."""

    columns: list[str]
    rows: list[dict[str, Any]]
    column_types: dict[str, Kind] = field(default_factory=dict)
    query: Query | None = field(default=None, compare=False, repr=False)

    def get(self, column: str, requested: Any) -> list[Any]:
        """Extract one column, in result row order.

        Args:
            column: A column included in the projection.
            requested: A TypeDef/ArrayTypeDef, or one of bool, int, float,
                str, bytes, list.

        Raises:
            ColumnNotFoundError: If the column is not part of the projection.
            TypeMismatchError: If the column's declared kind does not match.
        """
        kind = self.column_types.get(column)
        if kind is None:
            raise ColumnNotFoundError(column, self.columns)
        require_kind(kind, requested, column=column)
        return [row[column] for row in self.rows]

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None

    def to_dicts(self) -> list[dict[str, Any]]:
        return [dict(row) for row in self.rows]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.rows)

    def __bool__(self) -> bool:
        return bool(self.rows)


@dataclass(frozen=True, eq=False)
class Query:
    """An immutable description of a query over one table.

    Every builder method returns a new Query; nothing touches the table until
    execute() runs, and execute() reads the table's rows as they are at that
    moment.
    """

    table: Table
    predicates: tuple[Predicate, ...] = ()
    projection: tuple[str, ...] | None = None
    skip: int = 0
    take: int | None = None
    state: QueryState = QueryState.UNBUILT

    def filter(self, predicate: PredicateLike) -> Query:
        """Keep only rows for which the predicate is true. Filters combine with AND."""
        return self._describe(predicates=self.predicates + (to_predicate(predicate),))

    def get_where(self, predicate: PredicateLike) -> Query:
        """Alias of filter()."""
        return self.filter(predicate)

    def where(self, expression: str) -> Query:
        """Filter with a where-expression such as 'age > 20 and name starts with "A"'."""
        return self._describe(predicates=self.predicates + (compile_where(expression),))

    def rows(self, names: Sequence[str] | str) -> Query:
        """Declare which columns the result exposes, and in what order.

        Raises:
            ColumnNotFoundError: If a name is not in the table's schema.
            DuplicateColumnError: If a name is requested twice.
        """
        if isinstance(names, str):
            names = [names]
        schema = self.table.schema
        seen: set[str] = set()
        for name in names:
            if name not in schema:
                raise ColumnNotFoundError(name, schema.names)
            if name in seen:
                raise DuplicateColumnError(name)
            seen.add(name)
        return self._describe(projection=tuple(names))

    def offset(self, count: int) -> Query:
        """Skip the first `count` matching rows."""
        if count < 0:
            raise ValueError("offset must be non-negative")
        return self._describe(skip=count)

    def limit(self, count: int | None) -> Query:
        """Return at most `count` matching rows (None for no limit)."""
        if count is not None and count < 0:
            raise ValueError("limit must be non-negative")
        return self._describe(take=count)

    def _describe(self, **changes: Any) -> Query:
        query = replace(self, **changes)
        if query.projection is not None:
            state = QueryState.PROJECTED
        elif query.predicates:
            state = QueryState.FILTERED
        else:
            state = QueryState.UNBUILT
        return replace(query, state=state)

    def _matching(self) -> Iterator[RowView]:
        schema = self.table.schema
        skipped = 0
        taken = 0
        for row in self.table.snapshot():
            if self.take is not None and taken >= self.take:
                return
            view = RowView(schema, row)
            if not all(predicate(view) for predicate in self.predicates):
                continue
            if skipped < self.skip:
                skipped += 1
                continue
            taken += 1
            yield view

    def execute(self) -> QueryResult:
        """Run the query against the table's current rows.

        Predicate errors (including TypeMismatchError from a mistyped get)
        propagate to the caller instead of silently excluding the row.
        """
        schema = self.table.schema
        columns = list(self.projection) if self.projection is not None else schema.names
        indices = [schema.index_of(name) for name in columns]
        result_rows = []
        for view in self._matching():
            natives = view.row.natives()
            result_rows.append({name: natives[i] for name, i in zip(columns, indices)})
        return QueryResult(
            columns=columns,
            rows=result_rows,
            column_types={name: schema.columns[i].type_def for name, i in zip(columns, indices)},
            query=replace(self, state=QueryState.EXECUTED),
        )

    def count(self) -> int:
        """Return the number of rows the query would produce."""
        return sum(1 for _ in self._matching())
