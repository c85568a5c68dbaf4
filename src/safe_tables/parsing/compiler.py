"""Turn parsed where-expressions into row predicates."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Callable

from safe_tables.errors import TypeMismatchError
from safe_tables.parsing.where_parser import CompoundCondition, Condition, WhereParser
from safe_tables.types import Kind, TypeDef

if TYPE_CHECKING:
    from safe_tables.row import RowView

_parser: WhereParser | None = None


def _get_parser() -> WhereParser:
    global _parser
    if _parser is None:
        _parser = WhereParser()
    return _parser


@lru_cache(maxsize=256)
def parse_where(expression: str) -> Condition | CompoundCondition:
    """Parse a where-expression, caching the tree per expression string."""
    return _get_parser().parse(expression)


def compile_where(expression: str) -> Callable[[RowView], bool]:
    """Compile a where-expression into a predicate over RowView.

    Raises:
        WhereSyntaxError: If the expression cannot be parsed.
    """
    condition = parse_where(expression)

    def predicate(view: RowView) -> bool:
        return evaluate_condition(view, condition)

    predicate.__name__ = f"where({expression!r})"
    return predicate


def evaluate_condition(view: RowView, condition: Condition | CompoundCondition) -> bool:
    """Evaluate a condition against a row.

    Raises:
        ColumnNotFoundError: If the condition names a column the row lacks.
        TypeMismatchError: If a literal cannot be compared with the column's kind.
    """
    if isinstance(condition, CompoundCondition):
        left = evaluate_condition(view, condition.left)
        if condition.operator == "and":
            result = left and evaluate_condition(view, condition.right)
        else:  # or
            result = left or evaluate_condition(view, condition.right)
        return not result if condition.negate else result

    column = view.schema.column(condition.field)
    if condition.operator == "is_null":
        result = view.value(condition.field) is None
        return not result if condition.negate else result

    _check_literal(column.type_def, condition)
    field_value = view[condition.field]
    if field_value is None:
        # Nulls never satisfy a comparison
        return condition.negate

    result = _compare(field_value, condition.operator, condition.value)
    return not result if condition.negate else result


def _check_literal(kind: Kind, condition: Condition) -> None:
    """Reject literals whose type does not belong to the column's kind."""
    value = condition.value
    if condition.operator in ("starts_with", "matches"):
        ok = kind.is_text
    elif isinstance(value, bool):
        ok = kind is TypeDef.BOOL
    elif isinstance(value, int):
        ok = kind.is_integer or kind.is_float
    elif isinstance(value, float):
        ok = kind.is_float
    elif isinstance(value, str):
        ok = kind.is_text
    else:
        ok = False
    if not ok:
        raise TypeMismatchError(kind, type(value), column=condition.field)


def _compare(field_value: Any, operator: str, value: Any) -> bool:
    """Compare a field value against a condition value."""
    if operator == "eq":
        return field_value == value
    elif operator == "neq":
        return field_value != value
    elif operator == "lt":
        return field_value < value
    elif operator == "lte":
        return field_value <= value
    elif operator == "gt":
        return field_value > value
    elif operator == "gte":
        return field_value >= value
    elif operator == "starts_with":
        return field_value.startswith(value)
    elif operator == "matches":
        return re.search(value, field_value) is not None
    raise ValueError(f"Unknown operator: {operator}")
