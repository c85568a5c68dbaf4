"""Parsing module for where-expressions."""

from safe_tables.parsing.compiler import compile_where, evaluate_condition, parse_where
from safe_tables.parsing.where_lexer import WhereLexer
from safe_tables.parsing.where_parser import CompoundCondition, Condition, WhereParser

__all__ = [
    "CompoundCondition",
    "Condition",
    "WhereLexer",
    "WhereParser",
    "compile_where",
    "evaluate_condition",
    "parse_where",
]
