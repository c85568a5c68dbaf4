"""Parser for where-expressions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import ply.yacc as yacc

from safe_tables.errors import WhereSyntaxError
from safe_tables.parsing.where_lexer import WhereLexer


@dataclass
class Condition:
    """A single comparison against one column."""

    field: str
    operator: str  # eq, neq, lt, lte, gt, gte, starts_with, matches, is_null
    value: Any = None
    negate: bool = False


@dataclass
class CompoundCondition:
    """A compound condition (AND/OR)."""

    left: Condition | CompoundCondition
    operator: str  # and, or
    right: Condition | CompoundCondition
    negate: bool = False


class WhereParser:
    """Parser for where-expressions."""

    tokens = WhereLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "OR"),
        ("left", "AND"),
        ("right", "NOT"),
    )

    def __init__(self) -> None:
        self.lexer = WhereLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_condition_comparison(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER EQ value
                     | IDENTIFIER NEQ value
                     | IDENTIFIER LT value
                     | IDENTIFIER LTE value
                     | IDENTIFIER GT value
                     | IDENTIFIER GTE value"""
        op_map = {"=": "eq", "==": "eq", "!=": "neq", "<": "lt", "<=": "lte", ">": "gt", ">=": "gte"}
        p[0] = Condition(field=p[1], operator=op_map[p[2]], value=p[3])

    def p_condition_starts_with(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER STARTS WITH STRING"""
        p[0] = Condition(field=p[1], operator="starts_with", value=p[4])

    def p_condition_matches(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER MATCHES REGEX"""
        p[0] = Condition(field=p[1], operator="matches", value=p[3])

    def p_condition_is_null(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER IS NULL"""
        p[0] = Condition(field=p[1], operator="is_null")

    def p_condition_is_not_null(self, p: yacc.YaccProduction) -> None:
        """condition : IDENTIFIER IS NOT NULL"""
        p[0] = Condition(field=p[1], operator="is_null", negate=True)

    def p_condition_not(self, p: yacc.YaccProduction) -> None:
        """condition : NOT condition"""
        cond = p[2]
        cond.negate = not cond.negate
        p[0] = cond

    def p_condition_and(self, p: yacc.YaccProduction) -> None:
        """condition : condition AND condition"""
        p[0] = CompoundCondition(left=p[1], operator="and", right=p[3])

    def p_condition_or(self, p: yacc.YaccProduction) -> None:
        """condition : condition OR condition"""
        p[0] = CompoundCondition(left=p[1], operator="or", right=p[3])

    def p_condition_paren(self, p: yacc.YaccProduction) -> None:
        """condition : LPAREN condition RPAREN"""
        p[0] = p[2]

    def p_value_integer(self, p: yacc.YaccProduction) -> None:
        """value : INTEGER"""
        p[0] = p[1]

    def p_value_float(self, p: yacc.YaccProduction) -> None:
        """value : FLOAT"""
        p[0] = p[1]

    def p_value_negative(self, p: yacc.YaccProduction) -> None:
        """value : MINUS INTEGER
                 | MINUS FLOAT"""
        p[0] = -p[2]

    def p_value_string(self, p: yacc.YaccProduction) -> None:
        """value : STRING"""
        p[0] = p[1]

    def p_value_true(self, p: yacc.YaccProduction) -> None:
        """value : TRUE"""
        p[0] = True

    def p_value_false(self, p: yacc.YaccProduction) -> None:
        """value : FALSE"""
        p[0] = False

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise WhereSyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise WhereSyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="condition", **kwargs)

    def parse(self, data: str) -> Condition | CompoundCondition:
        """Parse a where-expression string."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.input(data)
        result = self.parser.parse(lexer=self.lexer.lexer)
        if result is None:
            raise WhereSyntaxError(f"Could not parse where-expression {data!r}")
        return result
