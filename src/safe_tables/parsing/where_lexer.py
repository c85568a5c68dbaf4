"""Lexer for where-expressions."""

import re

import ply.lex as lex

from safe_tables.errors import WhereSyntaxError


_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}
_ESCAPE_RE = re.compile(r"\\(.)")


def _unescape(match: re.Match) -> str:
    char = match.group(1)
    return _ESCAPES.get(char, char)


class WhereLexer:
    """Lexer for tokenizing where-expressions like 'age >= 21 and name starts with "A"'."""

    # Reserved keywords
    reserved = {
        "and": "AND",
        "or": "OR",
        "not": "NOT",
        "starts": "STARTS",
        "with": "WITH",
        "matches": "MATCHES",
        "is": "IS",
        "null": "NULL",
        "true": "TRUE",
        "false": "FALSE",
    }

    # Token list
    tokens = [
        "IDENTIFIER",
        "INTEGER",
        "FLOAT",
        "STRING",
        "REGEX",
        "LPAREN",
        "RPAREN",
        "EQ",
        "NEQ",
        "LT",
        "LTE",
        "GT",
        "GTE",
        "MINUS",
    ] + list(reserved.values())

    # Lexer states: regex state for /pattern/ after MATCHES keyword
    states = (("regex", "exclusive"),)

    # Simple tokens (INITIAL state)
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_EQ = r"==|="
    t_NEQ = r"!="
    t_LTE = r"<="
    t_LT = r"<"
    t_GTE = r">="
    t_GT = r">"
    t_MINUS = r"-"

    t_ignore = " \t\r\n"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_FLOAT(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+\.\d+(?:[eE][-+]?\d+)?"
        t.value = float(t.value)
        return t

    def t_INTEGER(self, t: lex.LexToken) -> lex.LexToken:
        r"0x[0-9a-fA-F]+|0b[01]+|\d+"
        t.value = int(t.value, 0) if t.value[:2] in ("0x", "0b") else int(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"([^"\\]|\\.)*"|\'([^\'\\]|\\.)*\''
        # Remove quotes and handle escapes
        t.value = _ESCAPE_RE.sub(_unescape, t.value[1:-1])
        return t

    def t_BACKTICK_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"`[^`]+`"
        # Backticks always produce an IDENTIFIER, bypassing keyword lookup
        t.value = t.value[1:-1]
        t.type = "IDENTIFIER"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z_][a-zA-Z0-9_]*"
        # Check if it's a reserved word (case-insensitive)
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        if t.type == "MATCHES":
            t.lexer.begin("regex")
        return t

    def t_error(self, t: lex.LexToken) -> None:
        raise WhereSyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    # --- Exclusive regex state tokens ---

    t_regex_ignore = " \t"

    def t_regex_REGEX(self, t: lex.LexToken) -> lex.LexToken:
        r"/([^/\\]|\\.)*/"
        t.value = t.value[1:-1]
        t.lexer.begin("INITIAL")
        try:
            re.compile(t.value)
        except re.error as e:
            raise WhereSyntaxError(f"Invalid regex /{t.value}/: {e}") from None
        return t

    def t_regex_error(self, t: lex.LexToken) -> None:
        t.lexer.begin("INITIAL")
        raise WhereSyntaxError(
            f"Expected regex pattern after 'matches', got '{t.value[0]}' at position {t.lexpos}"
        )

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize, starting from the initial state."""
        self.lexer.begin("INITIAL")
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens
