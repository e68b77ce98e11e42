from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .spans import Span


class TokenKind(str, Enum):
    # Words (identifiers, dotted paths and digit runs) and literals
    WORD = "WORD"
    STRING = "STRING"
    # Any other single character; only legal inside raw option values.
    PUNCT = "PUNCT"

    # Punctuation
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"
    LPAREN = "("
    RPAREN = ")"
    LANGLE = "<"
    RANGLE = ">"
    SEMI = ";"
    COMMA = ","
    EQ = "="
    MINUS = "-"

    # Keywords
    SYNTAX = "syntax"
    IMPORT = "import"
    PACKAGE = "package"
    OPTION = "option"
    MESSAGE = "message"
    ENUM = "enum"
    EXTEND = "extend"
    SERVICE = "service"
    ONEOF = "oneof"
    MAP = "map"
    GROUP = "group"
    RESERVED = "reserved"
    EXTENSIONS = "extensions"
    TO = "to"
    MAX = "max"
    OPTIONAL = "optional"
    REPEATED = "repeated"
    REQUIRED = "required"

    EOF = "EOF"


PUNCTUATION: dict[str, TokenKind] = {
    k.value: k for k in TokenKind if len(k.value) == 1
}


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    lexeme: str  # exact source text, quotes included for strings
    span: Span
    leading: str = ""  # breaks (whitespace and comments) before the token

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.lexeme!r}, {self.span.format()})"

    @property
    def string_value(self) -> str:
        """Content of a STRING token between its quotes, escapes kept as written."""
        if self.kind is not TokenKind.STRING:
            raise TypeError(f"not a string token: {self!r}")
        return self.lexeme[1:-1]


KEYWORDS: dict[str, TokenKind] = {
    k.value: k
    for k in TokenKind
    if k.value.isalpha() and k.value.islower()
}
