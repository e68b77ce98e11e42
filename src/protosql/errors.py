from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .spans import Span


class FailureKind(str, Enum):
    # an expected literal, keyword or character class was not found
    LEXICAL = "lexical"
    # a composite production could not complete
    STRUCTURAL = "structural"
    # a digit run or option boolean could not be converted
    LITERAL = "literal"
    NESTING = "nesting"


@dataclass(slots=True)
class ParseError(Exception):
    span: Span
    message: str
    hint: str | None = None
    kind: FailureKind = FailureKind.STRUCTURAL

    def __str__(self) -> str:
        base = f"{self.span.format()}: {self.message}"
        if self.hint:
            return f"{base}\nhint: {self.hint}"
        return base

    @property
    def offset(self) -> int:
        return self.span.start.offset

    @property
    def line(self) -> int:
        return self.span.start.line

    @property
    def column(self) -> int:
        return self.span.start.column


@dataclass(slots=True)
class SchemaError(Exception):
    """Table metadata could not be read."""

    uri: str
    message: str

    def __str__(self) -> str:
        return f"{self.uri}: {self.message}"
