from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Position:
    """A concrete source position.

    Offsets are 0-based; line/column are 1-based for user-facing messages.
    """

    offset: int
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


START = Position(offset=0, line=1, column=1)


@dataclass(frozen=True, slots=True)
class Span:
    """Half-open span [start, end) in a single file."""

    file: str
    start: Position
    end: Position

    @classmethod
    def point(cls, file: str, pos: Position) -> "Span":
        return cls(file=file, start=pos, end=pos)

    def format(self) -> str:
        return f"{self.file}:{self.start}"
