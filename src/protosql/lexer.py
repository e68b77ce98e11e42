from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import FailureKind, ParseError
from .spans import Position, Span
from .tokens import KEYWORDS, PUNCTUATION, Token, TokenKind


# Words cover identifiers, dotted type paths and digit runs alike; the grammar
# decides which of those a position accepts.
_WORD_RE = re.compile(r"[A-Za-z0-9_.]*")
_DECIMAL_RE = re.compile(r"[0-9]+")
_HEX_RE = re.compile(r"0x([0-9A-Fa-f]+)")
_WHITESPACE_RE = re.compile(r"[ \t\r\n\f\v]+")
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)

INT32_MAX = 2**31 - 1


def scan_word(src: str, i: int) -> int:
    """Return the end of the word starting at `i` (`i` itself if there is none)."""
    return _WORD_RE.match(src, i).end()


def read_integer(
    src: str, i: int = 0, *, allow_hex: bool = True, limit: int = INT32_MAX
) -> tuple[int, int]:
    """Read a decimal or `0x` hex literal at `i`, returning (value, end).

    Raises ValueError when there are no digits or the value exceeds `limit`
    (by default the largest signed 32-bit integer).
    """
    m = _HEX_RE.match(src, i) if allow_hex else None
    if m is not None:
        value = int(m.group(1), 16)
    else:
        m = _DECIMAL_RE.match(src, i)
        if m is None:
            raise ValueError(f"expected digits at offset {i}")
        value = int(m.group(0))
    if value > limit:
        raise ValueError(f"integer literal {m.group(0)} does not fit in 32 bits")
    return value, m.end()


def scan_whitespace(src: str, i: int) -> int | None:
    m = _WHITESPACE_RE.match(src, i)
    return m.end() if m else None


def scan_line_comment(src: str, i: int) -> int | None:
    # The newline itself belongs to the following whitespace run.
    m = _LINE_COMMENT_RE.match(src, i)
    return m.end() if m else None


def scan_block_comment(src: str, i: int) -> int | None:
    m = _BLOCK_COMMENT_RE.match(src, i)
    return m.end() if m else None


def scan_break(src: str, i: int) -> int | None:
    """End of one break (whitespace run, line comment or block comment) at `i`."""
    for scan in (scan_whitespace, scan_line_comment, scan_block_comment):
        end = scan(src, i)
        if end is not None:
            return end
    return None


def skip_breaks(src: str, i: int) -> int:
    while (end := scan_break(src, i)) is not None:
        i = end
    return i


@dataclass(slots=True)
class _Cursor:
    src: str
    i: int = 0
    line: int = 1
    col: int = 1

    def eof(self) -> bool:
        return self.i >= len(self.src)

    def peek(self, n: int = 0) -> str:
        j = self.i + n
        if j >= len(self.src):
            return ""
        return self.src[j]

    def advance_to(self, j: int) -> None:
        chunk = self.src[self.i : j]
        newlines = chunk.count("\n")
        if newlines:
            self.line += newlines
            self.col = len(chunk) - chunk.rfind("\n")
        else:
            self.col += len(chunk)
        self.i = j

    def pos(self) -> Position:
        return Position(offset=self.i, line=self.line, column=self.col)


def tokenize(src: str, *, file: str = "<memory>") -> list[Token]:
    cur = _Cursor(src=src)
    tokens: list[Token] = []

    def error_at(start: Position, msg: str, hint: str | None = None) -> ParseError:
        return ParseError(
            span=Span(file=file, start=start, end=cur.pos()),
            message=msg,
            hint=hint,
            kind=FailureKind.LEXICAL,
        )

    while True:
        lead_start = cur.i
        while not cur.eof():
            end = scan_break(src, cur.i)
            if end is None:
                if src.startswith("/*", cur.i):
                    raise error_at(cur.pos(), "unterminated block comment", hint="add closing */")
                break
            cur.advance_to(end)
        leading = src[lead_start : cur.i]
        start = cur.pos()

        if cur.eof():
            tokens.append(Token(TokenKind.EOF, "", Span.point(file, start), leading))
            return tokens

        ch = cur.peek()

        # strings: "..." or '...'
        if ch in "\"'":
            j = cur.i + 1
            while True:
                if j >= len(src) or src[j] == "\n":
                    raise error_at(start, "unterminated string literal", hint="close the quote")
                if src[j] == "\\":
                    j += 2
                    continue
                if src[j] == ch:
                    j += 1
                    break
                j += 1
            lexeme = src[cur.i : j]
            cur.advance_to(j)
            tokens.append(Token(TokenKind.STRING, lexeme, Span(file, start, cur.pos()), leading))
            continue

        end = scan_word(src, cur.i)
        if end > cur.i:
            lexeme = src[cur.i : end]
            cur.advance_to(end)
            kind = KEYWORDS.get(lexeme, TokenKind.WORD)
            tokens.append(Token(kind, lexeme, Span(file, start, cur.pos()), leading))
            continue

        cur.advance_to(cur.i + 1)
        kind = PUNCTUATION.get(ch, TokenKind.PUNCT)
        tokens.append(Token(kind, ch, Span(file, start, cur.pos()), leading))
