from __future__ import annotations

from dataclasses import dataclass

from .errors import FailureKind, ParseError
from .grammar import Grammar, Production
from .lalr import ParseTable, build_lalr_table, expected_terminals
from .spans import Span
from .tokens import Token, TokenKind


DEFAULT_MAX_DEPTH = 64

_OPENERS = {TokenKind.LBRACE: TokenKind.RBRACE, TokenKind.LANGLE: TokenKind.RANGLE}
_CLOSERS = frozenset(_OPENERS.values())


def _span_of(v: object) -> Span:
    # Token and AST nodes both carry .span.
    sp = getattr(v, "span", None)
    if sp is None:
        raise TypeError(f"semantic value has no span: {type(v)!r}")
    return sp


def join_span(*vals: object) -> Span:
    """Join spans of tokens/nodes into a single span (from first to last)."""
    real = [v for v in vals if v is not None]
    if not real:
        raise ValueError("join_span() requires at least one value")
    first = _span_of(real[0])
    last = _span_of(real[-1])
    return Span(file=first.file, start=first.start, end=last.end)


def _token_display(kind: TokenKind) -> str:
    if kind is TokenKind.WORD:
        return "identifier or number"
    if kind is TokenKind.STRING:
        return "string literal"
    if kind is TokenKind.EOF:
        return "end of input"
    return repr(kind.value)


@dataclass(slots=True)
class Parser:
    grammar: Grammar[object]
    table: ParseTable

    @classmethod
    def for_grammar(cls, grammar: Grammar[object]) -> "Parser":
        return cls(grammar=grammar, table=build_lalr_table(grammar))

    def parse(self, tokens: list[Token], *, max_depth: int = DEFAULT_MAX_DEPTH) -> object:
        """Run the tables over `tokens` and return the start symbol's value.

        `max_depth` bounds how many `{`/`<` blocks may be open at once; one more
        raises a NESTING error.
        """
        states: list[int] = [0]
        values: list[object] = []
        open_blocks = 0
        pos = 0

        while True:
            tok = tokens[pos]
            act = self.table.action.get(states[-1], {}).get(tok.kind)
            if act is None:
                raise self._unexpected(states[-1], tok)

            step, arg = act
            if step == "accept":
                if not values:
                    raise RuntimeError("accept with empty value stack")
                return values[-1]
            if step == "reduce":
                self._reduce(self.grammar.productions[arg], states, values)
                continue
            if step != "shift":
                raise RuntimeError(f"unknown action: {act}")

            if tok.kind in _OPENERS:
                open_blocks += 1
                if open_blocks > max_depth:
                    raise ParseError(
                        span=tok.span,
                        message="nesting too deep",
                        hint=f"at most {max_depth} nested blocks are accepted",
                        kind=FailureKind.NESTING,
                    )
            elif tok.kind in _CLOSERS and open_blocks:
                open_blocks -= 1
            states.append(arg)
            values.append(tok)
            pos += 1

    def _reduce(self, prod: Production, states: list[int], values: list[object]) -> None:
        n = len(prod.body)
        if n > len(values) or n >= len(states):
            raise RuntimeError(f"stack underflow reducing {prod} in state {states[-1]}")
        rhs: list[object] = []
        if n:
            rhs = values[-n:]
            del values[-n:]
            del states[-n:]
        values.append(prod.action(rhs))
        target = self.table.goto.get(states[-1], {}).get(prod.head)
        if target is None:
            raise RuntimeError(f"no goto from state {states[-1]} on {prod.head.name}")
        states.append(target)

    def _unexpected(self, state: int, tok: Token) -> ParseError:
        expected = sorted(expected_terminals(self.table, state), key=lambda k: k.value)
        found = "end of input" if tok.kind is TokenKind.EOF else repr(tok.lexeme)
        hint = None
        if expected:
            hint = "expected one of: " + ", ".join(_token_display(k) for k in expected[:12])
        # One expected token: a literal/keyword mismatch. More: an unfinished declaration.
        kind = FailureKind.LEXICAL if len(expected) == 1 else FailureKind.STRUCTURAL
        return ParseError(span=tok.span, message=f"unexpected {found}", hint=hint, kind=kind)
