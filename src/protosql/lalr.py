from __future__ import annotations

from dataclasses import dataclass

from .grammar import Grammar, NonTerminal, Production, Symbol, Terminal
from .tokens import TokenKind


# LR(0) item core: (production index in the augmented grammar, dot position)
Core = tuple[int, int]


@dataclass(frozen=True, slots=True)
class LR1Item:
    prod_index: int
    dot: int
    lookahead: TokenKind

    def core(self) -> Core:
        return (self.prod_index, self.dot)


@dataclass(frozen=True, slots=True)
class ParseTable:
    """ACTION / GOTO tables for an LALR parser.

    ACTION[state][terminal] = ("shift", next_state) | ("reduce", prod_index) | ("accept", 0)
    GOTO[state][nonterminal] = next_state

    Reduce indexes refer to the original (non-augmented) grammar.
    """

    action: dict[int, dict[TokenKind, tuple[str, int]]]
    goto: dict[int, dict[NonTerminal, int]]


class GrammarAnalysisError(Exception):
    pass


# Stand-in lookahead used while discovering which lookaheads propagate.
_PROPAGATE = object()


class TableBuilder:
    """Builds LALR(1) tables from the LR(0) automaton.

    Lookaheads are computed by the spontaneous-generation/propagation method
    instead of merging a canonical LR(1) collection, which keeps the build fast
    for grammars with wide "any token" alternations.
    """

    def __init__(self, grammar: Grammar[object]) -> None:
        start_prime = NonTerminal(grammar.start.name + "'")
        augmented = Production(head=start_prime, body=(grammar.start,), action=lambda xs: xs[0])
        self.prods: tuple[Production, ...] = (augmented,) + grammar.productions
        self.by_head: dict[NonTerminal, list[int]] = {}
        for i, p in enumerate(self.prods):
            self.by_head.setdefault(p.head, []).append(i)

        self.nullable: set[NonTerminal] = set()
        self.first: dict[NonTerminal, set[TokenKind]] = {nt: set() for nt in self.by_head}
        self._first_cache: dict[tuple[Symbol, ...], tuple[frozenset[TokenKind], bool]] = {}
        self._compute_first_sets()

        self.kernels: list[frozenset[Core]] = []
        self.transitions: dict[tuple[int, Symbol], int] = {}

    # -- FIRST sets ---------------------------------------------------------

    def _compute_first_sets(self) -> None:
        changed = True
        while changed:
            changed = False
            for p in self.prods:
                first, nullable = self._first_of_uncached(p.body)
                before = len(self.first[p.head])
                self.first[p.head] |= first
                if len(self.first[p.head]) != before:
                    changed = True
                if nullable and p.head not in self.nullable:
                    self.nullable.add(p.head)
                    changed = True

    def _first_of_uncached(self, seq: tuple[Symbol, ...]) -> tuple[set[TokenKind], bool]:
        out: set[TokenKind] = set()
        for s in seq:
            if isinstance(s, Terminal):
                out.add(s.kind)
                return out, False
            out |= self.first[s]
            if s not in self.nullable:
                return out, False
        return out, True

    def first_of(self, seq: tuple[Symbol, ...]) -> tuple[frozenset[TokenKind], bool]:
        hit = self._first_cache.get(seq)
        if hit is None:
            first, nullable = self._first_of_uncached(seq)
            hit = (frozenset(first), nullable)
            self._first_cache[seq] = hit
        return hit

    # -- LR(0) automaton ----------------------------------------------------

    def _next_symbol(self, core: Core) -> Symbol | None:
        body = self.prods[core[0]].body
        return body[core[1]] if core[1] < len(body) else None

    def closure0(self, kernel: frozenset[Core]) -> set[Core]:
        out = set(kernel)
        work = list(kernel)
        while work:
            s = self._next_symbol(work.pop())
            if not isinstance(s, NonTerminal):
                continue
            for j in self.by_head.get(s, ()):
                if (j, 0) not in out:
                    out.add((j, 0))
                    work.append((j, 0))
        return out

    def _build_automaton(self) -> None:
        start = frozenset({(0, 0)})
        index: dict[frozenset[Core], int] = {start: 0}
        self.kernels = [start]
        work = [0]
        while work:
            i = work.pop()
            moved: dict[Symbol, set[Core]] = {}
            for core in self.closure0(self.kernels[i]):
                s = self._next_symbol(core)
                if s is not None:
                    moved.setdefault(s, set()).add((core[0], core[1] + 1))
            for s, cores in moved.items():
                kernel = frozenset(cores)
                j = index.get(kernel)
                if j is None:
                    j = len(self.kernels)
                    index[kernel] = j
                    self.kernels.append(kernel)
                    work.append(j)
                self.transitions[(i, s)] = j

    # -- Lookaheads ---------------------------------------------------------

    def closure1(self, seeds: dict[Core, set[object]]) -> dict[Core, set[object]]:
        out = {core: set(las) for core, las in seeds.items()}
        work = list(out)
        while work:
            core = work.pop()
            s = self._next_symbol(core)
            if not isinstance(s, NonTerminal):
                continue
            first, nullable = self.first_of(self.prods[core[0]].body[core[1] + 1 :])
            las: set[object] = set(first)
            if nullable:
                las |= out[core]
            for j in self.by_head.get(s, ()):
                cur = out.get((j, 0))
                if cur is None:
                    out[(j, 0)] = set(las)
                    work.append((j, 0))
                elif not las <= cur:
                    cur |= las
                    work.append((j, 0))
        return out

    def _compute_lookaheads(self) -> list[dict[Core, set[TokenKind]]]:
        lookaheads: list[dict[Core, set[TokenKind]]] = [
            {core: set() for core in kernel} for kernel in self.kernels
        ]
        lookaheads[0][(0, 0)].add(TokenKind.EOF)
        propagates: dict[tuple[int, Core], list[tuple[int, Core]]] = {}

        for i, kernel in enumerate(self.kernels):
            for k in kernel:
                for core, las in self.closure1({k: {_PROPAGATE}}).items():
                    s = self._next_symbol(core)
                    if s is None:
                        continue
                    j = self.transitions[(i, s)]
                    target = (core[0], core[1] + 1)
                    for la in las:
                        if la is _PROPAGATE:
                            propagates.setdefault((i, k), []).append((j, target))
                        else:
                            lookaheads[j][target].add(la)  # type: ignore[arg-type]

        changed = True
        while changed:
            changed = False
            for (i, k), targets in propagates.items():
                src = lookaheads[i][k]
                if not src:
                    continue
                for j, target in targets:
                    dst = lookaheads[j][target]
                    if not src <= dst:
                        dst |= src
                        changed = True
        return lookaheads

    # -- Tables -------------------------------------------------------------

    def build(self) -> ParseTable:
        self._build_automaton()
        lookaheads = self._compute_lookaheads()

        action: dict[int, dict[TokenKind, tuple[str, int]]] = {}
        goto_tbl: dict[int, dict[NonTerminal, int]] = {}

        def add_action(st: int, term: TokenKind, act: tuple[str, int]) -> None:
            row = action.setdefault(st, {})
            if term in row and row[term] != act:
                raise GrammarAnalysisError(
                    f"conflict in state {st} on {term.value}: {self._describe(row[term])} vs {self._describe(act)}"
                )
            row[term] = act

        for (i, s), j in self.transitions.items():
            if isinstance(s, Terminal):
                add_action(i, s.kind, ("shift", j))
            else:
                goto_tbl.setdefault(i, {})[s] = j

        for i in range(len(self.kernels)):
            items = self.closure1({core: set(las) for core, las in lookaheads[i].items()})
            for core, las in items.items():
                if self._next_symbol(core) is not None:
                    continue
                for la in las:
                    if core[0] == 0:
                        if la == TokenKind.EOF:
                            add_action(i, TokenKind.EOF, ("accept", 0))
                    else:
                        add_action(i, la, ("reduce", core[0] - 1))  # type: ignore[arg-type]

        return ParseTable(action=action, goto=goto_tbl)

    def _describe(self, act: tuple[str, int]) -> str:
        kind, arg = act
        if kind == "reduce":
            return f"reduce {self.prods[arg + 1]}"
        return f"{kind} {arg}"


def build_lalr_table(grammar: Grammar[object]) -> ParseTable:
    return TableBuilder(grammar).build()


def expected_terminals(table: ParseTable, state: int) -> set[TokenKind]:
    return set(table.action.get(state, {}).keys())
