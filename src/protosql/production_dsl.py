"""Operator DSL for writing productions.

    Field |= Rule & Type & Name & EQ & WORD & SEMI @ act_field
    Item |= Message | Enum | Extend @ act_passthrough
    Body |= eps() @ act_empty_list

`@` binds tighter than `&` and `|`, so the action always sits on the last
operand and is carried to the combined right-hand side.
"""

from __future__ import annotations

from dataclasses import dataclass

from .grammar import ActionFn, NonTerminal, Production, Symbol


@dataclass(frozen=True, slots=True)
class Rhs:
    """One or more alternative bodies, optionally bound to an action."""

    alts: tuple[tuple[Symbol, ...], ...]
    action: ActionFn | None = None

    def __and__(self, other: "Rhs") -> "Rhs":
        if not isinstance(other, Rhs):
            return NotImplemented
        if self.action is not None:
            raise TypeError("cannot use & after @ action; put @ action at the end")
        if len(self.alts) != 1 or len(other.alts) != 1:
            raise TypeError("cannot concatenate alternations; give them their own nonterminal")
        return Rhs((self.alts[0] + other.alts[0],), other.action)

    def __or__(self, other: "Rhs") -> "Rhs":
        if not isinstance(other, Rhs):
            return NotImplemented
        if self.action is not None:
            raise TypeError("cannot use | after @ action; put @ action at the end")
        return Rhs(self.alts + other.alts, other.action)

    def __matmul__(self, action: ActionFn) -> "Rhs":
        if self.action is not None:
            raise TypeError("production already has an action")
        return Rhs(self.alts, action)


def sym(s: Symbol) -> Rhs:
    return Rhs(((s,),))


def eps() -> Rhs:
    return Rhs(((),))


@dataclass(slots=True)
class ProductionSink:
    productions: list[Production]

    def add(self, head: NonTerminal, rhs: Rhs) -> None:
        if rhs.action is None:
            raise TypeError("production missing action: use `rhs @ action`")
        for body in rhs.alts:
            self.productions.append(Production(head=head, body=body, action=rhs.action))


class RuleNt(Rhs):
    """Nonterminal usable on the right-hand side and as an LHS with `|=`."""

    __slots__ = ("head", "_sink")

    def __init__(self, head: NonTerminal, sink: ProductionSink) -> None:
        object.__setattr__(self, "alts", ((head,),))
        object.__setattr__(self, "action", None)
        object.__setattr__(self, "head", head)
        object.__setattr__(self, "_sink", sink)

    def __ior__(self, rhs: Rhs) -> "RuleNt":
        self._sink.add(self.head, rhs)
        return self
