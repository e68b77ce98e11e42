"""Declaration events and the reducers that fold them into AST nodes.

Grammar actions never assemble a message or a file directly. Each statement
of a body becomes one event, and the body is folded by a reducer below, so
the accumulate/overwrite policy lives in one place:

- fields, oneofs, nested declarations, options, imports and extensions append;
- `syntax` and `package` overwrite (last one wins);
- `reserved <numbers>;` and `reserved "<names>";` each overwrite, separately;
- `extensions <ranges>;` appends;
- stray `;` and discarded services contribute nothing (`None`).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from . import ast as A
from .spans import Span


@dataclass(frozen=True, slots=True)
class SyntaxStmt(A.Node):
    version: A.Syntax


@dataclass(frozen=True, slots=True)
class Import(A.Node):
    path: A.Word


@dataclass(frozen=True, slots=True)
class Package(A.Node):
    name: A.Word


@dataclass(frozen=True, slots=True)
class ReservedNumbers(A.Node):
    ranges: tuple[range, ...]


@dataclass(frozen=True, slots=True)
class ReservedNames(A.Node):
    names: tuple[A.Word, ...]


@dataclass(frozen=True, slots=True)
class ExtensionRanges(A.Node):
    ranges: tuple[range, ...]


@dataclass(frozen=True, slots=True)
class Extend(A.Node):
    extensions: tuple[A.Extension, ...]


Event = (
    SyntaxStmt
    | Import
    | Package
    | ReservedNumbers
    | ReservedNames
    | ExtensionRanges
    | Extend
    | A.DeclOption
    | A.Field
    | A.OneOf
    | A.Message
    | A.Enumeration
    | A.EnumValue
    | None
)


def fold_message(span: Span, name: A.Word, events: Iterable[Event]) -> A.Message:
    fields: list[A.Field] = []
    oneofs: list[A.OneOf] = []
    messages: list[A.Message] = []
    enums: list[A.Enumeration] = []
    options: list[A.DeclOption] = []
    extension_ranges: list[range] = []
    reserved_nums: tuple[range, ...] = ()
    reserved_names: tuple[A.Word, ...] = ()
    for ev in events:
        if ev is None:
            continue
        if isinstance(ev, A.Field):
            fields.append(ev)
        elif isinstance(ev, A.OneOf):
            oneofs.append(ev)
        elif isinstance(ev, A.Message):
            messages.append(ev)
        elif isinstance(ev, A.Enumeration):
            enums.append(ev)
        elif isinstance(ev, A.DeclOption):
            options.append(ev)
        elif isinstance(ev, ReservedNumbers):
            reserved_nums = ev.ranges
        elif isinstance(ev, ReservedNames):
            reserved_names = ev.names
        elif isinstance(ev, ExtensionRanges):
            extension_ranges.extend(ev.ranges)
        else:
            raise TypeError(f"unexpected message event: {type(ev).__name__}")
    return A.Message(
        span=span,
        name=name,
        fields=tuple(fields),
        oneofs=tuple(oneofs),
        reserved_nums=reserved_nums,
        reserved_names=reserved_names,
        messages=tuple(messages),
        enums=tuple(enums),
        options=tuple(options),
        extension_ranges=tuple(extension_ranges),
    )


def fold_enum(span: Span, name: A.Word, events: Iterable[Event]) -> A.Enumeration:
    values: list[A.EnumValue] = []
    options: list[A.DeclOption] = []
    reserved_nums: tuple[range, ...] = ()
    reserved_names: tuple[A.Word, ...] = ()
    for ev in events:
        if ev is None:
            continue
        if isinstance(ev, A.EnumValue):
            values.append(ev)
        elif isinstance(ev, A.DeclOption):
            options.append(ev)
        elif isinstance(ev, ReservedNumbers):
            reserved_nums = ev.ranges
        elif isinstance(ev, ReservedNames):
            reserved_names = ev.names
        else:
            raise TypeError(f"unexpected enum event: {type(ev).__name__}")
    return A.Enumeration(
        span=span,
        name=name,
        values=tuple(values),
        options=tuple(options),
        reserved_nums=reserved_nums,
        reserved_names=reserved_names,
    )


def fold_file(span: Span, events: Iterable[Event]) -> A.ProtoFile:
    syntax = A.Syntax.PROTO2
    package: A.Word | None = None
    imports: list[A.Word] = []
    messages: list[A.Message] = []
    enums: list[A.Enumeration] = []
    options: list[A.DeclOption] = []
    extensions: list[A.Extension] = []
    # TODO: a repeated `package` or `syntax` statement silently overwrites;
    # report it once a validation pass exists.
    for ev in events:
        if ev is None:
            continue
        if isinstance(ev, SyntaxStmt):
            syntax = ev.version
        elif isinstance(ev, Package):
            package = ev.name
        elif isinstance(ev, Import):
            imports.append(ev.path)
        elif isinstance(ev, A.Message):
            messages.append(ev)
        elif isinstance(ev, A.Enumeration):
            enums.append(ev)
        elif isinstance(ev, A.DeclOption):
            options.append(ev)
        elif isinstance(ev, Extend):
            extensions.extend(ev.extensions)
        else:
            raise TypeError(f"unexpected file event: {type(ev).__name__}")
    return A.ProtoFile(
        span=span,
        import_paths=tuple(imports),
        package=package,
        syntax=syntax,
        messages=tuple(messages),
        enums=tuple(enums),
        options=tuple(options),
        extensions=tuple(extensions),
    )
