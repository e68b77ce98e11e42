from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .spans import Position, Span


@dataclass(frozen=True, slots=True)
class Node:
    span: Span


@dataclass(frozen=True, slots=True)
class Word(Node):
    """An identifier or dotted type path as written, e.g. `google.protobuf.Timestamp`."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class IntegerLiteral(Node):
    value: int


class Syntax(str, Enum):
    PROTO2 = "proto2"
    PROTO3 = "proto3"


class RuleVariant(str, Enum):
    OPTIONAL = "optional"
    REPEATED = "repeated"
    REQUIRED = "required"


@dataclass(frozen=True, slots=True)
class FieldRule:
    """A field's multiplicity.

    `position` is None when the field omits the rule keyword; the variant is
    then OPTIONAL. Use `declared` to tell `optional int32 x = 1;` apart from
    `int32 x = 1;`.
    """

    position: Position | None = None
    variant: RuleVariant = RuleVariant.OPTIONAL

    @property
    def declared(self) -> bool:
        return self.position is not None


IMPLICIT_OPTIONAL = FieldRule()


class ScalarType(str, Enum):
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    BOOL = "bool"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"


@dataclass(frozen=True, slots=True)
class MessageOrEnum(Node):
    """Reference to a message or enum by name; never resolved by the parser."""

    name: Word

    def __str__(self) -> str:
        return self.name.value


@dataclass(frozen=True, slots=True)
class MapType(Node):
    position: Position
    key: "FieldType"
    value: "FieldType"


@dataclass(frozen=True, slots=True)
class Group(Node):
    """Deprecated proto2 group: a field type owning its own field list."""

    fields: tuple["Field", ...] = ()


FieldType = ScalarType | MessageOrEnum | MapType | Group


@dataclass(frozen=True, slots=True)
class OptionName(Node):
    """Option name; `custom` is True for a parenthesized extension name.

    Examples:
      - optimize_for        (built in)
      - (unity.optimize_for) (custom)
    """

    custom: bool
    name: Word

    def __str__(self) -> str:
        if self.custom:
            return f"({self.name})"
        return str(self.name)


@dataclass(frozen=True, slots=True)
class DeclOption(Node):
    """`option name = value;` with the value kept as written."""

    name: OptionName
    value: str


@dataclass(frozen=True, slots=True)
class FieldOption(Node):
    """One `key = value` entry of a bracket option list."""

    name: OptionName
    value: str


@dataclass(frozen=True, slots=True)
class Field(Node):
    name: Word
    rule: FieldRule
    type: FieldType
    number: IntegerLiteral
    default: str | None = None
    packed: bool | None = None
    deprecated: bool = False
    options: tuple[FieldOption, ...] = ()


@dataclass(frozen=True, slots=True)
class OneOf(Node):
    name: Word
    position: Position
    fields: tuple[Field, ...] = ()
    options: tuple[DeclOption, ...] = ()


@dataclass(frozen=True, slots=True)
class EnumValue(Node):
    name: Word
    number: IntegerLiteral
    options: tuple[FieldOption, ...] = ()


@dataclass(frozen=True, slots=True)
class Enumeration(Node):
    name: Word
    values: tuple[EnumValue, ...] = ()
    options: tuple[DeclOption, ...] = ()
    reserved_nums: tuple[range, ...] = ()
    reserved_names: tuple[Word, ...] = ()


@dataclass(frozen=True, slots=True)
class Message(Node):
    name: Word | None = None
    fields: tuple[Field, ...] = ()
    oneofs: tuple[OneOf, ...] = ()
    # Inclusive `N to M` ranges, stored as range(N, M + 1).
    reserved_nums: tuple[range, ...] = ()
    reserved_names: tuple[Word, ...] = ()
    messages: tuple["Message", ...] = ()
    enums: tuple[Enumeration, ...] = ()
    options: tuple[DeclOption, ...] = ()
    extension_ranges: tuple[range, ...] = ()


@dataclass(frozen=True, slots=True)
class Extension(Node):
    extendee: Word
    field: Field


@dataclass(frozen=True, slots=True)
class ProtoFile(Node):
    """Root of the AST for one .proto file.

    NOTE: an invalid file may still parse into a ProtoFile; duplicate names,
    unresolved references and tag ranges are left to the caller.
    """

    import_paths: tuple[Word, ...] = ()
    package: Word | None = None
    syntax: Syntax = Syntax.PROTO2
    messages: tuple[Message, ...] = ()
    enums: tuple[Enumeration, ...] = ()
    options: tuple[DeclOption, ...] = ()
    extensions: tuple[Extension, ...] = ()
