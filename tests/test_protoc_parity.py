from __future__ import annotations

import tempfile
from dataclasses import dataclass
from importlib.resources import files
from pathlib import Path

import pytest
from google.protobuf import descriptor_pb2
from grpc_tools import protoc

from protosql import ast as A
from protosql import parse_file


FIXTURE_ROOT = Path(__file__).parent / "fixtures"
WELL_KNOWN_ROOT = Path(str(files("grpc_tools") / "_proto"))

FIXTURES: tuple[str, ...] = ("inventory.proto", "user_account.proto")

FDP = descriptor_pb2.FieldDescriptorProto

_SCALAR_TO_PROTOC_TYPE: dict[A.ScalarType, int] = {
    A.ScalarType.DOUBLE: FDP.TYPE_DOUBLE,
    A.ScalarType.FLOAT: FDP.TYPE_FLOAT,
    A.ScalarType.INT64: FDP.TYPE_INT64,
    A.ScalarType.UINT64: FDP.TYPE_UINT64,
    A.ScalarType.INT32: FDP.TYPE_INT32,
    A.ScalarType.FIXED64: FDP.TYPE_FIXED64,
    A.ScalarType.FIXED32: FDP.TYPE_FIXED32,
    A.ScalarType.BOOL: FDP.TYPE_BOOL,
    A.ScalarType.STRING: FDP.TYPE_STRING,
    A.ScalarType.BYTES: FDP.TYPE_BYTES,
    A.ScalarType.UINT32: FDP.TYPE_UINT32,
    A.ScalarType.SFIXED32: FDP.TYPE_SFIXED32,
    A.ScalarType.SFIXED64: FDP.TYPE_SFIXED64,
    A.ScalarType.SINT32: FDP.TYPE_SINT32,
    A.ScalarType.SINT64: FDP.TYPE_SINT64,
}

_LABELS: dict[A.RuleVariant, int] = {
    A.RuleVariant.OPTIONAL: FDP.LABEL_OPTIONAL,
    A.RuleVariant.REPEATED: FDP.LABEL_REPEATED,
    A.RuleVariant.REQUIRED: FDP.LABEL_REQUIRED,
}


@dataclass(frozen=True, slots=True)
class SimpleField:
    name: str
    number: int
    label: int
    typ: int  # descriptor_pb2.FieldDescriptorProto.TYPE_*, 0 for message/enum references
    type_name: str | None
    default: str | None
    packed: bool
    deprecated: bool


def _compile_with_grpc_tools(rel: str) -> descriptor_pb2.FileDescriptorProto:
    with tempfile.TemporaryDirectory() as td:
        out = Path(td) / "out.pb"
        args = [
            "protoc",
            f"-I{FIXTURE_ROOT}",
            f"-I{WELL_KNOWN_ROOT}",
            f"--descriptor_set_out={out}",
            rel,
        ]
        # grpc_tools.protoc returns an exit code (0 success).
        rc = protoc.main(args)
        if rc != 0:
            raise AssertionError(f"grpc_tools.protoc failed for {rel} with rc={rc}")
        data = out.read_bytes()
    fds = descriptor_pb2.FileDescriptorSet()
    fds.ParseFromString(data)
    (fd,) = fds.file
    return fd


def _truth_field(f: FDP) -> SimpleField:
    typ = f.type
    if typ in (FDP.TYPE_MESSAGE, FDP.TYPE_ENUM):
        typ = 0
    return SimpleField(
        name=f.name,
        number=f.number,
        label=f.label,
        typ=typ,
        type_name=f.type_name or None,
        default=f.default_value if f.HasField("default_value") else None,
        packed=f.options.packed,
        deprecated=f.options.deprecated,
    )


def _our_field(f: A.Field) -> SimpleField:
    typ = f.type
    type_name = None
    if isinstance(typ, A.ScalarType):
        code = _SCALAR_TO_PROTOC_TYPE[typ]
    elif isinstance(typ, A.Group):
        code = FDP.TYPE_GROUP
        type_name = f.name.value
    else:
        code = 0
        type_name = str(typ)
    default = f.default
    if default is not None and default.startswith('"'):
        default = default[1:-1]
    return SimpleField(
        # protoc names a group's field after the lower-cased group name
        name=f.name.value.lower() if isinstance(typ, A.Group) else f.name.value,
        number=f.number.value,
        label=_LABELS[f.rule.variant],
        typ=code,
        type_name=type_name,
        default=default,
        packed=bool(f.packed),
        deprecated=f.deprecated,
    )


def _assert_fields_match(ours: list[A.Field], truth: list[FDP]) -> None:
    assert [f.name for f in map(_our_field, ours)] == [f.name for f in truth]
    for mine, theirs in zip(map(_our_field, ours), map(_truth_field, truth)):
        assert mine.number == theirs.number
        assert mine.label == theirs.label
        assert mine.typ == theirs.typ
        assert mine.default == theirs.default
        assert mine.packed == theirs.packed
        assert mine.deprecated == theirs.deprecated
        if mine.type_name is not None:
            # Descriptors carry fully qualified names; ours are as written.
            assert theirs.type_name is not None
            assert theirs.type_name.endswith("." + mine.type_name.lstrip("."))


def _assert_enum_matches(ours: A.Enumeration, truth: descriptor_pb2.EnumDescriptorProto) -> None:
    assert ours.name.value == truth.name
    assert [(v.name.value, v.number.value) for v in ours.values] == [(v.name, v.number) for v in truth.value]
    # Enum reserved ranges are inclusive in descriptors.
    assert [(r.start, r.stop - 1) for r in ours.reserved_nums] == [(r.start, r.end) for r in truth.reserved_range]
    assert [w.value for w in ours.reserved_names] == list(truth.reserved_name)


def _assert_message_matches(ours: A.Message, truth: descriptor_pb2.DescriptorProto) -> None:
    assert ours.name is not None and ours.name.value == truth.name

    # Maps and proto3 `optional` are desugared by protoc; oneof members are listed inline.
    map_entries = {m.name for m in truth.nested_type if m.options.map_entry}
    plain_truth = [
        f
        for f in truth.field
        if not f.HasField("oneof_index") or f.proto3_optional
        if not (f.type == FDP.TYPE_MESSAGE and f.type_name.rsplit(".", 1)[-1] in map_entries)
    ]
    plain_ours = [f for f in ours.fields if not isinstance(f.type, A.MapType)]
    _assert_fields_match(plain_ours, plain_truth)

    our_maps = [f for f in ours.fields if isinstance(f.type, A.MapType)]
    assert len(our_maps) == len(map_entries)

    real_oneofs = [o.name for o in truth.oneof_decl if not o.name.startswith("_")]
    assert [o.name.value for o in ours.oneofs] == real_oneofs
    for i, o in enumerate(ours.oneofs):
        members = [f for f in truth.field if f.HasField("oneof_index") and f.oneof_index == i]
        _assert_fields_match(list(o.fields), members)

    groups = {f.name.value for f in ours.fields if isinstance(f.type, A.Group)}
    nested_truth = [m for m in truth.nested_type if m.name not in map_entries and m.name not in groups]
    assert [m.name.value for m in ours.messages] == [m.name for m in nested_truth]
    for mine, theirs in zip(ours.messages, nested_truth):
        _assert_message_matches(mine, theirs)

    for mine, theirs in zip(ours.enums, truth.enum_type, strict=True):
        _assert_enum_matches(mine, theirs)

    assert [(r.start, r.stop) for r in ours.reserved_nums] == [(r.start, r.end) for r in truth.reserved_range]
    assert [w.value for w in ours.reserved_names] == list(truth.reserved_name)
    assert [(r.start, r.stop) for r in ours.extension_ranges] == [(r.start, r.end) for r in truth.extension_range]


@pytest.mark.parametrize("rel", FIXTURES)
def test_parity_with_descriptor_set(rel: str) -> None:
    ours = parse_file(FIXTURE_ROOT / rel)
    truth = _compile_with_grpc_tools(rel)

    assert (ours.package.value if ours.package else "") == truth.package
    assert [w.value for w in ours.import_paths] == list(truth.dependency)
    assert ours.syntax.value == (truth.syntax or "proto2")

    assert [m.name.value for m in ours.messages] == [m.name for m in truth.message_type]
    for mine, theirs in zip(ours.messages, truth.message_type):
        _assert_message_matches(mine, theirs)

    for mine, theirs in zip(ours.enums, truth.enum_type, strict=True):
        _assert_enum_matches(mine, theirs)

    assert [e.field.name.value for e in ours.extensions] == [f.name for f in truth.extension]
    for mine, theirs in zip(ours.extensions, truth.extension):
        assert theirs.extendee.endswith("." + mine.extendee.value)
    _assert_fields_match([e.field for e in ours.extensions], list(truth.extension))


def test_group_field_keeps_its_own_fields() -> None:
    ours = parse_file(FIXTURE_ROOT / "inventory.proto")
    truth = _compile_with_grpc_tools("inventory.proto")
    (item,) = ours.messages
    (tag,) = [f for f in item.fields if isinstance(f.type, A.Group)]
    (tag_truth,) = [m for m in truth.message_type[0].nested_type if m.name == "Tag"]
    _assert_fields_match(list(tag.type.fields), list(tag_truth.field))
