from __future__ import annotations

from . import ast as A
from .proto_grammar import MAX_FIELD_NUMBER


def format_proto_file(pf: A.ProtoFile) -> str:
    out: list[str] = [f'syntax = "{pf.syntax.value}";', ""]

    for imp in pf.import_paths:
        out.append(f'import "{imp}";')
    if pf.import_paths:
        out.append("")

    if pf.package is not None:
        out.append(f"package {pf.package};")
        out.append("")

    for opt in pf.options:
        out.append(_format_decl_option(opt))
    if pf.options:
        out.append("")

    for msg in pf.messages:
        out.extend(_format_message(msg, indent=0))
        out.append("")
    for en in pf.enums:
        out.extend(_format_enum(en, indent=0))
        out.append("")
    for extendee, fields in _group_extensions(pf.extensions):
        out.append(f"extend {extendee} {{")
        for f in fields:
            out.extend(_format_field(f, indent=2))
        out.append("}")
        out.append("")

    # Trim trailing blank lines
    while out and out[-1] == "":
        out.pop()
    return "\n".join(out) + "\n"


def _group_extensions(exts: tuple[A.Extension, ...]) -> list[tuple[str, list[A.Field]]]:
    groups: list[tuple[str, list[A.Field]]] = []
    for ext in exts:
        if groups and groups[-1][0] == ext.extendee.value:
            groups[-1][1].append(ext.field)
        else:
            groups.append((ext.extendee.value, [ext.field]))
    return groups


def _format_message(msg: A.Message, *, indent: int) -> list[str]:
    if msg.name is None:
        raise ValueError("cannot format a message without a name")
    out = [_indent(f"message {msg.name} {{", indent)]
    inner = indent + 2
    for opt in msg.options:
        out.append(_indent(_format_decl_option(opt), inner))
    for f in msg.fields:
        out.extend(_format_field(f, indent=inner))
    for o in msg.oneofs:
        out.extend(_format_oneof(o, indent=inner))
    for m in msg.messages:
        out.extend(_format_message(m, indent=inner))
    for en in msg.enums:
        out.extend(_format_enum(en, indent=inner))
    out.extend(_format_reserved(msg.reserved_nums, msg.reserved_names, indent=inner))
    if msg.extension_ranges:
        out.append(_indent(f"extensions {_format_ranges(msg.extension_ranges)};", inner))
    out.append(_indent("}", indent))
    return out


def _format_oneof(o: A.OneOf, *, indent: int) -> list[str]:
    out = [_indent(f"oneof {o.name} {{", indent)]
    for opt in o.options:
        out.append(_indent(_format_decl_option(opt), indent + 2))
    for f in o.fields:
        out.extend(_format_field(f, indent=indent + 2))
    out.append(_indent("}", indent))
    return out


def _format_enum(en: A.Enumeration, *, indent: int) -> list[str]:
    out = [_indent(f"enum {en.name} {{", indent)]
    for opt in en.options:
        out.append(_indent(_format_decl_option(opt), indent + 2))
    for v in en.values:
        s = f"{v.name} = {v.number.value}"
        if v.options:
            s += " " + _format_field_options(v.options)
        out.append(_indent(s + ";", indent + 2))
    out.extend(_format_reserved(en.reserved_nums, en.reserved_names, indent=indent + 2))
    out.append(_indent("}", indent))
    return out


def _format_field(f: A.Field, *, indent: int) -> list[str]:
    label = f"{f.rule.variant.value} " if f.rule.declared else ""
    s = f"{label}{format_field_type(f.type)} {f.name} = {f.number.value}"
    if f.options:
        s += " " + _format_field_options(f.options)
    if isinstance(f.type, A.Group) and f.type.fields:
        out = [_indent(s + " {", indent)]
        for sub in f.type.fields:
            out.extend(_format_field(sub, indent=indent + 2))
        out.append(_indent("}", indent))
        return out
    return [_indent(s + ";", indent)]


def format_field_type(typ: A.FieldType) -> str:
    if isinstance(typ, A.ScalarType):
        return typ.value
    if isinstance(typ, A.MessageOrEnum):
        return typ.name.value
    if isinstance(typ, A.MapType):
        return f"map<{format_field_type(typ.key)}, {format_field_type(typ.value)}>"
    if isinstance(typ, A.Group):
        return "group"
    raise TypeError(f"unknown field type: {type(typ).__name__}")


def _format_field_options(opts: tuple[A.FieldOption, ...]) -> str:
    inner = ", ".join(f"{o.name} = {o.value}" for o in opts)
    return f"[{inner}]"


def _format_decl_option(o: A.DeclOption) -> str:
    if not o.value:
        return f"option {o.name} = ;"
    return f"option {o.name} = {o.value};"


def _format_ranges(ranges: tuple[range, ...]) -> str:
    parts: list[str] = []
    for r in ranges:
        if r.stop == r.start + 1:
            parts.append(str(r.start))
        elif r.stop == MAX_FIELD_NUMBER + 1:
            parts.append(f"{r.start} to max")
        else:
            parts.append(f"{r.start} to {r.stop - 1}")
    return ", ".join(parts)


def _format_reserved(
    nums: tuple[range, ...], names: tuple[A.Word, ...], *, indent: int
) -> list[str]:
    out: list[str] = []
    if nums:
        out.append(_indent(f"reserved {_format_ranges(nums)};", indent))
    if names:
        out.append(_indent("reserved " + ", ".join(f'"{n}"' for n in names) + ";", indent))
    return out


def _indent(s: str, n: int) -> str:
    return (" " * n) + s
