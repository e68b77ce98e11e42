"""Cross-check a parsed message against a table's columns.

Every field needs a column of the same name with a compatible type and the
matching nullability; every column needs a field. Mismatches are logged as
warnings and checking carries on, so one run reports all of them.
"""

from __future__ import annotations

from loguru import logger

from . import ast as A
from .format import format_field_type
from .schema import ColumnInfo, ColumnKind


TIMESTAMP_TYPE = "google.protobuf.Timestamp"

SCALAR_COLUMN_KINDS: dict[A.ScalarType, frozenset[ColumnKind]] = {
    A.ScalarType.INT32: frozenset({ColumnKind.INTEGER}),
    A.ScalarType.UINT32: frozenset({ColumnKind.INTEGER}),
    A.ScalarType.SINT32: frozenset({ColumnKind.INTEGER}),
    A.ScalarType.FIXED32: frozenset({ColumnKind.INTEGER}),
    A.ScalarType.SFIXED32: frozenset({ColumnKind.INTEGER}),
    A.ScalarType.INT64: frozenset({ColumnKind.BIGINT}),
    A.ScalarType.UINT64: frozenset({ColumnKind.BIGINT}),
    A.ScalarType.SINT64: frozenset({ColumnKind.BIGINT}),
    A.ScalarType.FIXED64: frozenset({ColumnKind.BIGINT}),
    A.ScalarType.SFIXED64: frozenset({ColumnKind.BIGINT}),
    A.ScalarType.BOOL: frozenset({ColumnKind.BOOLEAN}),
    A.ScalarType.DOUBLE: frozenset({ColumnKind.DOUBLE_PRECISION}),
    A.ScalarType.FLOAT: frozenset({ColumnKind.REAL}),
    A.ScalarType.STRING: frozenset({ColumnKind.VARCHAR, ColumnKind.UUID}),
    A.ScalarType.BYTES: frozenset({ColumnKind.BYTEA}),
}

_TIMESTAMP_KINDS = frozenset({ColumnKind.TIMESTAMP, ColumnKind.TIMESTAMPTZ})


def type_matches_column(field: A.Field, column: ColumnInfo) -> bool:
    typ = field.type
    if isinstance(typ, A.ScalarType):
        return column.kind in SCALAR_COLUMN_KINDS[typ]
    if isinstance(typ, A.MessageOrEnum):
        if typ.name.value == TIMESTAMP_TYPE:
            return column.kind in _TIMESTAMP_KINDS
        logger.warning(f"unknown type '{typ.name}' on field '{field.name}'")
        return False
    if isinstance(typ, A.MapType):
        logger.warning(f"protobuf maps are not supported on field '{field.name}'")
        return False
    if isinstance(typ, A.Group):
        logger.warning(f"protobuf groups are not supported on field '{field.name}'")
        return False
    raise TypeError(f"unknown field type: {type(typ).__name__}")


def field_is_nullable(field: A.Field) -> bool:
    # Only a written `optional` allows NULL; an implicit rule does not.
    return field.rule.declared and field.rule.variant is A.RuleVariant.OPTIONAL


def _describe_column(column: ColumnInfo) -> str:
    parts = [column.column_type or "untyped", f"nullable={'false' if column.not_null else 'true'}"]
    if column.default is not None:
        parts.append(f"default={column.default}")
    return ", ".join(parts)


def verify_message_with_columns(message: A.Message, columns: list[ColumnInfo]) -> bool:
    success = True
    by_name = {c.name: c for c in columns}

    for field in message.fields:
        name = field.name.value
        column = by_name.get(name)
        if column is None:
            success = False
            logger.warning(
                f"missing field in database table: {name} ({format_field_type(field.type)})"
            )
            continue

        if field.rule.variant is A.RuleVariant.REPEATED:
            if column.kind is not ColumnKind.ARRAY:
                success = False
                logger.warning(f"field '{name}' is repeated, but database type is not an array")
                continue
        elif not type_matches_column(field, column):
            success = False
            logger.warning(
                f"field '{name}' has type '{format_field_type(field.type)}' "
                f"which does not match database type '{column.column_type}'"
            )
            continue

        nullable = field_is_nullable(field)
        if nullable and column.not_null:
            success = False
            logger.warning(f"field '{name}' is marked as NOT NULL in database, but should be NULL")
        elif not nullable and not column.not_null:
            success = False
            logger.warning(f"field '{name}' is marked as NULL in database, but should be NOT NULL")
        else:
            logger.debug(f"field '{name}' matches column {name} ({_describe_column(column)})")

    field_names = {f.name.value for f in message.fields}
    for column in columns:
        if column.name not in field_names:
            success = False
            logger.warning(
                f"unknown field in database table: {column.name} ({_describe_column(column)})"
            )

    return success
