from __future__ import annotations

from .api import iter_proto_files, parse, parse_directory, parse_file, parse_source
from .errors import FailureKind, ParseError, SchemaError
from .format import format_proto_file
from .naming import default_message_name, default_table_name, find_message
from .schema import ColumnInfo, ColumnKind, default_schema, discover_table_columns
from .verify import verify_message_with_columns

__all__ = [
    "ColumnInfo",
    "ColumnKind",
    "FailureKind",
    "ParseError",
    "SchemaError",
    "default_message_name",
    "default_schema",
    "default_table_name",
    "discover_table_columns",
    "find_message",
    "format_proto_file",
    "iter_proto_files",
    "parse",
    "parse_directory",
    "parse_file",
    "parse_source",
    "verify_message_with_columns",
]
