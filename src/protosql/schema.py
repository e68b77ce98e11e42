"""Table column discovery.

Columns are read from PostgreSQL through `information_schema.columns` or
from SQLite with `PRAGMA table_info`. Declared type text is classified into
the handful of kinds the message checker cares about, using PostgreSQL
spelling; SQLite aliases classify the same way.
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psycopg

from .errors import SchemaError


SQLITE_URI_PREFIX = "sqlite:///"
DEFAULT_SCHEMA = "main"
POSTGRES_URI_PREFIXES = ("postgres://", "postgresql://")
POSTGRES_DEFAULT_SCHEMA = "public"


class ColumnKind(str, Enum):
    INTEGER = "integer"
    BIGINT = "bigint"
    BOOLEAN = "boolean"
    DOUBLE_PRECISION = "double precision"
    REAL = "real"
    VARCHAR = "varchar"
    UUID = "uuid"
    BYTEA = "bytea"
    TIMESTAMP = "timestamp"
    TIMESTAMPTZ = "timestamptz"
    ARRAY = "array"
    OTHER = "other"


_KINDS_BY_NAME: dict[str, ColumnKind] = {
    "integer": ColumnKind.INTEGER,
    "int": ColumnKind.INTEGER,
    "int4": ColumnKind.INTEGER,
    "bigint": ColumnKind.BIGINT,
    "int8": ColumnKind.BIGINT,
    "boolean": ColumnKind.BOOLEAN,
    "bool": ColumnKind.BOOLEAN,
    "double precision": ColumnKind.DOUBLE_PRECISION,
    "double": ColumnKind.DOUBLE_PRECISION,
    "float8": ColumnKind.DOUBLE_PRECISION,
    "real": ColumnKind.REAL,
    "float4": ColumnKind.REAL,
    "varchar": ColumnKind.VARCHAR,
    "character varying": ColumnKind.VARCHAR,
    "text": ColumnKind.VARCHAR,
    "uuid": ColumnKind.UUID,
    "bytea": ColumnKind.BYTEA,
    "blob": ColumnKind.BYTEA,
    "timestamp": ColumnKind.TIMESTAMP,
    "timestamp without time zone": ColumnKind.TIMESTAMP,
    "datetime": ColumnKind.TIMESTAMP,
    "timestamptz": ColumnKind.TIMESTAMPTZ,
    "timestamp with time zone": ColumnKind.TIMESTAMPTZ,
}

_TYPE_ARGS_RE = re.compile(r"\([^)]*\)")


def classify_column_type(declared: str) -> ColumnKind:
    """`VARCHAR(255)` -> VARCHAR, `integer[]` -> ARRAY, `money` -> OTHER."""
    text = " ".join(declared.lower().split())
    if text == "array" or text.endswith("[]") or text.endswith(" array"):
        return ColumnKind.ARRAY
    base = " ".join(_TYPE_ARGS_RE.sub("", text).split())
    return _KINDS_BY_NAME.get(base, ColumnKind.OTHER)


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    name: str
    column_type: str  # declared type text as stored in the schema
    not_null: bool
    default: str | None = None

    @property
    def kind(self) -> ColumnKind:
        return classify_column_type(self.column_type)


def default_schema(uri: str) -> str:
    """`public` for PostgreSQL, `main` (the SQLite main database) otherwise."""
    return POSTGRES_DEFAULT_SCHEMA if _is_postgres(uri) else DEFAULT_SCHEMA


def _is_postgres(uri: str) -> bool:
    return uri.startswith(POSTGRES_URI_PREFIXES)


def _database_path(uri: str) -> Path:
    if uri.startswith(SQLITE_URI_PREFIX):
        return Path(uri[len(SQLITE_URI_PREFIX) :])
    if "://" in uri:
        raise SchemaError(
            uri, "only postgres://, postgresql://, sqlite:/// URIs and plain file paths are supported"
        )
    return Path(uri)


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def discover_table_columns(
    uri: str, schema: str | None = None, table: str = ""
) -> list[ColumnInfo]:
    """List the columns of `schema.table` in declaration order.

    `postgres://` and `postgresql://` URIs are read through `information_schema`;
    anything else is a SQLite database. `schema` defaults per backend (see
    `default_schema`). An unknown table yields an empty list; an unreachable
    database or unknown schema raises SchemaError.
    """
    if schema is None:
        schema = default_schema(uri)
    if _is_postgres(uri):
        return _postgres_columns(uri, schema, table)
    return _sqlite_columns(uri, schema, table)


_POSTGRES_COLUMNS_QUERY = """
SELECT column_name, data_type, is_nullable, column_default
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""


def _postgres_columns(uri: str, schema: str, table: str) -> list[ColumnInfo]:
    try:
        conn = psycopg.connect(uri)
    except psycopg.Error as e:
        raise SchemaError(uri, f"could not connect to database: {e}") from e
    try:
        rows = conn.execute(_POSTGRES_COLUMNS_QUERY, (schema, table)).fetchall()
    except psycopg.Error as e:
        raise SchemaError(uri, f"could not read columns of {schema}.{table}: {e}") from e
    finally:
        conn.close()

    return [
        ColumnInfo(name=name, column_type=data_type, not_null=is_nullable == "NO", default=default)
        for name, data_type, is_nullable, default in rows
    ]


def _sqlite_columns(uri: str, schema: str, table: str) -> list[ColumnInfo]:
    path = _database_path(uri)
    if not path.is_file():
        raise SchemaError(uri, "could not connect to database: no such file")
    try:
        # mode=ro: never creates the file
        conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
    except sqlite3.Error as e:
        raise SchemaError(uri, f"could not connect to database: {e}") from e
    try:
        rows = conn.execute(
            f"PRAGMA {_quote_ident(schema)}.table_info({_quote_ident(table)})"
        ).fetchall()
    except sqlite3.Error as e:
        raise SchemaError(uri, f"could not read columns of {schema}.{table}: {e}") from e
    finally:
        conn.close()

    # cid, name, type, notnull, dflt_value, pk
    return [
        ColumnInfo(name=row[1], column_type=row[2], not_null=bool(row[3]), default=row[4])
        for row in rows
    ]
