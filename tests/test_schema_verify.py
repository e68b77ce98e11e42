from __future__ import annotations

import psycopg
import pytest

from protosql import (
    ColumnInfo,
    ColumnKind,
    SchemaError,
    discover_table_columns,
    find_message,
    parse_source,
    verify_message_with_columns,
)
from protosql.schema import classify_column_type, default_schema


USER_ACCOUNT = """
syntax = "proto3";

message UserAccount {
  string id = 1;
  string email = 2;
  optional string nickname = 3;
  repeated string roles = 4;
  bool active = 5;
  int64 created_ms = 6;
  bytes avatar = 7;
  google.protobuf.Timestamp last_login = 8;
  double score = 9;
  float ratio = 10;
  int32 age = 11;
  string uid = 12;
}
"""

USER_ACCOUNT_TABLE = """
CREATE TABLE user_account (
  id VARCHAR(36) NOT NULL,
  email TEXT NOT NULL,
  nickname TEXT,
  roles TEXT ARRAY NOT NULL,
  active BOOLEAN NOT NULL,
  created_ms BIGINT NOT NULL,
  avatar BLOB NOT NULL,
  last_login TIMESTAMPTZ NOT NULL,
  score DOUBLE PRECISION NOT NULL,
  ratio REAL NOT NULL,
  age INTEGER NOT NULL DEFAULT 0,
  uid UUID NOT NULL
)
"""


def _user_account():
    return find_message(parse_source(USER_ACCOUNT), "UserAccount")


@pytest.mark.parametrize(
    ("declared", "kind"),
    [
        ("VARCHAR(255)", ColumnKind.VARCHAR),
        ("character varying(10)", ColumnKind.VARCHAR),
        ("integer[]", ColumnKind.ARRAY),
        ("TEXT ARRAY", ColumnKind.ARRAY),
        ("ARRAY", ColumnKind.ARRAY),
        ("timestamp without time zone", ColumnKind.TIMESTAMP),
        ("Double  Precision", ColumnKind.DOUBLE_PRECISION),
        ("timestamp(3) with time zone", ColumnKind.TIMESTAMPTZ),
        ("int8", ColumnKind.BIGINT),
        ("blob", ColumnKind.BYTEA),
        ("money", ColumnKind.OTHER),
        ("", ColumnKind.OTHER),
    ],
)
def test_classify_column_type(declared: str, kind: ColumnKind) -> None:
    assert classify_column_type(declared) is kind


def test_discover_table_columns(make_db) -> None:
    db = make_db("CREATE TABLE t (id INTEGER NOT NULL, name TEXT DEFAULT 'x')")
    expected = [
        ColumnInfo(name="id", column_type="INTEGER", not_null=True, default=None),
        ColumnInfo(name="name", column_type="TEXT", not_null=False, default="'x'"),
    ]
    assert discover_table_columns(str(db), "main", "t") == expected
    assert discover_table_columns(f"sqlite:///{db}", "main", "t") == expected


def test_unknown_table_has_no_columns(make_db) -> None:
    db = make_db("CREATE TABLE t (id INTEGER)")
    assert discover_table_columns(str(db), "main", "missing") == []


def test_missing_database_file(tmp_path) -> None:
    with pytest.raises(SchemaError) as e:
        discover_table_columns(str(tmp_path / "nope.db"), "main", "t")
    assert "could not connect to database" in str(e.value)
    assert not (tmp_path / "nope.db").exists()


def test_unknown_schema(make_db) -> None:
    db = make_db("CREATE TABLE t (id INTEGER)")
    with pytest.raises(SchemaError):
        discover_table_columns(str(db), "elsewhere", "t")


def test_unsupported_uri_scheme() -> None:
    with pytest.raises(SchemaError) as e:
        discover_table_columns("mysql://localhost/db", "app", "t")
    assert "postgres://" in str(e.value)


def test_matching_table_verifies(make_db, log_messages) -> None:
    db = make_db(USER_ACCOUNT_TABLE)
    columns = discover_table_columns(str(db), "main", "user_account")
    assert verify_message_with_columns(_user_account(), columns) is True
    assert not [m for m in log_messages if "missing" in m or "unknown" in m]


def test_missing_and_unknown_columns(log_messages) -> None:
    msg = find_message(parse_source("message M { int32 a = 1; int32 b = 2; }"), "M")
    columns = [
        ColumnInfo(name="a", column_type="INTEGER", not_null=True),
        ColumnInfo(name="c", column_type="TEXT", not_null=False, default="'z'"),
    ]
    assert verify_message_with_columns(msg, columns) is False
    assert "missing field in database table: b (int32)" in log_messages
    assert "unknown field in database table: c (TEXT, nullable=true, default='z')" in log_messages


@pytest.mark.parametrize(
    ("field", "column_type", "warning"),
    [
        ("int32 a = 1;", "BIGINT", "field 'a' has type 'int32' which does not match database type 'BIGINT'"),
        ("repeated int32 a = 1;", "INTEGER", "field 'a' is repeated, but database type is not an array"),
        ("Other a = 1;", "TEXT", "unknown type 'Other' on field 'a'"),
        ("map<string, int32> a = 1;", "TEXT", "protobuf maps are not supported on field 'a'"),
        ("optional group A = 1;", "TEXT", "protobuf groups are not supported on field 'A'"),
    ],
)
def test_type_mismatches(field: str, column_type: str, warning: str, log_messages) -> None:
    msg = find_message(parse_source("message M { " + field + " }"), "M")
    name = "A" if "group" in field else "a"
    columns = [ColumnInfo(name=name, column_type=column_type, not_null=True)]
    assert verify_message_with_columns(msg, columns) is False
    assert warning in log_messages


def test_nullability(log_messages) -> None:
    msg = find_message(parse_source("message M { optional int32 a = 1; int32 b = 2; }"), "M")
    columns = [
        ColumnInfo(name="a", column_type="INTEGER", not_null=True),
        ColumnInfo(name="b", column_type="INTEGER", not_null=False),
    ]
    assert verify_message_with_columns(msg, columns) is False
    assert "field 'a' is marked as NOT NULL in database, but should be NULL" in log_messages
    assert "field 'b' is marked as NULL in database, but should be NOT NULL" in log_messages


def test_timestamp_accepts_both_timestamp_kinds() -> None:
    msg = find_message(parse_source("message M { required google.protobuf.Timestamp at = 1; }"), "M")
    for column_type in ("TIMESTAMP", "timestamp with time zone"):
        columns = [ColumnInfo(name="at", column_type=column_type, not_null=True)]
        assert verify_message_with_columns(msg, columns) is True


@pytest.mark.parametrize(
    ("uri", "schema"),
    [
        ("postgres://localhost/app", "public"),
        ("postgresql://user@db:5432/app", "public"),
        ("sqlite:////var/lib/app.db", "main"),
        ("app.db", "main"),
    ],
)
def test_default_schema(uri: str, schema: str) -> None:
    assert default_schema(uri) == schema


def test_postgres_columns_from_information_schema(fake_postgres) -> None:
    opened = fake_postgres(
        [
            ("id", "uuid", "NO", "gen_random_uuid()"),
            ("roles", "ARRAY", "NO", None),
            ("nickname", "character varying", "YES", None),
        ]
    )
    columns = discover_table_columns("postgresql://localhost/app", table="user_account")
    assert columns == [
        ColumnInfo(name="id", column_type="uuid", not_null=True, default="gen_random_uuid()"),
        ColumnInfo(name="roles", column_type="ARRAY", not_null=True),
        ColumnInfo(name="nickname", column_type="character varying", not_null=False),
    ]
    assert [c.kind for c in columns] == [ColumnKind.UUID, ColumnKind.ARRAY, ColumnKind.VARCHAR]

    (conn,) = opened
    assert conn.uri == "postgresql://localhost/app"
    ((query, params),) = conn.queries
    assert "information_schema.columns" in query
    assert params == ("public", "user_account")
    assert conn.closed


def test_postgres_explicit_schema(fake_postgres) -> None:
    opened = fake_postgres([])
    assert discover_table_columns("postgres://localhost/app", "billing", "invoice") == []
    assert opened[0].queries[0][1] == ("billing", "invoice")


def test_postgres_connection_failure(monkeypatch) -> None:
    def refuse(uri: str):
        raise psycopg.OperationalError("connection refused")

    monkeypatch.setattr(psycopg, "connect", refuse)
    with pytest.raises(SchemaError) as e:
        discover_table_columns("postgres://localhost/app", "public", "t")
    assert "could not connect to database: connection refused" in str(e.value)


def test_postgres_user_account_verifies(fake_postgres) -> None:
    fake_postgres(
        [
            ("id", "character varying", "NO", None),
            ("email", "text", "NO", None),
            ("nickname", "text", "YES", None),
            ("roles", "ARRAY", "NO", None),
            ("active", "boolean", "NO", "true"),
            ("created_ms", "bigint", "NO", None),
            ("avatar", "bytea", "NO", None),
            ("last_login", "timestamp with time zone", "NO", "now()"),
            ("score", "double precision", "NO", None),
            ("ratio", "real", "NO", None),
            ("age", "integer", "NO", "0"),
            ("uid", "uuid", "NO", None),
        ]
    )
    columns = discover_table_columns("postgres://localhost/app", table="user_account")
    assert verify_message_with_columns(_user_account(), columns) is True
