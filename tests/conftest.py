from __future__ import annotations

import sqlite3
from pathlib import Path

import psycopg
import pytest
from loguru import logger


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_db(tmp_path: Path):
    """Create a SQLite database from DDL statements and return its path."""

    def make(*ddl: str, name: str = "app.db") -> Path:
        path = tmp_path / name
        conn = sqlite3.connect(path)
        try:
            for stmt in ddl:
                conn.execute(stmt)
            conn.commit()
        finally:
            conn.close()
        return path

    return make


class FakePgConnection:
    """Stands in for a psycopg connection; answers every query with `rows`."""

    def __init__(self, uri: str, rows: list[tuple]) -> None:
        self.uri = uri
        self.rows = rows
        self.queries: list[tuple[str, tuple]] = []
        self.closed = False

    def execute(self, query: str, params: tuple) -> "FakePgConnection":
        self.queries.append((query, params))
        return self

    def fetchall(self) -> list[tuple]:
        return self.rows

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_postgres(monkeypatch):
    """Route `psycopg.connect` to FakePgConnection; returns the opened connections."""

    def install(rows: list[tuple]) -> list[FakePgConnection]:
        opened: list[FakePgConnection] = []

        def connect(uri: str) -> FakePgConnection:
            conn = FakePgConnection(uri, rows)
            opened.append(conn)
            return conn

        monkeypatch.setattr(psycopg, "connect", connect)
        return opened

    return install
