from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import streamlit as st

from ledger.schema import SCHEMA_SQL

# get_conn() hands every browser session the same connection. Statements and
# transactions on it are serialized through this lock; a transaction holds it
# from start to commit/rollback.
_LOCK = threading.RLock()

# Connections currently inside transaction(); x() defers commit for these.
_OPEN_TX: set[int] = set()


def _connect(db_path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return _connect(db_path)


def ensure_schema(conn: sqlite3.Connection) -> None:
    # executescript() commits first, so it must not run inside another session's transaction
    with _LOCK:
        conn.executescript(SCHEMA_SQL)
        conn.commit()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Groups writes into one commit. Any exception rolls back every write made
    since entering, so callers never observe a half-applied operation.
    Nested use joins the outer transaction. Other threads using the same
    connection wait until the transaction ends.
    """
    with _LOCK:
        key = id(conn)
        if key in _OPEN_TX:
            yield conn
            return

        _OPEN_TX.add(key)
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            _OPEN_TX.discard(key)


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    with _LOCK:
        cur = conn.execute(sql, tuple(params))
        rows = cur.fetchall()
        cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    with _LOCK:
        cur = conn.execute(sql, tuple(params))
        if id(conn) not in _OPEN_TX:
            conn.commit()
        last = cur.lastrowid
        cur.close()
    return int(last or 0)


def get_state(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    rows = q(conn, "SELECT value FROM app_state WHERE key=?", (key,))
    return str(rows[0]["value"]) if rows else default


def set_state(conn: sqlite3.Connection, key: str, value: Any) -> None:
    x(
        conn,
        "INSERT INTO app_state(key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (key, str(value)),
    )
