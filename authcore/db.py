from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from authcore.errors import StoreUnavailable
from authcore.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # sqlite:///path and bare file paths both land here.
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single/double-quoted literals. Not a full SQL parser, but
    enough for the statements in this codebase.
    """
    out: List[str] = []
    quote: str | None = None
    for ch in sql:
        if quote is None and ch in ("'", '"'):
            quote = ch
        elif quote is not None and ch == quote:
            # Doubled quotes ('') toggle out and straight back in.
            quote = None
        elif ch == "?" and quote is None:
            out.append("%s")
            continue
        out.append(ch)
    return "".join(out)


def is_integrity_error(exc: BaseException) -> bool:
    """True for unique/constraint violations from either sqlite3 or psycopg2."""
    if isinstance(exc, sqlite3.IntegrityError):
        return True
    # psycopg2 follows DB-API naming (psycopg2.IntegrityError / errors.UniqueViolation).
    return any(c.__name__ == "IntegrityError" for c in type(exc).__mro__)


def _is_operational_error(exc: BaseException) -> bool:
    if isinstance(exc, (sqlite3.OperationalError, OSError)):
        return True
    return any(c.__name__ in ("OperationalError", "InterfaceError") for c in type(exc).__mro__)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()


class PGConnection:
    """Makes a psycopg2 connection look enough like sqlite3 for the auth queries."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        return PGCursor(self._conn.cursor()).execute(sql, params)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _rollback_quietly(conn: Any) -> None:
    # The connection may already be gone when the store itself failed.
    try:
        conn.rollback()
    except Exception as e:
        _debug(f"rollback failed: {e!r}")


@contextmanager
def _transaction(conn: Any) -> Iterator[Any]:
    try:
        yield conn
        conn.commit()
    except Exception as e:
        _rollback_quietly(conn)
        if _is_operational_error(e):
            _debug(f"store error mid-transaction: {e!r}")
            raise StoreUnavailable(str(e)) from e
        raise
    finally:
        conn.close()


def _open_postgres(dsn: str) -> PGConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except Exception as e:
        raise RuntimeError(
            "Postgres selected but psycopg2 is not installed. "
            "Install psycopg2-binary and try again."
        ) from e

    # RealDictCursor makes fetchone()/fetchall() rows act like dicts.
    raw = psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor)
    return PGConnection(raw)


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]

    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Open one transaction against SQLite or Postgres.

    Commits on success, rolls back on error. If the store can't be reached (or
    fails operationally mid-transaction) the caller gets StoreUnavailable;
    every other exception propagates unchanged.
    """
    dsn = (db_dsn or "").strip()
    dialect = _detect_dialect(dsn)

    try:
        conn = _open_postgres(dsn) if dialect == "postgres" else _open_sqlite(dsn)
    except Exception as e:
        if not _is_operational_error(e):
            raise
        _debug(f"cannot open {dialect} store: {e!r}")
        raise StoreUnavailable(str(e)) from e

    with _transaction(conn) as c:
        yield c


def init_db(db_dsn: str) -> None:
    """Create all tables (idempotent)."""
    dialect = _detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    with connect(db_dsn) as conn:
        schema_sql = get_schema_sql(dialect)
        # Ensure only one process runs schema DDL at a time.
        # - Postgres: use an advisory lock.
        # - SQLite: DDL already takes an exclusive database lock.
        if dialect == "postgres":
            conn.execute("SELECT pg_advisory_lock(2147483647);")
            try:
                _exec_schema(conn, schema_sql, dialect=dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483647);")
        else:
            _exec_schema(conn, schema_sql, dialect=dialect)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        # Execute multi-statement DDL (naive split is OK for our schema)
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    # SQLite can run it in one go
    conn.executescript(ddl)
