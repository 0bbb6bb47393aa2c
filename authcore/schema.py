"""Database schema for authcore.

SQLite is the default; Postgres is supported through the same DDL.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability across engines.

NOTE: The Postgres schema is generated from the SQLite schema with a small set of
transformations (types + autoincrement).
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- Only password hashes are stored. Tokens are stateless JWTs and have no table.
-- The UNIQUE constraint on username is what makes concurrent registration safe.
CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login_at TEXT
);

-- Requests served by the protected prediction endpoint
CREATE TABLE IF NOT EXISTS prediction_logs (
    log_id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    input_text TEXT NOT NULL,
    output_text TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_prediction_logs_user ON prediction_logs (username, created_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    # Remove SQLite pragmas
    lines: list[str] = []
    for line in ddl.splitlines():
        if line.strip().upper().startswith("PRAGMA "):
            continue
        lines.append(line)
    out = "\n".join(lines)

    # AUTOINCREMENT primary keys
    out = re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )
    out = re.sub(r"\bAUTOINCREMENT\b", "", out, flags=re.IGNORECASE)

    return out


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
