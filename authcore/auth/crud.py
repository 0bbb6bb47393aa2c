from __future__ import annotations

from typing import Any, Dict, Optional

from authcore.db import is_integrity_error
from authcore.errors import DuplicateUser, InvalidCredentials
from authcore.util.time import utcnow_iso

from .security import dummy_verify, hash_password, verify_password


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def public_user(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    return d


def get_user_by_username(conn: Any, username: str) -> Optional[Any]:
    u = normalize_username(username)
    if not u:
        return None
    return conn.execute(
        "SELECT * FROM users WHERE username=?",
        (u,),
    ).fetchone()


def register_user(conn: Any, *, username: str, password: str) -> Dict[str, Any]:
    """Insert a new user, relying on the UNIQUE(username) constraint.

    No read-then-write: two concurrent registrations of the same name race on the
    INSERT and the loser gets DuplicateUser. An existing hash is never replaced.
    """
    u = normalize_username(username)
    if not u:
        raise ValueError("username_blank")

    password_hash = hash_password(password)
    now = utcnow_iso()
    try:
        conn.execute(
            """
            INSERT INTO users (username, password_hash, created_at, updated_at)
            VALUES (?,?,?,?)
            """,
            (u, password_hash, now, now),
        )
    except Exception as e:
        if is_integrity_error(e):
            _debug(f"Registration rejected: username={u} already exists")
            raise DuplicateUser(u) from e
        raise

    row = get_user_by_username(conn, u)
    assert row is not None
    _debug(f"Registered user: username={u}")
    return public_user(row)


def verify_user_credentials(conn: Any, username: str, password: str) -> str:
    """Return the normalized username if the password matches.

    Unknown user and wrong password both raise InvalidCredentials.
    """
    row = get_user_by_username(conn, username)
    if row is None:
        dummy_verify()
        _debug("Login failed: unknown user")
        raise InvalidCredentials()
    if not verify_password(password, str(row["password_hash"])):
        _debug(f"Login failed: bad password for username={row['username']}")
        raise InvalidCredentials()
    return str(row["username"])


def touch_last_login(conn: Any, username: str) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE username=?",
        (now, now, normalize_username(username)),
    )
