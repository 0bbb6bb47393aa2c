from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

import jwt

from authcore.errors import AuthError
from authcore.util.time import Clock, from_timestamp, utcnow

from .storage import FileSessionStore, StoredSession


def _debug(msg: str) -> None:
    print(f"[session] {msg}")


class NotAuthenticated(AuthError):
    """No usable local session; the caller has to log in first."""

    code = "not_authenticated"


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


def peek_expiry(token: str) -> Optional[datetime]:
    """Read ``exp`` from a token without checking its signature.

    The client never has the signing secret, so this is advisory only: it saves
    a round trip for a token that is certainly dead. The server's guard is the
    only authority on validity. Returns None when the token can't be read.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None
    exp = payload.get("exp") if isinstance(payload, dict) else None
    if not isinstance(exp, int) or isinstance(exp, bool):
        return None
    return from_timestamp(exp)


class SessionManager:
    """Client-side holder of the issued token.

    Two states only: ANONYMOUS and AUTHENTICATED. ``login`` is the only way in;
    logout, local expiry and any server rejection all lead back out and wipe
    the stored token.
    """

    def __init__(self, store: Optional[FileSessionStore] = None, *, clock: Clock = utcnow):
        self._store = store or FileSessionStore()
        self._clock = clock
        self._session: Optional[StoredSession] = self._store.load()
        # Drop a stale token left over from a previous run.
        self.check_expiry()

    @property
    def state(self) -> SessionState:
        return SessionState.AUTHENTICATED if self._session is not None else SessionState.ANONYMOUS

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def username(self) -> Optional[str]:
        return self._session.username if self._session else None

    def login(self, token: str, username: str) -> None:
        if not token or not username:
            raise ValueError("token_and_username_required")
        self._session = StoredSession(token=token, username=username)
        self._store.save(self._session)
        _debug(f"Authenticated as {username}")

    def logout(self) -> None:
        self._drop("logout")

    def reject(self, reason: str) -> None:
        """The server (or the transport) refused the token: go anonymous."""
        self._drop(reason)

    def check_expiry(self) -> bool:
        """Return True if still authenticated after the local expiry check."""
        if self._session is None:
            return False
        exp = peek_expiry(self._session.token)
        if exp is None or self._clock() >= exp:
            self._drop("expired_locally")
            return False
        return True

    def token_for_request(self) -> str:
        if not self.check_expiry():
            raise NotAuthenticated()
        assert self._session is not None
        return self._session.token

    def _drop(self, reason: str) -> None:
        was = self.username
        self._session = None
        self._store.clear()
        if was:
            _debug(f"Session for {was} cleared ({reason})")
