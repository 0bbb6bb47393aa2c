"""Client side: keeps the issued token and mirrors server-side validity."""

from .api import AuthClient, RequestFailed, SessionRejected
from .session import NotAuthenticated, SessionManager, SessionState, peek_expiry
from .storage import FileSessionStore, StoredSession

__all__ = [
    "AuthClient",
    "FileSessionStore",
    "NotAuthenticated",
    "RequestFailed",
    "SessionManager",
    "SessionRejected",
    "SessionState",
    "StoredSession",
    "peek_expiry",
]
