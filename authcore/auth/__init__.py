"""Authentication / authorization helpers.

Auth is deliberately small:

- Users table (username + password hash)
- Stateless JWT access tokens (sub/iat/exp, HS256, fixed TTL)

Protected routes take ``Authorization: Bearer <token>``. They are mounted on a
router built by ``protected_router()``, so the check is part of the route's
composition and not something each handler has to remember.
"""

from .crud import register_user, verify_user_credentials
from .deps import protected_router, require_user
from .guard import TokenGuard
from .security import TokenClaims, TokenIssuer

__all__ = [
    "protected_router",
    "require_user",
    "register_user",
    "verify_user_credentials",
    "TokenClaims",
    "TokenGuard",
    "TokenIssuer",
]
