"""Error taxonomy for the auth core.

Every error carries a stable snake_case ``code``. The HTTP layer uses it for
response bodies and the diagnostic log; the client maps it back to a class.
"""

from __future__ import annotations

from typing import Dict, Optional, Type


class AuthError(Exception):
    code = "auth_error"
    retryable = False

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)


class ConfigError(AuthError):
    code = "config_error"


class CredentialError(AuthError):
    pass


class DuplicateUser(CredentialError):
    code = "duplicate_user"


class InvalidCredentials(CredentialError):
    """Unknown username or wrong password. The two are never told apart."""

    code = "invalid_credentials"


class TokenError(AuthError):
    pass


class MissingToken(TokenError):
    code = "missing_token"


class MalformedToken(TokenError):
    code = "malformed_token"


class InvalidSignature(TokenError):
    code = "invalid_signature"


class ExpiredToken(TokenError):
    code = "token_expired"


class StoreUnavailable(AuthError):
    code = "store_unavailable"
    retryable = True


ERRORS_BY_CODE: Dict[str, Type[AuthError]] = {
    cls.code: cls
    for cls in (
        DuplicateUser,
        InvalidCredentials,
        MissingToken,
        MalformedToken,
        InvalidSignature,
        ExpiredToken,
        StoreUnavailable,
    )
}
