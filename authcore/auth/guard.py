from __future__ import annotations

from typing import Optional

import jwt

from authcore.auth.security import REQUIRED_CLAIMS, TokenClaims
from authcore.config import Config
from authcore.errors import (
    ConfigError,
    ExpiredToken,
    InvalidSignature,
    MalformedToken,
    MissingToken,
)
from authcore.util.time import Clock, utcnow


BEARER_SCHEME = "bearer"


def _debug(msg: str) -> None:
    print(f"[guard] {msg}")


def split_authorization(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` value.

    Raises MissingToken when nothing was presented and MalformedToken when the
    value is not a bearer credential made of three dot-separated parts.
    """
    raw = (authorization or "").strip()
    if not raw:
        raise MissingToken()

    parts = raw.split()
    if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
        raise MalformedToken("not_bearer_credential")

    token = parts[1]
    segments = token.split(".")
    if len(segments) != 3 or not all(segments):
        raise MalformedToken("not_three_segments")
    return token


class TokenGuard:
    """Validates presented tokens before a protected operation runs.

    Stateless: it only reads the signing secret (fixed at construction) and the
    caller's token, so one instance can serve any number of concurrent requests.
    Every failure raises a distinct TokenError subclass; mapping them to a single
    external status is the HTTP layer's job.
    """

    def __init__(self, cfg: Config, *, clock: Clock = utcnow):
        if not (cfg.AUTH_JWT_SECRET or "").strip():
            raise ConfigError("jwt_secret_blank")
        self._secret = cfg.AUTH_JWT_SECRET
        self._algorithm = cfg.AUTH_JWT_ALGORITHM
        self._clock = clock

    def decode_claims(self, token: str) -> TokenClaims:
        try:
            # Time checks run below against our own clock, not PyJWT's.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except (jwt.InvalidSignatureError, jwt.InvalidAlgorithmError) as e:
            raise InvalidSignature(str(e)) from e
        except jwt.InvalidTokenError as e:
            # DecodeError (bad base64/JSON/segments), missing or mistyped claims
            raise MalformedToken(str(e)) from e

        claims = TokenClaims.from_payload(payload)
        if self._clock() >= claims.expires_at:
            raise ExpiredToken(f"expired_at={claims.expires_at.isoformat()}")
        return claims

    def authenticate(self, authorization: Optional[str]) -> str:
        """Return the authenticated subject for a raw Authorization value."""
        token = split_authorization(authorization)
        claims = self.decode_claims(token)
        _debug(f"Auth OK: sub={claims.subject}")
        return claims.subject
