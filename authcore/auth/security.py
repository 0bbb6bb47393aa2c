from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from authcore.config import Config
from authcore.errors import ConfigError, MalformedToken
from authcore.util.time import Clock, from_timestamp, utcnow


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Exactly these claims, nothing trusted beyond them.
REQUIRED_CLAIMS = ("sub", "iat", "exp")


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        _pwd.dummy_verify()
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unrecognized or corrupt hash
        return False


def dummy_verify() -> None:
    """Spend about as long as a real verify, for lookups of unknown users."""
    _pwd.dummy_verify()


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    issued_at: datetime
    expires_at: datetime

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sub": self.subject,
            "iat": int(self.issued_at.timestamp()),
            "exp": int(self.expires_at.timestamp()),
        }

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenClaims":
        if not isinstance(payload, dict):
            raise MalformedToken("claims_not_object")
        extra = set(payload) - set(REQUIRED_CLAIMS)
        if extra:
            raise MalformedToken(f"unexpected_claims: {sorted(extra)}")

        sub = payload.get("sub")
        if not isinstance(sub, str) or not sub.strip():
            raise MalformedToken("claim_sub_invalid")

        iat = payload.get("iat")
        exp = payload.get("exp")
        # bool is an int subclass; reject it explicitly.
        for name, v in (("iat", iat), ("exp", exp)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise MalformedToken(f"claim_{name}_invalid")
        if exp <= iat:
            raise MalformedToken("claim_exp_not_after_iat")

        return cls(subject=sub, issued_at=from_timestamp(iat), expires_at=from_timestamp(exp))


class TokenIssuer:
    """Mints signed, expiring access tokens for verified identities.

    Tokens are compact JWTs (header.claims.signature) carrying only sub/iat/exp,
    signed with the process-wide secret. There is no renewal: expiry is absolute
    from issuance.
    """

    def __init__(self, cfg: Config, *, clock: Clock = utcnow):
        if not (cfg.AUTH_JWT_SECRET or "").strip():
            raise ConfigError("jwt_secret_blank")
        self._secret = cfg.AUTH_JWT_SECRET
        self._algorithm = cfg.AUTH_JWT_ALGORITHM
        self._ttl = timedelta(minutes=int(cfg.AUTH_TOKEN_EXPIRE_MINUTES))
        self._clock = clock

    @property
    def default_ttl(self) -> timedelta:
        return self._ttl

    def claims_for(self, identity: str, ttl: Optional[timedelta] = None) -> TokenClaims:
        if not identity:
            raise ValueError("identity_blank")
        ttl = self._ttl if ttl is None else ttl
        if ttl < timedelta(seconds=1):
            raise ValueError("ttl_too_short")

        # Whole seconds, so iat/exp round-trip exactly through the JWT.
        now = self._clock().replace(microsecond=0)
        return TokenClaims(subject=identity, issued_at=now, expires_at=now + ttl)

    def sign(self, claims: TokenClaims) -> str:
        return jwt.encode(claims.to_payload(), self._secret, algorithm=self._algorithm)

    def issue(self, identity: str, ttl: Optional[timedelta] = None) -> str:
        return self.sign(self.claims_for(identity, ttl))
