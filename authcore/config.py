import os
from dataclasses import dataclass
from typing import Optional

from authcore.errors import ConfigError

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


DEV_JWT_SECRET = "dev_change_me"
_DEV_ENVS = ("development", "dev", "test")


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Read once at startup and handed to the token issuer, the guard and the app
    factory. Provide the signing secret via environment variables or a .env file.
    """

    # -----------------
    # Core
    # -----------------
    APP_ENV: str = os.environ.get("APP_ENV", "development")

    # Preferred: set AUTHCORE_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: AUTHCORE_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("AUTHCORE_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("AUTHCORE_DB_PATH", "./authcore.sqlite")
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # Outside development, validate() refuses to start with it.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", DEV_JWT_SECRET)
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "30"))

    # Put the specific token failure code (missing_token, token_expired, ...) in 401 bodies.
    # Off by default so callers can't tell the failure modes apart.
    AUTH_EXPOSE_ERROR_CODES: bool = _env_bool("AUTH_EXPOSE_ERROR_CODES", False) is True

    # Input checks on /auth/register (HTTP layer only).
    AUTH_MIN_USERNAME_LENGTH: int = int(os.environ.get("AUTH_MIN_USERNAME_LENGTH", "3"))
    AUTH_MIN_PASSWORD_LENGTH: int = int(os.environ.get("AUTH_MIN_PASSWORD_LENGTH", "8"))

    # -----------------
    # Server
    # -----------------
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8000"))

    @property
    def is_development(self) -> bool:
        return (self.APP_ENV or "").strip().lower() in _DEV_ENVS

    def validate(self) -> "Config":
        if not (self.AUTH_JWT_SECRET or "").strip():
            raise ConfigError("jwt_secret_blank")
        if self.AUTH_JWT_SECRET == DEV_JWT_SECRET and not self.is_development:
            raise ConfigError("jwt_secret_default")
        if int(self.AUTH_TOKEN_EXPIRE_MINUTES) < 1:
            raise ConfigError("token_ttl_too_short")
        return self


def load_config() -> Config:
    return Config()
