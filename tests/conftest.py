import base64
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from authcore.api.server import create_app
from authcore.config import Config
from authcore.db import init_db


BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TEST_SECRET = "test-secret-5f1c0b7a9e3d4c2b8a6f0e1d2c3b4a59"


class FakeClock:
    def __init__(self, now: datetime = BASE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def flip_signature_bit(token: str, bit: int) -> str:
    header, claims, sig = token.split(".")
    raw = bytearray(base64.urlsafe_b64decode(sig + "=" * (-len(sig) % 4)))
    raw[bit // 8] ^= 1 << (bit % 8)
    return ".".join([header, claims, base64.urlsafe_b64encode(bytes(raw)).rstrip(b"=").decode("ascii")])


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cfg(tmp_path) -> Config:
    return Config(
        APP_ENV="test",
        DB_DSN=str(tmp_path / "authcore.sqlite"),
        AUTH_JWT_SECRET=TEST_SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=30,
    )


@pytest.fixture()
def db_dsn(cfg) -> str:
    init_db(cfg.DB_DSN)
    return cfg.DB_DSN


@pytest.fixture()
def app(cfg, clock):
    return create_app(cfg, clock=clock)


@pytest.fixture()
def client(app):
    # Context manager runs the startup hook (schema creation).
    with TestClient(app) as c:
        yield c
