from dataclasses import replace

import pytest

from authcore.config import DEV_JWT_SECRET, Config, _env_bool
from authcore.errors import ConfigError


def test_default_secret_is_fine_for_development():
    cfg = Config(APP_ENV="development", AUTH_JWT_SECRET=DEV_JWT_SECRET)
    assert cfg.validate() is cfg


@pytest.mark.parametrize("env", ["production", "staging"])
def test_default_secret_is_refused_outside_development(env):
    with pytest.raises(ConfigError):
        Config(APP_ENV=env, AUTH_JWT_SECRET=DEV_JWT_SECRET).validate()


def test_blank_secret_and_zero_ttl_are_refused(cfg):
    with pytest.raises(ConfigError):
        replace(cfg, AUTH_JWT_SECRET="  ").validate()
    with pytest.raises(ConfigError):
        replace(cfg, AUTH_TOKEN_EXPIRE_MINUTES=0).validate()


def test_env_bool(monkeypatch):
    monkeypatch.setenv("AUTHCORE_FLAG", "Yes")
    assert _env_bool("AUTHCORE_FLAG") is True
    monkeypatch.setenv("AUTHCORE_FLAG", "off")
    assert _env_bool("AUTHCORE_FLAG") is False
    monkeypatch.setenv("AUTHCORE_FLAG", "maybe")
    assert _env_bool("AUTHCORE_FLAG", None) is None
