"""Settings validation tests."""

import pydantic
import pytest

from purposelog.config import Settings


def test_development_defaults_load():
    s = Settings(_env_file=None)
    assert s.environment == "development"
    assert s.access_token_expire_minutes == 15
    assert s.refresh_token_expire_days == 7
    assert s.bcrypt_rounds == 10
    assert not s.is_production


def test_production_rejects_default_secrets():
    with pytest.raises(pydantic.ValidationError, match="secure values"):
        Settings(_env_file=None, environment="production")


def test_production_rejects_shared_secret():
    with pytest.raises(pydantic.ValidationError, match="must differ"):
        Settings(
            _env_file=None,
            environment="production",
            access_token_secret="one-long-random-secret",
            refresh_token_secret="one-long-random-secret",
        )


def test_production_with_distinct_secrets():
    s = Settings(
        _env_file=None,
        environment="production",
        access_token_secret="access-long-random-secret",
        refresh_token_secret="refresh-long-random-secret",
    )
    assert s.is_production


@pytest.mark.parametrize("rounds", [3, 32])
def test_bcrypt_rounds_out_of_range(rounds):
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, bcrypt_rounds=rounds)


def test_token_lifetime_must_be_positive():
    with pytest.raises(pydantic.ValidationError):
        Settings(_env_file=None, access_token_expire_minutes=0)


def test_settings_are_frozen():
    s = Settings(_env_file=None)
    with pytest.raises(pydantic.ValidationError):
        s.bcrypt_rounds = 12
