from datetime import timedelta

import pytest

from buzzsmile.core.config import settings
from buzzsmile.core.security import (
    InvalidToken,
    TokenExpired,
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    verify_password,
)


def test_hash_and_verify_password():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong-password", hashed)


def test_verify_password_rejects_malformed_hash():
    assert verify_password("secret123", "not-a-bcrypt-hash") is False
    assert verify_password("secret123", None) is False
    assert verify_password("", hash_password("secret123")) is False


def test_access_token_roundtrip_carries_user_id():
    token = create_access_token("abc123")
    assert decode_access_token(token)["userId"] == "abc123"


def test_expired_token_raises_token_expired():
    token = create_access_token("abc123", expires_in=timedelta(seconds=-10))
    with pytest.raises(TokenExpired):
        decode_access_token(token)


def test_token_signed_with_other_secret_is_invalid(monkeypatch):
    token = create_access_token("abc123")
    monkeypatch.setattr(settings, "JWT_SECRET", "another-secret")
    with pytest.raises(InvalidToken) as excinfo:
        decode_access_token(token)
    assert not isinstance(excinfo.value, TokenExpired)


def test_jwt_secret_required_in_production(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", None)
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    with pytest.raises(RuntimeError):
        create_access_token("abc123")


def test_reset_token_is_64_hex_chars():
    token = generate_reset_token()
    assert len(token) == 64
    int(token, 16)
    assert token != generate_reset_token()
