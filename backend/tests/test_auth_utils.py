"""Tests for password policy, JWT helpers and API-key helpers."""

import re
from datetime import timedelta

import pytest
from jose import JWTError

from app.auth_utils import (
    create_access_token,
    decode_token,
    generate_api_key,
    hash_api_key,
    hash_password,
    is_api_key,
    validate_password_strength,
    verify_password,
)


class TestPasswordStrength:

    def test_strong_password(self):
        assert validate_password_strength("Secur3@pass") is None

    @pytest.mark.parametrize("password, message", [
        ("a1@", "at least 8"),
        ("x" * 127 + "1@", "128"),
        ("NoDigits@here", "digit"),
        ("NoSpecial123", "special"),
    ])
    def test_weak_passwords(self, password, message):
        error = validate_password_strength(password)
        assert error is not None
        assert message in error


class TestPasswordHashing:

    def test_round_trip(self):
        hashed = hash_password("Admin@123")
        assert hashed != "Admin@123"
        assert verify_password("Admin@123", hashed)
        assert not verify_password("Admin@124", hashed)


class TestTokens:

    def test_encode_decode(self):
        token = create_access_token({"sub": "42", "role": "Admin"}, jti="abc123")
        payload = decode_token(token)
        assert payload["sub"] == "42"
        assert payload["role"] == "Admin"
        assert payload["type"] == "access"
        assert payload["jti"] == "abc123"

    def test_generates_jti(self):
        payload = decode_token(create_access_token({"sub": "1"}))
        assert len(payload["jti"]) == 32

    def test_expired_token(self):
        token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-10))
        with pytest.raises(JWTError):
            decode_token(token)

    def test_tampered_token(self):
        token = create_access_token({"sub": "1"})
        with pytest.raises(JWTError):
            decode_token(token[:-2] + ("aa" if token[-2:] != "aa" else "bb"))


class TestApiKeys:

    def test_format(self):
        key = generate_api_key("DEMO-01")
        assert re.fullmatch(r"fiq_demo01_[0-9a-f]{32}", key)

    def test_unique(self):
        assert generate_api_key("demo") != generate_api_key("demo")

    def test_hash_is_stable_sha256(self):
        key = generate_api_key("demo")
        assert hash_api_key(key) == hash_api_key(key)
        assert len(hash_api_key(key)) == 64

    def test_is_api_key(self):
        assert is_api_key(generate_api_key("demo"))
        assert not is_api_key("eyJhbGciOiJIUzI1NiJ9.payload.sig")
