import re
from datetime import timedelta

import pytest
from fastapi import HTTPException

from baas.core.security import (
    create_access_token,
    generate_api_key,
    get_api_key_env_tag,
    get_password_hash,
    hash_api_key,
    is_valid_api_key_format,
    mask_api_key,
    verify_password,
    verify_token,
)


class TestPasswordHashing:

    def test_password_hashing(self):
        """Test password hashing and verification."""
        password = "secure_password_123"
        hashed = get_password_hash(password)

        assert hashed != password
        assert len(hashed) > 50  # bcrypt hashes are long
        assert verify_password(password, hashed) is True
        assert verify_password("wrong_password", hashed) is False

    def test_different_hashes_for_same_password(self):
        """Test that same password produces different hashes (salt)."""
        hash1 = get_password_hash("test_password")
        hash2 = get_password_hash("test_password")

        assert hash1 != hash2


class TestJWTTokens:

    def test_jwt_token_creation_and_verification(self):
        token = create_access_token({"sub": "abc123", "email": "user@example.com"})

        decoded = verify_token(token)
        assert decoded["sub"] == "abc123"
        assert decoded["type"] == "access"
        assert "exp" in decoded

    def test_expired_token_rejected(self):
        token = create_access_token({"sub": "abc123"}, timedelta(seconds=-1))

        with pytest.raises(HTTPException) as exc_info:
            verify_token(token)
        assert exc_info.value.status_code == 401

    def test_invalid_token_rejection(self):
        with pytest.raises(HTTPException):
            verify_token("definitely_not_a_jwt")


class TestKeyGeneration:

    def test_generated_key_shape(self):
        """Default keys are live_ plus 64 lowercase hex characters."""
        key = generate_api_key()

        assert re.fullmatch(r"live_[a-f0-9]{64}", key)
        assert is_valid_api_key_format(key)

    def test_keys_are_unique(self):
        keys = {generate_api_key() for _ in range(1000)}
        assert len(keys) == 1000

    def test_custom_length_is_not_a_valid_format(self):
        key = generate_api_key("test", 16)

        assert len(key) == len("test_") + 32
        assert not is_valid_api_key_format(key)

    @pytest.mark.parametrize("env_tag,length", [("prod", 32), ("live", 0)])
    def test_bad_arguments_rejected(self, env_tag, length):
        with pytest.raises(ValueError):
            generate_api_key(env_tag, length)


class TestKeyFormat:

    @pytest.mark.parametrize("value", [
        None,
        "",
        42,
        "pk_live_" + "a" * 64,
        "live_" + "A" * 64,
        "live_" + "a" * 63,
        "live_" + "g" * 64,
        "staging_" + "a" * 64,
    ])
    def test_invalid_formats(self, value):
        assert is_valid_api_key_format(value) is False
        assert get_api_key_env_tag(value) is None

    def test_env_tag_extraction(self):
        assert get_api_key_env_tag("test_" + "0" * 64) == "test"
        assert get_api_key_env_tag("live_" + "f" * 64) == "live"


class TestMasking:

    def test_mask_keeps_prefix_and_suffix(self):
        key = "live_" + "0123456789abcdef" * 4

        assert mask_api_key(key) == "live_012...cdef"

    @pytest.mark.parametrize("value", [None, "", "short", "elevenchars"])
    def test_short_or_missing_values(self, value):
        assert mask_api_key(value) == "***"

    def test_twelve_characters_is_enough(self):
        assert mask_api_key("abcdefghijkl") == "abcdefgh...ijkl"


class TestKeyHashing:

    def test_hash_is_stable_sha256(self):
        key = generate_api_key()
        hashed = hash_api_key(key)

        assert hashed == hash_api_key(key)
        assert len(hashed) == 64
        assert hashed != hash_api_key(generate_api_key())
