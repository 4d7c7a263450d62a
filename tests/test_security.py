"""
FILE: tests/test_security.py
Unit tests for the core security module — argon2 hashing, corrupt-hash
handling, password policy, temporary passwords.

These tests have no HTTP client dependency; they call security functions directly.
"""

import pytest

from src.core.security import (
    PASSWORD_SPECIAL_CHARS,
    CorruptHashError,
    check_password_policy,
    dummy_verify,
    generate_temp_password,
    hash_password,
    needs_rehash,
    verify_password,
)


# ============================================================================
# PASSWORD HASHING
# ============================================================================

@pytest.mark.unit
class TestPasswordHashing:
    """hash_password() and verify_password()"""

    def test_hash_is_argon2_encoded(self):
        hashed = hash_password("Str0ng!Pass1")

        assert hashed.startswith("$argon2")

    def test_verify_password_correct_password_returns_true(self):
        hashed = hash_password("Str0ng!Pass1")

        assert verify_password("Str0ng!Pass1", hashed) is True

    def test_verify_password_wrong_password_returns_false(self):
        hashed = hash_password("Str0ng!Pass1")

        assert verify_password("Wr0ng!Pass1", hashed) is False

    def test_same_password_hashes_differently(self):
        """Each hash embeds its own salt."""
        assert hash_password("Str0ng!Pass1") != hash_password("Str0ng!Pass1")

    def test_fresh_hash_needs_no_rehash(self):
        assert needs_rehash(hash_password("Str0ng!Pass1")) is False


@pytest.mark.unit
@pytest.mark.security
class TestCorruptHash:
    """Unparseable stored hashes are an error, never a match."""

    def test_garbage_hash_raises_corrupt_hash_error(self):
        with pytest.raises(CorruptHashError):
            verify_password("Str0ng!Pass1", "not-a-hash")

    def test_truncated_argon2_hash_raises_corrupt_hash_error(self):
        hashed = hash_password("Str0ng!Pass1")

        with pytest.raises(CorruptHashError):
            verify_password("Str0ng!Pass1", hashed[:20])

    def test_dummy_verify_returns_nothing(self):
        assert dummy_verify("anything") is None


# ============================================================================
# PASSWORD POLICY
# ============================================================================

@pytest.mark.unit
class TestPasswordPolicy:
    """check_password_policy()"""

    def test_compliant_password_is_returned(self):
        assert check_password_policy("Str0ng!Pass1") == "Str0ng!Pass1"

    @pytest.mark.parametrize(
        "password, rule",
        [
            ("Sh0rt!", "at least 8"),
            ("lowercase1!", "uppercase"),
            ("UPPERCASE1!", "lowercase"),
            ("NoDigits!!", "digit"),
            ("NoSpecial11", "special"),
        ],
    )
    def test_violations_name_the_failed_rule(self, password: str, rule: str):
        with pytest.raises(ValueError, match=rule):
            check_password_policy(password)


# ============================================================================
# TEMP PASSWORD GENERATION
# ============================================================================

@pytest.mark.unit
class TestGenerateTempPassword:
    """generate_temp_password()"""

    def test_default_length_is_twelve(self):
        assert len(generate_temp_password()) == 12

    def test_custom_length_is_respected(self):
        for length in [8, 16, 24]:
            assert len(generate_temp_password(length=length)) == length

    def test_short_length_is_raised_to_minimum(self):
        assert len(generate_temp_password(length=4)) == 8

    def test_generated_passwords_satisfy_policy(self):
        for _ in range(25):
            pwd = generate_temp_password()
            assert check_password_policy(pwd) == pwd
            assert any(c in PASSWORD_SPECIAL_CHARS for c in pwd)

    def test_each_call_produces_unique_password(self):
        assert generate_temp_password() != generate_temp_password()
