"""
SalesDesk - Credential Policy Tests

Run with: pytest tests/test_password.py -v
"""

from datetime import timedelta

import bcrypt
import pytest

from salesdesk.auth.errors import WeakPassword
from salesdesk.auth.models import User
from salesdesk.auth.password import (
    DIGITS,
    LOWERCASE,
    SYMBOLS,
    UPPERCASE,
    generate_strong_password,
    hash_password,
    is_password_expired,
    needs_rehash,
    set_password,
    should_force_reset_for_inactivity,
    validate_password,
    verify_password,
)
from salesdesk.config import settings
from salesdesk.time_utils import utcnow


class TestPasswordHashing:
    """Unit tests for bcrypt password utilities."""

    def test_hash_password_creates_bcrypt_hash(self):
        hashed = hash_password("SecurePassword123")

        assert hashed.startswith("$2b$")
        assert len(hashed) == 60

    def test_verify_password_correct(self):
        hashed = hash_password("SecurePassword123")

        assert verify_password("SecurePassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("SecurePassword123")

        assert verify_password("WrongPassword", hashed) is False

    def test_verify_password_malformed_hash(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_different_passwords_different_hashes(self):
        """Same password generates different hashes (salted)."""
        hash1 = hash_password("SecurePassword123")
        hash2 = hash_password("SecurePassword123")

        assert hash1 != hash2
        assert verify_password("SecurePassword123", hash1) is True
        assert verify_password("SecurePassword123", hash2) is True

    def test_needs_rehash_old_work_factor(self):
        old_hash = bcrypt.hashpw(b"password", bcrypt.gensalt(rounds=4)).decode()

        assert needs_rehash(old_hash, target_work_factor=12) is True

    def test_needs_rehash_current_factor(self):
        assert needs_rehash(hash_password("password")) is False


class TestPasswordPolicy:

    def test_minimum_length_accepted(self):
        validate_password("a" * settings.MIN_PASSWORD_LENGTH)

    def test_too_short_rejected(self):
        with pytest.raises(WeakPassword):
            validate_password("a" * (settings.MIN_PASSWORD_LENGTH - 1))

    def test_empty_rejected(self):
        with pytest.raises(WeakPassword):
            validate_password("")

    def test_over_bcrypt_limit_rejected(self):
        with pytest.raises(WeakPassword):
            validate_password("a" * 73)

    def test_set_password_restarts_expiry(self):
        user = User(email="x@test.com", name="X")
        before = utcnow()

        set_password(user, "password123")

        assert verify_password("password123", user.password_hash)
        assert user.password_reset_at >= before
        assert user.password_expires_at - user.password_reset_at == timedelta(
            days=settings.PASSWORD_EXPIRY_DAYS
        )

    def test_set_password_rejects_weak_without_mutating(self):
        user = User(email="x@test.com", name="X", password_hash="unchanged")

        with pytest.raises(WeakPassword):
            set_password(user, "abc")

        assert user.password_hash == "unchanged"
        assert user.password_expires_at is None


class TestLifecycle:

    def test_expired_when_expiry_in_past(self):
        user = User(email="x@test.com", name="X", password_expires_at=utcnow() - timedelta(seconds=1))
        assert is_password_expired(user) is True

    def test_not_expired_without_expiry(self):
        user = User(email="x@test.com", name="X", password_expires_at=None)
        assert is_password_expired(user) is False

    def test_inactivity_threshold(self):
        now = utcnow()
        days = settings.INACTIVITY_RESET_DAYS
        stale = User(email="a@test.com", name="A", last_sign_in_at=now - timedelta(days=days + 1))
        recent = User(email="b@test.com", name="B", last_sign_in_at=now - timedelta(days=days - 1))
        never = User(email="c@test.com", name="C", last_sign_in_at=None)

        assert should_force_reset_for_inactivity(stale, now) is True
        assert should_force_reset_for_inactivity(recent, now) is False
        assert should_force_reset_for_inactivity(never, now) is False


class TestStrongPasswordGeneration:

    def test_default_length(self):
        assert len(generate_strong_password()) == settings.STRONG_PASSWORD_LENGTH

    @pytest.mark.parametrize("length", [4, 8, 16, 32])
    def test_contains_every_character_class(self, length):
        for _ in range(50):
            password = generate_strong_password(length)

            assert len(password) == length
            assert any(c in UPPERCASE for c in password)
            assert any(c in LOWERCASE for c in password)
            assert any(c in DIGITS for c in password)
            assert any(c in SYMBOLS for c in password)

    def test_generated_password_passes_policy(self):
        validate_password(generate_strong_password())

    def test_too_short_length_rejected(self):
        with pytest.raises(ValueError):
            generate_strong_password(3)

    def test_passwords_differ(self):
        assert len({generate_strong_password(16) for _ in range(20)}) == 20
