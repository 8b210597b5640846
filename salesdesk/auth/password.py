"""
SalesDesk - Password Policy & Hashing Utilities

Password hashing using bcrypt, the password lifecycle (issue, expiry,
forced reset for inactivity) and strong-password generation.

Security:
- Never log or expose plaintext passwords
- bcrypt includes salt automatically
- Work factor comes from settings (12 in production, lower in tests)
- Generated passwords draw from the OS CSPRNG only
"""

import secrets
import string
from datetime import datetime, timedelta
from typing import Optional

import bcrypt

from salesdesk.auth.errors import WeakPassword
from salesdesk.config import settings
from salesdesk.time_utils import utcnow


# bcrypt only considers the first 72 bytes of input
BCRYPT_MAX_BYTES = 72

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
ALPHABET = UPPERCASE + LOWERCASE + DIGITS + SYMBOLS

_sysrand = secrets.SystemRandom()


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plaintext password

    Returns:
        bcrypt hash string (includes salt)

    Example:
        >>> hashed = hash_password("SecureP@ss123")
        >>> hashed.startswith("$2b$")
        True
    """
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_WORK_FACTOR)
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a bcrypt hash.

    Uses bcrypt's own constant-time comparison.

    Returns:
        True if password matches, False otherwise (including a
        malformed hash)
    """
    try:
        password_bytes = plain_password.encode("utf-8")
        hashed_bytes = hashed_password.encode("utf-8")
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except (ValueError, TypeError):
        # Invalid hash format
        return False


def needs_rehash(hashed_password: str, target_work_factor: Optional[int] = None) -> bool:
    """
    Check if a password hash was produced with a lower work factor
    than the one currently configured.

    Example:
        # After increasing BCRYPT_WORK_FACTOR from 10 to 12:
        >>> needs_rehash(old_hash)  # Generated with factor 10
        True
    """
    target = target_work_factor or settings.BCRYPT_WORK_FACTOR
    try:
        # bcrypt hash format: $2b$XX$...
        _, work_factor_str, _ = hashed_password.split("$")[1:4]
        return int(work_factor_str) < target
    except (ValueError, IndexError):
        return True


def validate_password(password: str) -> None:
    """
    Enforce the password policy on a new plaintext password.

    Raises:
        WeakPassword: shorter than MIN_PASSWORD_LENGTH, or longer than
            bcrypt can hash
    """
    if password is None or len(password) < settings.MIN_PASSWORD_LENGTH:
        raise WeakPassword(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long"
        )
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise WeakPassword(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")


def set_password(user, password: str) -> None:
    """
    Validate, hash and store a new password on user.

    Restarts the expiry window. The caller persists the user.
    """
    validate_password(password)
    user.password_hash = hash_password(password)
    now = utcnow()
    user.password_reset_at = now
    user.password_expires_at = now + timedelta(days=settings.PASSWORD_EXPIRY_DAYS)


def is_password_expired(user, now: Optional[datetime] = None) -> bool:
    """True if the user's password has an expiry in the past."""
    if user.password_expires_at is None:
        return False
    return (now or utcnow()) > user.password_expires_at


def should_force_reset_for_inactivity(user, now: Optional[datetime] = None) -> bool:
    """True if the user last signed in more than INACTIVITY_RESET_DAYS ago."""
    if user.last_sign_in_at is None:
        return False
    cutoff = (now or utcnow()) - timedelta(days=settings.INACTIVITY_RESET_DAYS)
    return user.last_sign_in_at < cutoff


def generate_strong_password(length: Optional[int] = None) -> str:
    """
    Generate a random password with at least one uppercase letter,
    one lowercase letter, one digit and one symbol.

    Remaining characters are drawn uniformly from the full alphabet,
    then the whole string is shuffled with the system CSPRNG.
    """
    length = length or settings.STRONG_PASSWORD_LENGTH
    if length < 4:
        raise ValueError("Strong passwords need at least 4 characters")

    chars = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SYMBOLS),
    ]
    chars.extend(secrets.choice(ALPHABET) for _ in range(length - 4))
    _sysrand.shuffle(chars)
    return "".join(chars)
