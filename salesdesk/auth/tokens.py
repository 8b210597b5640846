"""
SalesDesk - Opaque Token Management

Session tokens and password-reset tokens are 32 bytes from the OS
CSPRNG, hex-encoded. The plaintext goes to the client exactly once;
the database only ever sees the SHA-256 digest.

Security:
- secrets.token_hex, never random or uuid4, for credentials
- SHA-256 (not bcrypt) for storage: inputs are already high-entropy
- Uniqueness is enforced by unique indexes on the digest columns
"""

import hashlib
import secrets


TOKEN_BYTES = 32


def generate_secure_token() -> str:
    """
    Generate a cryptographically secure random token.

    Returns:
        64-character hex string (256 bits of entropy)
    """
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """Return the hex SHA-256 digest used to store and look up a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
