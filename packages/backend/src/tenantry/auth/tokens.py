"""Opaque credential generation.

Learn: Tokens come straight from the OS CSPRNG via the secrets module.
32 random bytes as hex (64 chars) are unguessable and fit an indexed
VARCHAR column; uniqueness is still enforced by the database.
"""

import secrets

TOKEN_BYTES = 32
INVITE_CODE_LENGTH = 8


def generate_token(nbytes: int = TOKEN_BYTES) -> str:
    """Generate a hex session / magic-link token."""
    return secrets.token_hex(nbytes)


def generate_invite_code() -> str:
    """Generate a short URL-safe invite code."""
    return secrets.token_urlsafe(INVITE_CODE_LENGTH)[:INVITE_CODE_LENGTH]
