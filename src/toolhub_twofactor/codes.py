"""Code generation.

All values come from the operating system CSPRNG: a predictable code or
secret is a direct account-takeover vector.
"""

from __future__ import annotations

import re
import secrets

import pyotp

# Backup codes are uppercase hex so they can be read aloud and typed without
# ambiguity between O/0 or I/1.
BACKUP_CODE_ALPHABET = "0123456789ABCDEF"

LINKING_TOKEN_PREFIX = "SETUP_"
LINKING_TOKEN_PATTERN = re.compile(r"^SETUP_[0-9a-f]{16}$")


def generate_secret(length: int = 32) -> str:
    """Generate a base-32 shared secret for TOTP."""
    return pyotp.random_base32(length=length)


def generate_numeric_code(digits: int = 6) -> str:
    """Generate a zero-padded numeric code, uniform over ``[0, 10**digits)``."""
    code = secrets.randbelow(10**digits)
    return str(code).zfill(digits)


def generate_backup_code(length: int = 8) -> str:
    return "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))


def generate_backup_code_batch(count: int = 8, length: int = 8) -> list[str]:
    """Generate ``count`` independent single-use recovery codes."""
    return [generate_backup_code(length) for _ in range(count)]


def generate_linking_token() -> str:
    """Generate a bot-channel linking token (``SETUP_`` + 16 hex chars)."""
    return f"{LINKING_TOKEN_PREFIX}{secrets.token_hex(8)}"


__all__: list[str] = [
    "BACKUP_CODE_ALPHABET",
    "LINKING_TOKEN_PATTERN",
    "LINKING_TOKEN_PREFIX",
    "generate_secret",
    "generate_numeric_code",
    "generate_backup_code",
    "generate_backup_code_batch",
    "generate_linking_token",
]
