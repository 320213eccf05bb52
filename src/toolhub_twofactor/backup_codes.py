"""Backup codes: single-use recovery codes stored on the security record.

Users can fall back to these when they lose access to their primary
factor. A consumed code is tombstoned, never deleted, so the batch keeps its
order and a code cannot be accepted twice.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .codes import generate_backup_code_batch
from .lockout import record_success
from .record import BackupCode

if TYPE_CHECKING:
    from .record import SecurityRecord


def normalize(candidate: str) -> str:
    """Normalize user input: strip whitespace and dashes, upper-case."""
    return candidate.strip().replace("-", "").replace(" ", "").upper()


def looks_like_backup_code(candidate: str, length: int = 8) -> bool:
    """Shape test used by providers before trying backup consumption."""
    normalized = normalize(candidate)
    return len(normalized) == length and normalized.isalnum()


def _find(record: SecurityRecord, candidate: str) -> BackupCode | None:
    normalized = normalize(candidate)
    if not normalized:
        return None

    candidate_bytes = normalized.encode()
    match: BackupCode | None = None
    for code in record.backup_codes:
        # Scan the whole batch so timing does not reveal the match position.
        equal = secrets.compare_digest(code.value.encode(), candidate_bytes)
        if equal and not code.is_used:
            match = code
    return match


def matches(record: SecurityRecord, candidate: str) -> bool:
    """True if ``candidate`` is an available code; nothing is consumed."""
    return _find(record, candidate) is not None


def consume(
    record: SecurityRecord,
    candidate: str,
    now: datetime | None = None,
) -> bool:
    """Consume a backup code.

    On a match the single matching entry is tombstoned and the record's
    failure state is reset. A miss leaves the record untouched; counting the
    failure is the caller's job so that a backup fallback inside a provider
    is not counted twice.

    Returns:
        True if an available code matched.
    """
    match = _find(record, candidate)
    if match is None:
        return False

    current = now or datetime.now(timezone.utc)
    match.used_at = current
    record_success(record, current)
    return True


def regenerate(
    record: SecurityRecord,
    count: int = 8,
    length: int = 8,
    now: datetime | None = None,
) -> list[str]:
    """Replace the whole batch, invalidating every unused code.

    Returns:
        The new plaintext codes. They are not retrievable again through
        this API once the caller has shown them.
    """
    codes = generate_backup_code_batch(count=count, length=length)
    record.backup_codes = [BackupCode(value=code) for code in codes]
    record.touch(now)
    return codes


__all__: list[str] = [
    "normalize",
    "looks_like_backup_code",
    "matches",
    "consume",
    "regenerate",
]
