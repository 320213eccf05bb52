"""Failed-attempt / lockout state machine.

States:
    Active: ``locked_until`` is absent or in the past.
    Locked: ``locked_until`` is in the future.

Nothing clears a lock in the background; ``is_locked`` is evaluated lazily on
each access. The counter survives entry into Locked and is reset only by a
successful verification or :func:`clear_lockout`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .record import SecurityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockoutPolicy:
    max_failed_attempts: int = 3
    lockout_duration: timedelta = timedelta(minutes=15)


DEFAULT_POLICY = LockoutPolicy()


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def is_locked(record: SecurityRecord, now: datetime | None = None) -> bool:
    return record.locked_until is not None and record.locked_until > _now(now)


def record_failure(
    record: SecurityRecord,
    policy: LockoutPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
) -> bool:
    """Count a failed verification.

    Returns:
        True if this failure moved the record into Locked.
    """
    current = _now(now)
    already_locked = is_locked(record, current)

    record.failed_attempts += 1
    record.touch(current)

    # An active lock is never extended by further failures.
    if already_locked or record.failed_attempts < policy.max_failed_attempts:
        return False

    record.locked_until = current + policy.lockout_duration
    logger.warning(
        "2FA method %s locked for user %s after %d failed attempts",
        record.method.value,
        record.user_id,
        record.failed_attempts,
    )
    return True


def record_success(record: SecurityRecord, now: datetime | None = None) -> None:
    current = _now(now)
    record.failed_attempts = 0
    record.locked_until = None
    record.last_used_at = current
    record.touch(current)


def clear_lockout(record: SecurityRecord, now: datetime | None = None) -> None:
    """Manual reset; unlike success it does not stamp ``last_used_at``."""
    record.failed_attempts = 0
    record.locked_until = None
    record.touch(now)


__all__: list[str] = [
    "LockoutPolicy",
    "DEFAULT_POLICY",
    "is_locked",
    "record_failure",
    "record_success",
    "clear_lockout",
]
