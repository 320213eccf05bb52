"""Tests for the failed-attempt / lockout state machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from toolhub_twofactor import lockout
from toolhub_twofactor.lockout import LockoutPolicy
from toolhub_twofactor.methods import TwoFactorMethod
from toolhub_twofactor.record import SecurityRecord

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def record() -> SecurityRecord:
    return SecurityRecord(user_id="user-1", method=TwoFactorMethod.MAILBOX)


@pytest.fixture
def policy() -> LockoutPolicy:
    return LockoutPolicy(max_failed_attempts=3, lockout_duration=timedelta(minutes=15))


class TestRecordFailure:
    def test_failures_below_threshold_do_not_lock(
        self, record: SecurityRecord, policy: LockoutPolicy
    ) -> None:
        assert lockout.record_failure(record, policy, NOW) is False
        assert lockout.record_failure(record, policy, NOW) is False

        assert record.failed_attempts == 2
        assert record.locked_until is None
        assert not lockout.is_locked(record, NOW)

    def test_third_failure_locks_for_fifteen_minutes(
        self, record: SecurityRecord, policy: LockoutPolicy
    ) -> None:
        for _ in range(2):
            lockout.record_failure(record, policy, NOW)

        assert lockout.record_failure(record, policy, NOW) is True
        assert record.locked_until == NOW + timedelta(minutes=15)
        assert lockout.is_locked(record, NOW + timedelta(minutes=14, seconds=59))

    def test_failure_while_locked_does_not_extend_lock(
        self, record: SecurityRecord, policy: LockoutPolicy
    ) -> None:
        for _ in range(3):
            lockout.record_failure(record, policy, NOW)
        locked_until = record.locked_until

        later = NOW + timedelta(minutes=5)
        assert lockout.record_failure(record, policy, later) is False

        assert record.failed_attempts == 4
        assert record.locked_until == locked_until

    def test_failure_after_lock_expiry_relocks(
        self, record: SecurityRecord, policy: LockoutPolicy
    ) -> None:
        for _ in range(3):
            lockout.record_failure(record, policy, NOW)

        after_expiry = NOW + timedelta(minutes=16)
        assert not lockout.is_locked(record, after_expiry)
        # Counter survived the lock, so the next failure locks again.
        assert lockout.record_failure(record, policy, after_expiry) is True
        assert record.locked_until == after_expiry + timedelta(minutes=15)


class TestReset:
    def test_success_resets_counter_and_stamps_last_used(
        self, record: SecurityRecord, policy: LockoutPolicy
    ) -> None:
        for _ in range(3):
            lockout.record_failure(record, policy, NOW)

        lockout.record_success(record, NOW)

        assert record.failed_attempts == 0
        assert record.locked_until is None
        assert record.last_used_at == NOW

    def test_clear_lockout_does_not_stamp_last_used(
        self, record: SecurityRecord, policy: LockoutPolicy
    ) -> None:
        for _ in range(3):
            lockout.record_failure(record, policy, NOW)

        lockout.clear_lockout(record, NOW)

        assert record.failed_attempts == 0
        assert not lockout.is_locked(record, NOW)
        assert record.last_used_at is None

    def test_lock_expires_lazily(self, record: SecurityRecord) -> None:
        record.locked_until = NOW
        assert not lockout.is_locked(record, NOW)
        assert lockout.is_locked(record, NOW - timedelta(seconds=1))
