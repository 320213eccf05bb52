"""Audit events for two-factor operations.

Every security-relevant transition (setup, enable, disable, verification
outcome, lockout, backup-code use, delivery, bot linking) is recorded as a
:class:`TwoFactorAuditEvent` on the configured :class:`IAuditSink`.
Events never carry codes, secrets or tokens.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class TwoFactorEventType(Enum):
    """Event naming follows the pattern: `twofactor.<resource>.<action>`"""

    SETUP_STARTED = "twofactor.setup.started"
    ENABLED = "twofactor.method.enabled"
    DISABLED = "twofactor.method.disabled"
    VERIFIED = "twofactor.code.verified"
    VERIFICATION_FAILED = "twofactor.code.failed"
    LOCKED = "twofactor.method.locked"
    UNLOCKED = "twofactor.method.unlocked"
    BACKUP_CODE_USED = "twofactor.backup.used"
    BACKUP_CODES_REGENERATED = "twofactor.backup.regenerated"
    CODE_SENT = "twofactor.code.sent"
    DELIVERY_FAILED = "twofactor.code.delivery_failed"
    CHANNEL_LINKED = "twofactor.channel.linked"


@dataclass(frozen=True)
class TwoFactorAuditEvent:
    """Two-factor audit event.

    Attributes:
        event_type: What happened.
        user_id: The user the event concerns, if known.
        method: Method key, if the event is method-scoped.
        timestamp: When the event occurred (UTC).
        success: Whether the operation was successful.
        metadata: Additional event-specific data.
    """

    event_type: TwoFactorEventType
    user_id: str | None = None
    method: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "user_id": self.user_id,
            "method": self.method,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "metadata": self.metadata,
        }


class InMemoryAuditSink:
    """In-memory audit sink for testing and development.

    Example:
        ```python
        sink = InMemoryAuditSink()
        manager = TwoFactorManager(..., audit_sink=sink)
        await manager.verify_user_code(user, "123456")
        events = await sink.get_events(user.id)
        ```
    """

    def __init__(self) -> None:
        self._events: list[TwoFactorAuditEvent] = []
        self._by_user: dict[str, list[int]] = defaultdict(list)

    async def record(self, event: TwoFactorAuditEvent) -> None:
        index = len(self._events)
        self._events.append(event)
        if event.user_id:
            self._by_user[event.user_id].append(index)

    async def get_events(
        self,
        user_id: str,
        *,
        event_types: list[TwoFactorEventType] | None = None,
        limit: int = 100,
    ) -> list[TwoFactorAuditEvent]:
        """Get audit events for a user, most recent first."""
        results: list[TwoFactorAuditEvent] = []
        for idx in reversed(self._by_user.get(user_id, [])):
            event = self._events[idx]
            if event_types and event.event_type not in event_types:
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    def clear(self) -> None:
        self._events.clear()
        self._by_user.clear()

    def count(self) -> int:
        return len(self._events)

    def count_by_type(self, event_type: TwoFactorEventType) -> int:
        return sum(1 for event in self._events if event.event_type is event_type)


class LoggingAuditSink:
    """Writes each event as one JSON line to a logger.

    Suitable for shipping the audit trail through the application's log
    pipeline.
    """

    def __init__(self, logger_name: str = "toolhub_twofactor.audit") -> None:
        self._logger = logging.getLogger(logger_name)

    async def record(self, event: TwoFactorAuditEvent) -> None:
        level = logging.INFO if event.success else logging.WARNING
        self._logger.log(level, json.dumps(event.to_dict(), sort_keys=True))


__all__: list[str] = [
    "TwoFactorEventType",
    "TwoFactorAuditEvent",
    "InMemoryAuditSink",
    "LoggingAuditSink",
]
