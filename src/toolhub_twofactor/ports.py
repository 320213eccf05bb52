"""Two-factor ports (protocols).

Defines the capabilities the core depends on: record persistence, the
ephemeral code store, outbound message transports, per-key locking, audit
sinks and the provider contract itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .audit import TwoFactorAuditEvent
    from .delivery import DeliveryRecord, OutboundMessage
    from .keys import EphemeralKey
    from .locking import ResourceIdentifier
    from .methods import TwoFactorMethod
    from .record import SecurityRecord
    from .responses import SetupInstructions, SetupResponse
    from .user import TwoFactorUser


@runtime_checkable
class ISecurityRecordRepository(Protocol):
    """Protocol for security record persistence.

    Implementations must keep at most one record per ``(user_id, method)``.
    """

    async def get(
        self, user_id: str, method: TwoFactorMethod
    ) -> SecurityRecord | None:
        """Load the record for a user and method.

        Args:
            user_id: User identifier.
            method: Two-factor method.

        Returns:
            The record, or None if the method was never set up.
        """
        ...

    async def list_for_user(self, user_id: str) -> list[SecurityRecord]:
        """Load every record of a user, in method declaration order."""
        ...

    async def save(self, record: SecurityRecord) -> None:
        """Insert or replace the record for ``record.key``."""
        ...


@runtime_checkable
class IEphemeralCodeStore(Protocol):
    """Protocol for the short-lived key/value store.

    Holds delivered codes, resend cool-down markers and linking tokens.
    Entries disappear on their own when their TTL elapses.
    """

    async def get(self, key: EphemeralKey) -> str | None:
        """Return the live value for ``key`` or None if missing/expired."""
        ...

    async def set(self, key: EphemeralKey, value: str, ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds, replacing any previous entry."""
        ...

    async def add(self, key: EphemeralKey, value: str, ttl: int) -> bool:
        """Store only if no live entry exists.

        Returns:
            True if the entry was created, False if one already existed.
        """
        ...

    async def delete(self, key: EphemeralKey) -> None:
        ...


@runtime_checkable
class IMessageSender(Protocol):
    """Outbound transport for code messages (mailbox or bot chat).

    Implementations must not raise for delivery problems; they return a
    failed :class:`DeliveryRecord` instead.
    """

    async def send(self, recipient: str, message: OutboundMessage) -> DeliveryRecord:
        ...


@runtime_checkable
class ILockStrategy(Protocol):
    """Lock strategy used to serialize work per (user, method)."""

    async def acquire(
        self,
        resource: ResourceIdentifier,
        *,
        timeout: float = 5.0,
        ttl: float = 15.0,
    ) -> str:
        """Acquire the lock and return a release token.

        Raises:
            LockAcquisitionError: If the lock is not acquired within timeout.
        """
        ...

    async def release(self, resource: ResourceIdentifier, token: str) -> None:
        ...


@runtime_checkable
class IAuditSink(Protocol):
    """Destination for 2FA audit events."""

    async def record(self, event: TwoFactorAuditEvent) -> None:
        ...


@runtime_checkable
class ITwoFactorProvider(Protocol):
    """Contract implemented by every verification method.

    Verification and delivery report expected outcomes as booleans; only
    misconfiguration raises.
    """

    method: TwoFactorMethod

    async def setup(self, user: TwoFactorUser) -> SetupResponse:
        """Create or reset the user's record in the disabled state."""
        ...

    async def deliver_code(self, user: TwoFactorUser, record: SecurityRecord) -> bool:
        """Send a fresh code to the user, if the method delivers codes."""
        ...

    async def resend(self, user: TwoFactorUser, record: SecurityRecord) -> bool:
        """Rate-limited ``deliver_code``."""
        ...

    async def verify_code(self, record: SecurityRecord, candidate: str) -> bool:
        """Verify a code and apply the lockout state machine to ``record``."""
        ...

    def instructions(self) -> SetupInstructions:
        ...

    def is_available(self) -> bool:
        ...


__all__: list[str] = [
    "ISecurityRecordRepository",
    "IEphemeralCodeStore",
    "IMessageSender",
    "ILockStrategy",
    "IAuditSink",
    "ITwoFactorProvider",
]
