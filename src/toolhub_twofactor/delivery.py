"""Delivery tracking types for outbound code messages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class DeliveryChannel(Enum):
    """Outbound channels used by delivered-code providers."""

    EMAIL = "email"
    BOT = "bot"


class DeliveryStatus(Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryRecord:
    """Immutable record of one delivery attempt."""

    recipient: str
    channel: DeliveryChannel
    status: DeliveryStatus
    provider_id: str | None = None
    sent_at: datetime | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.sent_at is None:
            object.__setattr__(self, "sent_at", datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.SENT

    @classmethod
    def sent(
        cls,
        recipient: str,
        channel: DeliveryChannel,
        provider_id: str | None = None,
    ) -> DeliveryRecord:
        """Create a successful delivery record."""
        return cls(
            recipient=recipient,
            channel=channel,
            status=DeliveryStatus.SENT,
            provider_id=provider_id,
        )

    @classmethod
    def failed(
        cls,
        recipient: str,
        channel: DeliveryChannel,
        error: str | None = None,
    ) -> DeliveryRecord:
        """Create a failed delivery record."""
        return cls(
            recipient=recipient,
            channel=channel,
            status=DeliveryStatus.FAILED,
            error=error,
        )


@dataclass(frozen=True)
class OutboundMessage:
    """Rendered message ready for a transport."""

    body_text: str
    subject: str | None = None
    parse_mode: str | None = None


__all__: list[str] = [
    "DeliveryChannel",
    "DeliveryStatus",
    "DeliveryRecord",
    "OutboundMessage",
]
