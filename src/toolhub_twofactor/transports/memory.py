"""In-memory sender for test assertions."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..delivery import DeliveryChannel, DeliveryRecord, OutboundMessage

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    """Record of a sent message for test assertions."""

    recipient: str
    message: OutboundMessage


class InMemorySender:
    """
    Test double (Fake) that stores messages in a list for assertions.

    Set ``fail = True`` to simulate a transport outage.
    """

    def __init__(self, channel: DeliveryChannel = DeliveryChannel.EMAIL) -> None:
        self.channel = channel
        self.sent_messages: list[SentMessage] = []
        self.fail = False

    async def send(self, recipient: str, message: OutboundMessage) -> DeliveryRecord:
        if self.fail:
            logger.debug("Simulated delivery failure to %s", recipient)
            return DeliveryRecord.failed(recipient, self.channel, error="simulated failure")
        self.sent_messages.append(SentMessage(recipient, message))
        return DeliveryRecord.sent(recipient, self.channel, provider_id="test-id")

    def messages_to(self, recipient: str) -> list[OutboundMessage]:
        return [m.message for m in self.sent_messages if m.recipient == recipient]

    def assert_sent(self, recipient: str, count: int = 1) -> None:
        """Helper for test assertions."""
        matches = self.messages_to(recipient)
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {recipient} via {self.channel.value}, "
                f"but found {len(matches)}."
            )

    def clear(self) -> None:
        """Clear all sent messages."""
        self.sent_messages.clear()


__all__: list[str] = ["SentMessage", "InMemorySender"]
