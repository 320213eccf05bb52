"""Telegram Bot API transport for the bot channel."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from ..delivery import DeliveryChannel, DeliveryRecord, OutboundMessage
from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from ..config import BotSettings

logger = logging.getLogger(__name__)


class TelegramBotSender:
    """
    Sends chat messages through the Bot API ``sendMessage`` method.

    A shared ``httpx.AsyncClient`` may be injected; otherwise a short-lived
    client is opened per message.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        if not bot_token:
            raise ConfigurationError("Telegram bot token is required.")
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: BotSettings,
        client: httpx.AsyncClient | None = None,
    ) -> TelegramBotSender:
        return cls(
            settings.bot_token,
            api_base=settings.api_base,
            timeout=settings.timeout,
            client=client,
        )

    @property
    def send_message_url(self) -> str:
        return f"{self.api_base}/bot{self.bot_token}/sendMessage"

    def build_payload(self, chat_id: str, message: OutboundMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": message.body_text}
        if message.parse_mode:
            payload["parse_mode"] = message.parse_mode
        return payload

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.send_message_url, json=payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.send_message_url, json=payload)

    async def send(self, recipient: str, message: OutboundMessage) -> DeliveryRecord:
        try:
            response = await self._post(self.build_payload(recipient, message))
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Bot API HTTP error: %s", e.response.status_code)
            return DeliveryRecord.failed(
                recipient, DeliveryChannel.BOT, error=f"HTTP {e.response.status_code}"
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to send bot message to chat %s: %s", recipient, e)
            return DeliveryRecord.failed(recipient, DeliveryChannel.BOT, error=str(e))

        if not body.get("ok"):
            description = body.get("description", "unknown error")
            logger.error("Bot API rejected message to chat %s: %s", recipient, description)
            return DeliveryRecord.failed(recipient, DeliveryChannel.BOT, error=description)

        message_id = (body.get("result") or {}).get("message_id")
        logger.info("Bot message sent to chat %s", recipient)
        return DeliveryRecord.sent(
            recipient,
            DeliveryChannel.BOT,
            provider_id=str(message_id) if message_id is not None else None,
        )


__all__: list[str] = ["TelegramBotSender"]
