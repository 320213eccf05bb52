"""Bot-channel provider: codes delivered through a chat bot.

Linking flow:

1. ``setup`` issues a linking token (``SETUP_`` + 16 hex chars, 10 minutes)
   and a deep link ``https://t.me/<bot>?start=<token>``.
2. The user opens the link; the bot platform posts ``/start <token>`` to the
   webhook.
3. ``confirm_link`` binds the chat to the user's record. The record stays
   disabled until the user confirms a delivered code through ``enable``.

Only the most recently issued token of a user is valid, and a successful
link spends it. A bound record can only be re-confirmed from the same chat.
"""

from __future__ import annotations

import hmac
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..codes import LINKING_TOKEN_PATTERN, LINKING_TOKEN_PREFIX, generate_linking_token
from ..config import BotSettings
from ..delivery import OutboundMessage
from ..exceptions import ConfigurationError
from ..keys import linking_token_key, pending_link_key
from ..methods import TwoFactorMethod
from ..record import utcnow
from ..responses import BotChannelSetup, SetupInstructions
from .base import DeliveredCodeProvider

if TYPE_CHECKING:
    from ..config import TwoFactorConfig
    from ..ports import IEphemeralCodeStore, IMessageSender, ISecurityRecordRepository
    from ..record import Clock, SecurityRecord
    from ..user import TwoFactorUser

logger = logging.getLogger(__name__)

START_COMMAND = "/start"


class BotChannelProvider(DeliveredCodeProvider):
    """Numeric codes delivered to a linked bot chat."""

    method = TwoFactorMethod.BOT_CHANNEL

    def __init__(
        self,
        *,
        repository: ISecurityRecordRepository,
        code_store: IEphemeralCodeStore,
        sender: IMessageSender | None,
        settings: BotSettings | None = None,
        config: TwoFactorConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(
            repository=repository,
            code_store=code_store,
            sender=sender,
            config=config,
            clock=clock,
        )
        self.settings = settings or BotSettings()

    def is_available(self) -> bool:
        return self.sender is not None and self.settings.is_configured

    def deep_link(self, token: str) -> str:
        return f"https://t.me/{self.settings.bot_username}?start={token}"

    # ── Setup ────────────────────────────────────────────────────

    async def setup(self, user: TwoFactorUser) -> BotChannelSetup:
        if not self.settings.is_configured:
            raise ConfigurationError("Bot channel requires bot_token and bot_username")

        _, codes = await self._prepare_record(user)

        previous = await self.code_store.get(pending_link_key(user.id))
        if previous is not None:
            await self.code_store.delete(linking_token_key(previous))

        token = generate_linking_token()
        ttl = self.config.linking_token_ttl_seconds
        await self.code_store.set(linking_token_key(token), user.id, ttl)
        await self.code_store.set(pending_link_key(user.id), token, ttl)

        return BotChannelSetup(
            deep_link=self.deep_link(token),
            linking_token=token,
            bot_username=self.settings.bot_username,
            backup_codes=codes,
        )

    # ── Linking ──────────────────────────────────────────────────

    async def resolve_link_token(self, token: str) -> str | None:
        """Return the user id a live, current linking token belongs to."""
        if not LINKING_TOKEN_PATTERN.match(token):
            return None
        user_id = await self.code_store.get(linking_token_key(token))
        if user_id is None:
            return None
        current = await self.code_store.get(pending_link_key(user_id))
        if current is None or not hmac.compare_digest(current, token):
            return None
        return user_id

    async def confirm_link(self, token: str, chat_id: str) -> SecurityRecord | None:
        """Bind ``chat_id`` to the record the token was issued for.

        The token is single use: it is spent once the record is bound to
        ``chat_id``.

        Returns:
            The bound record, or None when the token is invalid, expired or
            superseded, or the record is already bound to another chat.
        """
        user_id = await self.resolve_link_token(token)
        if user_id is None:
            logger.info("Bot linking refused: unknown or expired token")
            return None

        record = await self.repository.get(user_id, self.method)
        if record is None:
            return None

        if record.channel_binding:
            if record.channel_binding == chat_id:
                await self._spend_link_token(token, user_id)
                return record
            logger.warning(
                "Bot linking refused for user %s: already bound to another chat",
                user_id,
            )
            return None

        record.bind_channel(chat_id, self.clock())
        await self.repository.save(record)
        await self._spend_link_token(token, user_id)
        logger.info("Bot chat linked for user %s", user_id)
        return record

    async def _spend_link_token(self, token: str, user_id: str) -> None:
        await self.code_store.delete(linking_token_key(token))
        await self.code_store.delete(pending_link_key(user_id))

    @staticmethod
    def parse_update(update: Mapping[str, Any]) -> tuple[str, str] | None:
        """Extract ``(chat_id, token)`` from a webhook payload.

        Accepts a raw platform update (``message.chat.id``/``message.text``)
        or a flat ``{chat_id, text}`` mapping. Returns None for messages that
        are not linking attempts.
        """
        message = update.get("message")
        if isinstance(message, Mapping):
            chat_id = (message.get("chat") or {}).get("id")
            text = message.get("text") or ""
        else:
            chat_id = update.get("chat_id")
            text = update.get("text") or ""

        if chat_id is None:
            return None

        text = str(text).strip()
        if text.startswith(START_COMMAND):
            text = text[len(START_COMMAND) :].strip()
        if not text.startswith(LINKING_TOKEN_PREFIX):
            return None
        return str(chat_id), text

    async def notify_link_result(
        self, chat_id: str, record: SecurityRecord | None
    ) -> bool:
        if record is not None:
            message = OutboundMessage(
                body_text=(
                    "🎉 Hello!\n\n"
                    f"Your Telegram account is now linked to {self.config.issuer}.\n"
                    "You will receive two-factor authentication codes here."
                ),
            )
        else:
            message = OutboundMessage(
                body_text="❌ Invalid setup token. Please start the setup again.",
            )
        return await self._send(chat_id, message)

    def verify_webhook_secret(self, header_value: str | None) -> bool:
        """Check the platform's secret-token header in constant time.

        Always true when no webhook secret is configured.
        """
        expected = self.settings.webhook_secret
        if not expected:
            return True
        if header_value is None:
            return False
        return hmac.compare_digest(expected.encode(), header_value.encode())

    # ── Delivery ─────────────────────────────────────────────────

    def _recipient(self, user: TwoFactorUser, record: SecurityRecord) -> str | None:
        return record.channel_binding

    def _render(self, user: TwoFactorUser, code: str) -> OutboundMessage:
        minutes = self.config.code_ttl_seconds // 60
        return OutboundMessage(
            body_text=(
                f"🔐 Two-factor authentication code: `{code}`\n\n"
                f"The code is valid for {minutes} minutes.\n"
                "If you did not request this code, please ignore it."
            ),
            parse_mode="Markdown",
        )

    def instructions(self) -> SetupInstructions:
        return SetupInstructions(
            method=self.method,
            title="Telegram bot",
            steps=[
                f"Open Telegram and find the bot @{self.settings.bot_username}",
                "Send the /start command with the setup token",
                "Confirm the link to your account",
                "You will receive a code in Telegram at every sign-in",
            ],
            requirements=[
                "A Telegram account",
                "The mobile or desktop Telegram app",
                "Internet access",
            ],
        )


__all__: list[str] = ["BotChannelProvider", "START_COMMAND"]
