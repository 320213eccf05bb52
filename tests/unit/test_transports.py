"""Tests for the SMTP and Bot API transports."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from toolhub_twofactor import BotSettings, ConfigurationError, SmtpSettings
from toolhub_twofactor.delivery import DeliveryChannel, DeliveryStatus, OutboundMessage
from toolhub_twofactor.transports import SmtpMailSender, TelegramBotSender

MESSAGE = OutboundMessage(body_text="Your code is 123456", subject="Code")


def smtp_client() -> AsyncMock:
    client = AsyncMock()
    client.__aenter__.return_value = client
    client.__aexit__.return_value = None
    return client


def bot_response(status_code: int, body: dict) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=body,
        request=httpx.Request("POST", "https://api.telegram.org/botX/sendMessage"),
    )


class TestSmtpMailSender:
    def test_requires_from_email(self) -> None:
        with pytest.raises(ConfigurationError):
            SmtpMailSender(host="smtp.example.com")

    def test_from_settings(self) -> None:
        sender = SmtpMailSender.from_settings(
            SmtpSettings(host="smtp.example.com", port=2525, from_email="no-reply@example.com")
        )
        assert sender.port == 2525
        assert sender.from_email == "no-reply@example.com"

    def test_build_message(self) -> None:
        sender = SmtpMailSender(host="smtp.example.com", from_email="no-reply@example.com")
        message = sender.build_message("ada@example.com", MESSAGE)

        assert message["To"] == "ada@example.com"
        assert message["From"] == "no-reply@example.com"
        assert message["Subject"] == "Code"
        assert "123456" in message.get_content()

    @pytest.mark.asyncio
    async def test_send(self) -> None:
        sender = SmtpMailSender(
            host="smtp.example.com",
            username="user",
            password="secret",
            from_email="no-reply@example.com",
        )
        client = smtp_client()

        with patch("aiosmtplib.SMTP", return_value=client) as smtp:
            result = await sender.send("ada@example.com", MESSAGE)

        assert result.ok
        assert result.channel is DeliveryChannel.EMAIL
        smtp.assert_called_once_with(hostname="smtp.example.com", port=587, timeout=10.0)
        client.starttls.assert_awaited_once()
        client.login.assert_awaited_once_with("user", "secret")
        client.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_without_tls_or_login(self) -> None:
        sender = SmtpMailSender(
            host="localhost", port=25, use_tls=False, from_email="no-reply@example.com"
        )
        client = smtp_client()

        with patch("aiosmtplib.SMTP", return_value=client):
            result = await sender.send("ada@example.com", MESSAGE)

        assert result.ok
        client.starttls.assert_not_awaited()
        client.login.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_smtp_error_is_a_failed_record(self) -> None:
        sender = SmtpMailSender(host="smtp.example.com", from_email="no-reply@example.com")
        client = smtp_client()
        client.send_message.side_effect = aiosmtplib.SMTPException("mailbox full")

        with patch("aiosmtplib.SMTP", return_value=client):
            result = await sender.send("ada@example.com", MESSAGE)

        assert result.status is DeliveryStatus.FAILED
        assert "mailbox full" in (result.error or "")

    @pytest.mark.asyncio
    async def test_connection_refused_is_a_failed_record(self) -> None:
        sender = SmtpMailSender(host="smtp.example.com", from_email="no-reply@example.com")
        client = smtp_client()
        client.__aenter__.side_effect = ConnectionRefusedError("refused")

        with patch("aiosmtplib.SMTP", return_value=client):
            result = await sender.send("ada@example.com", MESSAGE)

        assert not result.ok


class TestTelegramBotSender:
    def test_requires_token(self) -> None:
        with pytest.raises(ConfigurationError):
            TelegramBotSender("")

    def test_from_settings(self) -> None:
        sender = TelegramBotSender.from_settings(
            BotSettings(bot_token="123:abc", api_base="https://bot.example.com/")
        )
        assert sender.send_message_url == "https://bot.example.com/bot123:abc/sendMessage"

    def test_payload(self) -> None:
        sender = TelegramBotSender("123:abc")
        payload = sender.build_payload(
            "42", OutboundMessage(body_text="`123456`", parse_mode="Markdown")
        )
        assert payload == {"chat_id": "42", "text": "`123456`", "parse_mode": "Markdown"}
        assert "parse_mode" not in sender.build_payload("42", MESSAGE)

    @pytest.mark.asyncio
    async def test_send(self) -> None:
        client = MagicMock(spec=httpx.AsyncClient)
        client.post = AsyncMock(
            return_value=bot_response(200, {"ok": True, "result": {"message_id": 77}})
        )
        sender = TelegramBotSender("123:abc", client=client)

        result = await sender.send("42", MESSAGE)

        assert result.ok
        assert result.channel is DeliveryChannel.BOT
        assert result.provider_id == "77"
        client.post.assert_awaited_once_with(
            "https://api.telegram.org/bot123:abc/sendMessage",
            json={"chat_id": "42", "text": MESSAGE.body_text},
        )

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        client = MagicMock(spec=httpx.AsyncClient)
        client.post = AsyncMock(
            return_value=bot_response(403, {"ok": False, "description": "Forbidden"})
        )
        sender = TelegramBotSender("123:abc", client=client)

        result = await sender.send("42", MESSAGE)

        assert not result.ok
        assert result.error == "HTTP 403"

    @pytest.mark.asyncio
    async def test_rejected_by_api(self) -> None:
        client = MagicMock(spec=httpx.AsyncClient)
        client.post = AsyncMock(
            return_value=bot_response(200, {"ok": False, "description": "chat not found"})
        )
        sender = TelegramBotSender("123:abc", client=client)

        result = await sender.send("42", MESSAGE)

        assert not result.ok
        assert result.error == "chat not found"

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        client = MagicMock(spec=httpx.AsyncClient)
        client.post = AsyncMock(side_effect=httpx.ConnectError("no route"))
        sender = TelegramBotSender("123:abc", client=client)

        result = await sender.send("42", MESSAGE)

        assert result.status is DeliveryStatus.FAILED
        assert "no route" in (result.error or "")
