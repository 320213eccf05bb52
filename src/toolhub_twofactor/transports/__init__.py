"""Outbound message transports for delivered codes."""

from __future__ import annotations

from .memory import InMemorySender, SentMessage
from .smtp import SmtpMailSender
from .telegram import TelegramBotSender

__all__: list[str] = [
    "InMemorySender",
    "SentMessage",
    "SmtpMailSender",
    "TelegramBotSender",
]
