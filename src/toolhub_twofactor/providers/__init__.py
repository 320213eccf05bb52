"""Verification method providers."""

from __future__ import annotations

from .authenticator import AuthenticatorProvider
from .base import BaseProvider, DeliveredCodeProvider
from .bot_channel import BotChannelProvider
from .mailbox import MailboxProvider

__all__: list[str] = [
    "BaseProvider",
    "DeliveredCodeProvider",
    "AuthenticatorProvider",
    "MailboxProvider",
    "BotChannelProvider",
]
