"""Supported two-factor methods and their presentation metadata."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from .exceptions import UnknownMethodError


class TwoFactorMethod(str, Enum):
    """Closed set of verification methods.

    Declaration order is the order the manager walks when no method is given.
    """

    AUTHENTICATOR = "authenticator"
    MAILBOX = "mailbox"
    BOT_CHANNEL = "bot_channel"

    @classmethod
    def parse(cls, value: str | TwoFactorMethod) -> TwoFactorMethod:
        """Coerce a method key, raising UnknownMethodError for anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownMethodError(value) from None


@dataclass(frozen=True)
class MethodInfo:
    """Display data for one available method."""

    method: TwoFactorMethod
    name: str
    description: str
    icon: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["method"] = self.method.value
        return data


METHOD_INFO: dict[TwoFactorMethod, MethodInfo] = {
    TwoFactorMethod.AUTHENTICATOR: MethodInfo(
        method=TwoFactorMethod.AUTHENTICATOR,
        name="Authenticator app",
        description="Use an authenticator app to generate verification codes",
        icon="smartphone",
    ),
    TwoFactorMethod.MAILBOX: MethodInfo(
        method=TwoFactorMethod.MAILBOX,
        name="Email code",
        description="Receive two-factor verification codes by email",
        icon="mail",
    ),
    TwoFactorMethod.BOT_CHANNEL: MethodInfo(
        method=TwoFactorMethod.BOT_CHANNEL,
        name="Telegram bot",
        description="Receive verification codes from the Telegram bot",
        icon="message-circle",
    ),
}


__all__: list[str] = ["TwoFactorMethod", "MethodInfo", "METHOD_INFO"]
