"""Response shapes returned to the (external) web layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from .methods import MethodInfo, TwoFactorMethod


@dataclass(frozen=True)
class AuthenticatorSetup:
    """Returned by authenticator setup.

    Attributes:
        secret: Base32 TOTP secret.
        setup_uri: otpauth:// provisioning URI.
        qr_code: SVG QR code of ``setup_uri`` as a data URI.
        manual_entry_key: Secret in groups of 4 for typing.
        backup_codes: Fresh batch, shown once.
    """

    secret: str
    setup_uri: str
    qr_code: str
    manual_entry_key: str
    backup_codes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MailboxSetup:
    mailbox_address: str | None
    backup_codes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BotChannelSetup:
    """Returned by bot-channel setup.

    The user opens ``deep_link`` (or sends ``linking_token`` to the bot) to
    bind their chat to the account.
    """

    deep_link: str
    linking_token: str
    bot_username: str
    backup_codes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


SetupResponse = AuthenticatorSetup | MailboxSetup | BotChannelSetup


@dataclass(frozen=True)
class SetupInstructions:
    method: TwoFactorMethod
    title: str
    steps: list[str]
    requirements: list[str]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["method"] = self.method.value
        return data


class MethodStatus(BaseModel):
    """Status of one enabled method."""

    model_config = ConfigDict(frozen=True)

    method: TwoFactorMethod
    name: str
    is_setup_complete: bool
    last_used_at: datetime | None
    backup_codes_remaining: int


class AvailableMethod(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: TwoFactorMethod
    name: str
    description: str
    icon: str

    @classmethod
    def from_info(cls, info: MethodInfo) -> AvailableMethod:
        return cls(
            method=info.method,
            name=info.name,
            description=info.description,
            icon=info.icon,
        )


class TwoFactorStatus(BaseModel):
    """Aggregated 2FA status for one user."""

    model_config = ConfigDict(frozen=True)

    is_enabled: bool
    enabled_methods: list[MethodStatus]
    available_methods: list[AvailableMethod]


__all__: list[str] = [
    "AuthenticatorSetup",
    "MailboxSetup",
    "BotChannelSetup",
    "SetupResponse",
    "SetupInstructions",
    "MethodStatus",
    "AvailableMethod",
    "TwoFactorStatus",
]
