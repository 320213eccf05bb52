"""Security record: the persisted per-(user, method) 2FA state."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import NotSetupError
from .methods import TwoFactorMethod

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BackupCode(BaseModel):
    """One recovery code of a batch; ``used_at`` is the tombstone."""

    value: str
    used_at: datetime | None = None

    @property
    def is_used(self) -> bool:
        return self.used_at is not None


class SecurityRecord(BaseModel):
    """Per user, per method 2FA state.

    At most one record exists for a ``(user_id, method)`` pair. Counter and
    lockout fields are only changed through :mod:`toolhub_twofactor.lockout`,
    backup codes only through :mod:`toolhub_twofactor.backup_codes`.
    """

    model_config = ConfigDict(use_enum_values=False)

    user_id: str
    method: TwoFactorMethod
    secret: str | None = None
    channel_binding: str | None = None
    is_enabled: bool = False
    backup_codes: list[BackupCode] = Field(default_factory=list)
    failed_attempts: int = Field(default=0, ge=0)
    locked_until: datetime | None = None
    last_used_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> tuple[str, TwoFactorMethod]:
        return (self.user_id, self.method)

    @property
    def is_setup_complete(self) -> bool:
        """Whether the method has the material it needs to verify codes."""
        if self.method is TwoFactorMethod.AUTHENTICATOR:
            return bool(self.secret)
        if self.method is TwoFactorMethod.BOT_CHANNEL:
            return bool(self.channel_binding)
        return True

    @property
    def available_backup_codes(self) -> list[str]:
        return [code.value for code in self.backup_codes if not code.is_used]

    def touch(self, now: datetime | None = None) -> None:
        self.updated_at = now or utcnow()

    def enable(self, now: datetime | None = None) -> None:
        if not self.is_setup_complete:
            raise NotSetupError(
                self.method.value,
                f"2FA method {self.method.value!r} cannot be enabled before setup "
                "is complete",
            )
        self.is_enabled = True
        self.touch(now)

    def disable(self, now: datetime | None = None) -> None:
        self.is_enabled = False
        self.touch(now)

    def reset_for_setup(
        self,
        *,
        secret: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Return the record to the freshly-created, disabled state."""
        self.is_enabled = False
        self.secret = secret
        self.channel_binding = None
        self.failed_attempts = 0
        self.locked_until = None
        self.touch(now)

    def bind_channel(self, binding: str, now: datetime | None = None) -> None:
        self.channel_binding = binding
        self.touch(now)


__all__: list[str] = ["BackupCode", "SecurityRecord", "Clock", "utcnow"]
