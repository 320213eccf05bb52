"""Configuration objects for the two-factor package."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .lockout import LockoutPolicy


@dataclass(frozen=True)
class TwoFactorConfig:
    """Two-factor configuration.

    Attributes:
        issuer: Application name shown in authenticator apps and messages.
        code_digits: Number of digits in delivered codes.
        code_ttl_seconds: Lifetime of a delivered code.
        resend_cooldown_seconds: Minimum seconds between resends.
        linking_token_ttl_seconds: Lifetime of a bot linking token.
        totp_window_steps: Accepted TOTP steps either side of now.
        totp_step_seconds: TOTP time step.
        secret_length: Length of generated base-32 TOTP secrets.
        backup_code_count: Backup codes per batch.
        backup_code_length: Characters per backup code.
        max_failed_attempts: Consecutive failures before lockout.
        lockout_minutes: Lockout duration.
        transport_timeout: Upper bound for one outbound delivery, seconds.
        lock_timeout: Seconds to wait for the per-(user, method) lock.
        lock_ttl: Expiry of a held per-(user, method) lock.
    """

    issuer: str = "ToolHub"
    code_digits: int = 6
    code_ttl_seconds: int = 300  # 5 minutes
    resend_cooldown_seconds: int = 60
    linking_token_ttl_seconds: int = 600  # 10 minutes
    totp_window_steps: int = 2
    totp_step_seconds: int = 30
    secret_length: int = 32
    backup_code_count: int = 8
    backup_code_length: int = 8
    max_failed_attempts: int = 3
    lockout_minutes: int = 15
    transport_timeout: float = 10.0
    lock_timeout: float = 5.0
    lock_ttl: float = 15.0

    @property
    def lockout_policy(self) -> LockoutPolicy:
        return LockoutPolicy(
            max_failed_attempts=self.max_failed_attempts,
            lockout_duration=timedelta(minutes=self.lockout_minutes),
        )


@dataclass(frozen=True)
class SmtpSettings:
    """Outbound SMTP settings for the mailbox transport."""

    host: str
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    timeout: float = 10.0
    from_email: str | None = None


@dataclass(frozen=True)
class BotSettings:
    """Chat-bot platform settings for the bot-channel provider.

    Attributes:
        bot_token: Bot API token.
        bot_username: Public bot username, used for deep links.
        api_base: Bot API base URL.
        webhook_secret: Expected value of the platform's secret-token header.
        timeout: HTTP timeout for Bot API calls.
    """

    bot_token: str = ""
    bot_username: str = ""
    api_base: str = "https://api.telegram.org"
    webhook_secret: str | None = None
    timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.bot_username)


__all__: list[str] = ["TwoFactorConfig", "SmtpSettings", "BotSettings"]
