"""Test configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from toolhub_twofactor import (
    AuthenticatorProvider,
    BotChannelProvider,
    BotSettings,
    InMemoryAuditSink,
    InMemoryEphemeralCodeStore,
    InMemoryLockStrategy,
    InMemorySecurityRecordRepository,
    MailboxProvider,
    TwoFactorConfig,
    TwoFactorManager,
    TwoFactorUser,
)
from toolhub_twofactor.delivery import DeliveryChannel
from toolhub_twofactor.transports import InMemorySender


class FakeClock:
    """Settable clock shared by records (UTC datetimes) and the code store."""

    def __init__(self, start: datetime | None = None) -> None:
        self.origin = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        self.current = self.origin

    def __call__(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return (self.current - self.origin).total_seconds()

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> TwoFactorConfig:
    return TwoFactorConfig(issuer="ToolHub", transport_timeout=0.5, lock_timeout=0.5)


@pytest.fixture
def bot_settings() -> BotSettings:
    return BotSettings(
        bot_token="123456:test-token",
        bot_username="toolhub_bot",
        webhook_secret="hook-secret",
    )


@pytest.fixture
def user() -> TwoFactorUser:
    return TwoFactorUser(id="user-1", email="ada@example.com", display_name="Ada")


@pytest.fixture
def other_user() -> TwoFactorUser:
    return TwoFactorUser(id="user-2", email="grace@example.com", display_name="Grace")


@pytest.fixture
def repository() -> InMemorySecurityRecordRepository:
    return InMemorySecurityRecordRepository()


@pytest.fixture
def code_store(clock: FakeClock) -> InMemoryEphemeralCodeStore:
    return InMemoryEphemeralCodeStore(clock=clock.monotonic)


@pytest.fixture
def mail_sender() -> InMemorySender:
    return InMemorySender(DeliveryChannel.EMAIL)


@pytest.fixture
def bot_sender() -> InMemorySender:
    return InMemorySender(DeliveryChannel.BOT)


@pytest.fixture
def authenticator(
    repository: InMemorySecurityRecordRepository,
    config: TwoFactorConfig,
    clock: FakeClock,
) -> AuthenticatorProvider:
    return AuthenticatorProvider(repository=repository, config=config, clock=clock)


@pytest.fixture
def mailbox(
    repository: InMemorySecurityRecordRepository,
    code_store: InMemoryEphemeralCodeStore,
    mail_sender: InMemorySender,
    config: TwoFactorConfig,
    clock: FakeClock,
) -> MailboxProvider:
    return MailboxProvider(
        repository=repository,
        code_store=code_store,
        sender=mail_sender,
        config=config,
        clock=clock,
    )


@pytest.fixture
def bot_channel(
    repository: InMemorySecurityRecordRepository,
    code_store: InMemoryEphemeralCodeStore,
    bot_sender: InMemorySender,
    bot_settings: BotSettings,
    config: TwoFactorConfig,
    clock: FakeClock,
) -> BotChannelProvider:
    return BotChannelProvider(
        repository=repository,
        code_store=code_store,
        sender=bot_sender,
        settings=bot_settings,
        config=config,
        clock=clock,
    )


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def manager(
    authenticator: AuthenticatorProvider,
    mailbox: MailboxProvider,
    bot_channel: BotChannelProvider,
    repository: InMemorySecurityRecordRepository,
    audit_sink: InMemoryAuditSink,
    config: TwoFactorConfig,
    clock: FakeClock,
) -> TwoFactorManager:
    return TwoFactorManager(
        authenticator=authenticator,
        mailbox=mailbox,
        bot_channel=bot_channel,
        repository=repository,
        lock_strategy=InMemoryLockStrategy(),
        audit_sink=audit_sink,
        config=config,
        clock=clock,
    )


def _last_code(sender: InMemorySender, recipient: str) -> str:
    body = sender.messages_to(recipient)[-1].body_text
    tokens = [token.strip("`.:") for token in body.split()]
    return next(token for token in tokens if token.isdigit() and len(token) == 6)


@pytest.fixture
def last_code():
    """Pull the numeric code out of the last message sent to a recipient."""
    return _last_code
