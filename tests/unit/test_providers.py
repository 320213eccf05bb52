"""Tests for the authenticator and mailbox providers."""

from __future__ import annotations

import asyncio

import pytest

from toolhub_twofactor import (
    AuthenticatorProvider,
    AuthenticatorSetup,
    InMemoryEphemeralCodeStore,
    InMemorySecurityRecordRepository,
    MailboxProvider,
    MailboxSetup,
    TwoFactorConfig,
    TwoFactorMethod,
    TwoFactorUser,
)
from toolhub_twofactor.delivery import DeliveryChannel, DeliveryRecord, OutboundMessage
from toolhub_twofactor.exceptions import NotSetupError
from toolhub_twofactor.keys import code_key, cooldown_key
from toolhub_twofactor.transports import InMemorySender


class SlowSender:
    """Sender that never answers within the transport timeout."""

    async def send(self, recipient: str, message: OutboundMessage) -> DeliveryRecord:
        await asyncio.sleep(10)
        return DeliveryRecord.sent(recipient, DeliveryChannel.EMAIL)


class TestAuthenticatorProvider:
    @pytest.mark.asyncio
    async def test_setup_creates_disabled_record(
        self,
        authenticator: AuthenticatorProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
    ) -> None:
        setup = await authenticator.setup(user)

        assert isinstance(setup, AuthenticatorSetup)
        assert setup.setup_uri.startswith("otpauth://totp/")
        assert setup.qr_code.startswith("data:image/svg+xml;base64,")
        assert setup.manual_entry_key.replace(" ", "") == setup.secret
        assert len(setup.backup_codes) == 8

        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        assert record is not None
        assert record.secret == setup.secret
        assert not record.is_enabled

    @pytest.mark.asyncio
    async def test_re_setup_rotates_secret_and_resets_state(
        self,
        authenticator: AuthenticatorProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
    ) -> None:
        first = await authenticator.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        assert record is not None
        record.is_enabled = True
        record.failed_attempts = 2
        await repository.save(record)

        second = await authenticator.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)

        assert record is not None
        assert second.secret != first.secret
        assert record.secret == second.secret
        assert not record.is_enabled
        assert record.failed_attempts == 0
        assert record.available_backup_codes == second.backup_codes

    @pytest.mark.asyncio
    async def test_verify_current_code(
        self,
        authenticator: AuthenticatorProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
        clock,
    ) -> None:
        setup = await authenticator.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        assert record is not None

        code = authenticator.engine.at(setup.secret, clock())
        assert await authenticator.verify_code(record, code)
        assert record.last_used_at == clock()

    @pytest.mark.asyncio
    async def test_wrong_code_counts_failure(
        self,
        authenticator: AuthenticatorProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
        clock,
    ) -> None:
        setup = await authenticator.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        assert record is not None

        wrong = "000000" if authenticator.engine.at(setup.secret, clock()) != "000000" else "111111"
        assert not await authenticator.verify_code(record, wrong)
        assert record.failed_attempts == 1

    @pytest.mark.asyncio
    async def test_backup_code_fallback(
        self,
        authenticator: AuthenticatorProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
    ) -> None:
        setup = await authenticator.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        assert record is not None

        assert await authenticator.verify_code(record, setup.backup_codes[0])
        assert not await authenticator.verify_code(record, setup.backup_codes[0])
        # The second attempt is an ordinary failed verification.
        assert record.failed_attempts == 1

    @pytest.mark.asyncio
    async def test_deliver_code_is_noop(
        self,
        authenticator: AuthenticatorProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
    ) -> None:
        await authenticator.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        assert record is not None
        assert await authenticator.deliver_code(user, record)
        assert await authenticator.resend(user, record)

    def test_setup_payload_requires_secret(
        self, authenticator: AuthenticatorProvider, user: TwoFactorUser
    ) -> None:
        from toolhub_twofactor.record import SecurityRecord

        record = SecurityRecord(user_id=user.id, method=TwoFactorMethod.AUTHENTICATOR)
        with pytest.raises(NotSetupError):
            authenticator.setup_payload(user, record)

    def test_instructions(self, authenticator: AuthenticatorProvider) -> None:
        instructions = authenticator.instructions()
        assert instructions.method is TwoFactorMethod.AUTHENTICATOR
        assert len(instructions.steps) == 4
        assert instructions.to_dict()["method"] == "authenticator"


class TestMailboxProvider:
    @pytest.mark.asyncio
    async def test_setup(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        user: TwoFactorUser,
    ) -> None:
        setup = await mailbox.setup(user)

        assert isinstance(setup, MailboxSetup)
        assert setup.mailbox_address == user.email
        assert len(setup.backup_codes) == 8
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None
        assert not record.is_enabled

    @pytest.mark.asyncio
    async def test_deliver_and_verify(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
        last_code,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None

        assert await mailbox.deliver_code(user, record)
        mail_sender.assert_sent(user.email, count=1)
        message = mail_sender.messages_to(user.email)[0]
        assert message.subject == "Two-factor authentication code - ToolHub"

        code = last_code(mail_sender, user.email)
        assert await mailbox.verify_code(record, code)
        # Delivered codes are single use.
        assert not await mailbox.verify_code(record, code)

    @pytest.mark.asyncio
    async def test_matches_code_leaves_state_alone(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
        last_code,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None
        assert await mailbox.deliver_code(user, record)
        code = last_code(mail_sender, user.email)
        other = f"{(int(code) + 1) % 1_000_000:06d}"

        assert not await mailbox.matches_code(record, other)
        assert record.failed_attempts == 0
        assert await mailbox.matches_code(record, code)
        assert await mailbox.verify_code(record, code)

    @pytest.mark.asyncio
    async def test_expired_code_fails(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
        clock,
        last_code,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None
        await mailbox.deliver_code(user, record)
        code = last_code(mail_sender, user.email)

        clock.advance(seconds=301)

        assert not await mailbox.verify_code(record, code)
        assert record.failed_attempts == 1

    @pytest.mark.asyncio
    async def test_new_delivery_replaces_previous_code(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
        last_code,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None

        await mailbox.deliver_code(user, record)
        first = last_code(mail_sender, user.email)
        await mailbox.deliver_code(user, record)
        second = last_code(mail_sender, user.email)

        if first != second:
            assert not await mailbox.verify_code(record, first)
        assert await mailbox.verify_code(record, second)

    @pytest.mark.asyncio
    async def test_delivery_failure_is_not_a_failed_attempt(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None
        mail_sender.fail = True

        assert not await mailbox.deliver_code(user, record)
        assert record.failed_attempts == 0

    @pytest.mark.asyncio
    async def test_transport_timeout_is_a_delivery_failure(
        self,
        repository: InMemorySecurityRecordRepository,
        code_store: InMemoryEphemeralCodeStore,
        user: TwoFactorUser,
    ) -> None:
        provider = MailboxProvider(
            repository=repository,
            code_store=code_store,
            sender=SlowSender(),
            config=TwoFactorConfig(transport_timeout=0.01),
        )
        await provider.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None

        assert not await provider.deliver_code(user, record)
        assert record.failed_attempts == 0

    @pytest.mark.asyncio
    async def test_locked_record_gets_no_code(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
        clock,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None
        for _ in range(3):
            await mailbox.verify_code(record, "000000")

        assert not await mailbox.deliver_code(user, record)
        mail_sender.assert_sent(user.email, count=0)

    @pytest.mark.asyncio
    async def test_no_email_address(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
    ) -> None:
        nameless = TwoFactorUser(id="user-9")
        await mailbox.setup(nameless)
        record = await repository.get(nameless.id, TwoFactorMethod.MAILBOX)
        assert record is not None

        assert not await mailbox.deliver_code(nameless, record)

    @pytest.mark.asyncio
    async def test_resend_is_rate_limited(
        self,
        mailbox: MailboxProvider,
        repository: InMemorySecurityRecordRepository,
        code_store: InMemoryEphemeralCodeStore,
        mail_sender: InMemorySender,
        user: TwoFactorUser,
        clock,
        last_code,
    ) -> None:
        await mailbox.setup(user)
        record = await repository.get(user.id, TwoFactorMethod.MAILBOX)
        assert record is not None

        assert await mailbox.resend(user, record)
        first_expiry = code_store.expires_at(code_key(user.id, TwoFactorMethod.MAILBOX))

        clock.advance(seconds=30)
        assert not await mailbox.resend(user, record)

        mail_sender.assert_sent(user.email, count=1)
        assert (
            code_store.expires_at(code_key(user.id, TwoFactorMethod.MAILBOX))
            == first_expiry
        )
        assert await code_store.get(cooldown_key(user.id, TwoFactorMethod.MAILBOX))

        clock.advance(seconds=31)
        assert await mailbox.resend(user, record)
        mail_sender.assert_sent(user.email, count=2)

    def test_unavailable_without_sender(
        self,
        repository: InMemorySecurityRecordRepository,
        code_store: InMemoryEphemeralCodeStore,
    ) -> None:
        provider = MailboxProvider(repository=repository, code_store=code_store, sender=None)
        assert not provider.is_available()
