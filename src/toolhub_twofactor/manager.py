"""Two-factor manager: the root orchestrator.

The (external) web layer calls the manager with a :class:`TwoFactorUser` and
a method key. The manager loads the user's security record, serializes work
per (user, method), delegates crypto and delivery to the matching provider,
persists the resulting state and emits audit events and metrics.

Example:
    ```python
    repository = InMemorySecurityRecordRepository()
    code_store = InMemoryEphemeralCodeStore()
    manager = TwoFactorManager(
        authenticator=AuthenticatorProvider(repository=repository),
        mailbox=MailboxProvider(
            repository=repository, code_store=code_store, sender=mailer
        ),
        bot_channel=BotChannelProvider(
            repository=repository,
            code_store=code_store,
            sender=bot_sender,
            settings=BotSettings(bot_token="...", bot_username="toolhub_bot"),
        ),
        repository=repository,
    )

    setup = await manager.setup(user, "authenticator")
    await manager.enable(user, "authenticator", "123456")
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from . import backup_codes, lockout
from .audit import TwoFactorAuditEvent, TwoFactorEventType
from .config import TwoFactorConfig
from .exceptions import (
    ConfigurationError,
    DeliveryFailureError,
    InvalidCodeError,
    MethodLockedError,
    NotSetupError,
)
from .locking import InMemoryLockStrategy, hold, record_resource
from .methods import METHOD_INFO, MethodInfo, TwoFactorMethod
from .observability import TwoFactorMetrics
from .record import utcnow
from .responses import AvailableMethod, MethodStatus, TwoFactorStatus

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from .ports import IAuditSink, ILockStrategy, ISecurityRecordRepository
    from .providers import (
        AuthenticatorProvider,
        BaseProvider,
        BotChannelProvider,
        MailboxProvider,
    )
    from .record import Clock, SecurityRecord
    from .responses import AuthenticatorSetup, SetupInstructions, SetupResponse
    from .user import TwoFactorUser

logger = logging.getLogger(__name__)


class VerificationOutcome(str, Enum):
    VERIFIED = "verified"
    INVALID = "invalid"
    LOCKED = "locked"
    NOT_SETUP = "not_setup"


class DeliveryOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    LOCKED = "locked"
    NOT_SETUP = "not_setup"


class TwoFactorManager:
    """Orchestrates setup, delivery, verification and status for all methods."""

    def __init__(
        self,
        *,
        authenticator: AuthenticatorProvider,
        mailbox: MailboxProvider,
        bot_channel: BotChannelProvider,
        repository: ISecurityRecordRepository,
        lock_strategy: ILockStrategy | None = None,
        audit_sink: IAuditSink | None = None,
        config: TwoFactorConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.authenticator = authenticator
        self.mailbox = mailbox
        self.bot_channel = bot_channel
        self._providers: dict[TwoFactorMethod, BaseProvider] = {
            TwoFactorMethod.AUTHENTICATOR: authenticator,
            TwoFactorMethod.MAILBOX: mailbox,
            TwoFactorMethod.BOT_CHANNEL: bot_channel,
        }
        self.repository = repository
        self.lock_strategy = lock_strategy or InMemoryLockStrategy()
        self.audit_sink = audit_sink
        self.config = config or TwoFactorConfig()
        self.clock = clock

    # ── Internals ────────────────────────────────────────────────

    def provider(self, method: str | TwoFactorMethod) -> BaseProvider:
        """Provider for ``method``.

        Raises:
            UnknownMethodError: If ``method`` is not a supported key.
        """
        return self._providers[TwoFactorMethod.parse(method)]

    def _lock(
        self, user_id: str, method: TwoFactorMethod
    ) -> AbstractAsyncContextManager[None]:
        return hold(
            self.lock_strategy,
            record_resource(user_id, method),
            timeout=self.config.lock_timeout,
            ttl=self.config.lock_ttl,
        )

    async def _emit(
        self,
        event_type: TwoFactorEventType,
        user_id: str,
        method: TwoFactorMethod | None = None,
        *,
        success: bool = True,
        **metadata: Any,
    ) -> None:
        if self.audit_sink is None:
            return
        await self.audit_sink.record(
            TwoFactorAuditEvent(
                event_type=event_type,
                user_id=user_id,
                method=method.value if method else None,
                timestamp=self.clock(),
                success=success,
                metadata=metadata,
            )
        )

    async def _verify_record(
        self, provider: BaseProvider, record: SecurityRecord, code: str
    ) -> VerificationOutcome:
        """Run one provider verification, then persist and report the result.

        Must be called while holding the record's lock.
        """
        method = record.method
        now = self.clock()
        was_locked = lockout.is_locked(record, now)
        backups_before = len(record.available_backup_codes)

        with TwoFactorMetrics.operation("verify"):
            ok = await provider.verify_code(record, code)
        await self.repository.save(record)

        if was_locked:
            TwoFactorMetrics.record_verification(method.value, "locked")
            await self._emit(
                TwoFactorEventType.VERIFICATION_FAILED,
                record.user_id,
                method,
                success=False,
                reason="locked",
            )
            return VerificationOutcome.LOCKED

        TwoFactorMetrics.record_verification(method.value, ok)
        if ok:
            if len(record.available_backup_codes) < backups_before:
                await self._emit(
                    TwoFactorEventType.BACKUP_CODE_USED,
                    record.user_id,
                    method,
                    remaining=len(record.available_backup_codes),
                )
            await self._emit(TwoFactorEventType.VERIFIED, record.user_id, method)
            return VerificationOutcome.VERIFIED

        await self._emit(
            TwoFactorEventType.VERIFICATION_FAILED,
            record.user_id,
            method,
            success=False,
            failed_attempts=record.failed_attempts,
        )
        if lockout.is_locked(record, now):
            TwoFactorMetrics.record_lockout(method.value)
            await self._emit(
                TwoFactorEventType.LOCKED,
                record.user_id,
                method,
                locked_until=record.locked_until.isoformat() if record.locked_until else None,
            )
        return VerificationOutcome.INVALID

    # ── Discovery ────────────────────────────────────────────────

    def available_methods(self) -> list[MethodInfo]:
        """Methods whose provider is usable in this deployment, in method order."""
        return [
            METHOD_INFO[method]
            for method, provider in self._providers.items()
            if provider.is_available()
        ]

    def instructions(self, method: str | TwoFactorMethod) -> SetupInstructions:
        return self.provider(method).instructions()

    # ── Setup / enable / disable ─────────────────────────────────

    async def setup(
        self, user: TwoFactorUser, method: str | TwoFactorMethod
    ) -> SetupResponse:
        """Create or reset the user's record for ``method`` (disabled).

        Raises:
            UnknownMethodError: If ``method`` is not a supported key.
            ConfigurationError: If the method is not available.
        """
        method = TwoFactorMethod.parse(method)
        provider = self._providers[method]
        if not provider.is_available():
            raise ConfigurationError(f"2FA method {method.value!r} is not available")

        async with self._lock(user.id, method):
            response = await provider.setup(user)
        await self._emit(TwoFactorEventType.SETUP_STARTED, user.id, method)
        return response

    async def enable(
        self, user: TwoFactorUser, method: str | TwoFactorMethod, code: str
    ) -> bool:
        """Enable ``method`` after the user proves possession with ``code``.

        Raises:
            UnknownMethodError: If ``method`` is not a supported key.
            NotSetupError: If there is no record or setup is incomplete
                (e.g. the bot chat is not linked yet).
        """
        method = TwoFactorMethod.parse(method)
        provider = self._providers[method]
        async with self._lock(user.id, method):
            record = await self.repository.get(user.id, method)
            if record is None or not record.is_setup_complete:
                raise NotSetupError(method.value)

            outcome = await self._verify_record(provider, record, code)
            if outcome is not VerificationOutcome.VERIFIED:
                return False

            record.enable(self.clock())
            await self.repository.save(record)

        logger.info("2FA %s enabled for user %s", method.value, user.id)
        await self._emit(TwoFactorEventType.ENABLED, user.id, method)
        return True

    async def disable(self, user: TwoFactorUser, method: str | TwoFactorMethod) -> bool:
        """Disable ``method``; the record is kept. False if there is none."""
        method = TwoFactorMethod.parse(method)
        async with self._lock(user.id, method):
            record = await self.repository.get(user.id, method)
            if record is None:
                return False
            record.disable(self.clock())
            await self.repository.save(record)

        logger.info("2FA %s disabled for user %s", method.value, user.id)
        await self._emit(TwoFactorEventType.DISABLED, user.id, method)
        return True

    # ── Delivery ─────────────────────────────────────────────────

    async def _primary_method(self, user: TwoFactorUser) -> TwoFactorMethod | None:
        for record in await self.repository.list_for_user(user.id):
            if record.is_enabled:
                return record.method
        return None

    async def _deliver(
        self,
        user: TwoFactorUser,
        method: str | TwoFactorMethod | None,
        *,
        resend: bool,
    ) -> DeliveryOutcome:
        explicit = method is not None
        target = (
            TwoFactorMethod.parse(method)
            if method is not None
            else await self._primary_method(user)
        )
        if target is None:
            return DeliveryOutcome.NOT_SETUP

        provider = self._providers[target]
        async with self._lock(user.id, target):
            record = await self.repository.get(user.id, target)
            # An explicit method may still be pending setup (the enable flow).
            if record is None or not (record.is_enabled or explicit):
                return DeliveryOutcome.NOT_SETUP
            if not record.is_setup_complete:
                return DeliveryOutcome.NOT_SETUP
            if lockout.is_locked(record, self.clock()):
                return DeliveryOutcome.LOCKED

            with TwoFactorMetrics.operation("deliver"):
                if resend:
                    sent = await provider.resend(user, record)
                else:
                    sent = await provider.deliver_code(user, record)

        TwoFactorMetrics.record_delivery(target.value, sent)
        await self._emit(
            TwoFactorEventType.CODE_SENT if sent else TwoFactorEventType.DELIVERY_FAILED,
            user.id,
            target,
            success=sent,
            resend=resend,
        )
        return DeliveryOutcome.SENT if sent else DeliveryOutcome.FAILED

    async def send_verification_code(
        self, user: TwoFactorUser, method: str | TwoFactorMethod | None = None
    ) -> bool:
        """Deliver a fresh code.

        Without ``method`` the first enabled method (in method order) is used.
        With ``method`` the record may be enabled or pending setup.
        """
        outcome = await self._deliver(user, method, resend=False)
        return outcome is DeliveryOutcome.SENT

    async def resend_verification_code(
        self, user: TwoFactorUser, method: str | TwoFactorMethod | None = None
    ) -> bool:
        """Like :meth:`send_verification_code`, limited to one send per cool-down."""
        outcome = await self._deliver(user, method, resend=True)
        return outcome is DeliveryOutcome.SENT

    async def ensure_code_sent(
        self, user: TwoFactorUser, method: str | TwoFactorMethod | None = None
    ) -> None:
        """Raising variant of :meth:`send_verification_code`.

        Raises:
            NotSetupError: No usable record for the method.
            MethodLockedError: The method is locked.
            DeliveryFailureError: The transport failed or timed out.
        """
        outcome = await self._deliver(user, method, resend=False)
        label = TwoFactorMethod.parse(method).value if method is not None else "any"
        if outcome is DeliveryOutcome.NOT_SETUP:
            raise NotSetupError(label)
        if outcome is DeliveryOutcome.LOCKED:
            raise MethodLockedError(label)
        if outcome is DeliveryOutcome.FAILED:
            raise DeliveryFailureError(label)

    # ── Verification ─────────────────────────────────────────────

    async def _verify(
        self,
        user: TwoFactorUser,
        code: str,
        method: str | TwoFactorMethod | None,
    ) -> VerificationOutcome:
        if method is not None:
            candidates = [TwoFactorMethod.parse(method)]
        else:
            candidates = [
                record.method
                for record in await self.repository.list_for_user(user.id)
                if record.is_enabled
            ]
            # A method is only charged a failure when no method accepts the code.
            for candidate in candidates:
                async with self._lock(user.id, candidate):
                    record = await self.repository.get(user.id, candidate)
                    if record is None or not record.is_enabled:
                        continue
                    provider = self._providers[candidate]
                    if not await provider.matches_code(record, code):
                        continue
                    outcome = await self._verify_record(provider, record, code)
                if outcome is VerificationOutcome.VERIFIED:
                    return outcome

        outcomes: list[VerificationOutcome] = []
        for candidate in candidates:
            async with self._lock(user.id, candidate):
                record = await self.repository.get(user.id, candidate)
                if record is None or not record.is_enabled:
                    continue
                outcome = await self._verify_record(
                    self._providers[candidate], record, code
                )
            if outcome is VerificationOutcome.VERIFIED:
                return outcome
            outcomes.append(outcome)

        if not outcomes:
            return VerificationOutcome.NOT_SETUP
        if all(outcome is VerificationOutcome.LOCKED for outcome in outcomes):
            return VerificationOutcome.LOCKED
        return VerificationOutcome.INVALID

    async def verify_user_code(
        self,
        user: TwoFactorUser,
        code: str,
        method: str | TwoFactorMethod | None = None,
    ) -> bool:
        """Verify a sign-in code.

        Without ``method`` every enabled method is tried in method order and
        the first success wins. Failures are counted on every tried method
        only when none of them accepts the code.
        """
        outcome = await self._verify(user, code, method)
        return outcome is VerificationOutcome.VERIFIED

    async def ensure_verified(
        self,
        user: TwoFactorUser,
        code: str,
        method: str | TwoFactorMethod | None = None,
    ) -> None:
        """Raising variant of :meth:`verify_user_code`.

        Raises:
            NotSetupError: No enabled method to verify against.
            MethodLockedError: Every candidate method is locked.
            InvalidCodeError: The code was rejected.
        """
        outcome = await self._verify(user, code, method)
        label = TwoFactorMethod.parse(method).value if method is not None else "any"
        if outcome is VerificationOutcome.NOT_SETUP:
            raise NotSetupError(label)
        if outcome is VerificationOutcome.LOCKED:
            raise MethodLockedError(label)
        if outcome is VerificationOutcome.INVALID:
            raise InvalidCodeError()

    # ── Status and maintenance ───────────────────────────────────

    async def status(self, user: TwoFactorUser) -> TwoFactorStatus:
        records = await self.repository.list_for_user(user.id)
        enabled = [
            MethodStatus(
                method=record.method,
                name=METHOD_INFO[record.method].name,
                is_setup_complete=record.is_setup_complete,
                last_used_at=record.last_used_at,
                backup_codes_remaining=len(record.available_backup_codes),
            )
            for record in records
            if record.is_enabled
        ]
        return TwoFactorStatus(
            is_enabled=bool(enabled),
            enabled_methods=enabled,
            available_methods=[
                AvailableMethod.from_info(info) for info in self.available_methods()
            ],
        )

    async def is_locked(self, user: TwoFactorUser, method: str | TwoFactorMethod) -> bool:
        record = await self.repository.get(user.id, TwoFactorMethod.parse(method))
        return record is not None and lockout.is_locked(record, self.clock())

    async def clear_lockout(
        self, user: TwoFactorUser, method: str | TwoFactorMethod
    ) -> bool:
        """Administrative unlock. False if there is no record."""
        method = TwoFactorMethod.parse(method)
        async with self._lock(user.id, method):
            record = await self.repository.get(user.id, method)
            if record is None:
                return False
            lockout.clear_lockout(record, self.clock())
            await self.repository.save(record)

        logger.info("2FA %s lockout cleared for user %s", method.value, user.id)
        await self._emit(TwoFactorEventType.UNLOCKED, user.id, method)
        return True

    async def regenerate_backup_codes(
        self, user: TwoFactorUser, method: str | TwoFactorMethod
    ) -> list[str]:
        """Replace the backup batch of ``method``; every old code stops working.

        Raises:
            NotSetupError: If the method was never set up.
        """
        method = TwoFactorMethod.parse(method)
        async with self._lock(user.id, method):
            record = await self.repository.get(user.id, method)
            if record is None:
                raise NotSetupError(method.value)
            codes = backup_codes.regenerate(
                record,
                count=self.config.backup_code_count,
                length=self.config.backup_code_length,
                now=self.clock(),
            )
            await self.repository.save(record)

        await self._emit(TwoFactorEventType.BACKUP_CODES_REGENERATED, user.id, method)
        return codes

    async def authenticator_payload(self, user: TwoFactorUser) -> AuthenticatorSetup:
        """QR code and manual key for the user's existing authenticator record."""
        record = await self.repository.get(user.id, TwoFactorMethod.AUTHENTICATOR)
        if record is None:
            raise NotSetupError(TwoFactorMethod.AUTHENTICATOR.value)
        return self.authenticator.setup_payload(user, record)

    # ── Bot channel webhook ──────────────────────────────────────

    def verify_bot_webhook(self, secret_header: str | None) -> bool:
        return self.bot_channel.verify_webhook_secret(secret_header)

    async def handle_bot_update(self, update: Mapping[str, Any]) -> SecurityRecord | None:
        """Process a bot webhook update carrying a linking token.

        Parses the update, links the chat under the record's lock and replies
        with a welcome or an invalid-token message. Re-confirming a chat that
        is already linked replies nothing and emits no event.

        Returns:
            The linked record, or None if the update was not a valid link.
        """
        parsed = self.bot_channel.parse_update(update)
        if parsed is None:
            return None
        chat_id, token = parsed

        record: SecurityRecord | None = None
        user_id = await self.bot_channel.resolve_link_token(token)
        if user_id is not None:
            async with self._lock(user_id, TwoFactorMethod.BOT_CHANNEL):
                existing = await self.repository.get(user_id, TwoFactorMethod.BOT_CHANNEL)
                already_linked = (
                    existing is not None and existing.channel_binding == chat_id
                )
                record = await self.bot_channel.confirm_link(token, chat_id)
            if already_linked:
                return record

        await self.bot_channel.notify_link_result(chat_id, record)
        if record is not None:
            await self._emit(
                TwoFactorEventType.CHANNEL_LINKED,
                record.user_id,
                TwoFactorMethod.BOT_CHANNEL,
            )
        return record


__all__: list[str] = ["TwoFactorManager", "VerificationOutcome", "DeliveryOutcome"]
