"""Shared provider machinery.

:class:`BaseProvider` owns record setup and the verification path every
method shares::

    locked?  -> False, nothing counted
    backup-shaped and an unused backup code matches -> True
    method check passes -> record_success, True
    otherwise -> record_failure, False

:class:`DeliveredCodeProvider` adds the delivered-code lifecycle (generate,
store with TTL, send, single-use compare) used by the mailbox and bot-channel
methods.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..backup_codes import consume, looks_like_backup_code, matches, regenerate
from ..codes import generate_numeric_code
from ..config import TwoFactorConfig
from ..keys import code_key, cooldown_key
from ..lockout import is_locked, record_failure, record_success
from ..record import SecurityRecord, utcnow

if TYPE_CHECKING:
    from ..delivery import OutboundMessage
    from ..methods import TwoFactorMethod
    from ..ports import IEphemeralCodeStore, IMessageSender, ISecurityRecordRepository
    from ..record import Clock
    from ..responses import SetupInstructions, SetupResponse
    from ..user import TwoFactorUser

logger = logging.getLogger(__name__)


class BaseProvider(ABC):
    """Common base for the three verification methods."""

    method: TwoFactorMethod

    def __init__(
        self,
        *,
        repository: ISecurityRecordRepository,
        config: TwoFactorConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.repository = repository
        self.config = config or TwoFactorConfig()
        self.clock = clock

    # ── Setup ────────────────────────────────────────────────────

    async def _prepare_record(
        self,
        user: TwoFactorUser,
        *,
        secret: str | None = None,
    ) -> tuple[SecurityRecord, list[str]]:
        """Create or reset the user's record and issue a fresh backup batch.

        Returns:
            The saved record and the plaintext backup codes.
        """
        now = self.clock()
        record = await self.repository.get(user.id, self.method)
        if record is None:
            record = SecurityRecord(
                user_id=user.id,
                method=self.method,
                secret=secret,
                created_at=now,
                updated_at=now,
            )
        else:
            record.reset_for_setup(secret=secret, now=now)

        codes = regenerate(
            record,
            count=self.config.backup_code_count,
            length=self.config.backup_code_length,
            now=now,
        )
        await self.repository.save(record)
        logger.info("2FA %s setup started for user %s", self.method.value, user.id)
        return record, codes

    @abstractmethod
    async def setup(self, user: TwoFactorUser) -> SetupResponse: ...

    # ── Verification ─────────────────────────────────────────────

    @abstractmethod
    async def _check_code(
        self, record: SecurityRecord, candidate: str, *, spend: bool = True
    ) -> bool:
        """Method-specific code check, without any lockout bookkeeping.

        With ``spend=False`` a matching single-use code stays valid.
        """

    async def matches_code(self, record: SecurityRecord, candidate: str) -> bool:
        """Would :meth:`verify_code` accept ``candidate``? Nothing is mutated."""
        if is_locked(record, self.clock()):
            return False
        if looks_like_backup_code(
            candidate, self.config.backup_code_length
        ) and matches(record, candidate):
            return True
        return await self._check_code(record, candidate, spend=False)

    async def verify_code(self, record: SecurityRecord, candidate: str) -> bool:
        now = self.clock()
        if is_locked(record, now):
            logger.info(
                "2FA %s verification refused for user %s: locked",
                self.method.value,
                record.user_id,
            )
            return False

        if looks_like_backup_code(
            candidate, self.config.backup_code_length
        ) and consume(record, candidate, now):
            logger.info(
                "2FA %s backup code used by user %s", self.method.value, record.user_id
            )
            return True

        if await self._check_code(record, candidate):
            record_success(record, now)
            return True

        record_failure(record, self.config.lockout_policy, now)
        return False

    # ── Delivery ─────────────────────────────────────────────────

    async def deliver_code(self, user: TwoFactorUser, record: SecurityRecord) -> bool:
        """Methods without delivery have nothing to send."""
        return True

    async def resend(self, user: TwoFactorUser, record: SecurityRecord) -> bool:
        return True

    # ── Presentation ─────────────────────────────────────────────

    @abstractmethod
    def instructions(self) -> SetupInstructions: ...

    def is_available(self) -> bool:
        return True


class DeliveredCodeProvider(BaseProvider):
    """Provider whose codes are generated server-side and sent to the user."""

    def __init__(
        self,
        *,
        repository: ISecurityRecordRepository,
        code_store: IEphemeralCodeStore,
        sender: IMessageSender | None,
        config: TwoFactorConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        super().__init__(repository=repository, config=config, clock=clock)
        self.code_store = code_store
        self.sender = sender

    @abstractmethod
    def _recipient(self, user: TwoFactorUser, record: SecurityRecord) -> str | None:
        """Transport address for ``user``, or None if there is nowhere to send."""

    @abstractmethod
    def _render(self, user: TwoFactorUser, code: str) -> OutboundMessage: ...

    def is_available(self) -> bool:
        return self.sender is not None

    async def _send(self, recipient: str, message: OutboundMessage) -> bool:
        if self.sender is None:
            return False
        try:
            result = await asyncio.wait_for(
                self.sender.send(recipient, message),
                timeout=self.config.transport_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "2FA %s delivery timed out after %.1fs",
                self.method.value,
                self.config.transport_timeout,
            )
            return False
        if not result.ok:
            logger.error("2FA %s delivery failed: %s", self.method.value, result.error)
        return result.ok

    async def deliver_code(self, user: TwoFactorUser, record: SecurityRecord) -> bool:
        if is_locked(record, self.clock()):
            return False

        recipient = self._recipient(user, record)
        if not recipient:
            logger.warning(
                "2FA %s delivery skipped for user %s: no recipient",
                self.method.value,
                user.id,
            )
            return False

        code = generate_numeric_code(self.config.code_digits)
        await self.code_store.set(
            code_key(user.id, self.method), code, self.config.code_ttl_seconds
        )
        sent = await self._send(recipient, self._render(user, code))
        if sent:
            logger.info("2FA %s code sent to user %s", self.method.value, user.id)
        return sent

    async def resend(self, user: TwoFactorUser, record: SecurityRecord) -> bool:
        marked = await self.code_store.add(
            cooldown_key(user.id, self.method),
            "1",
            self.config.resend_cooldown_seconds,
        )
        if not marked:
            logger.info(
                "2FA %s resend rate limited for user %s", self.method.value, user.id
            )
            return False
        return await self.deliver_code(user, record)

    async def _check_code(
        self, record: SecurityRecord, candidate: str, *, spend: bool = True
    ) -> bool:
        key = code_key(record.user_id, self.method)
        stored = await self.code_store.get(key)
        if stored is None:
            return False
        if not secrets.compare_digest(stored.encode(), candidate.strip().encode()):
            return False
        if spend:
            await self.code_store.delete(key)
        return True


__all__: list[str] = ["BaseProvider", "DeliveredCodeProvider"]
