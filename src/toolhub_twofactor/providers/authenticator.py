"""Authenticator-app (TOTP) provider."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..codes import generate_secret
from ..exceptions import NotSetupError
from ..methods import TwoFactorMethod
from ..record import utcnow
from ..responses import AuthenticatorSetup, SetupInstructions
from ..totp import TotpEngine
from .base import BaseProvider

if TYPE_CHECKING:
    from ..config import TwoFactorConfig
    from ..ports import ISecurityRecordRepository
    from ..record import Clock, SecurityRecord
    from ..user import TwoFactorUser

logger = logging.getLogger(__name__)


class AuthenticatorProvider(BaseProvider):
    """TOTP codes generated on the user's device.

    Nothing is delivered: the user's authenticator app derives the code from
    the shared secret issued at setup.
    """

    method = TwoFactorMethod.AUTHENTICATOR

    def __init__(
        self,
        *,
        repository: ISecurityRecordRepository,
        config: TwoFactorConfig | None = None,
        clock: Clock = utcnow,
        engine: TotpEngine | None = None,
    ) -> None:
        super().__init__(repository=repository, config=config, clock=clock)
        self.engine = engine or TotpEngine(
            digits=self.config.code_digits,
            step_seconds=self.config.totp_step_seconds,
        )

    def _build_setup(
        self,
        user: TwoFactorUser,
        secret: str,
        codes: list[str],
    ) -> AuthenticatorSetup:
        payload = self.engine.setup_payload(
            self.config.issuer, user.account_label, secret
        )
        return AuthenticatorSetup(
            secret=payload.secret,
            setup_uri=payload.qr_uri,
            qr_code=self.engine.qr_data_uri(payload.qr_uri),
            manual_entry_key=payload.manual_key,
            backup_codes=codes,
        )

    async def setup(self, user: TwoFactorUser) -> AuthenticatorSetup:
        secret = generate_secret(self.config.secret_length)
        _, codes = await self._prepare_record(user, secret=secret)
        return self._build_setup(user, secret, codes)

    def setup_payload(self, user: TwoFactorUser, record: SecurityRecord) -> AuthenticatorSetup:
        """Rebuild the QR code and manual key for an existing record.

        Backup codes are not included; they are only shown when issued.

        Raises:
            NotSetupError: If the record has no secret.
        """
        if not record.secret:
            raise NotSetupError(self.method.value)
        return self._build_setup(user, record.secret, [])

    async def _check_code(
        self, record: SecurityRecord, candidate: str, *, spend: bool = True
    ) -> bool:
        if not record.secret:
            return False
        return self.engine.verify(
            record.secret,
            candidate,
            window_steps=self.config.totp_window_steps,
            for_time=self.clock(),
        )

    def instructions(self) -> SetupInstructions:
        return SetupInstructions(
            method=self.method,
            title="Authenticator app",
            steps=[
                "Install an authenticator app on your phone",
                "Scan the QR code or enter the key manually",
                "Enter the 6-digit code to confirm",
                "Store the backup codes in a safe place",
            ],
            requirements=[
                "An Android or iOS smartphone",
                "An authenticator app (Google Authenticator, Authy, 1Password)",
                "A camera to scan the QR code, or manual key entry",
            ],
        )


__all__: list[str] = ["AuthenticatorProvider"]
