"""Mailbox (email code) provider."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..delivery import OutboundMessage
from ..methods import TwoFactorMethod
from ..responses import MailboxSetup, SetupInstructions
from .base import DeliveredCodeProvider

if TYPE_CHECKING:
    from ..record import SecurityRecord
    from ..user import TwoFactorUser


class MailboxProvider(DeliveredCodeProvider):
    """Numeric codes delivered to the user's email address."""

    method = TwoFactorMethod.MAILBOX

    async def setup(self, user: TwoFactorUser) -> MailboxSetup:
        _, codes = await self._prepare_record(user)
        return MailboxSetup(mailbox_address=user.email, backup_codes=codes)

    def _recipient(self, user: TwoFactorUser, record: SecurityRecord) -> str | None:
        return user.email

    def _render(self, user: TwoFactorUser, code: str) -> OutboundMessage:
        minutes = self.config.code_ttl_seconds // 60
        return OutboundMessage(
            subject=f"Two-factor authentication code - {self.config.issuer}",
            body_text=(
                f"Your two-factor authentication code is: {code}\n\n"
                f"The code is valid for {minutes} minutes.\n\n"
                "If you did not request this code, please ignore this email."
            ),
        )

    def instructions(self) -> SetupInstructions:
        return SetupInstructions(
            method=self.method,
            title="Email code",
            steps=[
                "You will receive a code by email at every sign-in",
                "Enter the 6-digit code in the confirmation field",
                f"The code is valid for {self.config.code_ttl_seconds // 60} minutes",
                "Store the backup codes for emergency access",
            ],
            requirements=[
                "Access to your email account",
                "A working internet connection",
                "Check your spam folder if the code does not arrive",
            ],
        )


__all__: list[str] = ["MailboxProvider"]
