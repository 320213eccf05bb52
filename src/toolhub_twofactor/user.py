"""Caller-supplied view of the external user entity."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TwoFactorUser:
    """The slice of the application's user that 2FA needs.

    Attributes:
        id: Opaque user identifier.
        email: Mailbox address for delivered codes.
        display_name: Name used in messages.
    """

    id: str
    email: str | None = None
    display_name: str | None = None

    @property
    def account_label(self) -> str:
        """Label shown next to the issuer in authenticator apps."""
        return self.email or self.id
