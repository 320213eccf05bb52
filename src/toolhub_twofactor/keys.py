"""Typed keys for the ephemeral code store.

Every ephemeral entry is addressed through one of these constructors so two
unrelated entries can never share a key.
"""

from __future__ import annotations

from dataclasses import dataclass

from .methods import TwoFactorMethod


@dataclass(frozen=True)
class EphemeralKey:
    namespace: str
    subject: str
    method: TwoFactorMethod | None = None

    def __str__(self) -> str:
        if self.method is None:
            return f"twofactor:{self.namespace}:{self.subject}"
        return f"twofactor:{self.namespace}:{self.method.value}:{self.subject}"


def code_key(user_id: str, method: TwoFactorMethod) -> EphemeralKey:
    """Delivered one-time code for (user, method)."""
    return EphemeralKey("code", user_id, method)


def cooldown_key(user_id: str, method: TwoFactorMethod) -> EphemeralKey:
    """Resend cool-down marker for (user, method)."""
    return EphemeralKey("cooldown", user_id, method)


def linking_token_key(token: str) -> EphemeralKey:
    """Linking token -> user id."""
    return EphemeralKey("link-token", token)


def pending_link_key(user_id: str) -> EphemeralKey:
    """User id -> the one linking token currently valid for that user."""
    return EphemeralKey("link-pending", user_id)


__all__: list[str] = [
    "EphemeralKey",
    "code_key",
    "cooldown_key",
    "linking_token_key",
    "pending_link_key",
]
