"""Two-factor authentication exceptions.

Expected outcomes (a locked method, a wrong code, a failed delivery) are
plain booleans in the provider layer. These exceptions cover programmer and
configuration errors, plus the raising ``ensure_*`` variants of the manager.
"""

from __future__ import annotations

# ═══════════════════════════════════════════════════════════════
# BASE ERRORS
# ═══════════════════════════════════════════════════════════════


class TwoFactorError(Exception):
    """Root exception for the two-factor package."""


class TwoFactorDomainError(TwoFactorError):
    """Base class for errors caused by the caller or the user's 2FA state."""


class TwoFactorInfrastructureError(TwoFactorError):
    """Base class for transport, storage and locking failures."""


# ═══════════════════════════════════════════════════════════════
# DOMAIN ERRORS
# ═══════════════════════════════════════════════════════════════


class UnknownMethodError(TwoFactorDomainError, ValueError):
    """Raised when a method key is outside the supported enumeration.

    Attributes:
        method: The rejected method key.
    """

    def __init__(self, method: object) -> None:
        self.method = method
        super().__init__(f"Unknown 2FA method: {method!r}")


class NotSetupError(TwoFactorDomainError):
    """Raised when enable/verify is attempted before setup completed.

    The user must restart the setup flow for the method.
    """

    def __init__(self, method: str, message: str | None = None) -> None:
        self.method = method
        super().__init__(message or f"2FA method {method!r} is not set up")


class MethodLockedError(TwoFactorDomainError):
    """Raised when verification is withheld because the method is locked.

    Deliberately carries no remaining lockout time.
    """

    def __init__(
        self,
        method: str | None = None,
        message: str = "Too many failed attempts. Please try again later.",
    ) -> None:
        self.method = method
        super().__init__(message)


class InvalidCodeError(TwoFactorDomainError):
    """Raised when no enabled method accepted the submitted code."""

    def __init__(self, message: str = "Invalid verification code") -> None:
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# INFRASTRUCTURE ERRORS
# ═══════════════════════════════════════════════════════════════


class DeliveryFailureError(TwoFactorInfrastructureError):
    """Raised when a code could not be delivered. Retryable.

    A delivery failure never counts as a failed verification attempt.
    """

    def __init__(self, method: str, reason: str | None = None) -> None:
        self.method = method
        self.reason = reason
        message = f"Failed to deliver verification code via {method}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class ConfigurationError(TwoFactorInfrastructureError):
    """Raised when a provider or transport is missing required settings."""


class LockAcquisitionError(TwoFactorInfrastructureError):
    """Failed to acquire the per-(user, method) lock within the timeout."""

    def __init__(self, resource: str, timeout: float, reason: str | None = None) -> None:
        self.resource = resource
        self.timeout = timeout
        self.reason = reason

        msg = f"Failed to acquire lock on {resource} within {timeout}s"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)


__all__: list[str] = [
    # Base
    "TwoFactorError",
    "TwoFactorDomainError",
    "TwoFactorInfrastructureError",
    # Domain
    "UnknownMethodError",
    "NotSetupError",
    "MethodLockedError",
    "InvalidCodeError",
    # Infrastructure
    "DeliveryFailureError",
    "ConfigurationError",
    "LockAcquisitionError",
]
