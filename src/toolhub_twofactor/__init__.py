"""ToolHub two-factor authentication.

Multi-method 2FA: authenticator app (TOTP), mailbox codes and bot-channel
codes, with per-method lockout, single-use backup codes and rate-limited
resend, orchestrated by :class:`TwoFactorManager`.
"""

from __future__ import annotations

from .audit import (
    InMemoryAuditSink,
    LoggingAuditSink,
    TwoFactorAuditEvent,
    TwoFactorEventType,
)
from .config import BotSettings, SmtpSettings, TwoFactorConfig
from .delivery import DeliveryChannel, DeliveryRecord, DeliveryStatus, OutboundMessage
from .exceptions import (
    ConfigurationError,
    DeliveryFailureError,
    InvalidCodeError,
    LockAcquisitionError,
    MethodLockedError,
    NotSetupError,
    TwoFactorDomainError,
    TwoFactorError,
    TwoFactorInfrastructureError,
    UnknownMethodError,
)
from .locking import InMemoryLockStrategy, RedisLockStrategy, ResourceIdentifier
from .lockout import LockoutPolicy
from .manager import DeliveryOutcome, TwoFactorManager, VerificationOutcome
from .methods import METHOD_INFO, MethodInfo, TwoFactorMethod
from .ports import (
    IAuditSink,
    IEphemeralCodeStore,
    ILockStrategy,
    IMessageSender,
    ISecurityRecordRepository,
    ITwoFactorProvider,
)
from .providers import AuthenticatorProvider, BotChannelProvider, MailboxProvider
from .record import BackupCode, SecurityRecord
from .responses import (
    AuthenticatorSetup,
    AvailableMethod,
    BotChannelSetup,
    MailboxSetup,
    MethodStatus,
    SetupInstructions,
    TwoFactorStatus,
)
from .stores import (
    InMemoryEphemeralCodeStore,
    InMemorySecurityRecordRepository,
    RedisEphemeralCodeStore,
)
from .totp import TotpEngine, TotpSetup
from .user import TwoFactorUser

__version__ = "0.1.0"

__all__: list[str] = [
    # Manager
    "TwoFactorManager",
    "VerificationOutcome",
    "DeliveryOutcome",
    # Domain
    "TwoFactorMethod",
    "MethodInfo",
    "METHOD_INFO",
    "TwoFactorUser",
    "SecurityRecord",
    "BackupCode",
    "LockoutPolicy",
    "TotpEngine",
    "TotpSetup",
    # Providers
    "AuthenticatorProvider",
    "MailboxProvider",
    "BotChannelProvider",
    # Responses
    "AuthenticatorSetup",
    "MailboxSetup",
    "BotChannelSetup",
    "SetupInstructions",
    "MethodStatus",
    "AvailableMethod",
    "TwoFactorStatus",
    # Config
    "TwoFactorConfig",
    "SmtpSettings",
    "BotSettings",
    # Ports
    "ISecurityRecordRepository",
    "IEphemeralCodeStore",
    "IMessageSender",
    "ILockStrategy",
    "IAuditSink",
    "ITwoFactorProvider",
    # Adapters
    "InMemorySecurityRecordRepository",
    "InMemoryEphemeralCodeStore",
    "RedisEphemeralCodeStore",
    "InMemoryLockStrategy",
    "RedisLockStrategy",
    "ResourceIdentifier",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    # Delivery
    "DeliveryChannel",
    "DeliveryStatus",
    "DeliveryRecord",
    "OutboundMessage",
    # Audit
    "TwoFactorAuditEvent",
    "TwoFactorEventType",
    # Exceptions
    "TwoFactorError",
    "TwoFactorDomainError",
    "TwoFactorInfrastructureError",
    "UnknownMethodError",
    "NotSetupError",
    "MethodLockedError",
    "InvalidCodeError",
    "DeliveryFailureError",
    "ConfigurationError",
    "LockAcquisitionError",
]
