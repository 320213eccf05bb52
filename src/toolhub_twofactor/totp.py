"""TOTP (Time-based One-Time Password) engine.

Works with any RFC 6238 authenticator app:
- Google Authenticator
- Microsoft Authenticator
- Authy
- 1Password
- FreeOTP

Uses pyotp for the algorithm and qrcode for the scannable payload. Pure over
time and secret: no storage or network side effects.
"""

from __future__ import annotations

import base64
from dataclasses import asdict, dataclass
from datetime import datetime
from io import BytesIO
from typing import Any

import pyotp
import qrcode
from qrcode.image.svg import SvgPathImage


@dataclass(frozen=True)
class TotpSetup:
    """TOTP provisioning data.

    Attributes:
        secret: Base32-encoded TOTP secret.
        qr_uri: otpauth:// URI for QR code generation.
        manual_key: Human-readable key for manual entry.
    """

    secret: str
    qr_uri: str
    manual_key: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TotpEngine:
    """Stateless TOTP verification and provisioning.

    Example:
        ```python
        engine = TotpEngine(digits=6, step_seconds=30)
        setup = engine.setup_payload("ToolHub", "user@example.com", secret)
        engine.verify(secret, "123456", window_steps=2)
        ```
    """

    def __init__(self, *, digits: int = 6, step_seconds: int = 30) -> None:
        self.digits = digits
        self.step_seconds = step_seconds

    def _totp(self, secret: str, step_seconds: int | None = None) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=self.digits,
            interval=step_seconds or self.step_seconds,
        )

    def verify(
        self,
        secret: str,
        candidate: str,
        window_steps: int = 2,
        step_seconds: int | None = None,
        for_time: datetime | int | None = None,
    ) -> bool:
        """Check a code against the current step and ``window_steps`` either side.

        At the defaults this is a ±60 second tolerance for clock drift.
        Malformed candidates simply fail.
        """
        code = candidate.strip()
        if len(code) != self.digits or not code.isdigit():
            return False

        totp = self._totp(secret, step_seconds)
        return bool(totp.verify(code, for_time=for_time, valid_window=window_steps))

    def now(self, secret: str) -> str:
        """Current code for ``secret``."""
        return str(self._totp(secret).now())

    def at(self, secret: str, for_time: datetime | int, counter_offset: int = 0) -> str:
        return str(self._totp(secret).at(for_time, counter_offset))

    def setup_payload(self, issuer: str, account: str, secret: str) -> TotpSetup:
        """Build the provisioning URI and the chunked manual-entry key."""
        qr_uri = self._totp(secret).provisioning_uri(
            name=account,
            issuer_name=issuer,
        )
        return TotpSetup(
            secret=secret,
            qr_uri=qr_uri,
            manual_key=format_manual_key(secret),
        )

    @staticmethod
    def qr_data_uri(uri: str) -> str:
        """Render ``uri`` as an SVG QR code embedded in a data URI."""
        image = qrcode.make(uri, image_factory=SvgPathImage)
        buffer = BytesIO()
        image.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/svg+xml;base64,{encoded}"


def format_manual_key(secret: str) -> str:
    """Format a secret as groups of 4 characters."""
    secret = secret.rstrip("=")
    return " ".join(secret[i : i + 4] for i in range(0, len(secret), 4))


__all__: list[str] = ["TotpSetup", "TotpEngine", "format_manual_key"]
