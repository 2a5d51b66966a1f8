"""
OTP Issuer.

Generates, compares and expires the numeric codes customers type to join
a table session. Codes are not globally unique; SessionManager enforces
uniqueness among a tenant's active sessions and retries on collision.
"""

import hmac
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

from shared.config.settings import settings
from tableside.models.base import as_utc, utcnow


class OtpIssuer:
    """
    Usage:
        issuer = OtpIssuer()
        code, expires_at = issuer.issue()
        issuer.is_expired(expires_at)  # False for the next 24h
    """

    def __init__(
        self,
        length: int | None = None,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.length = length or settings.otp_length
        self.ttl = ttl or timedelta(hours=settings.otp_ttl_hours)
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def issue(self) -> tuple[str, datetime]:
        """Return a fresh zero-padded code and its expiry."""
        code = str(secrets.randbelow(10 ** self.length)).zfill(self.length)
        return code, self.now() + self.ttl

    def regenerate(self) -> tuple[str, datetime]:
        """Same as issue(); callers must write code and expiry together."""
        return self.issue()

    def is_expired(self, expires_at: datetime | None, now: datetime | None = None) -> bool:
        """An expiry at or before now is expired. A missing expiry is expired."""
        if expires_at is None:
            return True
        now = as_utc(now) if now is not None else self.now()
        return as_utc(expires_at) <= now

    @staticmethod
    def matches(candidate: str | None, code: str | None) -> bool:
        """Constant-time comparison."""
        if not candidate or not code:
            return False
        return hmac.compare_digest(candidate.encode(), code.encode())
