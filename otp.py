import math
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional

from errors import TooSoon

# Letters and digits that can't be mistaken for each other when read aloud
# or off a phone screen (no I/1, no O/0).
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6

OTP_TTL = timedelta(seconds=int(os.getenv("OTP_TTL_SECONDS", "3600")))
RESEND_COOLDOWN = timedelta(seconds=int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "30")))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IssuedCode(NamedTuple):
    code: str
    expires_at: datetime


class OTPIssuer:
    """
    Generates handoff codes and their expiry instants.

    Codes are stored and compared as plain text.
    """

    def __init__(
        self,
        ttl: timedelta = OTP_TTL,
        cooldown: timedelta = RESEND_COOLDOWN,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self.cooldown = cooldown
        self.clock = clock

    def new_code(self) -> str:
        return "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))

    def issued_at(self, issued: IssuedCode) -> datetime:
        """The instant `issued` was handed out; used for the resend cooldown."""
        return issued.expires_at - self.ttl

    def generate(self) -> IssuedCode:
        return IssuedCode(self.new_code(), self.clock() + self.ttl)

    def reissue(self, last_issued_at: Optional[datetime]) -> IssuedCode:
        """
        Issue a replacement code, unless the previous one was issued
        less than `cooldown` ago, in which case TooSoon is raised.
        """
        now = self.clock()
        if last_issued_at is not None:
            elapsed = now - last_issued_at
            if elapsed < self.cooldown:
                remaining = (self.cooldown - elapsed).total_seconds()
                raise TooSoon(retry_after=max(1, math.ceil(remaining)))
        return IssuedCode(self.new_code(), now + self.ttl)
