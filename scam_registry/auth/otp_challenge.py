"""
OTP Challenge
Client-side verification step after registration or an OTP login handoff:
countdown, input sanitization, auto-submit and resend eligibility
"""

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from scam_registry.core.config import settings

logger = logging.getLogger(__name__)

ResendHook = Callable[[Optional[str], Optional[str]], Awaitable[object]]


def sanitize_code(value: Optional[str], length: int = settings.OTP_LENGTH) -> str:
    """Strip non-digits and truncate to the code length"""
    return re.sub(r"\D", "", value or "")[:length]


def format_time(seconds: int) -> str:
    """Render a countdown as m:ss"""
    seconds = max(int(seconds), 0)
    return f"{seconds // 60}:{seconds % 60:02d}"


class OTPChallenge:
    """
    A time-boxed OTP verification step bound to one email or phone number.

    The challenge owns its countdown; the session manager owns the
    verification outcome. Verification failures leave the countdown running.
    """

    def __init__(
        self,
        session,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        on_resend: Optional[ResendHook] = None,
        validity_seconds: int = settings.OTP_VALIDITY_SECONDS,
        code_length: int = settings.OTP_LENGTH
    ):
        email = email or None
        phone_number = phone_number or None
        if (email is None) == (phone_number is None):
            raise ValueError("Exactly one of email or phone number is required")

        self.session = session
        self.email = email
        self.phone_number = phone_number
        self.on_resend = on_resend
        self.validity_seconds = validity_seconds
        self.code_length = code_length

        self.deadline = datetime.now(timezone.utc) + timedelta(seconds=validity_seconds)
        self.time_left = validity_seconds
        self.can_resend = False
        self.code = ""
        self.verified = False
        self.closed = False

        self._last_auto_submitted: Optional[str] = None
        self._timer: Optional[asyncio.Task] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def target(self) -> str:
        return self.email or self.phone_number

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.deadline

    @property
    def is_complete(self) -> bool:
        return len(self.code) == self.code_length

    @property
    def countdown_label(self) -> str:
        if self.time_left > 0:
            return f"Code expires in {format_time(self.time_left)}"
        return "Code has expired"

    # Countdown

    def start(self) -> None:
        """Start the once-per-second countdown on the running loop"""
        if self._timer is None or self._timer.done():
            self._timer = asyncio.get_running_loop().create_task(self._run_countdown())

    async def _run_countdown(self) -> None:
        while self.time_left > 0 and not self.closed:
            await asyncio.sleep(1)
            self.tick()

    def tick(self) -> None:
        """Advance the countdown by one second"""
        if self.time_left > 0:
            self.time_left -= 1
        if self.time_left == 0 and not self.can_resend:
            self.can_resend = True
            logger.info(f"OTP for {self.target} expired, resend available")

    async def resend(self) -> bool:
        """
        Reset the countdown and ask for a new code.
        Only allowed once the countdown has reached zero.
        """
        if not self.can_resend or self.closed:
            return False

        self.time_left = self.validity_seconds
        self.deadline = datetime.now(timezone.utc) + timedelta(seconds=self.validity_seconds)
        self.can_resend = False
        self._last_auto_submitted = None
        logger.info(f"Resending OTP to {self.target}")

        if self.on_resend is not None:
            try:
                await self.on_resend(self.email, self.phone_number)
            except Exception as e:
                logger.error(f"OTP resend failed for {self.target}: {str(e)}")

        if self._timer is not None and self._timer.done():
            self.start()
        return True

    # Code entry

    def enter(self, value: str) -> Optional[asyncio.Task]:
        """
        Accept raw input. A complete code triggers one automatic submission.

        Returns:
            The verification task when auto-submit fired, else None
        """
        self.code = sanitize_code(value, self.code_length)
        if not self.is_complete:
            # editing re-arms auto-submit for the next complete code
            self._last_auto_submitted = None
            return None
        if self.code == self._last_auto_submitted:
            return None

        self._last_auto_submitted = self.code
        self._pending = asyncio.get_running_loop().create_task(self._verify(self.code))
        return self._pending

    async def submit(self) -> bool:
        """Manual submission for input methods that bypass auto-submit"""
        if not self.is_complete:
            logger.info("Ignoring submission of incomplete OTP code")
            return False
        return await self._verify(self.code)

    async def _verify(self, code: str) -> bool:
        if self.closed:
            return False

        success = await self.session.verify_otp(self.email, self.phone_number, code)
        if success:
            self.verified = True
            self.close()
        return success

    def close(self) -> None:
        """Tear down the challenge (verified or navigated away)"""
        self.closed = True
        self.code = ""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
