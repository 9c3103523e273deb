import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..ports.otp_repo import OtpRepository, OtpDto
from ..ports.sms_gateway import SmsGateway
from .phone import normalize_phone
from ...exceptions import (
    OtpNotFound,
    OtpExpired,
    OtpMismatch,
    OtpAlreadyUsed,
    OtpTooManyAttempts,
    UpstreamFailure,
)
from ...utils import utcnow, mask_phone

logger = logging.getLogger(__name__)


@dataclass
class OtpDispatch:
    phone: str
    expires_at: datetime
    is_demo: bool = False
    message_id: Optional[str] = None


@dataclass
class OtpVerification:
    phone: str
    otp_id: str


@dataclass
class OtpService:
    """Generates, stores and verifies one-time codes for phone numbers."""

    otp_repo: OtpRepository
    sms_gateway: Optional[SmsGateway] = None
    ttl_minutes: int = 5
    max_attempts: int = 3
    code_length: int = 6
    default_country_code: str = "+1"
    demo_phone: Optional[str] = None
    demo_code: str = "123456"
    brand_name: str = "BarCrush"
    dry_run: bool = False
    clock: Callable[[], datetime] = utcnow

    def generate_code(self) -> str:
        return f"{secrets.randbelow(10 ** self.code_length):0{self.code_length}d}"

    def is_demo(self, phone: str) -> bool:
        return bool(self.demo_phone) and phone == self.demo_phone

    def message_body(self, code: str) -> str:
        return f"Your {self.brand_name} verification code is: {code}. Valid for {self.ttl_minutes} minutes."

    def store_otp(self, phone: str, code: str) -> OtpDto:
        expires_at = self.clock() + timedelta(minutes=self.ttl_minutes)
        return self.otp_repo.replace(phone, code, expires_at)

    def send_otp(self, phone: str) -> OtpDispatch:
        phone = normalize_phone(phone, self.default_country_code)

        # Demo carve-out: fixed well-known code, never reaches the SMS gateway
        if self.is_demo(phone):
            record = self.store_otp(phone, self.demo_code)
            logger.info("Demo number %s: stored fixed OTP, SMS skipped", mask_phone(phone))
            return OtpDispatch(phone=phone, expires_at=record.expires_at, is_demo=True)

        code = self.generate_code()
        record = self.store_otp(phone, code)

        if self.dry_run:
            logger.info("SMS dry run for %s, code %s", mask_phone(phone), code)
            return OtpDispatch(phone=phone, expires_at=record.expires_at)

        if self.sms_gateway is None:
            logger.error("No SMS gateway configured; cannot deliver OTP to %s", mask_phone(phone))
            raise UpstreamFailure()

        message_id = self.sms_gateway.send_sms(to=phone, body=self.message_body(code))
        logger.info("OTP sent to %s, message id %s", mask_phone(phone), message_id)
        return OtpDispatch(phone=phone, expires_at=record.expires_at, message_id=message_id)

    def verify(self, phone: str, submitted_code: str) -> OtpVerification:
        """Check ``submitted_code`` against the latest code stored for ``phone``.

        The record is consumed on success, so the same code cannot be used
        twice. A wrong code counts towards the attempt ceiling.
        """
        phone = normalize_phone(phone, self.default_country_code)
        record = self.otp_repo.get_latest(phone)

        if record is None:
            raise OtpNotFound()
        if record.verified:
            raise OtpAlreadyUsed()
        if self.clock() > record.expires_at:
            raise OtpExpired()
        if record.attempts >= self.max_attempts:
            raise OtpTooManyAttempts()

        if not hmac.compare_digest(record.otp_code.encode(), (submitted_code or "").encode()):
            attempts = self.otp_repo.record_failed_attempt(record.id)
            logger.info("OTP mismatch for %s (attempt %d/%d)", mask_phone(phone), attempts, self.max_attempts)
            if attempts >= self.max_attempts:
                raise OtpTooManyAttempts()
            raise OtpMismatch()

        if not self.otp_repo.mark_verified(record.id):
            raise OtpAlreadyUsed()

        return OtpVerification(phone=phone, otp_id=record.id)
