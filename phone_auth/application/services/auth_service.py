import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.audit_logger import AuditLogger
from ..ports.rate_limiter import RateLimiter
from ..ports.user_repo import IdentityDto
from .identity_service import IdentityService, flow_for
from .otp_service import OtpService, OtpDispatch
from .phone import normalize_phone
from .session_service import SessionService, IssuedSession
from ...exceptions import AuthError, RateLimited
from ...utils import mask_phone

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    identity: IdentityDto
    session: IssuedSession


@dataclass
class AuthService:
    """Phone OTP login/signup flow behind the three auth endpoints."""

    otp_service: OtpService
    identity_service: IdentityService
    session_service: SessionService
    rate_limiter: Optional[RateLimiter] = None
    audit: Optional[AuditLogger] = None
    default_country_code: str = "+1"
    send_max_per_window: int = 5
    send_window_seconds: int = 3600

    def _audit(self, action: str, phone: str, **kwargs) -> None:
        if self.audit is not None:
            self.audit.log(action, phone, **kwargs)

    def send_otp(self, phone: str, is_signup: bool, request_id: Optional[str] = None,
                 ip_address: Optional[str] = None) -> OtpDispatch:
        phone = normalize_phone(phone, self.default_country_code)
        flow = flow_for(is_signup)
        logger.info("%s OTP requested for %s", flow.capitalize(), mask_phone(phone))

        if self.rate_limiter is not None and not self.otp_service.is_demo(phone):
            if not self.rate_limiter.allow(f"send-otp:{phone}", self.send_max_per_window, self.send_window_seconds):
                self._audit("rate_limit_exceeded", phone, request_id=request_id, ip_address=ip_address, success=False)
                raise RateLimited()

        try:
            self.identity_service.ensure_eligible(phone, flow)
            dispatch = self.otp_service.send_otp(phone)
        except AuthError as e:
            self._audit("otp_send_refused", phone, request_id=request_id, ip_address=ip_address,
                        success=False, details={"flow": flow, "reason": e.__class__.__name__})
            raise

        self._audit("otp_sent", phone, request_id=request_id, ip_address=ip_address,
                    details={"flow": flow, "demo": dispatch.is_demo})
        return dispatch

    def verify_otp(self, phone: str, otp: str, is_signup: bool, request_id: Optional[str] = None,
                   ip_address: Optional[str] = None) -> VerifyResult:
        phone = normalize_phone(phone, self.default_country_code)
        flow = flow_for(is_signup)

        try:
            self.otp_service.verify(phone, otp)
            identity = self.identity_service.resolve(phone, flow)
        except AuthError as e:
            self._audit("otp_verify_failed", phone, request_id=request_id, ip_address=ip_address,
                        success=False, details={"flow": flow, "reason": e.__class__.__name__})
            raise

        session = self.session_service.issue(identity)
        if not session.backing.ok:
            logger.warning("Backing session unavailable for %s, using signed token only: %s",
                           identity.id, session.backing.error)

        self._audit("session_issued", phone, user_id=identity.id, request_id=request_id, ip_address=ip_address,
                    details={"flow": flow, "backing_session": session.backing.ok})
        return VerifyResult(identity=identity, session=session)

    def validate_session(self, token: str) -> IdentityDto:
        return self.session_service.validate(token)
