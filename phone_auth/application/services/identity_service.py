import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.user_repo import IdentityRepository, IdentityDto
from .phone import default_display_name
from ...exceptions import AccountAlreadyExists, AccountNotFound, IdentityNotFound
from ...utils import mask_phone

logger = logging.getLogger(__name__)

LOGIN = "login"
SIGNUP = "signup"


def flow_for(is_signup: bool) -> str:
    return SIGNUP if is_signup else LOGIN


@dataclass
class IdentityService:
    """Decides between login and signup for a canonical phone number.

    The eligibility check runs when the OTP is requested and again when it is
    verified, since another signup may land between the two requests.
    """

    user_repo: IdentityRepository
    demo_phone: Optional[str] = None

    def is_demo(self, phone: str) -> bool:
        return bool(self.demo_phone) and phone == self.demo_phone

    def ensure_eligible(self, phone: str, flow: str) -> Optional[IdentityDto]:
        existing = self.user_repo.get_by_phone(phone)
        if flow == SIGNUP:
            if existing is not None:
                logger.info("Signup refused, account exists for %s", mask_phone(phone))
                raise AccountAlreadyExists()
            return None
        if existing is None and not self.is_demo(phone):
            logger.info("Login refused, no account for %s", mask_phone(phone))
            raise AccountNotFound()
        return existing

    def resolve(self, phone: str, flow: str) -> IdentityDto:
        existing = self.user_repo.get_by_phone(phone)

        if flow == SIGNUP:
            if existing is not None:
                logger.info("Account for %s appeared before signup verify", mask_phone(phone))
                raise AccountAlreadyExists()
            return self._create(phone)

        if existing is not None:
            return existing
        if self.is_demo(phone):
            logger.info("Creating demo identity on first login")
            return self._create(phone)
        logger.info("Account for %s vanished before login verify", mask_phone(phone))
        raise AccountNotFound("Account not found. Please sign up first.")

    def get(self, identity_id: str) -> IdentityDto:
        identity = self.user_repo.get_by_id(identity_id)
        if identity is None:
            raise IdentityNotFound()
        return identity

    def _create(self, phone: str) -> IdentityDto:
        name = default_display_name(phone)
        identity = self.user_repo.create(phone=phone, display_name=name, full_name=name)
        logger.info("Created identity %s for %s", identity.id, mask_phone(phone))
        return identity
