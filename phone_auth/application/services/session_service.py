import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt

from ..ports.identity_provider import IdentityProvider
from ..ports.user_repo import IdentityDto
from .identity_service import IdentityService
from ...exceptions import SessionExpired, SessionMalformed
from ...utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class BackingSession:
    """Outcome of the best-effort identity-provider session. Never raised."""

    ok: bool
    token: Optional[str] = None
    error: Optional[str] = None


@dataclass
class IssuedSession:
    token: str
    issued_at: datetime
    expires_at: datetime
    backing: BackingSession = field(default_factory=lambda: BackingSession(ok=False))


@dataclass
class SessionService:
    identity_service: IdentityService
    secret_key: str
    algorithm: str = "HS256"
    ttl_hours: int = 24
    identity_provider: Optional[IdentityProvider] = None
    clock: Callable[[], datetime] = utcnow

    def create_token(self, identity: IdentityDto, issued_at: datetime, expires_at: datetime) -> str:
        claims = {
            "sub": identity.id,
            "phone": identity.phone,
            "iat": issued_at,
            "exp": expires_at,
            "type": "access",
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def establish_backing_session(self, identity: IdentityDto) -> BackingSession:
        if self.identity_provider is None:
            return BackingSession(ok=False, error="Identity provider not configured")
        try:
            token = self.identity_provider.create_session(identity)
        except Exception as e:
            return BackingSession(ok=False, error=str(e) or e.__class__.__name__)
        return BackingSession(ok=True, token=token)

    def issue(self, identity: IdentityDto) -> IssuedSession:
        """Mint the signed bearer token, then try for a provider session.

        The signed token is the credential handed to the client whatever
        happens with the provider; the provider outcome rides along in
        ``IssuedSession.backing``.
        """
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + timedelta(hours=self.ttl_hours)
        token = self.create_token(identity, issued_at, expires_at)
        backing = self.establish_backing_session(identity)
        return IssuedSession(token=token, issued_at=issued_at, expires_at=expires_at, backing=backing)

    def decode(self, token: str) -> dict:
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise SessionExpired()
        except jwt.InvalidTokenError:
            raise SessionMalformed()

    def validate(self, token: str) -> IdentityDto:
        payload = self.decode(token)
        return self.identity_service.get(payload["sub"])
