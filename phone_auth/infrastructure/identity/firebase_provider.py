from typing import Optional
import logging

import firebase_admin
from firebase_admin import credentials, auth as fb_auth

from ...application.ports.identity_provider import IdentityProvider
from ...application.ports.user_repo import IdentityDto
from ...config import Settings

logger = logging.getLogger(__name__)


def init_firebase_app(settings: Settings) -> Optional[firebase_admin.App]:
    """Return the default Firebase app, initializing it from settings if needed."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    if not settings.firebase_configured:
        logger.warning("Firebase credentials are not configured; skipping initialization")
        return None
    cred = credentials.Certificate({
        "type": "service_account",
        "project_id": settings.FIREBASE_PROJECT_ID,
        "private_key": settings.FIREBASE_PRIVATE_KEY,
        "client_email": settings.FIREBASE_CLIENT_EMAIL,
        "token_uri": "https://oauth2.googleapis.com/token",
    })
    app = firebase_admin.initialize_app(cred, {"projectId": settings.FIREBASE_PROJECT_ID})
    logger.info("Firebase app initialized")
    return app


class FirebaseIdentityProvider(IdentityProvider):
    """Mirrors identities into Firebase Auth and mints custom tokens for them.

    The custom token lets clients sign in to Firebase so its security rules
    apply elsewhere; it is never the credential this service checks.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    def _ensure_user(self, identity: IdentityDto) -> None:
        try:
            fb_auth.get_user(identity.id, app=self.app)
        except fb_auth.UserNotFoundError:
            fb_auth.create_user(
                uid=identity.id,
                phone_number=identity.phone,
                display_name=identity.name,
                app=self.app,
            )
            logger.info("Created Firebase user %s", identity.id)

    def create_session(self, identity: IdentityDto) -> str:
        self._ensure_user(identity)
        token = fb_auth.create_custom_token(
            identity.id,
            {"phone_verified": True, "signup_method": "phone_otp"},
            app=self.app,
        )
        return token.decode() if isinstance(token, bytes) else token
