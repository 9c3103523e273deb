import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

# Load environment variables as early as possible
load_dotenv()

from .config import Settings, get_settings
from .database import build_engine, create_db_and_tables
from .exceptions import validation_exception_handler
from .middleware import SecurityMiddleware, LoggingMiddleware, ErrorHandlingMiddleware
from .routers import auth_router, health_router
from .application.ports.identity_provider import IdentityProvider
from .application.ports.rate_limiter import RateLimiter
from .application.ports.sms_gateway import SmsGateway
from .application.services.auth_service import AuthService
from .application.services.cleanup import OtpCleanupTask
from .application.services.identity_service import IdentityService
from .application.services.otp_service import OtpService
from .application.services.phone import normalize_phone
from .application.services.session_service import SessionService
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.identity.firebase_provider import FirebaseIdentityProvider, init_firebase_app
from .infrastructure.persistence.sqlalchemy.repositories.otp_repository_sql import SqlOtpRepository
from .infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlIdentityRepository
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
from .infrastructure.sms.twilio_gateway import TwilioSmsGateway

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )


def build_sms_gateway(settings: Settings) -> Optional[SmsGateway]:
    if not settings.twilio_configured:
        if not settings.SMS_DRY_RUN:
            logger.warning("Twilio is not configured and SMS_DRY_RUN is off; OTP delivery will fail")
        return None
    return TwilioSmsGateway.from_settings(settings)


def build_identity_provider(settings: Settings) -> Optional[IdentityProvider]:
    if not settings.firebase_configured:
        logger.info("Firebase not configured; sessions will use the signed token only")
        return None
    try:
        app = init_firebase_app(settings)
    except Exception as e:
        logger.error(f"Failed to initialize Firebase app: {e}")
        return None
    return FirebaseIdentityProvider(app) if app else None


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.REDIS_URL:
        logger.info("Using Redis rate limiter")
        return RedisRateLimiter(url=settings.REDIS_URL)
    logger.info("Using memory-based rate limiting")
    return InMemoryRateLimiter()


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    sms_gateway: Optional[SmsGateway] = None,
    identity_provider: Optional[IdentityProvider] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """Build the API with every collaborator constructed here and owned by the app.

    Collaborators not passed in are built from ``settings``; tests pass fakes.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    if settings.SECRET_KEY == "change-me-in-prod" and not settings.DEBUG:
        logger.warning("JWT_SECRET_KEY is not configured; session tokens use the default key")

    engine = engine or build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    if sms_gateway is None:
        sms_gateway = build_sms_gateway(settings)
    if identity_provider is None:
        identity_provider = build_identity_provider(settings)
    if rate_limiter is None:
        rate_limiter = build_rate_limiter(settings)

    demo_phone = None
    if settings.DEMO_PHONE_NUMBER:
        demo_phone = normalize_phone(settings.DEMO_PHONE_NUMBER, settings.DEFAULT_COUNTRY_CODE)

    otp_repo = SqlOtpRepository(engine)
    user_repo = SqlIdentityRepository(engine)

    otp_service = OtpService(
        otp_repo=otp_repo,
        sms_gateway=sms_gateway,
        ttl_minutes=settings.OTP_TTL_MINUTES,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        code_length=settings.OTP_LENGTH,
        default_country_code=settings.DEFAULT_COUNTRY_CODE,
        demo_phone=demo_phone,
        demo_code=settings.DEMO_OTP_CODE,
        brand_name=settings.SMS_BRAND_NAME,
        dry_run=settings.SMS_DRY_RUN,
    )
    identity_service = IdentityService(user_repo=user_repo, demo_phone=demo_phone)
    session_service = SessionService(
        identity_service=identity_service,
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        ttl_hours=settings.SESSION_TTL_HOURS,
        identity_provider=identity_provider,
    )
    auth_service = AuthService(
        otp_service=otp_service,
        identity_service=identity_service,
        session_service=session_service,
        rate_limiter=rate_limiter,
        audit=StdAuditLogger(),
        default_country_code=settings.DEFAULT_COUNTRY_CODE,
        send_max_per_window=settings.OTP_SEND_MAX_PER_WINDOW,
        send_window_seconds=settings.OTP_SEND_WINDOW_SECONDS,
    )
    cleanup_task = OtpCleanupTask(
        otp_repo,
        interval_seconds=settings.OTP_CLEANUP_INTERVAL_SECONDS,
        stale_after_minutes=settings.OTP_STALE_AFTER_MINUTES,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.APP_NAME}...")
        app.state.db_init_ok = True
        try:
            create_db_and_tables(engine)
            logger.info("Database initialized successfully")
        except Exception:
            # Do not crash the app; report via health endpoint
            app.state.db_init_ok = False
            logger.exception("Database initialization failed")
        if settings.OTP_CLEANUP_ENABLED:
            cleanup_task.start()
        yield
        # Shutdown
        await cleanup_task.stop()
        logger.info(f"Shutting down {settings.APP_NAME}...")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.auth_service = auth_service
    app.state.cleanup_task = cleanup_task

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router, prefix=settings.API_PREFIX)
    app.include_router(health_router.router)

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("phone_auth.main:create_app", factory=True, host=settings.HOST, port=settings.PORT)
