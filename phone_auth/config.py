# phone_auth/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    # Application Settings
    APP_NAME: str = "BarCrush Auth API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True
    API_PREFIX: str = "/api/auth"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./barcrush_auth.db")

    # Security Settings
    SECRET_KEY: str = Field(default="change-me-in-prod", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    SESSION_TTL_HOURS: int = 24

    # OTP Settings
    OTP_LENGTH: int = 6
    OTP_TTL_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 3
    OTP_CLEANUP_ENABLED: bool = True
    OTP_CLEANUP_INTERVAL_SECONDS: int = 10 * 60
    # Empty, "none" or 0 disables the stale-record sweep
    OTP_STALE_AFTER_MINUTES: Optional[int] = 60
    OTP_SEND_MAX_PER_WINDOW: int = 5
    OTP_SEND_WINDOW_SECONDS: int = 60 * 60

    # Phone Settings
    DEFAULT_COUNTRY_CODE: str = "+1"
    # Reviewer/demo account: fixed code, no SMS, no pre-existing account needed for login
    DEMO_PHONE_NUMBER: Optional[str] = "+15555555555"
    DEMO_OTP_CODE: str = "123456"

    # SMS Settings
    SMS_BRAND_NAME: str = "BarCrush"
    SMS_DRY_RUN: bool = False

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = os.environ.get("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.environ.get("TWILIO_AUTH_TOKEN", "")
    TWILIO_PHONE_NUMBER: str = os.environ.get("TWILIO_PHONE_NUMBER", "")
    TWILIO_TIMEOUT_SECONDS: int = 15
    TWILIO_MAX_RETRIES: int = 3

    # Firebase Settings (backing identity-provider session)
    FIREBASE_PROJECT_ID: str = os.environ.get("FIREBASE_PROJECT_ID", "")
    FIREBASE_PRIVATE_KEY: str = os.environ.get("FIREBASE_PRIVATE_KEY", "").replace('\\n', '\n')
    FIREBASE_CLIENT_EMAIL: str = os.environ.get("FIREBASE_CLIENT_EMAIL", "")

    # Rate Limiting
    REDIS_URL: Optional[str] = os.environ.get("REDIS_URL", None)

    # CORS Settings
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("OTP_STALE_AFTER_MINUTES", mode="before")
    @classmethod
    def parse_stale_after(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("", "none", "null", "0"):
            return None
        if v in (None, 0):
            return None
        return v

    # Helper methods for list envs
    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_PHONE_NUMBER)

    @property
    def firebase_configured(self) -> bool:
        return bool(self.FIREBASE_PROJECT_ID and self.FIREBASE_PRIVATE_KEY and self.FIREBASE_CLIENT_EMAIL)


@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # Normalize ALLOWED_ORIGINS if provided as comma-separated string env var CORS_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s
