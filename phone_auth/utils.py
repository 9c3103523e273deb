import hashlib
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values read back from the datastore."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Epoch milliseconds for a UTC datetime (naive values are taken as UTC)."""
    return int(ensure_utc(value).timestamp() * 1000)


def hash_phone_number(phone: str) -> str:
    """Hash phone number for security (one-way hash)"""
    return hashlib.sha256(phone.encode()).hexdigest()


def mask_phone(phone: str) -> str:
    """Keep the country prefix and last 4 digits for log lines."""
    if not phone or len(phone) <= 6:
        return "***"
    return f"{phone[:3]}***{phone[-4:]}"
