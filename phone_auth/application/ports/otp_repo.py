from typing import Optional, Protocol
from dataclasses import dataclass
from datetime import datetime


@dataclass
class OtpDto:
    id: str
    phone_number: str
    otp_code: str
    expires_at: datetime
    verified: bool
    attempts: int
    created_at: datetime


class OtpRepository(Protocol):
    def replace(self, phone_number: str, otp_code: str, expires_at: datetime) -> OtpDto:
        """Drop any non-verified code for the phone and store the new one atomically."""
        ...

    def get_latest(self, phone_number: str) -> Optional[OtpDto]:
        ...

    def record_failed_attempt(self, otp_id: str) -> int:
        ...

    def mark_verified(self, otp_id: str) -> bool:
        """Flip verified to true; False when the record was already consumed or is gone."""
        ...

    def delete_expired(self, now: datetime, created_before: Optional[datetime] = None) -> int:
        ...
