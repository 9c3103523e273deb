# phone_auth/db/models/auth/otp.py
from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ....utils import utcnow


class OtpRecord(SQLModel, table=True):
    __tablename__ = "otp_codes"
    # One live (non-verified) code per phone number
    __table_args__ = (
        Index(
            "uq_otp_codes_live_phone",
            "phone_number",
            unique=True,
            sqlite_where=text("NOT verified"),
            postgresql_where=text("NOT verified"),
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    phone_number: str = Field(max_length=20, index=True)
    otp_code: str = Field(max_length=6)
    expires_at: datetime = Field(index=True)
    verified: bool = Field(default=False)
    attempts: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)
