# phone_auth/db/models/users/user.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ....utils import utcnow


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    phone: str = Field(max_length=20, unique=True, index=True)
    display_name: Optional[str] = Field(max_length=100, default=None)
    full_name: Optional[str] = Field(max_length=100, default=None)
    email: Optional[str] = Field(max_length=100, default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
