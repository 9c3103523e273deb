from typing import Protocol, Optional
from datetime import datetime


class IdentityDto:
    def __init__(self, id: str, phone: str, display_name: Optional[str], full_name: Optional[str],
                 email: Optional[str], created_at: datetime, updated_at: datetime):
        self.id = id
        self.phone = phone
        self.display_name = display_name
        self.full_name = full_name
        self.email = email
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def name(self) -> str:
        return self.full_name or self.display_name or "User"


class IdentityRepository(Protocol):
    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        ...

    def get_by_id(self, identity_id: str) -> Optional[IdentityDto]:
        ...

    def create(self, phone: str, display_name: str, full_name: str) -> IdentityDto:
        """Insert a new identity; raises AccountAlreadyExists when the phone is taken."""
        ...
