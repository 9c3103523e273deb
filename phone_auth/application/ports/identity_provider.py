from typing import Protocol

from .user_repo import IdentityDto


class IdentityProvider(Protocol):
    def create_session(self, identity: IdentityDto) -> str:
        """Establish a provider-side session for the identity and return its token."""
        ...
