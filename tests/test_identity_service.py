from typing import Optional

import pytest

from phone_auth.application.ports.user_repo import IdentityRepository, IdentityDto
from phone_auth.application.services.identity_service import IdentityService, LOGIN, SIGNUP, flow_for
from phone_auth.exceptions import AccountAlreadyExists, AccountNotFound, IdentityNotFound
from phone_auth.utils import utcnow

DEMO = "+15555555555"


class FakeIdentityRepo(IdentityRepository):
    def __init__(self):
        self.identities = {
            "+15551234567": IdentityDto(
                id="user-1",
                phone="+15551234567",
                display_name="Alice",
                full_name="Alice Smith",
                email=None,
                created_at=utcnow(),
                updated_at=utcnow(),
            )
        }

    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        return self.identities.get(phone)

    def get_by_id(self, identity_id: str) -> Optional[IdentityDto]:
        for identity in self.identities.values():
            if identity.id == identity_id:
                return identity
        return None

    def create(self, phone: str, display_name: str, full_name: str) -> IdentityDto:
        if phone in self.identities:
            raise AccountAlreadyExists()
        identity = IdentityDto(
            id=f"user-{len(self.identities) + 1}",
            phone=phone,
            display_name=display_name,
            full_name=full_name,
            email=None,
            created_at=utcnow(),
            updated_at=utcnow(),
        )
        self.identities[phone] = identity
        return identity


def make_service():
    repo = FakeIdentityRepo()
    return IdentityService(user_repo=repo, demo_phone=DEMO), repo


def test_flow_for():
    assert flow_for(True) == SIGNUP
    assert flow_for(False) == LOGIN


def test_login_requires_existing_account():
    svc, _ = make_service()
    assert svc.ensure_eligible("+15551234567", LOGIN).id == "user-1"
    with pytest.raises(AccountNotFound):
        svc.ensure_eligible("+15550000000", LOGIN)


def test_signup_refuses_existing_account():
    svc, _ = make_service()
    assert svc.ensure_eligible("+15550000000", SIGNUP) is None
    with pytest.raises(AccountAlreadyExists):
        svc.ensure_eligible("+15551234567", SIGNUP)


def test_demo_number_may_log_in_without_account():
    svc, _ = make_service()
    assert svc.ensure_eligible(DEMO, LOGIN) is None


def test_resolve_login_returns_existing_identity_without_creating():
    svc, repo = make_service()
    identity = svc.resolve("+15551234567", LOGIN)
    assert identity.id == "user-1"
    assert len(repo.identities) == 1


def test_resolve_login_for_vanished_account_fails():
    svc, repo = make_service()
    with pytest.raises(AccountNotFound):
        svc.resolve("+15550000000", LOGIN)
    assert "+15550000000" not in repo.identities


def test_resolve_signup_creates_identity_with_default_name():
    svc, repo = make_service()
    identity = svc.resolve("+15550009876", SIGNUP)
    assert identity.display_name == "User 9876"
    assert identity.full_name == "User 9876"
    assert identity.name == "User 9876"
    assert repo.get_by_phone("+15550009876") is identity


def test_resolve_signup_catches_account_created_after_send():
    svc, repo = make_service()
    svc.ensure_eligible("+15550000000", SIGNUP)
    repo.create("+15550000000", "Racer", "Racer")
    with pytest.raises(AccountAlreadyExists):
        svc.resolve("+15550000000", SIGNUP)


def test_resolve_demo_login_creates_identity_once():
    svc, repo = make_service()
    first = svc.resolve(DEMO, LOGIN)
    second = svc.resolve(DEMO, LOGIN)
    assert first.id == second.id
    assert first.name == "User 5555"


def test_get_unknown_identity():
    svc, _ = make_service()
    assert svc.get("user-1").phone == "+15551234567"
    with pytest.raises(IdentityNotFound):
        svc.get("nobody")
