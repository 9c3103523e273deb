from datetime import timedelta
from typing import Optional

import jwt
import pytest

from phone_auth.application.ports.user_repo import IdentityDto
from phone_auth.application.services.identity_service import IdentityService
from phone_auth.application.services.session_service import SessionService
from phone_auth.exceptions import SessionExpired, SessionMalformed, IdentityNotFound
from phone_auth.utils import utcnow

SECRET = "test-secret"


def make_identity(identity_id: str = "user-1", phone: str = "+15551230000") -> IdentityDto:
    return IdentityDto(
        id=identity_id,
        phone=phone,
        display_name="User 0000",
        full_name="User 0000",
        email=None,
        created_at=utcnow(),
        updated_at=utcnow(),
    )


class FakeIdentityRepo:
    def __init__(self, *identities: IdentityDto):
        self.by_id = {i.id: i for i in identities}

    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        return next((i for i in self.by_id.values() if i.phone == phone), None)

    def get_by_id(self, identity_id: str) -> Optional[IdentityDto]:
        return self.by_id.get(identity_id)

    def create(self, phone, display_name, full_name):
        raise NotImplementedError


class FakeProvider:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def create_session(self, identity: IdentityDto) -> str:
        self.calls.append(identity.id)
        if self.fail:
            raise RuntimeError("provider down")
        return f"custom-{identity.id}"


def make_service(provider=None, clock=utcnow, *identities):
    identities = identities or (make_identity(),)
    repo = FakeIdentityRepo(*identities)
    return SessionService(
        identity_service=IdentityService(user_repo=repo),
        secret_key=SECRET,
        identity_provider=provider,
        clock=clock,
    ), repo


def test_issue_returns_signed_token_valid_for_24_hours():
    svc, _ = make_service()
    identity = make_identity()
    session = svc.issue(identity)
    assert session.expires_at - session.issued_at == timedelta(hours=24)
    claims = jwt.decode(session.token, SECRET, algorithms=["HS256"])
    assert claims["sub"] == "user-1"
    assert claims["phone"] == "+15551230000"
    assert claims["exp"] - claims["iat"] == 24 * 3600


def test_validate_returns_identity():
    svc, _ = make_service()
    token = svc.issue(make_identity()).token
    assert svc.validate(token).id == "user-1"


def test_expired_token_is_rejected():
    past = utcnow() - timedelta(hours=24, seconds=1)
    svc, _ = make_service(None, lambda: past)
    token = svc.issue(make_identity()).token
    with pytest.raises(SessionExpired):
        svc.validate(token)


@pytest.mark.parametrize("token", ["not-a-token", "eyJ1c2VySWQiOiAiMSJ9", ""])
def test_garbage_token_is_malformed(token):
    svc, _ = make_service()
    with pytest.raises(SessionMalformed):
        svc.validate(token)


def test_token_signed_with_other_key_is_malformed():
    svc, _ = make_service()
    forged = jwt.encode(
        {"sub": "user-1", "phone": "+15551230000", "iat": utcnow(), "exp": utcnow() + timedelta(hours=1)},
        "someone-else",
        algorithm="HS256",
    )
    with pytest.raises(SessionMalformed):
        svc.validate(forged)


def test_identity_removed_after_issue():
    svc, repo = make_service()
    token = svc.issue(make_identity()).token
    repo.by_id.clear()
    with pytest.raises(IdentityNotFound):
        svc.validate(token)


def test_backing_session_success_is_attached():
    provider = FakeProvider()
    svc, _ = make_service(provider)
    session = svc.issue(make_identity())
    assert session.backing.ok is True
    assert session.backing.token == "custom-user-1"


def test_backing_session_failure_never_breaks_issue():
    provider = FakeProvider(fail=True)
    svc, _ = make_service(provider)
    session = svc.issue(make_identity())
    assert provider.calls == ["user-1"]
    assert session.backing.ok is False
    assert "provider down" in session.backing.error
    assert svc.validate(session.token).id == "user-1"


def test_no_provider_configured():
    svc, _ = make_service()
    session = svc.issue(make_identity())
    assert session.backing.ok is False
    assert session.backing.token is None
