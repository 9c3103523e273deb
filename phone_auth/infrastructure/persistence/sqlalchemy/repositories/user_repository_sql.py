import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import Profile
from .....application.ports.user_repo import IdentityRepository, IdentityDto
from .....exceptions import AccountAlreadyExists, UpstreamFailure
from .....utils import ensure_utc, mask_phone

logger = logging.getLogger(__name__)


class SqlIdentityRepository(IdentityRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def _to_dto(self, profile: Profile) -> IdentityDto:
        return IdentityDto(
            id=profile.id,
            phone=profile.phone,
            display_name=profile.display_name,
            full_name=profile.full_name,
            email=profile.email,
            created_at=ensure_utc(profile.created_at),
            updated_at=ensure_utc(profile.updated_at),
        )

    def get_by_phone(self, phone: str) -> Optional[IdentityDto]:
        try:
            with Session(self.engine) as session:
                profile = session.exec(select(Profile).where(Profile.phone == phone)).first()
                return self._to_dto(profile) if profile else None
        except SQLAlchemyError:
            logger.exception("Error looking up profile for %s", mask_phone(phone))
            raise UpstreamFailure()

    def get_by_id(self, identity_id: str) -> Optional[IdentityDto]:
        try:
            with Session(self.engine) as session:
                profile = session.exec(select(Profile).where(Profile.id == identity_id)).first()
                return self._to_dto(profile) if profile else None
        except SQLAlchemyError:
            logger.exception("Error looking up profile %s", identity_id)
            raise UpstreamFailure()

    def create(self, phone: str, display_name: str, full_name: str) -> IdentityDto:
        try:
            with Session(self.engine) as session:
                profile = Profile(phone=phone, display_name=display_name, full_name=full_name)
                session.add(profile)
                session.commit()
                session.refresh(profile)
                return self._to_dto(profile)
        except IntegrityError:
            # Unique phone constraint: someone else signed up with this number first
            raise AccountAlreadyExists()
        except SQLAlchemyError:
            logger.exception("Error creating profile for %s", mask_phone(phone))
            raise UpstreamFailure()
