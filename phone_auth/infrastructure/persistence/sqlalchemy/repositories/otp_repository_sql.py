import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import OtpRecord
from .....application.ports.otp_repo import OtpRepository, OtpDto
from .....exceptions import UpstreamFailure
from .....utils import ensure_utc, mask_phone

logger = logging.getLogger(__name__)


class SqlOtpRepository(OtpRepository):
    def __init__(self, engine: Engine):
        self.engine = engine

    def _to_dto(self, record: OtpRecord) -> OtpDto:
        return OtpDto(
            id=record.id,
            phone_number=record.phone_number,
            otp_code=record.otp_code,
            expires_at=ensure_utc(record.expires_at),
            verified=bool(record.verified),
            attempts=record.attempts or 0,
            created_at=ensure_utc(record.created_at),
        )

    def replace(self, phone_number: str, otp_code: str, expires_at: datetime) -> OtpDto:
        # A concurrent writer for the same phone trips the partial unique index; retry once.
        for attempt in range(2):
            try:
                with Session(self.engine) as session:
                    stale = session.exec(
                        select(OtpRecord).where(
                            OtpRecord.phone_number == phone_number,
                            OtpRecord.verified == False,
                        )
                    ).all()
                    for record in stale:
                        session.delete(record)
                    # Deletes must reach the database before the insert
                    session.flush()

                    record = OtpRecord(phone_number=phone_number, otp_code=otp_code, expires_at=ensure_utc(expires_at))
                    session.add(record)
                    session.commit()
                    session.refresh(record)
                    return self._to_dto(record)
            except IntegrityError:
                if attempt:
                    logger.exception("Could not store OTP for %s after retry", mask_phone(phone_number))
                    raise UpstreamFailure()
                logger.info("Concurrent OTP write for %s, retrying", mask_phone(phone_number))
            except SQLAlchemyError:
                logger.exception("Error storing OTP for %s", mask_phone(phone_number))
                raise UpstreamFailure()
        raise UpstreamFailure()

    def get_latest(self, phone_number: str) -> Optional[OtpDto]:
        try:
            with Session(self.engine) as session:
                record = session.exec(
                    select(OtpRecord)
                    .where(OtpRecord.phone_number == phone_number)
                    .order_by(OtpRecord.verified, OtpRecord.created_at.desc())
                ).first()
                return self._to_dto(record) if record else None
        except SQLAlchemyError:
            logger.exception("Error reading OTP for %s", mask_phone(phone_number))
            raise UpstreamFailure()

    def record_failed_attempt(self, otp_id: str) -> int:
        try:
            with Session(self.engine) as session:
                record = session.exec(
                    select(OtpRecord).where(OtpRecord.id == otp_id).with_for_update()
                ).first()
                if not record:
                    return 0
                record.attempts = (record.attempts or 0) + 1
                session.add(record)
                session.commit()
                return record.attempts
        except SQLAlchemyError:
            logger.exception("Error recording OTP attempt %s", otp_id)
            raise UpstreamFailure()

    def mark_verified(self, otp_id: str) -> bool:
        try:
            with Session(self.engine) as session:
                record = session.exec(
                    select(OtpRecord).where(OtpRecord.id == otp_id).with_for_update()
                ).first()
                if not record or record.verified:
                    return False
                record.verified = True
                record.attempts = (record.attempts or 0) + 1
                session.add(record)
                session.commit()
                return True
        except SQLAlchemyError:
            logger.exception("Error consuming OTP %s", otp_id)
            raise UpstreamFailure()

    def delete_expired(self, now: datetime, created_before: Optional[datetime] = None) -> int:
        condition = OtpRecord.expires_at < ensure_utc(now)
        if created_before is not None:
            condition = or_(condition, OtpRecord.created_at < ensure_utc(created_before))
        with Session(self.engine) as session:
            expired = session.exec(select(OtpRecord).where(condition)).all()
            count = len(expired)
            for record in expired:
                session.delete(record)
            session.commit()
            return count
