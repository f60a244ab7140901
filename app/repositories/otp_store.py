import logging
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.models.otp_record import OtpRecord, OtpPurpose
from app.repositories.account_store import ConcurrentUpdateError

logger = logging.getLogger(__name__)


class OtpStore(Protocol):
    def find_by_email(self, email: str, purpose: OtpPurpose) -> OtpRecord | None: ...

    def insert(self, record: OtpRecord) -> OtpRecord: ...

    def update(self, record: OtpRecord) -> None: ...


class SqlOtpStore:
    """
    OtpStore backed by a SQLAlchemy session. Updates are version-checked,
    so only one of two racing verifications can consume a record.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str, purpose: OtpPurpose) -> OtpRecord | None:
        return (
            self.db.query(OtpRecord)
            .filter(OtpRecord.email == email, OtpRecord.purpose == purpose)
            .first()
        )

    def insert(self, record: OtpRecord) -> OtpRecord:
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request created the row first; last write wins.
            self.db.rollback()
            existing = self.find_by_email(record.email, record.purpose)
            if existing is None:
                raise
            logger.info(f"OTP row for {record.email} ({record.purpose.value}) created concurrently, overwriting")
            existing.code        = record.code
            existing.generatedOn = record.generatedOn
            existing.validUpto   = record.validUpto
            existing.consumedOn  = None
            existing.attempts    = 0
            self.update(existing)
            return existing
        self.db.refresh(record)
        return record

    def update(self, record: OtpRecord) -> None:
        self.db.add(record)
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise ConcurrentUpdateError(f"OTP record {record.id} was modified concurrently") from exc
