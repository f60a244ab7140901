import enum
from sqlalchemy import Column, Integer, String, Enum, TIMESTAMP, UniqueConstraint
from app.database import Base


class OtpPurpose(str, enum.Enum):
    ACTIVATION     = "ACTIVATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class OtpRecord(Base):
    __tablename__ = "otp_records"
    __table_args__ = (
        UniqueConstraint("email", "purpose", name="uq_otp_records_email_purpose"),
    )

    id          = Column(Integer, primary_key=True, index=True)
    email       = Column(String(255), nullable=False, index=True)
    purpose     = Column(Enum(OtpPurpose), nullable=False)
    code        = Column(String(10), nullable=False)
    generatedOn = Column(TIMESTAMP(timezone=True), nullable=False)
    validUpto   = Column(TIMESTAMP(timezone=True), nullable=False)
    consumedOn  = Column(TIMESTAMP(timezone=True), nullable=True)
    attempts    = Column(Integer, default=0, nullable=False)

    # Guards consumption and the attempts counter against concurrent verifies
    version     = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<OtpRecord id={self.id} email={self.email} purpose={self.purpose}>"
