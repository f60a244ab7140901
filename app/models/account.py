import enum
from sqlalchemy import Column, Integer, String, Boolean, Enum, TIMESTAMP
from sqlalchemy.orm import relationship
from app.database import Base


class AccountStatus(str, enum.Enum):
    ACTIVE    = "ACTIVE"
    INACTIVE  = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class DeletedState(str, enum.Enum):
    NOT_DELETED  = "NOT_DELETED"
    SOFT_DELETED = "SOFT_DELETED"
    HARD_DELETED = "HARD_DELETED"


class Account(Base):
    __tablename__ = "accounts"

    id           = Column(Integer, primary_key=True, index=True)
    accountId    = Column(String(36), unique=True, nullable=False, index=True)
    name         = Column(String(100), nullable=False)
    username     = Column(String(50), unique=True, nullable=False, index=True)
    email        = Column(String(255), unique=True, nullable=False, index=True)
    phone        = Column(String(30), nullable=False)
    passwordHash = Column(String(1024), nullable=False)
    salt         = Column(String(64), nullable=False)

    isActive     = Column(Boolean, default=False, nullable=False)
    status       = Column(Enum(AccountStatus), default=AccountStatus.INACTIVE, nullable=False)
    deletedState = Column(Enum(DeletedState), default=DeletedState.NOT_DELETED, nullable=False)

    attemptCount = Column(Integer, default=0, nullable=False)
    isLocked     = Column(Boolean, default=False, nullable=False)
    lockedUntil  = Column(TIMESTAMP(timezone=True), nullable=True)

    createdOn    = Column(TIMESTAMP(timezone=True), nullable=False)
    updatedOn    = Column(TIMESTAMP(timezone=True), nullable=False)
    lastLoginOn  = Column(TIMESTAMP(timezone=True), nullable=True)

    # Compare-and-swap token: every UPDATE is qualified by the version it read
    version      = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ─── Relationships ─────────────────────────────────────────────────────────
    client_roles = relationship("ClientRole", back_populates="account", cascade="all, delete-orphan")

    @property
    def is_activated(self) -> bool:
        return bool(self.isActive) and self.status == AccountStatus.ACTIVE

    @property
    def is_deleted(self) -> bool:
        return self.deletedState not in (None, DeletedState.NOT_DELETED)

    def __repr__(self):
        return f"<Account id={self.id} email={self.email} status={self.status}>"
