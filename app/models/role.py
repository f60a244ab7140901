from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base


class Role(Base):
    __tablename__ = "roles"

    id          = Column(Integer, primary_key=True, index=True)
    name        = Column(String(50), unique=True, nullable=False)
    description = Column(String(255), nullable=True)

    # ─── Relationships ─────────────────────────────────────────────────────────
    client_roles = relationship("ClientRole", back_populates="role")

    def __repr__(self):
        return f"<Role id={self.id} name={self.name}>"


class ClientRole(Base):
    __tablename__ = "client_roles"

    accountId = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True)
    roleId    = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)

    # ─── Relationships ─────────────────────────────────────────────────────────
    account = relationship("Account", back_populates="client_roles")
    role    = relationship("Role", back_populates="client_roles")

    def __repr__(self):
        return f"<ClientRole accountId={self.accountId} roleId={self.roleId}>"
