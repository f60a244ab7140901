"""
Import all models here so that:
1. Alembic can auto-detect them when generating migrations
2. Relationships between models resolve correctly

Order matters: import parent tables before child tables.
"""

from app.models.account import Account, AccountStatus, DeletedState
from app.models.role import Role, ClientRole
from app.models.otp_record import OtpRecord, OtpPurpose

__all__ = [
    "Account",
    "AccountStatus",
    "DeletedState",
    "Role",
    "ClientRole",
    "OtpRecord",
    "OtpPurpose",
]
