from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.account import Account
from app.repositories.account_store import SqlAccountStore
from app.repositories.otp_store import SqlOtpStore
from app.services.account_service import AccountService
from app.services.otp_service import OtpService
from app.utils.email import Notifier, build_notifier
from app.utils.exceptions import ForbiddenException, UnauthorizedException
from app.utils.security import CredentialHasher, verify_access_token

# Bearer token extractor
bearer_scheme = HTTPBearer(auto_error=False)


# ─── Shared Collaborators ─────────────────────────────────────────────────────
@lru_cache
def get_hasher() -> CredentialHasher:
    return CredentialHasher.from_settings()


@lru_cache
def get_notifier() -> Notifier:
    return build_notifier()


# ─── Services (one per request, bound to the request's session) ──────────────
def get_account_service(
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher),
) -> AccountService:
    return AccountService(SqlAccountStore(db), hasher)


def get_otp_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> OtpService:
    return OtpService(SqlAccountStore(db), SqlOtpStore(db), notifier)


# ─── Get Current Account ──────────────────────────────────────────────────────
def get_current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    account_service: AccountService = Depends(get_account_service),
) -> Account:
    """
    Validate JWT Bearer token and return the current Account.
    Raises 401 if token is missing, invalid, or expired.
    """
    if not credentials:
        raise UnauthorizedException("No authentication token provided")

    payload = verify_access_token(credentials.credentials)
    account_id: str | None = payload.get("sub")
    if account_id is None:
        raise UnauthorizedException("Invalid token payload")

    return account_service.get_account(account_id).unwrap()


# ─── Role Guards ──────────────────────────────────────────────────────────────
def require_roles(*roles: str):
    """
    Factory that returns a FastAPI dependency requiring one of the given role names.

    Usage:
        @router.get("/accounts")
        def route(current = Depends(require_roles("Admin", "ClientManager"))):
            ...
    """
    def dependency(current_account: Account = Depends(get_current_account)) -> Account:
        held = {link.role.name for link in current_account.client_roles}
        if held.isdisjoint(roles):
            raise ForbiddenException(f"This action requires one of these roles: {list(roles)}")
        return current_account
    return dependency
