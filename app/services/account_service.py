import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable

from app.config import settings
from app.models.account import Account, AccountStatus, DeletedState
from app.repositories.account_store import AccountStore, retry_on_conflict
from app.services.result import service_operation
from app.utils.audit import log_action
from app.utils.exceptions import (
    DuplicateEmailException, DuplicateUsernameException,
    InvalidCredentialsException, AccountLockedException,
    AccountNotActivatedException, AccountNotFoundException,
)
from app.utils.security import CredentialHasher, as_utc, utc_now

logger = logging.getLogger(__name__)


class AccountService:
    """
    Registration, password login with progressive lockout, and password reset.

    Lockout is a small state machine kept on the Account row:

        Unlocked(n)  --wrong pw-->    Unlocked(n+1)      while n+1 < max_attempts
        Unlocked(n)  --wrong pw-->    Locked(now+window) when n+1 == max_attempts
        Unlocked(n)  --correct pw-->  Unlocked(0)
        Locked(t)    --now >= t-->    Unlocked(0)        evaluated on the next login
        Locked(t)    --now < t-->     Locked(t)          attempt rejected, counter untouched

    Every public method returns a ServiceResult.
    """

    def __init__(
        self,
        accounts: AccountStore,
        hasher: CredentialHasher,
        clock: Callable[[], datetime] = utc_now,
        max_attempts: int = settings.LOGIN_MAX_ATTEMPTS,
        lockout_minutes: int = settings.LOGIN_LOCKOUT_MINUTES,
        conflict_retries: int = settings.LOGIN_CONFLICT_RETRIES,
    ):
        self.accounts = accounts
        self.hasher = hasher
        self.clock = clock
        self.max_attempts = max_attempts
        self.lockout_window = timedelta(minutes=lockout_minutes)
        self.conflict_retries = max(conflict_retries, 0)

    # ─── Register ─────────────────────────────────────────────────────────────
    @service_operation
    def register(
        self,
        name: str,
        username: str,
        email: str,
        phone: str,
        password: str,
        role_id: int | None = None,
    ) -> Account:
        # Not atomic; the store's unique constraints catch concurrent inserts
        if self.accounts.find_by_email(email) is not None:
            raise DuplicateEmailException()
        if self.accounts.find_by_username(username) is not None:
            raise DuplicateUsernameException()

        now = self.clock()
        salt = self.hasher.generate_salt()
        account = Account(
            accountId=str(uuid.uuid4()),
            name=name,
            username=username,
            email=email,
            phone=phone,
            passwordHash=self.hasher.hash(password, salt),
            salt=salt,
            isActive=False,
            status=AccountStatus.INACTIVE,
            deletedState=DeletedState.NOT_DELETED,
            attemptCount=0,
            isLocked=False,
            lockedUntil=None,
            createdOn=now,
            updatedOn=now,
            lastLoginOn=None,
        )
        account = self.accounts.insert(account)

        if role_id is not None:
            self._assign_role(account, role_id)

        log_action("REGISTER", "Account", account.accountId, f"New account registered: {username} ({email})")
        return account

    def _assign_role(self, account: Account, role_id: int) -> None:
        role = self.accounts.find_role(role_id)
        if role is None:
            logger.warning(f"Role {role_id} not found; {account.email} registered without a role")
            return
        self.accounts.assign_role(account, role)

    # ─── Login ────────────────────────────────────────────────────────────────
    @service_operation
    def login(self, email: str, password: str) -> Account:
        return retry_on_conflict(lambda: self._login_once(email, password), self.conflict_retries)

    def _login_once(self, email: str, password: str) -> Account:
        now = self.clock()
        account = self.accounts.find_by_email(email)
        if account is None or account.is_deleted:
            logger.warning(f"Login attempt for unknown email {email}")
            raise InvalidCredentialsException()

        lock_cleared = False
        if account.isLocked:
            locked_until = as_utc(account.lockedUntil)
            if locked_until is None:
                # Locked with no expiry has no unlock path; start a fresh window
                account.lockedUntil = now + self.lockout_window
                account.updatedOn = now
                self.accounts.update(account)
                log_action("LOCKOUT_REPAIRED", "Account", account.accountId,
                           f"Missing lockedUntil, locked until {account.lockedUntil.isoformat()}")
                raise AccountLockedException(account.lockedUntil)
            if locked_until > now:
                logger.warning(f"Account {email} is locked until {locked_until.isoformat()}")
                raise AccountLockedException(locked_until)

            account.isLocked = False
            account.attemptCount = 0
            account.lockedUntil = None
            lock_cleared = True

        if not self.hasher.verify(password, account.salt, account.passwordHash):
            self._record_failure(account, now)
            raise InvalidCredentialsException()

        if not account.is_activated:
            if lock_cleared:
                account.updatedOn = now
                self.accounts.update(account)
            logger.warning(f"Login refused for {email}: account not activated")
            raise AccountNotActivatedException()

        account.attemptCount = 0
        account.isLocked = False
        account.lockedUntil = None
        account.lastLoginOn = now
        account.updatedOn = now
        self.accounts.update(account)

        log_action("LOGIN", "Account", account.accountId, f"{account.username} logged in")
        return account

    def _record_failure(self, account: Account, now: datetime) -> None:
        account.attemptCount = (account.attemptCount or 0) + 1
        account.updatedOn = now
        if account.attemptCount >= self.max_attempts:
            account.isLocked = True
            account.lockedUntil = now + self.lockout_window
        self.accounts.update(account)

        if account.isLocked:
            log_action("LOCKOUT", "Account", account.accountId,
                       f"Locked until {account.lockedUntil.isoformat()}",
                       attempts=account.attemptCount)
        else:
            log_action("LOGIN_FAILED", "Account", account.accountId, attempts=account.attemptCount)

    # ─── Reset Password ───────────────────────────────────────────────────────
    @service_operation
    def reset_password(self, email: str, new_password: str) -> Account:
        """
        Re-hash with the account's existing salt. Lockout state is left alone;
        callers reach this only after a PASSWORD_RESET OTP was verified.
        """
        return retry_on_conflict(lambda: self._reset_password_once(email, new_password), self.conflict_retries)

    def _reset_password_once(self, email: str, new_password: str) -> Account:
        account = self.accounts.find_by_email(email)
        if account is None or account.is_deleted:
            raise AccountNotFoundException()

        account.passwordHash = self.hasher.hash(new_password, account.salt)
        account.updatedOn = self.clock()
        self.accounts.update(account)

        log_action("RESET_PASSWORD", "Account", account.accountId, "Password reset via OTP")
        return account

    # ─── Lookup ───────────────────────────────────────────────────────────────
    @service_operation
    def get_account(self, account_id: str) -> Account:
        account = self.accounts.find_by_account_id(account_id)
        if account is None or account.is_deleted:
            raise AccountNotFoundException()
        return account

    @service_operation
    def list_accounts(self) -> list[Account]:
        return self.accounts.list_accounts()
