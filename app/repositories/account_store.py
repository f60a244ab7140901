import logging
from typing import Callable, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.models.account import Account, DeletedState
from app.models.role import Role, ClientRole
from app.utils.exceptions import DuplicateEmailException, DuplicateUsernameException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrentUpdateError(Exception):
    """The record changed between read and write; the caller should re-read and retry."""


def retry_on_conflict(operation: Callable[[], T], retries: int) -> T:
    """Run ``operation``, re-running it up to ``retries`` more times on a version conflict."""
    attempts = max(retries, 0) + 1
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrentUpdateError:
            if attempt == attempts:
                raise
            logger.warning(f"Concurrent update, retrying ({attempt}/{retries})")


class AccountStore(Protocol):
    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_username(self, username: str) -> Account | None: ...

    def find_by_account_id(self, account_id: str) -> Account | None: ...

    def list_accounts(self) -> list[Account]: ...

    def insert(self, account: Account) -> Account: ...

    def update(self, account: Account) -> None: ...

    def find_role(self, role_id: int) -> Role | None: ...

    def assign_role(self, account: Account, role: Role) -> None: ...


class SqlAccountStore:
    """
    AccountStore backed by a SQLAlchemy session.

    Uniqueness of email and username comes from the table's unique
    constraints. Updates are version-checked through the mapper's
    ``version_id_col``, so a lost update surfaces as ConcurrentUpdateError.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Account | None:
        return self.db.query(Account).filter(Account.email == email).first()

    def find_by_username(self, username: str) -> Account | None:
        return self.db.query(Account).filter(Account.username == username).first()

    def find_by_account_id(self, account_id: str) -> Account | None:
        return self.db.query(Account).filter(Account.accountId == account_id).first()

    def list_accounts(self) -> list[Account]:
        return (
            self.db.query(Account)
            .filter(Account.deletedState == DeletedState.NOT_DELETED)
            .order_by(Account.id)
            .all()
        )

    def insert(self, account: Account) -> Account:
        self.db.add(account)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Unique constraint rejected account insert for {account.email}")
            if self.find_by_email(account.email) is not None:
                raise DuplicateEmailException()
            raise DuplicateUsernameException()
        self.db.refresh(account)
        return account

    def update(self, account: Account) -> None:
        self.db.add(account)
        try:
            self.db.commit()
        except StaleDataError as exc:
            self.db.rollback()
            raise ConcurrentUpdateError(f"Account {account.accountId} was modified concurrently") from exc

    def find_role(self, role_id: int) -> Role | None:
        return self.db.get(Role, role_id)

    def assign_role(self, account: Account, role: Role) -> None:
        self.db.add(ClientRole(accountId=account.id, roleId=role.id))
        self.db.commit()
