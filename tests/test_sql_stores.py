import os
import tempfile
import unittest
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models.account import Account, AccountStatus, DeletedState
from app.models.otp_record import OtpRecord, OtpPurpose
from app.models.role import ClientRole, Role
from app.repositories.account_store import ConcurrentUpdateError, SqlAccountStore
from app.repositories.otp_store import SqlOtpStore
from app.services.account_service import AccountService
from app.services.otp_service import OtpService
from app.utils.exceptions import DuplicateEmailException, DuplicateUsernameException, ErrorCode
from app.utils.security import utc_now
from tests.fakes import RecordingNotifier, fast_hasher


def make_account(email="jane@x.com", username="jdoe", account_id="acc-1") -> Account:
    now = utc_now()
    return Account(
        accountId=account_id,
        name="Jane Doe",
        username=username,
        email=email,
        phone="+15551234",
        passwordHash="hash",
        salt="c2FsdHNhbHRzYWx0c2FsdA==",
        isActive=False,
        status=AccountStatus.INACTIVE,
        deletedState=DeletedState.NOT_DELETED,
        attemptCount=0,
        isLocked=False,
        createdOn=now,
        updatedOn=now,
    )


def make_otp(code: str, email="jane@x.com", purpose=OtpPurpose.ACTIVATION) -> OtpRecord:
    now = utc_now()
    return OtpRecord(
        email=email,
        purpose=purpose,
        code=code,
        generatedOn=now,
        validUpto=now + timedelta(minutes=15),
        attempts=0,
    )


class SqlStoreTestCase(unittest.TestCase):
    """Each test gets a fresh SQLite file so separate sessions see each other's commits."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "stores.db")
        self.engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
        Base.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.sessions = []

    def tearDown(self):
        for session in self.sessions:
            session.close()
        self.engine.dispose()
        self.tmpdir.cleanup()

    def session(self):
        db = self.Session()
        self.sessions.append(db)
        return db


class TestSqlAccountStore(SqlStoreTestCase):
    def test_insert_and_find(self):
        store = SqlAccountStore(self.session())
        inserted = store.insert(make_account())
        self.assertIsNotNone(inserted.id)
        self.assertEqual(inserted.version, 1)

        other = SqlAccountStore(self.session())
        self.assertEqual(other.find_by_email("jane@x.com").accountId, "acc-1")
        self.assertEqual(other.find_by_username("jdoe").email, "jane@x.com")
        self.assertEqual(other.find_by_account_id("acc-1").username, "jdoe")
        self.assertIsNone(other.find_by_email("ghost@x.com"))

    def test_unique_email_enforced(self):
        SqlAccountStore(self.session()).insert(make_account())
        store = SqlAccountStore(self.session())
        with self.assertRaises(DuplicateEmailException):
            store.insert(make_account(username="other", account_id="acc-2"))

    def test_unique_username_enforced(self):
        SqlAccountStore(self.session()).insert(make_account())
        store = SqlAccountStore(self.session())
        with self.assertRaises(DuplicateUsernameException):
            store.insert(make_account(email="other@x.com", account_id="acc-2"))

    def test_update_bumps_version(self):
        store = SqlAccountStore(self.session())
        account = store.insert(make_account())
        account.attemptCount = 1
        store.update(account)
        self.assertEqual(account.version, 2)

    def test_stale_update_is_rejected(self):
        SqlAccountStore(self.session()).insert(make_account())

        first = SqlAccountStore(self.session())
        second = SqlAccountStore(self.session())
        mine = first.find_by_email("jane@x.com")
        theirs = second.find_by_email("jane@x.com")

        theirs.attemptCount = 1
        second.update(theirs)

        mine.attemptCount = 1
        with self.assertRaises(ConcurrentUpdateError):
            first.update(mine)

        # A re-read sees the winner's write and can build on it
        fresh = first.find_by_email("jane@x.com")
        self.assertEqual(fresh.version, 2)
        fresh.attemptCount += 1
        first.update(fresh)
        self.assertEqual(SqlAccountStore(self.session()).find_by_email("jane@x.com").attemptCount, 2)

    def test_assign_role(self):
        db = self.session()
        db.add(Role(id=3, name="Client"))
        db.commit()

        store = SqlAccountStore(db)
        account = store.insert(make_account())
        role = store.find_role(3)
        store.assign_role(account, role)

        self.assertIsNone(store.find_role(99))
        links = db.query(ClientRole).all()
        self.assertEqual([(link.accountId, link.roleId) for link in links], [(account.id, 3)])


class TestSqlOtpStore(SqlStoreTestCase):
    def test_records_are_keyed_by_email_and_purpose(self):
        store = SqlOtpStore(self.session())
        store.insert(make_otp("111111"))
        store.insert(make_otp("222222", purpose=OtpPurpose.PASSWORD_RESET))

        self.assertEqual(store.find_by_email("jane@x.com", OtpPurpose.ACTIVATION).code, "111111")
        self.assertEqual(store.find_by_email("jane@x.com", OtpPurpose.PASSWORD_RESET).code, "222222")
        self.assertIsNone(store.find_by_email("ghost@x.com", OtpPurpose.ACTIVATION))

    def test_update_persists(self):
        store = SqlOtpStore(self.session())
        record = store.insert(make_otp("111111"))
        record.consumedOn = utc_now()
        store.update(record)

        reread = SqlOtpStore(self.session()).find_by_email("jane@x.com", OtpPurpose.ACTIVATION)
        self.assertIsNotNone(reread.consumedOn)

    def test_concurrent_insert_overwrites_existing_row(self):
        SqlOtpStore(self.session()).insert(make_otp("111111"))

        db = self.session()
        record = SqlOtpStore(db).insert(make_otp("222222"))
        self.assertEqual(record.code, "222222")
        self.assertEqual(db.query(OtpRecord).count(), 1)

        reread = SqlOtpStore(self.session()).find_by_email("jane@x.com", OtpPurpose.ACTIVATION)
        self.assertEqual(reread.code, "222222")


class HookedOtpStore(SqlOtpStore):
    """Runs ``before_update`` once, just before the next write reaches the database."""

    def __init__(self, db, before_update=None):
        super().__init__(db)
        self.before_update = before_update

    def update(self, record):
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            hook()
        super().update(record)


class TestOtpConsumption(SqlStoreTestCase):
    def otp_service(self):
        db = self.session()
        return OtpService(SqlAccountStore(db), SqlOtpStore(db), RecordingNotifier())

    def setUp(self):
        super().setUp()
        accounts = AccountService(SqlAccountStore(self.session()), fast_hasher())
        accounts.register("Jane Doe", "jdoe", "jane@x.com", "+15551234", "pw1!@#AB").unwrap()
        self.code = self.otp_service().request_otp("jane@x.com", OtpPurpose.PASSWORD_RESET).unwrap().code

    def test_same_code_verified_by_two_sessions_succeeds_once(self):
        other = self.otp_service()
        other_results = []

        db = self.session()
        otps = HookedOtpStore(db, before_update=lambda: other_results.append(
            other.verify_otp("jane@x.com", self.code, OtpPurpose.PASSWORD_RESET)
        ))
        mine = OtpService(SqlAccountStore(db), otps, RecordingNotifier())

        result = mine.verify_otp("jane@x.com", self.code, OtpPurpose.PASSWORD_RESET)

        self.assertTrue(other_results[0].ok)
        self.assertFalse(result.ok)
        self.assertEqual(result.error_code, ErrorCode.NO_ACTIVE_OTP)

    def test_sequential_verifications_succeed_once(self):
        first = self.otp_service().verify_otp("jane@x.com", self.code, OtpPurpose.PASSWORD_RESET)
        second = self.otp_service().verify_otp("jane@x.com", self.code, OtpPurpose.PASSWORD_RESET)
        self.assertTrue(first.ok)
        self.assertEqual(second.error_code, ErrorCode.NO_ACTIVE_OTP)


if __name__ == "__main__":
    unittest.main()
