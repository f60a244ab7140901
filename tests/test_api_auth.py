import unittest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.dependencies import get_hasher, get_notifier
from app.main import create_app
from app.models.account import Account
from app.models.otp_record import OtpRecord, OtpPurpose
from app.models.role import Role
from tests.fakes import RecordingNotifier, fast_hasher

REGISTER = {
    "name":     "Jane Doe",
    "username": "jdoe",
    "email":    "jane@x.com",
    "phone":    "+15551234",
    "password": "pw1!@#AB",
}


class AuthApiTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self.notifier = RecordingNotifier()
        hasher = fast_hasher()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        self.app = create_app()
        self.app.dependency_overrides[get_db] = override_get_db
        self.app.dependency_overrides[get_hasher] = lambda: hasher
        self.app.dependency_overrides[get_notifier] = lambda: self.notifier
        self.client = TestClient(self.app)

    def tearDown(self):
        self.app.dependency_overrides.clear()
        self.engine.dispose()

    def post(self, path, body):
        return self.client.post(f"/api/v1/auth{path}", json=body)

    def current_code(self, purpose=OtpPurpose.ACTIVATION) -> str:
        with self.Session() as db:
            record = db.query(OtpRecord).filter_by(email="jane@x.com", purpose=purpose).one()
            return record.code

    def stored_account(self) -> Account:
        with self.Session() as db:
            return db.query(Account).filter_by(email="jane@x.com").one()

    def login(self, password="pw1!@#AB"):
        return self.post("/login", {"email": "jane@x.com", "password": password})

    def register_and_activate(self):
        self.assertEqual(self.post("/register", REGISTER).status_code, 201)
        self.post("/otp/request", {"email": "jane@x.com", "purpose": "ACTIVATION"})
        res = self.post("/otp/verify", {"email": "jane@x.com", "otp": self.current_code()})
        self.assertEqual(res.status_code, 200)


class TestRegisterEndpoint(AuthApiTestCase):
    def test_register_returns_inactive_account(self):
        res = self.post("/register", REGISTER)
        self.assertEqual(res.status_code, 201)
        body = res.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["status"], "INACTIVE")
        self.assertFalse(body["data"]["isActive"])
        self.assertNotIn("passwordHash", body["data"])
        self.assertNotIn("salt", body["data"])

    def test_duplicate_email_is_conflict(self):
        self.post("/register", REGISTER)
        res = self.post("/register", {**REGISTER, "username": "other"})
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error"]["code"], "DUPLICATE_EMAIL")

    def test_duplicate_username_is_conflict(self):
        self.post("/register", REGISTER)
        res = self.post("/register", {**REGISTER, "email": "other@x.com"})
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error"]["code"], "DUPLICATE_USERNAME")

    def test_invalid_body_is_validation_error(self):
        res = self.post("/register", {**REGISTER, "email": "not-an-email", "name": "  "})
        self.assertEqual(res.status_code, 422)
        body = res.json()
        self.assertEqual(body["error"]["code"], "VALIDATION_ERROR")
        fields = {d["field"] for d in body["error"]["details"]}
        self.assertIn("email", fields)
        self.assertIn("name", fields)

    def test_error_envelope_names_the_field(self):
        self.post("/register", REGISTER)
        body = self.post("/register", {**REGISTER, "username": "other"}).json()
        self.assertEqual(body, {
            "success": False,
            "message": "Email already registered",
            "error": {"code": "DUPLICATE_EMAIL", "details": None, "field": "email"},
        })

    def test_error_schema_is_documented(self):
        schema = self.client.get("/openapi.json").json()
        self.assertIn("ErrorResponse", schema["components"]["schemas"])
        responses = schema["paths"]["/api/v1/auth/register"]["post"]["responses"]
        self.assertIn("409", responses)


class TestLoginEndpoint(AuthApiTestCase):
    def test_login_before_activation_is_forbidden(self):
        self.post("/register", REGISTER)
        res = self.login()
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["error"]["code"], "ACCOUNT_NOT_ACTIVATED")

    def test_unknown_email_is_unauthorized(self):
        res = self.post("/login", {"email": "ghost@x.com", "password": "x"})
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["error"]["code"], "INVALID_CREDENTIALS")

    def test_login_returns_usable_token(self):
        self.register_and_activate()
        res = self.login()
        self.assertEqual(res.status_code, 200)
        data = res.json()["data"]
        self.assertEqual(data["tokenType"], "Bearer")
        self.assertEqual(data["account"]["status"], "ACTIVE")

        me = self.client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {data['accessToken']}"})
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["data"]["email"], "jane@x.com")

    def test_me_requires_token(self):
        res = self.client.get("/api/v1/auth/me")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["error"]["code"], "UNAUTHORIZED")

    def test_three_failures_lock_the_account(self):
        self.register_and_activate()
        for _ in range(3):
            self.assertEqual(self.login("wrong").status_code, 401)

        res = self.login()
        self.assertEqual(res.status_code, 423)
        self.assertEqual(res.json()["error"]["code"], "ACCOUNT_LOCKED")
        account = self.stored_account()
        self.assertTrue(account.isLocked)
        self.assertEqual(account.attemptCount, 3)


class TestOtpEndpoints(AuthApiTestCase):
    def test_request_for_unregistered_email(self):
        res = self.post("/otp/request", {"email": "ghost@x.com", "purpose": "ACTIVATION"})
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error"]["code"], "NOT_REGISTERED")

    def test_request_does_not_leak_the_code(self):
        self.post("/register", REGISTER)
        res = self.post("/otp/request", {"email": "jane@x.com", "purpose": "ACTIVATION"})
        self.assertEqual(res.status_code, 200)
        data = res.json()["data"]
        self.assertNotIn("code", data)
        self.assertFalse(data["resent"])
        self.assertTrue(data["delivered"])
        self.assertIn(self.current_code(), self.notifier.sent[0]["body"])

        again = self.post("/otp/request", {"email": "jane@x.com", "purpose": "ACTIVATION"})
        self.assertTrue(again.json()["data"]["resent"])

    def test_verify_without_request(self):
        self.post("/register", REGISTER)
        res = self.post("/otp/verify", {"email": "jane@x.com", "otp": "123456"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["code"], "NO_ACTIVE_OTP")

    def test_wrong_code(self):
        self.post("/register", REGISTER)
        self.post("/otp/request", {"email": "jane@x.com", "purpose": "ACTIVATION"})
        code = self.current_code()
        wrong = "000000" if code != "000000" else "111111"
        res = self.post("/otp/verify", {"email": "jane@x.com", "otp": wrong})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["code"], "OTP_INVALID")

    def test_activation_verify_has_no_reset_token(self):
        self.post("/register", REGISTER)
        self.post("/otp/request", {"email": "jane@x.com", "purpose": "ACTIVATION"})
        res = self.post("/otp/verify", {"email": "jane@x.com", "otp": self.current_code()})
        self.assertNotIn("resetToken", res.json()["data"])
        self.assertTrue(self.stored_account().isActive)


class TestResetPasswordEndpoint(AuthApiTestCase):
    def reset_token(self) -> str:
        self.post("/otp/request", {"email": "jane@x.com", "purpose": "PASSWORD_RESET"})
        res = self.post("/otp/verify", {
            "email": "jane@x.com",
            "otp": self.current_code(OtpPurpose.PASSWORD_RESET),
            "purpose": "PASSWORD_RESET",
        })
        self.assertEqual(res.status_code, 200)
        return res.json()["data"]["resetToken"]

    def test_reset_flow(self):
        self.register_and_activate()
        token = self.reset_token()

        res = self.post("/reset-password", {
            "resetToken": token, "newPassword": "n3w-Secret", "confirmPassword": "n3w-Secret",
        })
        self.assertEqual(res.status_code, 200)
        self.assertEqual(self.login().status_code, 401)
        self.assertEqual(self.login("n3w-Secret").status_code, 200)

    def test_mismatched_confirmation(self):
        self.register_and_activate()
        token = self.reset_token()
        res = self.post("/reset-password", {
            "resetToken": token, "newPassword": "a", "confirmPassword": "b",
        })
        self.assertEqual(res.status_code, 422)

    def test_access_token_cannot_reset(self):
        self.register_and_activate()
        access = self.login().json()["data"]["accessToken"]
        res = self.post("/reset-password", {
            "resetToken": access, "newPassword": "x", "confirmPassword": "x",
        })
        self.assertEqual(res.status_code, 401)


class TestAccountListEndpoint(AuthApiTestCase):
    def setUp(self):
        super().setUp()
        with self.Session() as db:
            db.add(Role(id=1, name="Admin"))
            db.commit()

    def token_for(self, email, username, role_id=None) -> str:
        body = {**REGISTER, "email": email, "username": username, "roleId": role_id}
        self.assertEqual(self.post("/register", body).status_code, 201)
        self.post("/otp/request", {"email": email, "purpose": "ACTIVATION"})
        with self.Session() as db:
            code = db.query(OtpRecord).filter_by(email=email, purpose=OtpPurpose.ACTIVATION).one().code
        self.post("/otp/verify", {"email": email, "otp": code})
        res = self.post("/login", {"email": email, "password": REGISTER["password"]})
        return res.json()["data"]["accessToken"]

    def list_accounts(self, token):
        return self.client.get("/api/v1/auth/accounts", headers={"Authorization": f"Bearer {token}"})

    def test_admin_lists_accounts(self):
        admin = self.token_for("admin@x.com", "admin", role_id=1)
        self.token_for("jane@x.com", "jdoe")

        res = self.list_accounts(admin)
        self.assertEqual(res.status_code, 200)
        emails = [a["email"] for a in res.json()["data"]]
        self.assertEqual(emails, ["admin@x.com", "jane@x.com"])

    def test_account_without_role_is_forbidden(self):
        token = self.token_for("jane@x.com", "jdoe")
        res = self.list_accounts(token)
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.json()["error"]["code"], "FORBIDDEN")

    def test_requires_token(self):
        self.assertEqual(self.client.get("/api/v1/auth/accounts").status_code, 401)


if __name__ == "__main__":
    unittest.main()
