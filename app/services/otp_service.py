import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from app.config import settings
from app.models.account import Account, AccountStatus
from app.models.otp_record import OtpRecord, OtpPurpose
from app.repositories.account_store import AccountStore, retry_on_conflict
from app.repositories.otp_store import OtpStore
from app.services.result import service_operation
from app.utils.audit import log_action
from app.utils.email import Notifier, render_otp_email
from app.utils.exceptions import NotRegisteredException, NoActiveOtpException, OTPInvalidException
from app.utils.security import as_utc, generate_otp, otp_expiry, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpDispatch:
    email:     str
    purpose:   OtpPurpose
    code:      str
    validUpto: datetime
    resent:    bool
    delivered: bool


class OtpService:
    """
    One-time codes for account activation and password reset.

    A record is live while it is unconsumed and now <= validUpto. Requests
    re-send a live code unchanged and replace a dead one in place; a
    successful verification consumes the record so the code cannot be
    replayed.
    """

    def __init__(
        self,
        accounts: AccountStore,
        otps: OtpStore,
        notifier: Notifier,
        clock: Callable[[], datetime] = utc_now,
        ttl_minutes: int = settings.OTP_EXPIRE_MINUTES,
        code_length: int = settings.OTP_LENGTH,
        max_verify_attempts: int = settings.OTP_MAX_VERIFY_ATTEMPTS,
        conflict_retries: int = settings.LOGIN_CONFLICT_RETRIES,
    ):
        self.accounts = accounts
        self.otps = otps
        self.notifier = notifier
        self.clock = clock
        self.ttl_minutes = ttl_minutes
        self.code_length = code_length
        self.max_verify_attempts = max_verify_attempts
        self.conflict_retries = max(conflict_retries, 0)

    def _is_live(self, record: OtpRecord, now: datetime) -> bool:
        if record.consumedOn is not None:
            return False
        if now > as_utc(record.validUpto):
            return False
        if self.max_verify_attempts and (record.attempts or 0) >= self.max_verify_attempts:
            return False
        return True

    def _find_account(self, email: str) -> Account:
        account = self.accounts.find_by_email(email)
        if account is None or account.is_deleted:
            logger.error(f"{email} is not registered with application.")
            raise NotRegisteredException(email)
        return account

    # ─── Request ──────────────────────────────────────────────────────────────
    @service_operation
    def request_otp(self, email: str, purpose: OtpPurpose) -> OtpDispatch:
        self._find_account(email)
        record, resent = retry_on_conflict(lambda: self._issue(email, purpose), self.conflict_retries)

        delivered = self._dispatch(record)
        log_action("OTP_RESENT" if resent else "OTP_ISSUED", "OtpRecord", record.id,
                   email=email, purpose=purpose.value, delivered=delivered)
        return OtpDispatch(
            email=email,
            purpose=purpose,
            code=record.code,
            validUpto=as_utc(record.validUpto),
            resent=resent,
            delivered=delivered,
        )

    def _issue(self, email: str, purpose: OtpPurpose) -> tuple[OtpRecord, bool]:
        """Return the live record for (email, purpose), creating or replacing it if needed."""
        now = self.clock()
        record = self.otps.find_by_email(email, purpose)
        if record is not None and self._is_live(record, now):
            return record, True

        if record is None:
            record = self.otps.insert(OtpRecord(
                email=email,
                purpose=purpose,
                code=generate_otp(self.code_length),
                generatedOn=now,
                validUpto=otp_expiry(now, self.ttl_minutes),
                consumedOn=None,
                attempts=0,
            ))
            return record, False

        record.code        = generate_otp(self.code_length)
        record.generatedOn = now
        record.validUpto   = otp_expiry(now, self.ttl_minutes)
        record.consumedOn  = None
        record.attempts    = 0
        self.otps.update(record)
        return record, False

    def _dispatch(self, record: OtpRecord) -> bool:
        subject, body = render_otp_email(record.purpose, record.code, self.ttl_minutes)
        try:
            self.notifier.send(record.email, subject, body, is_html=True)
        except Exception:
            # The code stays valid; the user can ask for a re-send
            logger.exception(f"Failed to send OTP email to {record.email}")
            return False
        return True

    # ─── Verify ───────────────────────────────────────────────────────────────
    @service_operation
    def verify_otp(self, email: str, code: str, purpose: OtpPurpose = OtpPurpose.ACTIVATION) -> Account:
        """
        Check ``code`` against the live record and consume it.

        Both the consumption and the attempts counter are version-checked
        writes. When another verification wins the race, the retry re-reads
        a consumed record and fails with NoActiveOtpException.
        """
        self._find_account(email)
        account = retry_on_conflict(lambda: self._verify_once(email, code, purpose), self.conflict_retries)
        log_action("OTP_VERIFIED", "Account", account.accountId, purpose=purpose.value)
        return account

    def _verify_once(self, email: str, code: str, purpose: OtpPurpose) -> Account:
        now = self.clock()
        record = self.otps.find_by_email(email, purpose)
        if record is None or not self._is_live(record, now):
            logger.error(f"Invalid OTP verification request for {email}")
            raise NoActiveOtpException()

        if not hmac.compare_digest(record.code.encode("utf-8"), (code or "").encode("utf-8")):
            if self.max_verify_attempts:
                record.attempts = (record.attempts or 0) + 1
                self.otps.update(record)
            logger.error(f"Wrong OTP provided for {email}")
            raise OTPInvalidException()

        # Activation goes first so a failure there leaves the code usable
        account = self._activate(email, now)
        record.consumedOn = now
        self.otps.update(record)
        return account

    def _activate(self, email: str, now: datetime) -> Account:
        account = self._find_account(email)
        if account.is_activated:
            return account
        account.isActive = True
        account.status = AccountStatus.ACTIVE
        account.updatedOn = now
        self.accounts.update(account)
        return account
