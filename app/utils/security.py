import base64
import binascii
import hashlib
import hmac
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone

from argon2.low_level import Type, hash_secret_raw
from jose import JWTError, ExpiredSignatureError, jwt

from app.config import settings
from app.utils.exceptions import DecodingException, TokenExpiredException, UnauthorizedException

logger = logging.getLogger(__name__)

SALT_BYTES = 16

SCHEME_ARGON2ID      = "argon2id"
SCHEME_LEGACY_SHA256 = "legacy-sha256"


# ─── Time ─────────────────────────────────────────────────────────────────────
def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# ─── Password Hashing ─────────────────────────────────────────────────────────
def decode_salt(salt: str) -> bytes:
    try:
        raw = base64.b64decode(salt, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise DecodingException() from exc
    if not raw:
        raise DecodingException()
    return raw


class CredentialHasher:
    """
    Derives a verifiable hash from a plaintext secret and a per-account salt.

    hash() is a pure function of (secret, salt) so that login can verify by
    recomputation. The default scheme is Argon2id; ``legacy-sha256`` (one
    SHA-256 pass over secret || salt) exists only to read hashes written by
    older deployments.
    """

    def __init__(
        self,
        scheme: str = SCHEME_ARGON2ID,
        time_cost: int = 4,
        memory_cost: int = 65536,
        parallelism: int = 8,
        hash_len: int = 16,
    ):
        if scheme not in (SCHEME_ARGON2ID, SCHEME_LEGACY_SHA256):
            raise ValueError(f"Unknown password hash scheme: {scheme}")
        if scheme == SCHEME_LEGACY_SHA256:
            logger.warning("Password hashing is running in legacy SHA-256 mode")
        self.scheme      = scheme
        self.time_cost   = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self.hash_len    = hash_len

    @classmethod
    def from_settings(cls) -> "CredentialHasher":
        return cls(
            scheme=settings.PASSWORD_HASH_SCHEME,
            time_cost=settings.ARGON2_TIME_COST,
            memory_cost=settings.ARGON2_MEMORY_COST,
            parallelism=settings.ARGON2_PARALLELISM,
            hash_len=settings.ARGON2_HASH_LEN,
        )

    def generate_salt(self) -> str:
        return base64.b64encode(secrets.token_bytes(SALT_BYTES)).decode("ascii")

    def hash(self, secret: str, salt: str) -> str:
        raw_salt = decode_salt(salt)
        if self.scheme == SCHEME_LEGACY_SHA256:
            digest = hashlib.sha256((secret + salt).encode("utf-8")).digest()
        else:
            digest = hash_secret_raw(
                secret=secret.encode("utf-8"),
                salt=raw_salt,
                time_cost=self.time_cost,
                memory_cost=self.memory_cost,
                parallelism=self.parallelism,
                hash_len=self.hash_len,
                type=Type.ID,
            )
        return base64.b64encode(digest).decode("ascii")

    def verify(self, secret: str, salt: str, expected_hash: str) -> bool:
        candidate = self.hash(secret, salt)
        return hmac.compare_digest(candidate.encode("ascii"), (expected_hash or "").encode("ascii"))


# ─── JWT ──────────────────────────────────────────────────────────────────────
def create_access_token(account_id: str, email: str, username: str) -> str:
    """
    Create a JWT access token.
    Payload: sub (account_id), email, username, type, exp
    """
    expire = utc_now() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": account_id,
        "email": email,
        "username": username,
        "type": "access",
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_access_token(token: str) -> dict:
    """
    Decode and validate a JWT access token.
    Raises 401 if invalid, 401 (TOKEN_EXPIRED) if expired.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid token type")
        return payload
    except ExpiredSignatureError:
        raise TokenExpiredException()
    except JWTError:
        raise UnauthorizedException("Invalid or malformed token")


def create_reset_token(email: str) -> str:
    """Short-lived token proving a PASSWORD_RESET OTP was verified for ``email``."""
    expire = utc_now() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": email, "type": "reset", "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_reset_token(token: str) -> str:
    """Return the email carried by a reset token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedException("Reset token has expired. Request a new OTP.")
    except JWTError:
        raise UnauthorizedException("Invalid reset token")
    if payload.get("type") != "reset" or not payload.get("sub"):
        raise UnauthorizedException("Invalid reset token")
    return payload["sub"]


# ─── OTP ──────────────────────────────────────────────────────────────────────
def generate_otp(length: int = 6) -> str:
    """Generate a numeric OTP string of given length from a CSPRNG."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def otp_expiry(now: datetime, minutes: int | None = None) -> datetime:
    """Return OTP expiry timestamp (UTC)."""
    return now + timedelta(minutes=minutes if minutes is not None else settings.OTP_EXPIRE_MINUTES)
