from datetime import datetime

from fastapi import HTTPException, status


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES: machine-readable constants for frontend switch/case
# ═══════════════════════════════════════════════════════════════════════════════
class ErrorCode:
    VALIDATION_ERROR        = "VALIDATION_ERROR"
    UNAUTHORIZED            = "UNAUTHORIZED"
    FORBIDDEN               = "FORBIDDEN"
    TOKEN_EXPIRED           = "TOKEN_EXPIRED"
    DUPLICATE_EMAIL         = "DUPLICATE_EMAIL"
    DUPLICATE_USERNAME      = "DUPLICATE_USERNAME"
    INVALID_CREDENTIALS     = "INVALID_CREDENTIALS"
    ACCOUNT_LOCKED          = "ACCOUNT_LOCKED"
    ACCOUNT_NOT_ACTIVATED   = "ACCOUNT_NOT_ACTIVATED"
    ACCOUNT_NOT_FOUND       = "ACCOUNT_NOT_FOUND"
    NOT_REGISTERED          = "NOT_REGISTERED"
    NO_ACTIVE_OTP           = "NO_ACTIVE_OTP"
    OTP_INVALID             = "OTP_INVALID"
    DECODING_ERROR          = "DECODING_ERROR"
    INTERNAL_SERVER_ERROR   = "INTERNAL_SERVER_ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════════════════════════
class AppException(HTTPException):
    """
    Base exception for all application-level errors.
    Carries a machine-readable error_code for frontend handling.
    """
    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: list | None = None,
        field: str | None = None,
    ):
        self.message = message
        self.error_code = error_code
        super().__init__(status_code=status_code, detail={
            "message": message,
            "error": {
                "code": error_code,
                "details": details,
                "field": field,
            }
        })

    def __str__(self) -> str:
        return f"{self.error_code}: {self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# TRANSPORT EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class UnauthorizedException(AppException):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message, ErrorCode.UNAUTHORIZED)


class TokenExpiredException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Access token has expired", ErrorCode.TOKEN_EXPIRED)


class ForbiddenException(AppException):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(status.HTTP_403_FORBIDDEN, message, ErrorCode.FORBIDDEN)


class InternalErrorException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
            ErrorCode.INTERNAL_SERVER_ERROR,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# ACCOUNT SECURITY EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class DuplicateEmailException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Email already registered",
            ErrorCode.DUPLICATE_EMAIL,
            field="email",
        )


class DuplicateUsernameException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "Username already exists",
            ErrorCode.DUPLICATE_USERNAME,
            field="username",
        )


class InvalidCredentialsException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_401_UNAUTHORIZED, "Invalid email or password", ErrorCode.INVALID_CREDENTIALS)


class AccountLockedException(AppException):
    def __init__(self, until: datetime):
        self.until = until
        super().__init__(
            status.HTTP_423_LOCKED,
            f"Account is locked until {until.isoformat()}",
            ErrorCode.ACCOUNT_LOCKED,
        )


class AccountNotActivatedException(AppException):
    def __init__(self):
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            "Account is not activated. Verify your email to activate it.",
            ErrorCode.ACCOUNT_NOT_ACTIVATED,
        )


class AccountNotFoundException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_404_NOT_FOUND, "Account not found", ErrorCode.ACCOUNT_NOT_FOUND)


class NotRegisteredException(AppException):
    def __init__(self, email: str):
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            f"{email} is not registered with application.",
            ErrorCode.NOT_REGISTERED,
            field="email",
        )


class NoActiveOtpException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST, "Invalid OTP verification request", ErrorCode.NO_ACTIVE_OTP)


class OTPInvalidException(AppException):
    def __init__(self):
        super().__init__(status.HTTP_400_BAD_REQUEST, "OTP code is invalid", ErrorCode.OTP_INVALID)


class DecodingException(AppException):
    def __init__(self, message: str = "Stored salt could not be decoded"):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, ErrorCode.DECODING_ERROR)
