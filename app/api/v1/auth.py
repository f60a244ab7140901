from fastapi import APIRouter, Depends, status

from app.config import settings
from app.dependencies import get_account_service, get_otp_service, get_current_account, require_roles
from app.models.account import Account
from app.models.otp_record import OtpPurpose
from app.schemas.auth import (
    RegisterRequest, LoginRequest, OtpRequest, VerifyOtpRequest, ResetPasswordRequest,
)
from app.schemas.common import ErrorResponse, SuccessResponse, success_response
from app.services.account_service import AccountService
from app.services.otp_service import OtpService
from app.utils.security import create_access_token, create_reset_token, verify_reset_token

router = APIRouter(
    prefix="/auth",
    responses={
        code: {"model": ErrorResponse}
        for code in (400, 401, 403, 404, 409, 422, 423, 500)
    },
)


def _iso(value):
    return value.isoformat() if value else None


def _serialize_account(a: Account) -> dict:
    return {
        "accountId":    a.accountId,
        "name":         a.name,
        "username":     a.username,
        "email":        a.email,
        "phone":        a.phone,
        "isActive":     a.isActive,
        "status":       a.status.value,
        "attemptCount": a.attemptCount,
        "isLocked":     a.isLocked,
        "lockedUntil":  _iso(a.lockedUntil),
        "createdOn":    _iso(a.createdOn),
        "updatedOn":    _iso(a.updatedOn),
        "lastLoginOn":  _iso(a.lastLoginOn),
    }


# ─── POST /auth/register ──────────────────────────────────────────────────────
@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
    response_model=SuccessResponse,
)
def register(data: RegisterRequest, service: AccountService = Depends(get_account_service)):
    """
    Register a new account. It starts INACTIVE until an ACTIVATION OTP is verified.
    - Email and username must be unique.
    - roleId is optional; an unknown role is ignored.
    """
    account = service.register(
        data.name, data.username, str(data.email), data.phone, data.password, data.roleId,
    ).unwrap()
    return success_response("Registration successful", _serialize_account(account))


# ─── POST /auth/login ─────────────────────────────────────────────────────────
@router.post(
    "/login",
    status_code=status.HTTP_200_OK,
    summary="Login and receive an access token",
    response_model=SuccessResponse,
)
def login(data: LoginRequest, service: AccountService = Depends(get_account_service)):
    """
    Authenticate with email and password.
    Three consecutive failures lock the account for 15 minutes.
    """
    account = service.login(str(data.email), data.password).unwrap()
    access_token = create_access_token(account.accountId, account.email, account.username)
    return success_response("Login successful", {
        "accessToken": access_token,
        "tokenType":   "Bearer",
        "expiresIn":   settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        "account":     _serialize_account(account),
    })


# ─── POST /auth/otp/request ───────────────────────────────────────────────────
@router.post(
    "/otp/request",
    status_code=status.HTTP_200_OK,
    summary="Send (or re-send) an OTP for activation or password reset",
    response_model=SuccessResponse,
)
def request_otp(data: OtpRequest, service: OtpService = Depends(get_otp_service)):
    dispatch = service.request_otp(str(data.email), data.purpose).unwrap()
    return success_response("OTP generated and sent successfully.", {
        "email":     dispatch.email,
        "purpose":   dispatch.purpose.value,
        "validUpto": _iso(dispatch.validUpto),
        "resent":    dispatch.resent,
        "delivered": dispatch.delivered,
    })


# ─── POST /auth/otp/verify ────────────────────────────────────────────────────
@router.post(
    "/otp/verify",
    status_code=status.HTTP_200_OK,
    summary="Verify an OTP; PASSWORD_RESET codes also yield a reset token",
    response_model=SuccessResponse,
)
def verify_otp(data: VerifyOtpRequest, service: OtpService = Depends(get_otp_service)):
    account = service.verify_otp(str(data.email), data.otp, data.purpose).unwrap()
    payload = {"account": _serialize_account(account)}
    if data.purpose == OtpPurpose.PASSWORD_RESET:
        payload["resetToken"] = create_reset_token(account.email)
        payload["note"] = (
            f"Use this resetToken in POST /auth/reset-password within "
            f"{settings.RESET_TOKEN_EXPIRE_MINUTES} minutes."
        )
    return success_response("OTP verified successfully", payload)


# ─── POST /auth/reset-password ────────────────────────────────────────────────
@router.post(
    "/reset-password",
    status_code=status.HTTP_200_OK,
    summary="Reset password using reset token from OTP verification",
    response_model=SuccessResponse,
)
def reset_password(data: ResetPasswordRequest, service: AccountService = Depends(get_account_service)):
    email = verify_reset_token(data.resetToken)
    service.reset_password(email, data.newPassword).unwrap()
    return success_response("Password reset successfully. Please login with your new password.", None)


# ─── GET /auth/me ─────────────────────────────────────────────────────────────
@router.get(
    "/me",
    status_code=status.HTTP_200_OK,
    summary="Get current authenticated account",
    response_model=SuccessResponse,
)
def get_me(current_account: Account = Depends(get_current_account)):
    return success_response("Account retrieved", _serialize_account(current_account))


# ─── GET /auth/accounts ───────────────────────────────────────────────────────
@router.get(
    "/accounts",
    status_code=status.HTTP_200_OK,
    summary="List registered accounts (Admin / ClientManager)",
    response_model=SuccessResponse,
)
def list_accounts(
    service: AccountService = Depends(get_account_service),
    _: Account = Depends(require_roles("Admin", "ClientManager")),
):
    accounts = service.list_accounts().unwrap()
    return success_response("Accounts retrieved", [_serialize_account(a) for a in accounts])
