from pydantic import BaseModel, EmailStr, field_validator, model_validator

from app.models.otp_record import OtpPurpose


# ─── Helpers ──────────────────────────────────────────────────────────────────
def not_blank(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Value cannot be empty")
    return v.strip()


# ─── Request Schemas ──────────────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    name:     str
    username: str
    email:    EmailStr
    phone:    str
    password: str
    roleId:   int | None = None

    @field_validator("name", "username", "phone")
    @classmethod
    def strip_required(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("username")
    @classmethod
    def username_length(cls, v: str) -> str:
        if len(v) > 50:
            raise ValueError("Username must be at most 50 characters")
        return v

    @field_validator("password")
    @classmethod
    def password_present(cls, v: str) -> str:
        if not v:
            raise ValueError("Password cannot be empty")
        return v


class LoginRequest(BaseModel):
    email:    EmailStr
    password: str


class OtpRequest(BaseModel):
    email:   EmailStr
    purpose: OtpPurpose = OtpPurpose.ACTIVATION


class VerifyOtpRequest(BaseModel):
    email:   EmailStr
    otp:     str
    purpose: OtpPurpose = OtpPurpose.ACTIVATION


class ResetPasswordRequest(BaseModel):
    resetToken:      str
    newPassword:     str
    confirmPassword: str

    @field_validator("newPassword")
    @classmethod
    def password_present(cls, v: str) -> str:
        if not v:
            raise ValueError("Password cannot be empty")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.newPassword != self.confirmPassword:
            raise ValueError("Passwords do not match")
        return self
