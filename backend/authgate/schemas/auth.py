"""
AuthGate — Pydantic Request/Response Schemas for /api/auth
===========================================================

What:  The API contract of the authentication route group.
Why:   FastAPI validates request bodies against these models (failures become
       400 responses via the global handler) and serializes responses from them.

Note on LoginRequest:
    email/password are optional at the schema level so a missing field produces
    the service's "Please provide email and password" message rather than a
    generic validation error.
"""

from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

# bcrypt only accepts this many bytes of input
MAX_PASSWORD_BYTES = 72


def check_password_bytes(password: str) -> str:
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
    return password


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    name: str = Field(min_length=3, max_length=50, description="Display name")
    email: EmailStr = Field(description="Login email, unique per user")
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES, description="Plain password (hashed server-side)")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


class LoginRequest(BaseModel):
    email: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, description="Reset token issued by forgot-password")
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserSummary(BaseModel):
    name: str

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Returned by register and login: the user's public fields and a bearer JWT."""
    user: UserSummary
    token: str


class MessageResponse(BaseModel):
    msg: str


class ForgotPasswordResponse(BaseModel):
    msg: str
    # Only populated when EXPOSE_RESET_TOKEN is enabled (development)
    reset_token: Optional[str] = Field(default=None, serialization_alias="resetToken")
