"""
AuthGate — Authentication Route Handlers
=========================================

What:  The /api/auth route group: register, login, forgot/reset password.
How:   Validates the JSON body against the schemas, delegates to AuthService,
       returns the response schema. Errors raised by the service are rendered
       by the global error handler as `{"msg": ...}`.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.config import settings
from authgate.database import get_db_session
from authgate.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from authgate.services.auth_service import auth_service

router = APIRouter(prefix="/api/auth", tags=["Auth"])

FORGOT_PASSWORD_MESSAGE = "If that email is registered, a password reset link has been sent"


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return await auth_service.register(db, body.name, body.email, body.password)


@router.post("/login", response_model=AuthResponse, summary="Exchange credentials for a token")
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return await auth_service.login(db, body.email, body.password)


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
    summary="Start a password reset",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> ForgotPasswordResponse:
    """
    Always answers with the same message so the endpoint cannot be used to
    discover registered emails. There is no mailer: the token only leaves the
    server when EXPOSE_RESET_TOKEN is enabled.
    """
    token = await auth_service.request_password_reset(db, body.email)
    return ForgotPasswordResponse(
        msg=FORGOT_PASSWORD_MESSAGE,
        reset_token=token if settings.expose_reset_token else None,
    )


@router.post("/reset-password", response_model=MessageResponse, summary="Set a new password")
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.reset_password(db, body.token, body.password)
    return MessageResponse(msg="Password has been reset")
