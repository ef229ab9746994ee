"""
AuthGate — Authentication Service (Business Logic)
===================================================

What:  Registration, login, and the password-reset flow.
Why:   Keeps credential rules and persistence out of the route handlers.
How:   Stateless methods receiving an AsyncSession per call; errors are raised
       as application exceptions and rendered by the global error handler.
Who:   Called by the /api/auth routes and by the scheduler's purge job.

Password Reset Flow:
    forgot-password ──▶ PasswordReset(token_hash, expires_at) ──▶ token to user
    reset-password  ──▶ look up sha256(token), unexpired ──▶ new hash,
                        delete every reset row of that user
    scheduler       ──▶ delete rows whose expires_at has passed
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authgate.config import settings
from authgate.exceptions import BadRequestError, DatabaseError, UnauthenticatedError
from authgate.models.password_reset import PasswordReset
from authgate.models.user import User
from authgate.schemas.auth import AuthResponse, UserSummary
from authgate.services.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "Duplicate value entered for email field, please choose another value"
INVALID_RESET_TOKEN_MESSAGE = "Invalid or expired reset token"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserSummary(name=user.name),
        token=create_access_token(str(user.id), user.name),
    )


class AuthService:
    """
    Business logic for the /api/auth route group.

    Error Handling Strategy:
        Client mistakes raise BadRequestError/UnauthenticatedError with the
        message returned to the user. Unexpected database failures are logged
        and wrapped in DatabaseError (generic message to the client).
    """

    async def register(
        self, db: AsyncSession, name: str, email: str, password: str
    ) -> AuthResponse:
        """
        Create a user and return a token for them.

        Raises:
            BadRequestError: the email is already registered
            DatabaseError: any other persistence failure
        """
        user = User(
            id=uuid.uuid4(),
            name=name.strip(),
            email=_normalize_email(email),
            password_hash=hash_password(password),
        )
        db.add(user)
        try:
            # flush (not commit) so a unique violation surfaces here
            await db.flush()
        except IntegrityError as e:
            raise BadRequestError(DUPLICATE_EMAIL_MESSAGE, context={"email": user.email}) from e
        except SQLAlchemyError as e:
            raise self._database_error("registering user", e) from e

        logger.info("Registered user %s", user.id)
        return _auth_response(user)

    async def login(
        self, db: AsyncSession, email: Optional[str], password: Optional[str]
    ) -> AuthResponse:
        """
        Raises:
            BadRequestError: email or password missing
            UnauthenticatedError: unknown email or wrong password (same message
                for both so the response does not reveal which emails exist)
        """
        if not email or not password:
            raise BadRequestError("Please provide email and password")

        user = await self._find_user_by_email(db, email)
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthenticatedError("Invalid Credentials")

        return _auth_response(user)

    async def request_password_reset(self, db: AsyncSession, email: str) -> Optional[str]:
        """
        Issue a reset token for the user owning `email`.

        Returns:
            The raw token, or None when no such user exists. Callers must not
            reveal the difference to the client.
        """
        user = await self._find_user_by_email(db, email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None

        token = generate_reset_token()
        db.add(
            PasswordReset(
                user_id=user.id,
                token_hash=hash_reset_token(token),
                expires_at=datetime.now(timezone.utc)
                + timedelta(minutes=settings.reset_token_ttl_minutes),
            )
        )
        try:
            await db.flush()
        except SQLAlchemyError as e:
            raise self._database_error("issuing password reset", e) from e
        logger.info("Password reset token issued for user %s", user.id)
        return token

    async def reset_password(self, db: AsyncSession, token: str, new_password: str) -> None:
        """
        Consume a reset token and set a new password.

        Raises:
            BadRequestError: token unknown, already used, or expired
            DatabaseError: the lookup or the update failed
        """
        try:
            result = await db.execute(
                select(PasswordReset).where(PasswordReset.token_hash == hash_reset_token(token))
            )
            reset = result.scalar_one_or_none()
            if reset is None or reset.is_expired(datetime.now(timezone.utc)):
                raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

            user = await db.get(User, reset.user_id)
            if user is None:
                raise BadRequestError(INVALID_RESET_TOKEN_MESSAGE)

            user.password_hash = hash_password(new_password)
            await db.execute(delete(PasswordReset).where(PasswordReset.user_id == user.id))
            await db.flush()
        except SQLAlchemyError as e:
            raise self._database_error("resetting password", e) from e
        logger.info("Password reset completed for user %s", user.id)

    async def purge_expired_resets(self, db: AsyncSession) -> int:
        """Delete expired reset rows; returns how many were removed."""
        result = await db.execute(
            delete(PasswordReset).where(PasswordReset.expires_at <= datetime.now(timezone.utc))
        )
        return result.rowcount or 0

    async def _find_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(User.email == _normalize_email(email)))
        except SQLAlchemyError as e:
            raise self._database_error("looking up user", e) from e
        return result.scalar_one_or_none()

    @staticmethod
    def _database_error(action: str, error: SQLAlchemyError) -> DatabaseError:
        logger.error("Database error %s: %s", action, str(error), exc_info=True)
        return DatabaseError(context={"error_type": type(error).__name__})


auth_service = AuthService()
