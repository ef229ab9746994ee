"""
AuthGate — Password Hashing and Token Helpers
==============================================

What:  bcrypt password hashing, HS256 JWT issuing, and opaque
       password-reset tokens.
Who:   Used by AuthService; kept free of database access so it is trivially
       unit-testable.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from authgate.config import settings

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user_id: str, name: str) -> str:
    """Signed JWT carrying the user's id and name, valid for JWT_LIFETIME_DAYS."""
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "name": name,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_lifetime_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def generate_reset_token() -> str:
    """Opaque URL-safe token handed to the user; only its digest is stored."""
    return secrets.token_urlsafe(32)


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()
