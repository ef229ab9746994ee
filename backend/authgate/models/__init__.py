"""ORM models; imported here so Alembic autogenerate sees every table."""

from authgate.models.password_reset import PasswordReset
from authgate.models.user import User

__all__ = ["PasswordReset", "User"]
