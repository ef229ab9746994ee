"""
AuthGate — PasswordReset SQLAlchemy Model
==========================================

What:  One outstanding password-reset request for a user.
Why:   The reset token is handed to the user out of band; the server only keeps
       its SHA-256 digest, so a leaked table cannot be used to reset accounts.

Lifecycle:
    1. Created by POST /api/auth/forgot-password (expires_at = now + TTL)
    2. Consumed by POST /api/auth/reset-password (all rows for the user deleted)
    3. Expired rows are purged by the scheduler job
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from authgate.database import Base


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # What: hex SHA-256 of the opaque token given to the user
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    # expires_at index: the purge job deletes by expiry on every run
    __table_args__ = (
        Index("idx_password_resets_expires_at", expires_at),
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:
        return f"<PasswordReset(id={self.id}, user_id={self.user_id}, expires_at='{self.expires_at}')>"
