"""SQLAlchemy ORM models for the URL shortener.

Data Model Layout
=================
::
    urls table
    ├─ code (VARCHAR(16) PRIMARY KEY)
    ├─ long_url (TEXT NOT NULL)
    ├─ is_custom (BOOLEAN NOT NULL DEFAULT false)
    ├─ user_id (TEXT NULL)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    └─ CHECK (is_custom = false OR user_id IS NOT NULL)

    user_blocks table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ user_id (TEXT NOT NULL, UNIQUE)
    ├─ user_email (TEXT NULL)
    ├─ blocked_by (TEXT NOT NULL)
    ├─ blocked_at (TIMESTAMPTZ, DEFAULT NOW())
    ├─ unblocked_by (TEXT NULL)
    ├─ unblocked_at (TIMESTAMPTZ NULL)
    └─ reason (TEXT NULL)

Key Behaviours
===============
- Custom codes require an owner; the check constraint enforces it at the
  storage boundary.
- URL rows are never updated after creation.
- A user has at most one block row; re-blocking overwrites it in place and
  unblocking only stamps the unblock columns.

Classes:
    URL:  A short code to long URL mapping.
    UserBlock:  The most recent block/unblock cycle of a user.
"""

import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.database import Base

__all__ = ["URL", "UserBlock", "SHORT_CODE_MAX_LENGTH"]

SHORT_CODE_MAX_LENGTH = 16


class URL(Base):
    __tablename__ = "urls"
    __table_args__ = (
        CheckConstraint("is_custom = false OR user_id IS NOT NULL", name="custom_urls_require_user"),
        Index("idx_user_id_created_at", "user_id", "created_at"),
    )

    code: Mapped[str] = mapped_column(String(SHORT_CODE_MAX_LENGTH), primary_key=True)
    long_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false(), nullable=False)
    user_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<URL(code='{self.code}', is_custom={self.is_custom}, user_id={self.user_id!r})>"


class UserBlock(Base):
    __tablename__ = "user_blocks"
    __table_args__ = (Index("user_blocks_blocked_at_desc_idx", "blocked_at"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    user_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocked_by: Mapped[str] = mapped_column(Text, nullable=False)
    blocked_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    unblocked_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    unblocked_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_blocked(self) -> bool:
        return self.unblocked_at is None

    def __repr__(self) -> str:
        return f"<UserBlock(user_id='{self.user_id}', blocked={self.is_blocked})>"
