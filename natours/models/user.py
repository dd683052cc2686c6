"""
Natours API — User SQLAlchemy Model
=====================================

What:  ORM model representing the `users` table.
Who:   Used by the auth, user and handler-factory services; referenced by
       tours (guides) and reviews (authors).

Table Design Rationale:
    - email is unique and stored lower-cased (normalized by the schemas)
    - password holds a bcrypt hash, never the plaintext
    - password_reset_token holds the SHA-256 hex digest of the emailed token,
      so a leaked table cannot be used to reset passwords
    - active=False is a soft delete: the row stays so reviews keep their author
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from natours.database import Base


class Role(str, enum.Enum):
    """Closed set of roles; authorization is membership in a subset of these."""

    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    photo: Mapped[str] = mapped_column(String(255), nullable=False, default="default.jpg")

    # Stored as the enum value; validated by the schemas before it gets here
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.USER.value)

    # bcrypt hash. Excluded from every response schema.
    password: Mapped[str] = mapped_column(String(255), nullable=False)

    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    password_reset_token: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True
    )

    password_reset_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
