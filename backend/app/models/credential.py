"""Database model for role passwords."""
from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

ADMIN_ROLE = "admin"
GUEST_ROLE = "guest"
ROLES = (ADMIN_ROLE, GUEST_ROLE)


class Credential(Base):
    """Password hash for one of the two fixed roles."""

    __tablename__ = "password_rol"

    id: Mapped[int] = mapped_column(primary_key=True)
    role: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
