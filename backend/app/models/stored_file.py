"""Database model for the single stored Excel file."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, LargeBinary, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

SINGLETON_ID = 1


class StoredFile(Base):
    """The current Excel workbook; the table never holds more than one row."""

    __tablename__ = "single_excel_file"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID, autoincrement=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.current_timestamp())

    __table_args__ = (
        CheckConstraint(f"id = {SINGLETON_ID}", name="one_row_only"),
    )
