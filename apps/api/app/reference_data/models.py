from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.custom_fields.models import utcnow


class Country(Base):
    __tablename__ = "country"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    country_code: Mapped[str] = mapped_column(String(2), nullable=False, unique=True)
    country_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class GeneralCode(Base):
    __tablename__ = "general_code"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code_type: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    code_number: Mapped[int] = mapped_column(Integer, nullable=False)
    code_short_description: Mapped[str] = mapped_column(String(100), nullable=False)
    code_long_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    language_code: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("code_type", "code_number", "language_code", name="uq_general_code_type_number_language"),
    )
