from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditColumnsMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    modified_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def stamp_modified(self, actor_id: int) -> None:
        self.modified_at = utcnow()
        self.modified_by = actor_id


class CustomFieldGroup(AuditColumnsMixin, Base):
    __tablename__ = "custom_field_group"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    fields: Mapped[list[CustomFieldDefinition]] = relationship("CustomFieldDefinition", back_populates="group")

    __table_args__ = (
        UniqueConstraint("entity_type", "name", name="uq_custom_field_group_entity_name"),
        Index("ix_custom_field_group_entity_active", "entity_type", "is_active"),
    )


class CustomFieldDefinition(AuditColumnsMixin, Base):
    __tablename__ = "custom_field_definition"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    # JSON text, see codec.encode_default_value
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    min_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    max_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    max_length: Mapped[int | None] = mapped_column(Integer, nullable=True)
    validation_pattern: Mapped[str | None] = mapped_column(String(500), nullable=True)
    general_code_type: Mapped[int | None] = mapped_column(Integer, nullable=True)
    group_id: Mapped[int | None] = mapped_column(ForeignKey("custom_field_group.id"), nullable=True)
    group_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    group: Mapped[CustomFieldGroup | None] = relationship("CustomFieldGroup", back_populates="fields")
    options: Mapped[list[CustomFieldOption]] = relationship(
        "CustomFieldOption",
        back_populates="field_definition",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("entity_type", "name", name="uq_custom_field_definition_entity_name"),
        Index("ix_custom_field_definition_entity_active", "entity_type", "is_active"),
        Index("ix_custom_field_definition_group", "group_id"),
    )


class CustomFieldOption(AuditColumnsMixin, Base):
    __tablename__ = "custom_field_option"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    field_definition_id: Mapped[int] = mapped_column(
        ForeignKey("custom_field_definition.id", ondelete="CASCADE"),
        nullable=False,
    )
    value: Mapped[str] = mapped_column(String(100), nullable=False)
    display_text: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    field_definition: Mapped[CustomFieldDefinition] = relationship("CustomFieldDefinition", back_populates="options")

    __table_args__ = (Index("ix_custom_field_option_field_active", "field_definition_id", "is_active"),)


class CustomFieldValue(AuditColumnsMixin, Base):
    __tablename__ = "custom_field_value"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    field_definition_id: Mapped[int] = mapped_column(ForeignKey("custom_field_definition.id"), nullable=False)
    text_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    number_value: Mapped[Decimal | None] = mapped_column(Numeric(18, 6), nullable=True)
    date_value: Mapped[date | None] = mapped_column(Date(), nullable=True)
    boolean_value: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    # JSON array of option ids, see codec.encode_option_ids
    selected_options: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "entity_type",
            "entity_id",
            "field_definition_id",
            name="uq_custom_field_value_natural_key",
        ),
        Index("ix_custom_field_value_entity", "entity_type", "entity_id"),
        Index("ix_custom_field_value_field", "field_definition_id"),
    )
