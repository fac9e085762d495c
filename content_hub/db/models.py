"""
SQLAlchemy models for the Content Hub system tables.

User-defined content tables are not declared here; they are created at
runtime by the table factory and described by FieldMetaModel rows.
"""

from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from .base import Base

# Physical tables that can never be used as content tables.
SYSTEM_TABLES = frozenset(
    {
        "users",
        "media",
        "sqlite_sequence",
        "table_field_meta",
        "languages",
        "content_translations",
        "alembic_version",
    }
)


def _iso(value) -> Any:
    return value.isoformat() if value else None


class FieldMetaModel(Base):
    """Field-level metadata kept parallel to each dynamic column."""

    __tablename__ = "table_field_meta"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(128), nullable=False, index=True)
    field_name = Column(String(128), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Declared type as submitted (text, textarea, media_single, ...)
    field_type = Column(String(32), nullable=False)
    # Physical column type derived from field_type
    storage_type = Column(String(16), nullable=False)

    # Media role
    is_media_field = Column(Boolean, nullable=False, default=False)
    media_type = Column(String(16), nullable=True)  # single | multiple

    # Foreign-key role
    is_foreign_key = Column(Boolean, nullable=False, default=False)
    foreign_table = Column(String(128), nullable=True)
    foreign_display = Column(String(128), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        UniqueConstraint("table_name", "field_name", name="uq_table_field_meta_field"),
        Index("ix_table_field_meta_table_position", "table_name", "position"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "table_name": self.table_name,
            "field_name": self.field_name,
            "position": self.position,
            "field_type": self.field_type,
            "storage_type": self.storage_type,
            "is_media_field": self.is_media_field,
            "media_type": self.media_type,
            "is_foreign_key": self.is_foreign_key,
            "foreign_table": self.foreign_table,
            "foreign_display": self.foreign_display,
        }


class LanguageModel(Base):
    """A content language."""

    __tablename__ = "languages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(16), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    native_name = Column(String(100), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "native_name": self.native_name,
            "is_default": self.is_default,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


class TranslationModel(Base):
    """Per-language override of one field of one record."""

    __tablename__ = "content_translations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    table_name = Column(String(128), nullable=False)
    record_id = Column(Integer, nullable=False)
    field_name = Column(String(128), nullable=False)
    language_code = Column(String(16), nullable=False)
    translated_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "table_name",
            "record_id",
            "field_name",
            "language_code",
            name="uq_content_translations_key",
        ),
        Index("ix_content_translations_record", "table_name", "record_id"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "table_name": self.table_name,
            "record_id": self.record_id,
            "field_name": self.field_name,
            "language_code": self.language_code,
            "value": self.translated_value,
            "updated_at": _iso(self.updated_at),
        }


class MediaAssetModel(Base):
    """Metadata of an uploaded media file."""

    __tablename__ = "media"

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String(255), nullable=False)
    original_filename = Column(String(255), nullable=False)
    path = Column(String(1024), nullable=False)
    mime_type = Column(String(128), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    tags = Column(Text, nullable=False, default="")
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_media_uploaded_at", "uploaded_at"),
        {"sqlite_autoincrement": True},
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "filename": self.filename,
            "original_filename": self.original_filename,
            "path": self.path,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
            "tags": self.tags,
            "uploaded_at": _iso(self.uploaded_at),
        }
