"""Create system tables

Revision ID: 001_system_tables
Revises:
Create Date: 2026-10-19

"""
import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = "001_system_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Field metadata for runtime-created content tables
    op.create_table(
        "table_field_meta",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(128), nullable=False, index=True),
        sa.Column("field_name", sa.String(128), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("field_type", sa.String(32), nullable=False),
        sa.Column("storage_type", sa.String(16), nullable=False),
        sa.Column("is_media_field", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("media_type", sa.String(16), nullable=True),
        sa.Column("is_foreign_key", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("foreign_table", sa.String(128), nullable=True),
        sa.Column("foreign_display", sa.String(128), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("table_name", "field_name", name="uq_table_field_meta_field"),
    )
    op.create_index(
        "ix_table_field_meta_table_position", "table_field_meta", ["table_name", "position"]
    )

    # Languages
    op.create_table(
        "languages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(16), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("native_name", sa.String(100), nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true(), index=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    # Translations
    op.create_table(
        "content_translations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("table_name", sa.String(128), nullable=False),
        sa.Column("record_id", sa.Integer, nullable=False),
        sa.Column("field_name", sa.String(128), nullable=False),
        sa.Column("language_code", sa.String(16), nullable=False),
        sa.Column("translated_value", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "table_name",
            "record_id",
            "field_name",
            "language_code",
            name="uq_content_translations_key",
        ),
    )
    op.create_index(
        "ix_content_translations_record", "content_translations", ["table_name", "record_id"]
    )

    # Media assets
    op.create_table(
        "media",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=False),
        sa.Column("path", sa.String(1024), nullable=False),
        sa.Column("mime_type", sa.String(128), nullable=False),
        sa.Column("file_size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("tags", sa.Text, nullable=False, server_default=""),
        sa.Column(
            "uploaded_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_media_uploaded_at", "media", ["uploaded_at"])


def downgrade() -> None:
    op.drop_index("ix_media_uploaded_at", table_name="media")
    op.drop_table("media")
    op.drop_index("ix_content_translations_record", table_name="content_translations")
    op.drop_table("content_translations")
    op.drop_table("languages")
    op.drop_index("ix_table_field_meta_table_position", table_name="table_field_meta")
    op.drop_table("table_field_meta")
