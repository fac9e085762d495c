"""
Schema Registry.

Persists one FieldMetaModel row per dynamic column and answers questions
about the content tables that exist. It reads the physical schema but never
changes it; the table factory owns all DDL.
"""

from typing import Dict, List, Optional, Sequence

from sqlalchemy import MetaData, Table, func, inspect
from sqlalchemy.orm import Session

from ..db.models import SYSTEM_TABLES, FieldMetaModel
from ..errors import ConflictError, NotFoundError
from .fields import (
    FieldDefinition,
    FieldType,
    ForeignKeyRole,
    MediaArity,
    MediaRole,
    StorageType,
)


def is_reserved(name: str) -> bool:
    """Whether ``name`` is a system table or uses SQLite's internal prefix."""
    lowered = name.lower()
    return lowered in SYSTEM_TABLES or lowered.startswith("sqlite_")


class SchemaRegistry:
    """Field metadata store for dynamically created tables.

    ``define_fields`` only flushes; the caller owns the transaction so that
    metadata and the physical column it describes commit together.
    """

    def __init__(self, db: Session):
        self.db = db

    # -- metadata -----------------------------------------------------------

    def define_fields(
        self, table: str, fields: Sequence[FieldDefinition]
    ) -> List[FieldMetaModel]:
        """Insert one metadata row per field, appended after existing ones."""
        existing = {
            name
            for (name,) in self.db.query(FieldMetaModel.field_name).filter(
                FieldMetaModel.table_name == table
            )
        }
        for field in fields:
            if field.name in existing:
                raise ConflictError(
                    f"Field '{field.name}' already has metadata for table '{table}'"
                )

        position = (
            self.db.query(func.max(FieldMetaModel.position))
            .filter(FieldMetaModel.table_name == table)
            .scalar()
        )
        position = -1 if position is None else position

        rows = []
        for field in fields:
            position += 1
            row = FieldMetaModel(
                table_name=table,
                field_name=field.name,
                position=position,
                field_type=field.declared_type.value,
                storage_type=field.storage_type.value,
            )
            role = field.role
            if isinstance(role, MediaRole):
                row.is_media_field = True
                row.media_type = role.arity.value
            elif isinstance(role, ForeignKeyRole):
                row.is_foreign_key = True
                row.foreign_table = role.table
                row.foreign_display = role.display_column
            self.db.add(row)
            rows.append(row)

        self.db.flush()
        return rows

    def _rows(self, table: str) -> List[FieldMetaModel]:
        return (
            self.db.query(FieldMetaModel)
            .filter(FieldMetaModel.table_name == table)
            .order_by(FieldMetaModel.position, FieldMetaModel.id)
            .all()
        )

    @staticmethod
    def _to_definition(row: FieldMetaModel) -> FieldDefinition:
        declared = FieldType(row.field_type)
        definition = FieldDefinition.build(
            row.field_name,
            declared,
            foreign_table=row.foreign_table,
            foreign_display=row.foreign_display,
        )
        # Keep whatever storage type was recorded at creation time.
        if row.storage_type and row.storage_type != definition.storage_type.value:
            definition = FieldDefinition(
                name=definition.name,
                declared_type=definition.declared_type,
                storage_type=StorageType(row.storage_type),
                role=definition.role,
            )
        return definition

    def fields_of(self, table: str) -> List[FieldDefinition]:
        """All field definitions of a table in creation order."""
        return [self._to_definition(row) for row in self._rows(table)]

    def field(self, table: str, field_name: str) -> Optional[FieldDefinition]:
        row = (
            self.db.query(FieldMetaModel)
            .filter(
                FieldMetaModel.table_name == table,
                FieldMetaModel.field_name == field_name,
            )
            .first()
        )
        return self._to_definition(row) if row else None

    def media_fields(self, table: str) -> Dict[str, MediaArity]:
        """Media fields keyed by name, valued by arity."""
        rows = (
            self.db.query(FieldMetaModel)
            .filter(
                FieldMetaModel.table_name == table,
                FieldMetaModel.is_media_field.is_(True),
            )
            .order_by(FieldMetaModel.position)
            .all()
        )
        return {row.field_name: MediaArity(row.media_type) for row in rows}

    def foreign_key_fields(self, table: str) -> Dict[str, ForeignKeyRole]:
        """Foreign-key fields keyed by name."""
        rows = (
            self.db.query(FieldMetaModel)
            .filter(
                FieldMetaModel.table_name == table,
                FieldMetaModel.is_foreign_key.is_(True),
            )
            .order_by(FieldMetaModel.position)
            .all()
        )
        return {
            row.field_name: ForeignKeyRole(
                table=row.foreign_table, display_column=row.foreign_display
            )
            for row in rows
        }

    # -- physical schema ----------------------------------------------------

    def user_tables(self) -> List[str]:
        """Names of all content tables, sorted."""
        names = inspect(self.db.connection()).get_table_names()
        return sorted(name for name in names if not is_reserved(name))

    def has_table(self, name: Optional[str]) -> bool:
        if not name or is_reserved(name):
            return False
        return name in self.user_tables()

    def require_table(self, name: Optional[str]) -> str:
        if not self.has_table(name):
            raise NotFoundError(f"Table '{name}' not found")
        return name

    def physical_table(self, name: str) -> Table:
        """Reflect a content table; NotFoundError for unknown or system tables."""
        self.require_table(name)
        return Table(name, MetaData(), autoload_with=self.db.connection())

    def column_names(self, name: str) -> List[str]:
        return [column.name for column in self.physical_table(name).columns]
