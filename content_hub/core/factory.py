"""
Table Factory.

Turns an operator-supplied field list into a physical table plus the
matching Schema Registry rows. DDL runs through alembic's Operations API on
the session's own connection, so the CREATE/ALTER statement and the
metadata insert commit or roll back as one unit.
"""

import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import structlog
from alembic.migration import MigrationContext
from alembic.operations import Operations
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Column, Integer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import (
    ConflictError,
    ContentHubError,
    StorageError,
    ValidationError,
)
from ..schemas.content_v1 import FieldSpec
from .fields import FieldDefinition, FieldType, sanitize_identifier
from .registry import SchemaRegistry, is_reserved

logger = structlog.get_logger()

FieldInput = Union[FieldSpec, Mapping[str, Any]]

_locks_guard = threading.Lock()
_table_locks: Dict[str, threading.Lock] = {}


def schema_lock(table: str) -> threading.Lock:
    """Process-wide lock serializing schema changes to one table."""
    with _locks_guard:
        return _table_locks.setdefault(table.lower(), threading.Lock())


def _as_spec(field: FieldInput) -> FieldSpec:
    if isinstance(field, FieldSpec):
        return field
    try:
        return FieldSpec.model_validate(field)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid field definition ({location}): {first['msg']}")


class TableFactory:
    """Creates content tables and appends fields to them."""

    def __init__(self, db: Session, registry: Optional[SchemaRegistry] = None):
        self.db = db
        self.registry = registry or SchemaRegistry(db)

    def _operations(self) -> Operations:
        return Operations(MigrationContext.configure(self.db.connection()))

    def _table_exists(self, name: str) -> bool:
        lowered = name.lower()
        return any(t.lower() == lowered for t in self.registry.user_tables())

    def _definition(self, spec: FieldSpec, owner_table: str) -> Optional[FieldDefinition]:
        """Build a definition from a spec; None if the name sanitizes to nothing."""
        name = sanitize_identifier(spec.name)
        if not name:
            return None
        if name.lower() == "id":
            raise ValidationError("Field name 'id' is reserved")

        foreign_table = None
        foreign_display = None
        if spec.type == FieldType.FOREIGN_KEY:
            foreign_table = sanitize_identifier(spec.foreign_table)
            if not foreign_table:
                raise ValidationError(
                    f"Foreign key field '{name}' requires a foreign_table"
                )
            if foreign_table != owner_table and not self.registry.has_table(
                foreign_table
            ):
                raise ValidationError(
                    f"Foreign table '{foreign_table}' for field '{name}' does not exist"
                )
            foreign_display = sanitize_identifier(spec.foreign_display) or None

        return FieldDefinition.build(name, spec.type, foreign_table, foreign_display)

    def _commit_or_rollback(self, action: str, table: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Schema change failed", action=action, table=table, error=str(e))
            raise StorageError(f"Failed to {action}", detail=str(e))

    def create_table(self, name: str, fields: Iterable[FieldInput]) -> List[FieldDefinition]:
        """Create a content table with an auto-increment ``id`` and the given fields.

        Args:
            name: Requested table name; sanitized to ``[A-Za-z0-9_]``.
            fields: Field specs, in column order.

        Returns:
            The stored field definitions, in order.

        Raises:
            ValidationError: empty/reserved name, no usable fields, bad field spec.
            ConflictError: a content table with that name already exists.
            StorageError: the DDL or metadata write failed (nothing is kept).
        """
        table = sanitize_identifier(name)
        if not table:
            raise ValidationError("Table name is required")
        if is_reserved(table):
            raise ValidationError(f"Table name '{table}' is reserved")

        specs = [_as_spec(f) for f in (fields or [])]
        if not specs:
            raise ValidationError("At least one field is required")

        definitions: List[FieldDefinition] = []
        seen = set()
        for spec in specs:
            definition = self._definition(spec, table)
            if definition is None:
                continue
            if definition.name.lower() in seen:
                raise ValidationError(f"Duplicate field name '{definition.name}'")
            seen.add(definition.name.lower())
            definitions.append(definition)

        if not definitions:
            raise ValidationError("At least one valid field is required")

        with schema_lock(table):
            if self._table_exists(table):
                raise ConflictError(f"Table '{table}' already exists")

            try:
                columns = [Column("id", Integer, primary_key=True, autoincrement=True)]
                columns.extend(Column(d.name, d.column_type()) for d in definitions)
                self._operations().create_table(
                    table, *columns, sqlite_autoincrement=True
                )
                self.registry.define_fields(table, definitions)
            except ContentHubError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error("Table creation failed", table=table, error=str(e))
                raise StorageError("Failed to create table", detail=str(e))

            self._commit_or_rollback("create table", table)

        logger.info(
            "Content table created",
            table=table,
            fields=[d.name for d in definitions],
        )
        return self.registry.fields_of(table)

    def add_field(self, table: str, field: FieldInput) -> FieldDefinition:
        """Append one column (and its metadata row) to an existing table.

        Raises:
            NotFoundError: the table does not exist.
            ValidationError: the field name sanitizes to nothing or the definition is invalid.
            ConflictError: a column with that name already exists.
        """
        spec = _as_spec(field)

        with schema_lock(table):
            self.registry.require_table(table)
            definition = self._definition(spec, table)
            if definition is None:
                raise ValidationError("Field name is required")

            existing = {c.lower() for c in self.registry.column_names(table)}
            if definition.name.lower() in existing:
                raise ConflictError(
                    f"Field '{definition.name}' already exists in table '{table}'"
                )

            try:
                self._operations().add_column(
                    table, Column(definition.name, definition.column_type())
                )
                self.registry.define_fields(table, [definition])
            except ContentHubError:
                self.db.rollback()
                raise
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    "Adding field failed", table=table, field=definition.name, error=str(e)
                )
                raise StorageError("Failed to add field", detail=str(e))

            self._commit_or_rollback("add field", table)

        logger.info(
            "Field added",
            table=table,
            field=definition.name,
            type=definition.declared_type.value,
        )
        return definition
