"""
Field types and roles for dynamic content tables.

A field has a declared type (what the operator picked), a storage type (the
physical column type derived from it) and exactly one role: plain, media or
foreign key. Roles are a small tagged union so callers match on them
instead of comparing type strings.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Text
from sqlalchemy.types import TypeEngine

from ..errors import ValidationError

_IDENTIFIER_RE = re.compile(r"[^A-Za-z0-9_]")


class FieldType(str, Enum):
    """Declared field types an operator can choose from."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    MEDIA_SINGLE = "media_single"
    MEDIA_MULTIPLE = "media_multiple"
    FOREIGN_KEY = "foreign_key"


class StorageType(str, Enum):
    """Physical column types."""

    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    DATE = "DATE"
    DATETIME = "DATETIME"
    BOOLEAN = "BOOLEAN"


class MediaArity(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


STORAGE_TYPES: Dict[FieldType, StorageType] = {
    FieldType.TEXT: StorageType.TEXT,
    FieldType.TEXTAREA: StorageType.TEXT,
    FieldType.NUMBER: StorageType.INTEGER,
    FieldType.DECIMAL: StorageType.REAL,
    FieldType.DATE: StorageType.DATE,
    FieldType.DATETIME: StorageType.DATETIME,
    FieldType.BOOLEAN: StorageType.BOOLEAN,
    FieldType.MEDIA_SINGLE: StorageType.INTEGER,
    FieldType.MEDIA_MULTIPLE: StorageType.TEXT,
    FieldType.FOREIGN_KEY: StorageType.INTEGER,
}

COLUMN_TYPES: Dict[StorageType, type] = {
    StorageType.TEXT: Text,
    StorageType.INTEGER: Integer,
    StorageType.REAL: Float,
    StorageType.DATE: Date,
    StorageType.DATETIME: DateTime,
    StorageType.BOOLEAN: Boolean,
}


@dataclass(frozen=True)
class PlainRole:
    """A field holding its own scalar value."""


@dataclass(frozen=True)
class MediaRole:
    """A field referencing one or many media assets by id."""

    arity: MediaArity


@dataclass(frozen=True)
class ForeignKeyRole:
    """A field referencing a record of another content table by id."""

    table: Optional[str]
    display_column: Optional[str] = None


FieldRole = Union[PlainRole, MediaRole, ForeignKeyRole]


def role_for(
    field_type: FieldType,
    foreign_table: Optional[str] = None,
    foreign_display: Optional[str] = None,
) -> FieldRole:
    """Derive the role implied by a declared type."""
    if field_type == FieldType.MEDIA_SINGLE:
        return MediaRole(MediaArity.SINGLE)
    if field_type == FieldType.MEDIA_MULTIPLE:
        return MediaRole(MediaArity.MULTIPLE)
    if field_type == FieldType.FOREIGN_KEY:
        return ForeignKeyRole(table=foreign_table, display_column=foreign_display)
    return PlainRole()


@dataclass(frozen=True)
class FieldDefinition:
    """One column's declared type, storage type and role."""

    name: str
    declared_type: FieldType
    storage_type: StorageType
    role: FieldRole

    @classmethod
    def build(
        cls,
        name: str,
        declared_type: FieldType,
        foreign_table: Optional[str] = None,
        foreign_display: Optional[str] = None,
    ) -> "FieldDefinition":
        return cls(
            name=name,
            declared_type=declared_type,
            storage_type=STORAGE_TYPES[declared_type],
            role=role_for(declared_type, foreign_table, foreign_display),
        )

    @property
    def is_media_field(self) -> bool:
        return isinstance(self.role, MediaRole)

    @property
    def is_foreign_key(self) -> bool:
        return isinstance(self.role, ForeignKeyRole)

    @property
    def is_textual(self) -> bool:
        return self.storage_type == StorageType.TEXT

    def column_type(self) -> TypeEngine:
        return COLUMN_TYPES[self.storage_type]()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.declared_type.value,
            "storage_type": self.storage_type.value,
            "is_media_field": False,
            "media_type": None,
            "is_foreign_key": False,
            "foreign_table": None,
            "foreign_display": None,
        }
        role = self.role
        if isinstance(role, MediaRole):
            data["is_media_field"] = True
            data["media_type"] = role.arity.value
        elif isinstance(role, ForeignKeyRole):
            data["is_foreign_key"] = True
            data["foreign_table"] = role.table
            data["foreign_display"] = role.display_column
        return data


def sanitize_identifier(name: Optional[str]) -> str:
    """Strip everything outside ``[A-Za-z0-9_]``."""
    return _IDENTIFIER_RE.sub("", (name or "").strip())


def parse_id_list(raw: Any) -> List[int]:
    """Parse a stored multi-media value into a list of ids.

    Anything unparseable yields an empty list; non-integer entries are
    dropped.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        try:
            items = json.loads(raw)
        except (TypeError, ValueError):
            return []
        if not isinstance(items, list):
            return []

    ids: List[int] = []
    for item in items:
        if isinstance(item, bool):
            continue
        if isinstance(item, int):
            ids.append(item)
        elif isinstance(item, str) and item.strip().isdigit():
            ids.append(int(item.strip()))
    return ids


def serialize_id_list(value: Any) -> Optional[str]:
    """Serialize a multi-media value to its stored JSON form."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            items = json.loads(value)
        except ValueError:
            raise ValidationError("Media list must be a list of ids")
        if not isinstance(items, list):
            raise ValidationError("Media list must be a list of ids")
        return json.dumps(parse_id_list(items))
    if isinstance(value, (list, tuple)):
        return json.dumps(parse_id_list(list(value)))
    raise ValidationError("Media list must be a list of ids")


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def coerce_value(field: FieldDefinition, value: Any) -> Any:
    """Coerce an incoming value to the field's storage type.

    Empty strings become NULL for every non-text column. Raises
    ValidationError when the value cannot be represented.
    """
    if isinstance(field.role, MediaRole) and field.role.arity == MediaArity.MULTIPLE:
        return serialize_id_list(value)

    if value is None:
        return None
    if value == "" and field.storage_type != StorageType.TEXT:
        return None

    storage = field.storage_type
    try:
        if storage == StorageType.TEXT:
            return value if isinstance(value, str) else str(value)
        if storage == StorageType.INTEGER:
            if isinstance(value, bool):
                return int(value)
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)
        if storage == StorageType.REAL:
            return float(value)
        if storage == StorageType.BOOLEAN:
            if isinstance(value, bool):
                return value
            if isinstance(value, (int, float)):
                return bool(value)
            text = str(value).strip().lower()
            if text in _TRUE:
                return True
            if text in _FALSE:
                return False
            raise ValueError(value)
        if storage == StorageType.DATE:
            if isinstance(value, datetime):
                return value.date()
            if isinstance(value, date):
                return value
            return date.fromisoformat(str(value).strip())
        if storage == StorageType.DATETIME:
            if isinstance(value, datetime):
                return value
            return datetime.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid value for field '{field.name}' ({field.declared_type.value})"
        )
    raise ValidationError(f"Unsupported storage type for field '{field.name}'")
