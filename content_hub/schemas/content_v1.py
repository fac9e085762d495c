from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, constr, conint

from ..core.fields import FieldType


class FieldSpec(BaseModel):
    """One field of a table definition as submitted by an operator.

    ``foreign_table`` and ``foreign_display`` are only read for
    ``foreign_key`` fields; the foreign table is never inferred from the
    field name.
    """

    model_config = ConfigDict(extra="forbid")

    name: constr(max_length=128)
    type: FieldType
    foreign_table: Optional[constr(max_length=128)] = None
    foreign_display: Optional[constr(max_length=128)] = None


class TableCreate(BaseModel):
    """Request body for creating a content table."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "name": "articles",
                "fields": [
                    {"name": "title", "type": "text"},
                    {"name": "body", "type": "textarea"},
                    {"name": "cover", "type": "media_single"},
                    {
                        "name": "author",
                        "type": "foreign_key",
                        "foreign_table": "authors",
                        "foreign_display": "name",
                    },
                ],
            }
        },
    )

    name: constr(max_length=128)
    fields: List[FieldSpec] = Field(default_factory=list)


class TranslationUpsert(BaseModel):
    """A single translated field value."""

    model_config = ConfigDict(extra="forbid")

    table: constr(min_length=1, max_length=128)
    record_id: conint(ge=1)
    field_name: constr(min_length=1, max_length=128)
    language_code: constr(min_length=1, max_length=16)
    value: Optional[str] = None


class TranslationBatch(BaseModel):
    """Several translated fields of one record in one language."""

    model_config = ConfigDict(extra="forbid")

    table: constr(min_length=1, max_length=128)
    record_id: conint(ge=1)
    language_code: constr(min_length=1, max_length=16)
    translations: Dict[str, Optional[str]] = Field(default_factory=dict)


class LanguageCreate(BaseModel):
    """Definition of a new content language."""

    model_config = ConfigDict(extra="forbid")

    code: constr(min_length=1, max_length=16)
    name: constr(min_length=1, max_length=100)
    native_name: Optional[constr(min_length=1, max_length=100)] = None
    is_active: bool = False
    is_default: bool = False


class LanguageToggle(BaseModel):
    model_config = ConfigDict(extra="forbid")

    activate: bool


class MediaCreate(BaseModel):
    """Metadata of a file already written to the media directory."""

    model_config = ConfigDict(extra="forbid")

    filename: constr(min_length=1, max_length=255)
    original_filename: constr(min_length=1, max_length=255)
    path: constr(min_length=1, max_length=1024)
    mime_type: constr(min_length=1, max_length=128)
    file_size: conint(ge=0) = 0
    tags: str = ""

