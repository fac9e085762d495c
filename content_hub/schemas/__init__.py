"""Request schemas for the Content Hub API."""

from .content_v1 import (
    FieldSpec,
    LanguageCreate,
    LanguageToggle,
    MediaCreate,
    TableCreate,
    TranslationBatch,
    TranslationUpsert,
)

__all__ = [
    "FieldSpec",
    "LanguageCreate",
    "LanguageToggle",
    "MediaCreate",
    "TableCreate",
    "TranslationBatch",
    "TranslationUpsert",
]
