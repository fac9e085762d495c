"""
Database package for Content Hub.
"""

from .base import Base, get_db, get_engine, get_session_local
from .models import (
    SYSTEM_TABLES,
    FieldMetaModel,
    LanguageModel,
    MediaAssetModel,
    TranslationModel,
)

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "get_session_local",
    "SYSTEM_TABLES",
    "FieldMetaModel",
    "LanguageModel",
    "MediaAssetModel",
    "TranslationModel",
]
