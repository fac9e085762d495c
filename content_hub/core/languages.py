"""
Language administration.

Exactly one language is the default once any language exists, and the
default is always active. The "current" language of a caller is not stored
anywhere: every read takes it as an explicit parameter and ``resolve``
turns a requested code into the one that will be served.
"""

from typing import List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import LanguageModel
from ..errors import ConflictError, NotFoundError, StorageError, ValidationError
from ..schemas.content_v1 import LanguageCreate

logger = structlog.get_logger()

DEFAULT_LANGUAGES = [
    ("en", "English", "English", True),
    ("es", "Spanish", "Español", False),
    ("fr", "French", "Français", False),
    ("de", "German", "Deutsch", False),
    ("it", "Italian", "Italiano", False),
    ("pt", "Portuguese", "Português", False),
    ("ar", "Arabic", "العربية", False),
    ("zh", "Chinese", "中文", False),
    ("ja", "Japanese", "日本語", False),
    ("ru", "Russian", "Русский", False),
]


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().lower()


class LanguageService:
    """Service for managing content languages."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Language update failed", action=action, error=str(e))
            raise StorageError(f"Failed to {action}", detail=str(e))

    def seed_defaults(self) -> int:
        """Insert the built-in language list if no language exists yet."""
        if self.db.query(LanguageModel).count() > 0:
            return 0
        for code, name, native_name, is_default in DEFAULT_LANGUAGES:
            self.db.add(
                LanguageModel(
                    code=code,
                    name=name,
                    native_name=native_name,
                    is_default=is_default,
                    is_active=True,
                )
            )
        self._commit("seed languages")
        return len(DEFAULT_LANGUAGES)

    def get(self, code: Optional[str]) -> Optional[LanguageModel]:
        """Get a language by code."""
        code = normalize_code(code)
        if not code:
            return None
        return self.db.query(LanguageModel).filter(LanguageModel.code == code).first()

    def require(self, code: Optional[str]) -> LanguageModel:
        language = self.get(code)
        if language is None:
            raise NotFoundError(f"Language '{code}' not found")
        return language

    def all(self) -> List[LanguageModel]:
        return (
            self.db.query(LanguageModel)
            .order_by(LanguageModel.is_default.desc(), LanguageModel.name)
            .all()
        )

    def active(self) -> List[LanguageModel]:
        """Active languages, default first, then by name."""
        return (
            self.db.query(LanguageModel)
            .filter(LanguageModel.is_active.is_(True))
            .order_by(LanguageModel.is_default.desc(), LanguageModel.name)
            .all()
        )

    def default(self) -> Optional[LanguageModel]:
        return (
            self.db.query(LanguageModel)
            .filter(LanguageModel.is_default.is_(True))
            .first()
        )

    def default_code(self) -> str:
        language = self.default()
        return language.code if language else get_settings().default_language

    def is_default(self, code: Optional[str]) -> bool:
        return normalize_code(code) == self.default_code()

    def resolve(self, requested: Optional[str] = None) -> str:
        """Language code to serve for a caller asking for ``requested``.

        An active language is honoured; anything else falls back to the
        default language.
        """
        language = self.get(requested)
        if language is not None and language.is_active:
            return language.code
        return self.default_code()

    def define(self, language: LanguageCreate) -> LanguageModel:
        """Add a language.

        The first language ever defined becomes the default, as does one
        created with ``is_default``; a default is always active.
        """
        code = normalize_code(language.code)
        if not code:
            raise ValidationError("Language code is required")
        if self.get(code) is not None:
            raise ConflictError(f"Language '{code}' already exists")

        make_default = language.is_default or self.default() is None
        if make_default:
            self.db.query(LanguageModel).update(
                {LanguageModel.is_default: False}, synchronize_session=False
            )

        model = LanguageModel(
            code=code,
            name=language.name,
            native_name=language.native_name or language.name,
            is_default=make_default,
            is_active=language.is_active or make_default,
        )
        self.db.add(model)
        self._commit("define language")
        self.db.refresh(model)
        logger.info("Language defined", code=code, is_default=make_default)
        return model

    def toggle(self, code: str, activate: bool) -> LanguageModel:
        """Activate or deactivate a language. The default cannot be deactivated."""
        language = self.require(code)
        if language.is_default and not activate:
            raise ValidationError("Cannot deactivate the default language")

        language.is_active = activate
        self._commit("update language status")
        self.db.refresh(language)
        logger.info("Language toggled", code=language.code, active=activate)
        return language

    def set_default(self, code: str) -> LanguageModel:
        """Make ``code`` the default language (and active) in one transaction."""
        language = self.require(code)
        self.db.query(LanguageModel).filter(LanguageModel.id != language.id).update(
            {LanguageModel.is_default: False}, synchronize_session=False
        )
        language.is_default = True
        language.is_active = True
        self._commit("set default language")
        self.db.refresh(language)
        logger.info("Default language changed", code=language.code)
        return language
