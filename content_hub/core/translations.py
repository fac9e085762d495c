"""
Translation Overlay.

Stores per-(table, record, field, language) override values. The default
language never gets rows here: its values live in the record itself, and a
field with no row for the requested language simply falls back to the
record's own value.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import TranslationModel
from ..errors import NotFoundError, StorageError, ValidationError
from .languages import LanguageService, normalize_code
from .registry import SchemaRegistry

logger = structlog.get_logger()


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class TranslationOverlay:
    """Service for translated field values."""

    def __init__(
        self,
        db: Session,
        registry: Optional[SchemaRegistry] = None,
        languages: Optional[LanguageService] = None,
    ):
        self.db = db
        self.registry = registry or SchemaRegistry(db)
        self.languages = languages or LanguageService(db)

    # -- validation ---------------------------------------------------------

    def _check_record(self, table: str, record_id: int) -> None:
        physical = self.registry.physical_table(table)
        exists = self.db.execute(
            select(func.count()).select_from(physical).where(physical.c.id == record_id)
        ).scalar()
        if not exists:
            raise NotFoundError(f"Record {record_id} not found in '{table}'")

    def _check_language(self, lang: str) -> str:
        language = self.languages.require(lang)
        if language.is_default:
            raise ValidationError(
                "The default language is stored in the record itself and cannot be translated"
            )
        return language.code

    def _check_fields(self, table: str, field_names: Iterable[str]) -> None:
        columns = set(self.registry.column_names(table)) - {"id"}
        unknown = sorted(set(field_names) - columns)
        if unknown:
            raise ValidationError(
                f"Unknown field(s) for table '{table}': {', '.join(unknown)}"
            )

    # -- reads --------------------------------------------------------------

    def _rows(self, table: str, record_id: int, lang: Optional[str] = None) -> List[TranslationModel]:
        query = self.db.query(TranslationModel).filter(
            TranslationModel.table_name == table,
            TranslationModel.record_id == record_id,
        )
        if lang:
            query = query.filter(TranslationModel.language_code == normalize_code(lang))
        return query.order_by(
            TranslationModel.language_code, TranslationModel.field_name
        ).all()

    def get(self, table: str, record_id: int, field_name: str, lang: str) -> Optional[str]:
        """Translated value of one field, or None when untranslated."""
        row = (
            self.db.query(TranslationModel)
            .filter(
                TranslationModel.table_name == table,
                TranslationModel.record_id == record_id,
                TranslationModel.field_name == field_name,
                TranslationModel.language_code == normalize_code(lang),
            )
            .first()
        )
        return row.translated_value if row else None

    def get_all(self, table: str, record_id: int, lang: Optional[str] = None) -> Dict[str, Any]:
        """All translations of a record.

        With ``lang``: ``{field: value}``.
        Without: ``{lang: {field: {"value": ..., "updated_at": ...}}}`` for
        every language that has at least one translation.
        """
        if lang:
            return {
                row.field_name: row.translated_value
                for row in self._rows(table, record_id, lang)
            }

        result: Dict[str, Dict[str, Any]] = defaultdict(dict)
        for row in self._rows(table, record_id):
            result[row.language_code][row.field_name] = {
                "value": row.translated_value,
                "updated_at": _iso(row.updated_at),
            }
        return dict(result)

    def entries(self, table: str, record_id: int, lang: str) -> Dict[str, Dict[str, Any]]:
        """``{field: {"value": ..., "updated_at": ...}}`` for one language."""
        return {
            row.field_name: {
                "value": row.translated_value,
                "updated_at": _iso(row.updated_at),
            }
            for row in self._rows(table, record_id, lang)
        }

    def for_records(
        self, table: str, record_ids: Iterable[int], lang: str
    ) -> Dict[int, Dict[str, Any]]:
        """``{record_id: {field: value}}`` for a page of records."""
        ids = list(record_ids)
        result: Dict[int, Dict[str, Any]] = {record_id: {} for record_id in ids}
        if not ids:
            return result
        rows = (
            self.db.query(TranslationModel)
            .filter(
                TranslationModel.table_name == table,
                TranslationModel.record_id.in_(ids),
                TranslationModel.language_code == normalize_code(lang),
            )
            .all()
        )
        for row in rows:
            result.setdefault(row.record_id, {})[row.field_name] = row.translated_value
        return result

    # -- writes -------------------------------------------------------------

    def _put(self, table: str, record_id: int, field_name: str, lang: str, value: Any) -> TranslationModel:
        now = datetime.now(timezone.utc)
        row = (
            self.db.query(TranslationModel)
            .filter(
                TranslationModel.table_name == table,
                TranslationModel.record_id == record_id,
                TranslationModel.field_name == field_name,
                TranslationModel.language_code == lang,
            )
            .first()
        )
        if row is None:
            row = TranslationModel(
                table_name=table,
                record_id=record_id,
                field_name=field_name,
                language_code=lang,
                created_at=now,
            )
            self.db.add(row)
        row.translated_value = value
        row.updated_at = now
        return row

    def upsert(
        self, table: str, record_id: int, field_name: str, lang: str, value: Optional[str]
    ) -> TranslationModel:
        """Create or replace one translation. No history is kept."""
        self._check_record(table, record_id)
        self._check_fields(table, [field_name])
        code = self._check_language(lang)

        try:
            row = self._put(table, record_id, field_name, code, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Translation save failed", table=table, record_id=record_id, error=str(e))
            raise StorageError("Failed to save translation", detail=str(e))
        self.db.refresh(row)
        return row

    def upsert_batch(
        self, table: str, record_id: int, lang: str, fields: Mapping[str, Optional[str]]
    ) -> int:
        """Save several translated fields of one record atomically.

        Empty and whitespace-only values are skipped. Returns the number of
        rows written; raises ValidationError when nothing was left to save.
        """
        if not fields:
            raise ValidationError("No translations provided")

        self._check_record(table, record_id)
        self._check_fields(table, [name for name in fields if name])
        code = self._check_language(lang)

        to_save = {
            name: value
            for name, value in fields.items()
            if name and value is not None and str(value).strip()
        }
        if not to_save:
            raise ValidationError("No translations were saved (all fields were empty)")

        try:
            for name, value in to_save.items():
                self._put(table, record_id, name, code, str(value))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Translation batch failed",
                table=table,
                record_id=record_id,
                language=code,
                error=str(e),
            )
            raise StorageError("Failed to save translations", detail=str(e))

        logger.info(
            "Translations saved",
            table=table,
            record_id=record_id,
            language=code,
            count=len(to_save),
        )
        return len(to_save)

    def purge(self, table: str, record_id: int) -> int:
        """Delete every translation of a record. The caller commits."""
        return (
            self.db.query(TranslationModel)
            .filter(
                TranslationModel.table_name == table,
                TranslationModel.record_id == record_id,
            )
            .delete(synchronize_session=False)
        )
