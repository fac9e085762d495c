"""
Query Gateway.

The read/write surface over content tables. Every identifier that ends up
in SQL (table, sort column, search column, written columns) is checked
against the reflected physical schema first; values always go through bind
parameters.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

import structlog
from sqlalchemy import Table, Text, cast, delete, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..errors import NotFoundError, StorageError, ValidationError
from .fields import coerce_value
from .languages import LanguageService
from .media import MediaService
from .registry import SchemaRegistry
from .resolver import RelationResolver
from .translations import TranslationOverlay

logger = structlog.get_logger()

MIN_LIMIT = 1


def clamp_limit(limit: Any, default: Optional[int] = None, maximum: Optional[int] = None) -> int:
    """Clamp a page size to ``[1, maximum]``; unparseable input uses the default."""
    settings = get_settings()
    default = settings.api_default_limit if default is None else default
    maximum = settings.api_max_limit if maximum is None else maximum
    try:
        value = int(limit) if limit is not None and limit != "" else default
    except (TypeError, ValueError):
        value = default
    return min(maximum, max(MIN_LIMIT, value))


def clamp_offset(offset: Any) -> int:
    try:
        value = int(offset) if offset is not None and offset != "" else 0
    except (TypeError, ValueError):
        value = 0
    return max(0, value)


def normalize_order_dir(order_dir: Optional[str]) -> str:
    """``ASC`` when asked for it (any case), ``DESC`` otherwise."""
    return "ASC" if (order_dir or "").strip().upper() == "ASC" else "DESC"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class QueryGateway:
    """Paginated listing, lookup, search and writes for content tables."""

    def __init__(self, db: Session):
        self.db = db
        self.registry = SchemaRegistry(db)
        self.media = MediaService(db)
        self.languages = LanguageService(db)
        self.resolver = RelationResolver(db, self.registry, self.media)
        self.translations = TranslationOverlay(db, self.registry, self.languages)

    @contextmanager
    def _storage(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Storage operation failed", action=action, error=str(e))
            raise StorageError(f"Failed to {action}", detail=str(e))

    # -- helpers ------------------------------------------------------------

    def _language(self, lang: Optional[str]) -> Optional[str]:
        if not lang:
            return None
        return self.languages.require(lang).code

    def _overlay(
        self, table: str, records: List[Dict[str, Any]], lang: Optional[str]
    ) -> List[Dict[str, Any]]:
        if not lang:
            return records
        translated = self.translations.for_records(
            table, [record["id"] for record in records], lang
        )
        for record in records:
            record["translations"] = translated.get(record["id"], {})
            record["language"] = lang
        return records

    def _fetch(self, physical: Table, record_id: Any) -> Optional[Dict[str, Any]]:
        try:
            record_id = int(record_id)
        except (TypeError, ValueError):
            return None
        row = self.db.execute(
            select(physical).where(physical.c.id == record_id)
        ).first()
        return dict(row._mapping) if row else None

    def _prepare(self, table: str, physical: Table, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate column names and coerce values to their storage types."""
        definitions = {f.name: f for f in self.registry.fields_of(table)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "id":
                continue
            if key not in physical.c:
                raise ValidationError(f"Unknown field '{key}' for table '{table}'")
            definition = definitions.get(key)
            values[key] = coerce_value(definition, value) if definition else value
        if not values:
            raise ValidationError("No field values provided")
        return values

    # -- reads --------------------------------------------------------------

    def list_tables(self) -> List[Dict[str, Any]]:
        """Every content table with its record count and fields."""
        result = []
        with self._storage("list tables"):
            for name in self.registry.user_tables():
                physical = self.registry.physical_table(name)
                count = self.db.execute(
                    select(func.count()).select_from(physical)
                ).scalar()
                result.append(
                    {
                        "name": name,
                        "record_count": count,
                        "columns": [
                            {"name": c.name, "type": str(c.type)} for c in physical.columns
                        ],
                        "fields": [f.to_dict() for f in self.registry.fields_of(name)],
                    }
                )
        return result

    def list(
        self,
        table: str,
        limit: Any = None,
        offset: Any = 0,
        order_by: Optional[str] = "id",
        order_dir: Optional[str] = "DESC",
        lang: Optional[str] = None,
    ) -> Dict[str, Any]:
        """One page of records, expanded and optionally translated.

        Returns ``{"records", "total", "has_more", "limit", "offset",
        "order_by", "order_dir"}``.
        """
        limit = clamp_limit(limit)
        offset = clamp_offset(offset)
        order_dir = normalize_order_dir(order_dir)
        order_by = order_by or "id"

        physical = self.registry.physical_table(table)
        if order_by not in physical.c:
            raise ValidationError(f"Cannot order by unknown field '{order_by}'")
        lang = self._language(lang)

        column = physical.c[order_by]
        ordering = column.asc() if order_dir == "ASC" else column.desc()
        with self._storage("list records"):
            total = self.db.execute(select(func.count()).select_from(physical)).scalar()
            rows = self.db.execute(
                select(physical).order_by(ordering).limit(limit).offset(offset)
            ).all()
            records = self.resolver.expand_many(table, [dict(r._mapping) for r in rows])
            records = self._overlay(table, records, lang)

        return {
            "records": records,
            "total": total,
            "has_more": offset + len(records) < total,
            "limit": limit,
            "offset": offset,
            "order_by": order_by,
            "order_dir": order_dir,
        }

    def get_one(self, table: str, record_id: Any, lang: Optional[str] = None) -> Dict[str, Any]:
        """A single expanded record; NotFoundError if the id does not exist."""
        physical = self.registry.physical_table(table)
        lang = self._language(lang)
        with self._storage("fetch record"):
            record = self._fetch(physical, record_id)
            if record is None:
                raise NotFoundError(f"Record {record_id} not found in '{table}'")
            record = self.resolver.expand(table, record)
            return self._overlay(table, [record], lang)[0]

    def search(
        self,
        table: str,
        query: Optional[str],
        field: Optional[str] = None,
        limit: Any = None,
    ) -> Dict[str, Any]:
        """Case-insensitive substring search. Results are not expanded.

        With ``field`` only that column is matched; otherwise every column
        with textual storage.
        """
        physical = self.registry.physical_table(table)
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")
        limit = clamp_limit(limit)

        if field:
            if field not in physical.c:
                raise ValidationError(f"Cannot search unknown field '{field}'")
            fields = [field]
        else:
            fields = [
                f.name
                for f in self.registry.fields_of(table)
                if f.is_textual and f.name in physical.c
            ]
        if not fields:
            raise ValidationError("No searchable fields found")

        pattern = f"%{_escape_like(query)}%"
        conditions = [
            cast(physical.c[name], Text).ilike(pattern, escape="\\") for name in fields
        ]
        with self._storage("search records"):
            rows = self.db.execute(
                select(physical).where(or_(*conditions)).order_by(physical.c.id).limit(limit)
            ).all()

        return {
            "records": [dict(r._mapping) for r in rows],
            "fields_searched": fields,
            "query": query,
        }

    # -- writes -------------------------------------------------------------

    def create(self, table: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it as stored."""
        physical = self.registry.physical_table(table)
        values = self._prepare(table, physical, data)
        with self._storage("create record"):
            result = self.db.execute(insert(physical).values(**values))
            record_id = result.inserted_primary_key[0]
            self.db.commit()
            record = self._fetch(physical, record_id)
        logger.info("Record created", table=table, record_id=record_id)
        return record

    def update(self, table: str, record_id: Any, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Update fields of an existing record and return it as stored."""
        physical = self.registry.physical_table(table)
        values = self._prepare(table, physical, data)
        with self._storage("update record"):
            if self._fetch(physical, record_id) is None:
                raise NotFoundError(f"Record {record_id} not found in '{table}'")
            self.db.execute(
                update(physical).where(physical.c.id == int(record_id)).values(**values)
            )
            self.db.commit()
            record = self._fetch(physical, record_id)
        logger.info("Record updated", table=table, record_id=record_id)
        return record

    def delete(self, table: str, record_id: Any) -> None:
        """Hard-delete a record together with its translations."""
        physical = self.registry.physical_table(table)
        with self._storage("delete record"):
            if self._fetch(physical, record_id) is None:
                raise NotFoundError(f"Record {record_id} not found in '{table}'")
            self.db.execute(delete(physical).where(physical.c.id == int(record_id)))
            purged = self.translations.purge(table, int(record_id))
            self.db.commit()
        logger.info(
            "Record deleted", table=table, record_id=record_id, translations_purged=purged
        )
