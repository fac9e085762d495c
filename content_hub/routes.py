"""
Content Hub API Routes.

Thin HTTP adapters over the content engine. All endpoints are prefixed with
/api and answer with the success envelope; failures are turned into the
failure envelope by the exception handlers registered in ``api.py``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from .core.factory import TableFactory
from .core.fields import sanitize_identifier
from .core.gateway import QueryGateway, clamp_limit, clamp_offset
from .core.languages import LanguageService
from .core.media import MediaService
from .core.registry import SchemaRegistry
from .core.resolver import RelationResolver
from .core.translations import TranslationOverlay
from .db.base import get_db
from .schemas.content_v1 import (
    FieldSpec,
    LanguageCreate,
    LanguageToggle,
    MediaCreate,
    TableCreate,
    TranslationBatch,
    TranslationUpsert,
)

router = APIRouter(prefix="/api", tags=["content"])


def envelope(data: Any, **meta: Any) -> Dict[str, Any]:
    """Wrap a payload in the success envelope."""
    meta["timestamp"] = datetime.now(timezone.utc).isoformat()
    return {"success": True, "data": data, "meta": meta}


# =============================================================================
# Table Endpoints
# =============================================================================


@router.get("/tables")
async def list_tables(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """List content tables with record counts and fields."""
    tables = QueryGateway(db).list_tables()
    return envelope(tables, total_tables=len(tables))


@router.post("/tables", status_code=201)
async def create_table(
    table: TableCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create a content table."""
    fields = TableFactory(db).create_table(table.name, table.fields)
    name = sanitize_identifier(table.name)
    return envelope(
        {"name": name, "fields": [f.to_dict() for f in fields]},
        message=f"Table '{name}' created successfully",
    )


@router.get("/tables/{table}/fields")
async def get_table_fields(table: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Field metadata of a content table, in column order."""
    registry = SchemaRegistry(db)
    registry.require_table(table)
    fields = [f.to_dict() for f in registry.fields_of(table)]
    return envelope(fields, table=table, total_fields=len(fields))


@router.post("/tables/{table}/fields", status_code=201)
async def add_table_field(
    table: str,
    field: FieldSpec,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Append a field to a content table."""
    definition = TableFactory(db).add_field(table, field)
    return envelope(
        definition.to_dict(),
        table=table,
        message=f"Field '{definition.name}' added successfully",
    )


@router.get("/tables/{table}/fields/{field}/options")
async def get_foreign_options(
    table: str,
    field: str,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Selectable records of the table a foreign-key field points at."""
    options = RelationResolver(db).foreign_options(table, field)
    return envelope(options, table=table, field=field, total=len(options))


# =============================================================================
# Record Endpoints
# =============================================================================


@router.get("/records")
async def list_records(
    table: str,
    limit: Optional[int] = None,
    offset: Optional[int] = 0,
    order_by: str = "id",
    order_dir: str = "DESC",
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List records of a table, expanded and optionally translated."""
    page = QueryGateway(db).list(
        table,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order_dir=order_dir,
        lang=lang,
    )
    return envelope(
        page["records"],
        table=table,
        total=page["total"],
        limit=page["limit"],
        offset=page["offset"],
        has_more=page["has_more"],
        order_by=page["order_by"],
        order_dir=page["order_dir"],
    )


@router.get("/record")
async def get_record(
    table: str,
    id: int,
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Get one record by id."""
    record = QueryGateway(db).get_one(table, id, lang=lang)
    return envelope(record, table=table)


@router.post("/records/{table}", status_code=201)
async def create_record(
    table: str,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create a record."""
    record = QueryGateway(db).create(table, data)
    return envelope(record, table=table, message="Record created successfully")


@router.put("/records/{table}/{record_id}")
async def update_record(
    table: str,
    record_id: int,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Update a record."""
    record = QueryGateway(db).update(table, record_id, data)
    return envelope(record, table=table, message="Record updated successfully")


@router.delete("/records/{table}/{record_id}")
async def delete_record(
    table: str,
    record_id: int,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Hard-delete a record."""
    QueryGateway(db).delete(table, record_id)
    return envelope(
        {"id": record_id}, table=table, message="Record deleted successfully"
    )


@router.get("/search")
async def search_records(
    table: str,
    q: Optional[str] = None,
    field: Optional[str] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Substring search over one field or every text field."""
    result = QueryGateway(db).search(table, q, field=field, limit=limit)
    return envelope(
        result["records"],
        table=table,
        query=result["query"],
        fields_searched=result["fields_searched"],
        results_count=len(result["records"]),
    )


# =============================================================================
# Media Endpoints
# =============================================================================


@router.get("/media")
async def list_media(
    limit: Optional[int] = None,
    offset: Optional[int] = 0,
    tag: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Paginated media listing, newest first."""
    service = MediaService(db)
    limit = clamp_limit(limit)
    offset = clamp_offset(offset)
    assets = service.list(limit=limit, offset=offset, tag=tag)
    total = service.count(tag=tag)
    return envelope(
        [a.to_dict() for a in assets],
        total=total,
        limit=limit,
        offset=offset,
        has_more=offset + len(assets) < total,
    )


@router.get("/media/{media_id}")
async def get_media(media_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Get one media asset."""
    return envelope(MediaService(db).require(media_id).to_dict())


@router.post("/media", status_code=201)
async def register_media(
    media: MediaCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Register metadata of a stored file."""
    asset = MediaService(db).register(media)
    return envelope(asset.to_dict(), message="File registered successfully")


# =============================================================================
# Language Endpoints
# =============================================================================


@router.get("/languages")
async def list_languages(
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Active languages, the default, and the caller's selected language."""
    service = LanguageService(db)
    languages = service.active()
    return envelope(
        {
            "languages": [language.to_dict() for language in languages],
            "default_language": service.default_code(),
            "current_language": service.resolve(lang),
        },
        total_languages=len(languages),
    )


@router.post("/languages", status_code=201)
async def create_language(
    language: LanguageCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Define a new language."""
    model = LanguageService(db).define(language)
    return envelope(model.to_dict(), message=f"Language '{model.code}' created")


@router.post("/languages/{code}/toggle")
async def toggle_language(
    code: str,
    toggle: LanguageToggle,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Activate or deactivate a language."""
    model = LanguageService(db).toggle(code, toggle.activate)
    state = "activated" if toggle.activate else "deactivated"
    return envelope(model.to_dict(), message=f"Language {state} successfully")


@router.post("/languages/{code}/default")
async def set_default_language(code: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Make a language the default."""
    model = LanguageService(db).set_default(code)
    return envelope(model.to_dict(), message="Default language updated successfully")


# =============================================================================
# Translation Endpoints
# =============================================================================


@router.get("/translations")
async def get_translations(
    table: str,
    record_id: int,
    lang: Optional[str] = None,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Translations of one record, for one language or all of them."""
    overlay = TranslationOverlay(db)
    overlay.registry.require_table(table)

    if lang:
        code = overlay.languages.require(lang).code
        translations = overlay.entries(table, record_id, code)
        return envelope(
            {
                "translations": translations,
                "language": code,
                "table": table,
                "record_id": record_id,
            },
            total_fields=len(translations),
        )

    translations = overlay.get_all(table, record_id)
    return envelope(
        {"translations": translations, "table": table, "record_id": record_id},
        total_languages=len(translations),
    )


@router.put("/translations")
async def save_translation(
    translation: TranslationUpsert,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create or replace one translated field."""
    row = TranslationOverlay(db).upsert(
        translation.table,
        translation.record_id,
        translation.field_name,
        translation.language_code,
        translation.value,
    )
    return envelope(row.to_dict(), message="Translation saved successfully")


@router.post("/translations/batch")
async def save_translation_batch(
    batch: TranslationBatch,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Save several translated fields of one record atomically."""
    saved = TranslationOverlay(db).upsert_batch(
        batch.table, batch.record_id, batch.language_code, batch.translations
    )
    return envelope(
        {"saved": saved, "table": batch.table, "record_id": batch.record_id},
        language=batch.language_code,
        message=f"Saved {saved} translations successfully",
    )
