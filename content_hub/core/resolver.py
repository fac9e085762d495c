"""
Relation Resolver.

Expands stored media and foreign-key references into embedded objects:

* media single   -> ``<field>_media``: the asset dict, or None
* media multiple -> ``<field>_media``: list of asset dicts (unresolved ids dropped)
* foreign key    -> ``<field>_data``: the foreign row dict, or None

Expansion is exactly one level deep. Dangling references are not errors;
referential integrity is not enforced anywhere in the store.
"""

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ValidationError
from .fields import ForeignKeyRole, MediaArity, parse_id_list
from .media import MediaService
from .registry import SchemaRegistry

DISPLAY_FIELDS = ("name", "title", "label", "description")


def _as_id(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def display_value(record: Mapping[str, Any], display_column: Optional[str] = None) -> Any:
    """Human-readable label for a record.

    Prefers ``display_column``, then the first non-empty of name, title,
    label and description, then ``Record #<id>``.
    """
    if display_column and not _is_empty(record.get(display_column)):
        return record[display_column]
    for field in DISPLAY_FIELDS:
        if not _is_empty(record.get(field)):
            return record[field]
    return f"Record #{record.get('id')}"


class RelationResolver:
    """Expands media and foreign-key fields of content records."""

    def __init__(
        self,
        db: Session,
        registry: Optional[SchemaRegistry] = None,
        media: Optional[MediaService] = None,
    ):
        self.db = db
        self.registry = registry or SchemaRegistry(db)
        self.media = media or MediaService(db)

    def _foreign_rows(self, table: Optional[str], ids: Set[int]) -> Dict[int, Dict[str, Any]]:
        if not ids or not self.registry.has_table(table):
            return {}
        foreign = self.registry.physical_table(table)
        rows = self.db.execute(select(foreign).where(foreign.c.id.in_(ids))).all()
        return {row._mapping["id"]: dict(row._mapping) for row in rows}

    def expand(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Expand a single record."""
        return self.expand_many(table, [record])[0]

    def expand_many(
        self, table: str, records: Sequence[Mapping[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Expand several records of one table, preserving their order.

        All media assets and foreign rows referenced by the batch are
        fetched with one query per source table.
        """
        media_fields = self.registry.media_fields(table)
        foreign_fields = self.registry.foreign_key_fields(table)
        expanded = [dict(record) for record in records]
        if not media_fields and not foreign_fields:
            return expanded

        media_ids: Set[int] = set()
        for record in expanded:
            for field, arity in media_fields.items():
                if arity == MediaArity.SINGLE:
                    media_id = _as_id(record.get(field))
                    if media_id is not None:
                        media_ids.add(media_id)
                else:
                    media_ids.update(parse_id_list(record.get(field)))
        assets = self.media.get_many(media_ids)

        wanted: Dict[Optional[str], Set[int]] = defaultdict(set)
        for record in expanded:
            for field, role in foreign_fields.items():
                foreign_id = _as_id(record.get(field))
                if foreign_id is not None:
                    wanted[role.table].add(foreign_id)
        foreign_rows = {
            foreign_table: self._foreign_rows(foreign_table, ids)
            for foreign_table, ids in wanted.items()
        }

        for record in expanded:
            for field, arity in media_fields.items():
                if arity == MediaArity.SINGLE:
                    media_id = _as_id(record.get(field))
                    record[f"{field}_media"] = (
                        assets.get(media_id) if media_id is not None else None
                    )
                else:
                    record[f"{field}_media"] = [
                        assets[media_id]
                        for media_id in parse_id_list(record.get(field))
                        if media_id in assets
                    ]
            for field, role in foreign_fields.items():
                foreign_id = _as_id(record.get(field))
                rows = foreign_rows.get(role.table, {})
                record[f"{field}_data"] = (
                    rows.get(foreign_id) if foreign_id is not None else None
                )

        return expanded

    def foreign_options(self, table: str, field: str) -> List[Dict[str, Any]]:
        """Selectable ``{id, label}`` pairs for a foreign-key field."""
        self.registry.require_table(table)
        role = self.registry.foreign_key_fields(table).get(field)
        if not isinstance(role, ForeignKeyRole):
            raise ValidationError(f"Field '{field}' is not a foreign key of '{table}'")
        if not self.registry.has_table(role.table):
            return []
        foreign = self.registry.physical_table(role.table)
        rows = self.db.execute(select(foreign).order_by(foreign.c.id)).all()
        return [
            {"id": row._mapping["id"], "label": display_value(row._mapping, role.display_column)}
            for row in rows
        ]


__all__ = ["RelationResolver", "display_value", "DISPLAY_FIELDS"]
