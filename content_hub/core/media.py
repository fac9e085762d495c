"""
Media library.

Byte storage, MIME and size checks happen before a file reaches this
service; here we only keep and serve the asset metadata rows.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import MediaAssetModel
from ..errors import NotFoundError, StorageError
from ..schemas.content_v1 import MediaCreate

logger = structlog.get_logger()


class MediaService:
    """Service for media asset metadata."""

    def __init__(self, db: Session):
        self.db = db

    def register(self, media: MediaCreate) -> MediaAssetModel:
        """Record an already stored file."""
        asset = MediaAssetModel(
            filename=media.filename,
            original_filename=media.original_filename,
            path=media.path,
            mime_type=media.mime_type,
            file_size=media.file_size,
            tags=media.tags.strip(),
        )
        try:
            self.db.add(asset)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Media registration failed", filename=media.filename, error=str(e))
            raise StorageError("Failed to register media", detail=str(e))
        self.db.refresh(asset)
        logger.info("Media registered", media_id=asset.id, filename=asset.filename)
        return asset

    def get(self, media_id: Any) -> Optional[MediaAssetModel]:
        """Get an asset by id; None for empty or unparseable ids."""
        try:
            media_id = int(media_id)
        except (TypeError, ValueError):
            return None
        return self.db.get(MediaAssetModel, media_id)

    def require(self, media_id: Any) -> MediaAssetModel:
        asset = self.get(media_id)
        if asset is None:
            raise NotFoundError(f"Media '{media_id}' not found")
        return asset

    def get_many(self, media_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        """Fetch several assets at once, keyed by id. Missing ids are absent."""
        ids = {int(i) for i in media_ids}
        if not ids:
            return {}
        rows = self.db.query(MediaAssetModel).filter(MediaAssetModel.id.in_(ids)).all()
        return {row.id: row.to_dict() for row in rows}

    def list(
        self,
        limit: int = 10,
        offset: int = 0,
        tag: Optional[str] = None,
    ) -> List[MediaAssetModel]:
        """List assets, newest first, optionally filtered by tag substring."""
        query = self.db.query(MediaAssetModel)
        if tag:
            query = query.filter(MediaAssetModel.tags.contains(tag))
        return (
            query.order_by(desc(MediaAssetModel.uploaded_at), desc(MediaAssetModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count(self, tag: Optional[str] = None) -> int:
        query = self.db.query(MediaAssetModel)
        if tag:
            query = query.filter(MediaAssetModel.tags.contains(tag))
        return query.count()
