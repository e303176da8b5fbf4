import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import UploadedImage
from .....application.media.errors import ErrorKind, PersistenceError
from .....application.ports.image_repo import (
    ImageRepository,
    ImageRecord,
    NewImageRecord,
    STATUS_ACTIVE,
    UPDATABLE_FIELDS,
)

logger = logging.getLogger(__name__)


class SqlImageRepository(ImageRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, row: UploadedImage) -> ImageRecord:
        return ImageRecord(
            id=row.id,
            original_filename=row.original_filename,
            storage_key=row.storage_key,
            public_url=row.public_url,
            size_bytes=row.size_bytes,
            mime_type=row.mime_type,
            width=row.width,
            height=row.height,
            uploaded_by=row.uploaded_by,
            image_type=row.image_type,
            entity_type=row.entity_type,
            entity_id=row.entity_id,
            status=row.status,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _fail(self, action: str, error: SQLAlchemyError) -> PersistenceError:
        self.session.rollback()
        logger.error(f"Error {action} image record: {error}")
        return PersistenceError(ErrorKind.PERSISTENCE_ERROR, detail=action)

    def create(self, record: NewImageRecord) -> ImageRecord:
        missing = record.missing_fields()
        if missing:
            raise PersistenceError(ErrorKind.RECORD_INCOMPLETE, detail=", ".join(missing))
        now = datetime.utcnow()
        row = UploadedImage(
            original_filename=record.original_filename,
            storage_key=record.storage_key,
            public_url=record.public_url,
            size_bytes=record.size_bytes,
            mime_type=record.mime_type,
            width=record.width,
            height=record.height,
            uploaded_by=record.uploaded_by,
            image_type=record.image_type,
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            status=STATUS_ACTIVE,
            created_at=now,
            updated_at=now,
        )
        try:
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("creating", e) from e
        logger.info(f"Image record {row.id} created for {row.storage_key}")
        return self._to_record(row)

    def get(self, image_id: str) -> Optional[ImageRecord]:
        try:
            row = self.session.get(UploadedImage, image_id)
        except SQLAlchemyError as e:
            raise self._fail("fetching", e) from e
        return self._to_record(row) if row else None

    def list_by_owner(self, owner_id: str, image_type: Optional[str] = None) -> List[ImageRecord]:
        query = select(UploadedImage).where(UploadedImage.uploaded_by == owner_id)
        if image_type:
            query = query.where(UploadedImage.image_type == image_type)
        try:
            rows = self.session.exec(query.order_by(UploadedImage.created_at.asc())).all()
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e
        return [self._to_record(r) for r in rows]

    def list_by_entity(self, entity_type: str, entity_id: str, image_type: Optional[str] = None) -> List[ImageRecord]:
        query = (
            select(UploadedImage)
            .where(UploadedImage.entity_type == entity_type)
            .where(UploadedImage.entity_id == entity_id)
        )
        if image_type:
            query = query.where(UploadedImage.image_type == image_type)
        try:
            rows = self.session.exec(query.order_by(UploadedImage.created_at.asc())).all()
        except SQLAlchemyError as e:
            raise self._fail("listing", e) from e
        return [self._to_record(r) for r in rows]

    def update(self, image_id: str, fields: Dict[str, Any]) -> Optional[ImageRecord]:
        unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValueError(f"Fields cannot be updated: {', '.join(unknown)}")
        try:
            row = self.session.get(UploadedImage, image_id)
            if not row:
                return None
            for name, value in fields.items():
                setattr(row, name, value)
            row.updated_at = datetime.utcnow()
            self.session.add(row)
            self.session.commit()
            self.session.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("updating", e) from e
        return self._to_record(row)

    def delete(self, image_id: str) -> bool:
        try:
            row = self.session.get(UploadedImage, image_id)
            if not row:
                return False
            self.session.delete(row)
            self.session.commit()
        except SQLAlchemyError as e:
            raise self._fail("deleting", e) from e
        logger.info(f"Image record {image_id} deleted")
        return True
