import io
import os
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from PIL import Image

from app.application.media.errors import ErrorKind, PersistenceError
from app.application.ports.image_repo import ImageRecord, NewImageRecord, STATUS_ACTIVE


def make_image(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB", noise: bool = True) -> bytes:
    """Encode a test image; noise keeps JPEGs large enough to truncate meaningfully."""
    if noise:
        bands = len(Image.new(mode, (1, 1)).getbands())
        img = Image.frombytes(mode, (width, height), os.urandom(width * height * bands))
    else:
        img = Image.new(mode, (width, height), color=0)
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


class FakeImageRepo:
    def __init__(self):
        self.rows: Dict[str, ImageRecord] = {}
        self.calls: List[str] = []
        self.fail_create = False
        self._clock = datetime(2024, 1, 1)

    def create(self, record: NewImageRecord) -> ImageRecord:
        self.calls.append("create")
        if self.fail_create:
            raise PersistenceError(ErrorKind.PERSISTENCE_ERROR, detail="creating")
        missing = record.missing_fields()
        if missing:
            raise PersistenceError(ErrorKind.RECORD_INCOMPLETE, detail=", ".join(missing))
        self._clock += timedelta(seconds=1)
        rec = ImageRecord(
            id=str(uuid.uuid4()),
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
            created_at=self._clock,
            updated_at=self._clock,
        )
        self.rows[rec.id] = rec
        return rec

    def get(self, image_id: str) -> Optional[ImageRecord]:
        self.calls.append("get")
        return self.rows.get(image_id)

    def list_by_owner(self, owner_id: str, image_type: Optional[str] = None) -> List[ImageRecord]:
        rows = [r for r in self.rows.values() if r.uploaded_by == owner_id and (image_type is None or r.image_type == image_type)]
        return sorted(rows, key=lambda r: r.created_at)

    def list_by_entity(self, entity_type: str, entity_id: str, image_type: Optional[str] = None) -> List[ImageRecord]:
        rows = [
            r for r in self.rows.values()
            if r.entity_type == entity_type and r.entity_id == entity_id and (image_type is None or r.image_type == image_type)
        ]
        return sorted(rows, key=lambda r: r.created_at)

    def update(self, image_id: str, fields: dict) -> Optional[ImageRecord]:
        self.calls.append("update")
        rec = self.rows.get(image_id)
        if not rec:
            return None
        rec = replace(rec, updated_at=datetime.utcnow(), **fields)
        self.rows[image_id] = rec
        return rec

    def delete(self, image_id: str) -> bool:
        self.calls.append("delete")
        return self.rows.pop(image_id, None) is not None


class FakeBlobStore:
    def __init__(self, missing: Optional[List[str]] = None):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.calls: List[tuple] = []
        self.missing = missing or []
        self.put_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    def missing_configuration(self) -> List[str]:
        return list(self.missing)

    def public_url(self, key: str) -> str:
        return f"https://media-bucket.s3.us-east-1.amazonaws.com/{key}"

    def put(self, data: bytes, key: str, content_type: str, attributes=None) -> str:
        self.calls.append(("put", key))
        if self.put_error:
            raise self.put_error
        self.objects[key] = data
        self.content_types[key] = content_type
        return self.public_url(key)

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.delete_error:
            raise self.delete_error
        self.objects.pop(key, None)


@pytest.fixture
def repo():
    return FakeImageRepo()


@pytest.fixture
def blobs():
    return FakeBlobStore()
