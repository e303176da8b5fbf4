from typing import Any, Dict, List, Optional, Protocol
from dataclasses import dataclass
from datetime import datetime

REQUIRED_FIELDS = (
    "original_filename",
    "storage_key",
    "public_url",
    "mime_type",
    "uploaded_by",
    "image_type",
)

UPDATABLE_FIELDS = (
    "original_filename",
    "public_url",
    "size_bytes",
    "mime_type",
    "width",
    "height",
    "entity_type",
    "entity_id",
    "status",
)

STATUS_ACTIVE = "active"
STATUS_DELETE_FAILED = "delete_failed"

# column widths of uploaded_images
MAX_FILENAME_LENGTH = 255
MAX_ENTITY_TYPE_LENGTH = 50
MAX_ENTITY_ID_LENGTH = 64


@dataclass
class NewImageRecord:
    original_filename: Optional[str]
    storage_key: Optional[str]
    public_url: Optional[str]
    size_bytes: int
    mime_type: Optional[str]
    uploaded_by: Optional[str]
    image_type: Optional[str]
    width: Optional[int] = None
    height: Optional[int] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_FIELDS if not getattr(self, name)]


@dataclass
class ImageRecord:
    id: str
    original_filename: str
    storage_key: str
    public_url: str
    size_bytes: int
    mime_type: str
    width: Optional[int]
    height: Optional[int]
    uploaded_by: str
    image_type: str
    entity_type: Optional[str]
    entity_id: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime


class ImageRepository(Protocol):
    def create(self, record: NewImageRecord) -> ImageRecord:
        ...

    def get(self, image_id: str) -> Optional[ImageRecord]:
        ...

    def list_by_owner(self, owner_id: str, image_type: Optional[str] = None) -> List[ImageRecord]:
        ...

    def list_by_entity(self, entity_type: str, entity_id: str, image_type: Optional[str] = None) -> List[ImageRecord]:
        ...

    def update(self, image_id: str, fields: Dict[str, Any]) -> Optional[ImageRecord]:
        ...

    def delete(self, image_id: str) -> bool:
        ...
