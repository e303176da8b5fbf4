# app/db/models/media/image.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

from ....application.ports.image_repo import MAX_ENTITY_ID_LENGTH, MAX_ENTITY_TYPE_LENGTH, MAX_FILENAME_LENGTH

class UploadedImage(SQLModel, table=True):
    __tablename__ = "uploaded_images"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    original_filename: str = Field(max_length=MAX_FILENAME_LENGTH)
    storage_key: str = Field(max_length=512, unique=True)
    public_url: str = Field(max_length=1024)
    size_bytes: int
    mime_type: str = Field(max_length=100)
    width: Optional[int] = None
    height: Optional[int] = None
    uploaded_by: str = Field(max_length=64, index=True)
    image_type: str = Field(max_length=20, index=True)
    entity_type: Optional[str] = Field(default=None, max_length=MAX_ENTITY_TYPE_LENGTH, index=True)
    entity_id: Optional[str] = Field(default=None, max_length=MAX_ENTITY_ID_LENGTH, index=True)
    status: str = Field(default="active", max_length=20)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
