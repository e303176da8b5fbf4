# app/schemas/media/image.py
from pydantic import BaseModel
from typing import List, Optional, Dict, Any
from datetime import datetime

class UploadResponse(BaseModel):
    id: str
    url: str
    width: int
    height: int
    fileSizeBytes: int
    imageType: str

class ImageResponse(BaseModel):
    id: str
    url: str
    originalFilename: str
    imageType: str
    mimeType: str
    width: Optional[int] = None
    height: Optional[int] = None
    fileSizeBytes: int
    uploadedBy: str
    entityType: Optional[str] = None
    entityId: Optional[str] = None
    status: str
    createdAt: datetime
    updatedAt: datetime

class ImageListResponse(BaseModel):
    images: List[ImageResponse]

class UpdateImageRequest(BaseModel):
    originalFilename: Optional[str] = None

class DeleteImageResponse(BaseModel):
    success: bool = True
    message: str = "Image deleted successfully"

class ErrorResponse(BaseModel):
    error: str
    kind: Optional[str] = None
    retryable: Optional[bool] = None

class MultiErrorResponse(BaseModel):
    errors: List[str]
    details: List[Dict[str, Any]] = []

class StorageConfigReport(BaseModel):
    backend: str
    settings: Dict[str, str]
    issues: List[str]
