from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session
import logging

from ..application.media.errors import ErrorKind, MediaError
from ..application.media.image_class import ImageClass
from ..application.ports.image_repo import ImageRecord
from ..application.services.image_service import Caller, ImageService, RawUpload
from ..core.config import settings
from ..database import get_session
from ..exceptions import media_error_response
from ..infrastructure.persistence.sqlalchemy.repositories.image_repository_sql import SqlImageRepository
from ..schemas.media.image import (
    DeleteImageResponse,
    ErrorResponse,
    ImageListResponse,
    ImageResponse,
    MultiErrorResponse,
    StorageConfigReport,
    UpdateImageRequest,
    UploadResponse,
)
from ..storage import get_blob_store
from ..utils import decode_jwt_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["Media"])

oauth2_scheme = HTTPBearer()

UPLOAD_ERROR_RESPONSES = {
    400: {"model": MultiErrorResponse, "description": "Request or validation problems, reported together"},
    413: {"model": ErrorResponse, "description": "File too large for its image type"},
    415: {"model": ErrorResponse, "description": "Not a JPEG, PNG or WebP image"},
    422: {"model": ErrorResponse, "description": "Corrupt image or dimensions out of range"},
    500: {"model": ErrorResponse, "description": "Processing, configuration or metadata failure"},
    503: {"model": ErrorResponse, "description": "Storage unavailable, retryable"},
    504: {"model": ErrorResponse, "description": "Upload deadline passed, retryable"},
}

RECORD_ERROR_RESPONSES = {
    403: {"model": ErrorResponse, "description": "Caller is neither the uploader nor an admin"},
    404: {"model": ErrorResponse, "description": "Image not found"},
}

def get_current_caller(credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme)) -> Caller:
    payload = decode_jwt_token(credentials.credentials)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user ID")
    return Caller(user_id=str(user_id), role=str(payload.get("role") or "user"))

def get_image_service(session: Session = Depends(get_session)) -> ImageService:
    return ImageService(image_repo=SqlImageRepository(session), blob_store=get_blob_store())

def _parse_class(value: Optional[str]) -> ImageClass:
    try:
        return ImageClass.parse(value)
    except ValueError as e:
        raise MediaError(ErrorKind.INVALID_REQUEST, detail=f"imageType {e}")

def _to_response(record: ImageRecord) -> ImageResponse:
    return ImageResponse(
        id=record.id,
        url=record.public_url,
        originalFilename=record.original_filename,
        imageType=record.image_type,
        mimeType=record.mime_type,
        width=record.width,
        height=record.height,
        fileSizeBytes=record.size_bytes,
        uploadedBy=record.uploaded_by,
        entityType=record.entity_type,
        entityId=record.entity_id,
        status=record.status,
        createdAt=record.created_at,
        updatedAt=record.updated_at,
    )


@router.post("", status_code=201, response_model=UploadResponse, responses=UPLOAD_ERROR_RESPONSES)
async def upload_media(
    file: UploadFile = File(...),
    imageType: str = Form(...),
    ownerKind: Optional[str] = Form(None),
    ownerId: Optional[str] = Form(None),
    caller: Caller = Depends(get_current_caller),
    service: ImageService = Depends(get_image_service),
):
    image_class = _parse_class(imageType)
    data = await file.read()
    outcome = await service.upload(
        RawUpload(
            data=data,
            filename=file.filename,
            image_class=image_class,
            owner_kind=ownerKind,
            owner_id=ownerId,
            declared_content_type=file.content_type,
        ),
        caller,
    )
    if not outcome.ok:
        return media_error_response(outcome.errors)
    result = outcome.result
    return UploadResponse(
        id=result.id,
        url=result.url,
        width=result.width,
        height=result.height,
        fileSizeBytes=result.size_bytes,
        imageType=result.image_type,
    )


@router.get("/debug", response_model=StorageConfigReport)
def storage_config_report(caller: Caller = Depends(get_current_caller)):
    """Which storage settings are set; values are never returned."""
    if not settings.DEBUG:
        raise HTTPException(status_code=404, detail="Not found")
    missing = settings.missing_storage_settings()
    report = {
        "AWS_ACCESS_KEY_ID": "SET" if settings.AWS_ACCESS_KEY_ID else "NOT SET",
        "AWS_SECRET_ACCESS_KEY": "SET" if settings.AWS_SECRET_ACCESS_KEY else "NOT SET",
        "AWS_S3_BUCKET": settings.AWS_S3_BUCKET or "NOT SET",
        "AWS_REGION": settings.AWS_REGION,
    }
    return StorageConfigReport(backend=settings.STORAGE_BACKEND, settings=report, issues=[f"Missing {name}" for name in missing])


@router.get("/user/{user_id}", response_model=ImageListResponse)
def list_user_images(
    user_id: str,
    imageType: Optional[str] = None,
    caller: Caller = Depends(get_current_caller),
    service: ImageService = Depends(get_image_service),
):
    image_class = _parse_class(imageType) if imageType else None
    return ImageListResponse(images=[_to_response(r) for r in service.list_for_owner(user_id, image_class)])


@router.get("/entity/{entity_type}/{entity_id}", response_model=ImageListResponse)
def list_entity_images(
    entity_type: str,
    entity_id: str,
    imageType: Optional[str] = None,
    caller: Caller = Depends(get_current_caller),
    service: ImageService = Depends(get_image_service),
):
    image_class = _parse_class(imageType) if imageType else None
    return ImageListResponse(images=[_to_response(r) for r in service.list_for_entity(entity_type, entity_id, image_class)])


@router.get("/{image_id}", response_model=ImageResponse, responses={404: RECORD_ERROR_RESPONSES[404]})
def get_image(
    image_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ImageService = Depends(get_image_service),
):
    outcome = service.get_image(image_id)
    if not outcome.ok:
        return media_error_response([outcome.error])
    return _to_response(outcome.record)


@router.patch("/{image_id}", response_model=ImageResponse, responses={**RECORD_ERROR_RESPONSES, 400: {"model": ErrorResponse}})
def update_image(
    image_id: str,
    body: UpdateImageRequest,
    caller: Caller = Depends(get_current_caller),
    service: ImageService = Depends(get_image_service),
):
    fields = {}
    if body.originalFilename is not None:
        fields["original_filename"] = body.originalFilename
    outcome = service.update_metadata(image_id, caller, fields)
    if not outcome.ok:
        return media_error_response([outcome.error])
    return _to_response(outcome.record)


@router.delete("/{image_id}", response_model=DeleteImageResponse, responses={**RECORD_ERROR_RESPONSES, 503: UPLOAD_ERROR_RESPONSES[503]})
async def delete_image(
    image_id: str,
    caller: Caller = Depends(get_current_caller),
    service: ImageService = Depends(get_image_service),
):
    outcome = await service.delete(image_id, caller)
    if not outcome.ok:
        return media_error_response([outcome.error])
    return DeleteImageResponse()
