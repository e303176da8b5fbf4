import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..media.errors import ErrorKind, MediaError, PersistenceError, ProcessingError, StorageError
from ..media.image_class import ImageClass
from ..media.keys import derive_key
from ..media import transformer, validator
from ..ports.blob_store import BlobStore
from ..ports.image_repo import (
    MAX_ENTITY_ID_LENGTH,
    MAX_ENTITY_TYPE_LENGTH,
    MAX_FILENAME_LENGTH,
    STATUS_DELETE_FAILED,
    ImageRecord,
    ImageRepository,
    NewImageRecord,
)
from ...core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
USER_EDITABLE_FIELDS = ("original_filename",)


class IngestState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    TRANSFORMED = "transformed"
    STORED = "stored"
    PERSISTED = "persisted"
    COMPLETE = "complete"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


@dataclass
class RawUpload:
    data: bytes
    filename: Optional[str]
    image_class: ImageClass
    owner_kind: Optional[str] = None
    owner_id: Optional[str] = None
    declared_content_type: Optional[str] = None


@dataclass
class UploadResult:
    id: str
    url: str
    width: int
    height: int
    size_bytes: int
    image_type: str


@dataclass
class UploadOutcome:
    state: IngestState
    result: Optional[UploadResult] = None
    errors: List[MediaError] = field(default_factory=list)
    # last state reached before an abort
    aborted_after: Optional[IngestState] = None
    storage_key: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == IngestState.COMPLETE

    @property
    def error(self) -> Optional[MediaError]:
        return self.errors[0] if self.errors else None


@dataclass
class RecordOutcome:
    record: Optional[ImageRecord] = None
    error: Optional[MediaError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _clean_filename(filename: Optional[str]) -> Optional[str]:
    """Basename of the client filename, shortened to fit the metadata column with its extension kept."""
    if not filename:
        return None
    name = os.path.basename(filename.replace("\\", "/")).strip()
    if len(name) <= MAX_FILENAME_LENGTH:
        return name or None
    stem, ext = os.path.splitext(name)
    if len(ext) >= MAX_FILENAME_LENGTH:
        return name[:MAX_FILENAME_LENGTH]
    return stem[: MAX_FILENAME_LENGTH - len(ext)] + ext


def _aborted(reached: IngestState, *errors: MediaError, storage_key: Optional[str] = None) -> UploadOutcome:
    logger.info(f"Upload aborted after {reached.value}: {', '.join(e.kind.value for e in errors)}")
    return UploadOutcome(
        state=IngestState.ABORTED,
        errors=list(errors),
        aborted_after=reached,
        storage_key=storage_key,
    )


@dataclass
class ImageService:
    """Runs uploads and deletions through validate, transform, store and persist.

    Each call is an independent unit of work. Stages run one after another
    and the first failing stage ends the call with an ABORTED outcome; no
    stage is retried here.
    """
    image_repo: ImageRepository
    blob_store: BlobStore
    config: Settings = field(default_factory=lambda: default_settings)

    async def _call_store(self, func: Callable[..., Any], *args: Any, deadline: float) -> Any:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=remaining)

    def _deadline(self, timeout: Optional[float]) -> float:
        return time.monotonic() + (timeout if timeout is not None else self.config.UPLOAD_TIMEOUT_SECONDS)

    def _resolve_owner(self, upload: RawUpload, caller: Caller) -> List[MediaError]:
        if upload.image_class == ImageClass.PROFILE:
            upload.owner_kind, upload.owner_id = "user", caller.user_id
            return []
        errors = []
        if not upload.owner_kind:
            errors.append(MediaError(ErrorKind.INVALID_REQUEST, detail="ownerKind is required"))
        elif len(upload.owner_kind) > MAX_ENTITY_TYPE_LENGTH:
            errors.append(MediaError(ErrorKind.INVALID_REQUEST, detail=f"ownerKind is longer than {MAX_ENTITY_TYPE_LENGTH} characters"))
        if not upload.owner_id:
            errors.append(MediaError(ErrorKind.INVALID_REQUEST, detail="ownerId is required"))
        elif len(upload.owner_id) > MAX_ENTITY_ID_LENGTH:
            errors.append(MediaError(ErrorKind.INVALID_REQUEST, detail=f"ownerId is longer than {MAX_ENTITY_ID_LENGTH} characters"))
        return errors

    async def upload(self, upload: RawUpload, caller: Caller, timeout: Optional[float] = None) -> UploadOutcome:
        deadline = self._deadline(timeout)
        state = IngestState.RECEIVED

        upload.filename = _clean_filename(upload.filename)
        request_errors = self._resolve_owner(upload, caller)
        if request_errors:
            return _aborted(state, *request_errors)

        missing = self.blob_store.missing_configuration()
        if missing:
            logger.error(f"Upload refused, storage not configured: {', '.join(missing)}")
            return _aborted(state, StorageError(ErrorKind.STORAGE_MISCONFIGURED, detail=", ".join(missing)))

        # decode and resample in worker threads
        validation = await asyncio.to_thread(validator.validate, upload.data, upload.filename, upload.image_class)
        if not validation.ok:
            return _aborted(state, *validation.errors)
        state = IngestState.VALIDATED

        try:
            processed = await asyncio.to_thread(transformer.process, upload.data, upload.image_class)
        except ProcessingError as e:
            logger.error(
                f"Processing failed for {upload.filename!r} ({len(upload.data)} bytes, "
                f"{validation.width}x{validation.height}, {validation.sniffed_mime}): {e.cause.value} {e.detail or ''}"
            )
            return _aborted(state, e)
        state = IngestState.TRANSFORMED

        key = derive_key(upload.image_class, upload.owner_kind, upload.owner_id, processed.extension)
        attributes = {
            "original-name": upload.filename or "",
            "uploaded-by": caller.user_id,
            "image-type": upload.image_class.value,
            "owner-kind": upload.owner_kind,
            "owner-id": upload.owner_id,
        }
        try:
            url = await self._call_store(
                self.blob_store.put, processed.data, key, processed.mime_type, attributes, deadline=deadline
            )
        except StorageError as e:
            return _aborted(state, e, storage_key=key)
        except asyncio.TimeoutError:
            # the put may still complete in its worker thread
            logger.warning(f"Upload deadline passed while storing {key}; object may exist without metadata")
            return _aborted(state, MediaError(ErrorKind.CANCELLED), storage_key=key)
        except asyncio.CancelledError:
            logger.warning(f"Upload cancelled while storing {key}; object may exist without metadata")
            raise
        state = IngestState.STORED

        try:
            record = self.image_repo.create(NewImageRecord(
                original_filename=upload.filename or f"upload.{processed.extension}",
                storage_key=key,
                public_url=url,
                size_bytes=processed.size_bytes,
                mime_type=processed.mime_type,
                width=processed.width,
                height=processed.height,
                uploaded_by=caller.user_id,
                image_type=upload.image_class.value,
                entity_type=upload.owner_kind,
                entity_id=upload.owner_id,
            ))
        except PersistenceError as e:
            logger.error(f"ORPHAN BLOB: metadata write failed after storing {key} ({url}): {e.kind.value}")
            return _aborted(state, e, storage_key=key)
        state = IngestState.PERSISTED

        result = UploadResult(
            id=record.id,
            url=url,
            width=processed.width,
            height=processed.height,
            size_bytes=processed.size_bytes,
            image_type=upload.image_class.value,
        )
        logger.info(f"Upload complete: {record.id} -> {key} ({processed.width}x{processed.height}, {processed.size_bytes} bytes)")

        if upload.image_class == ImageClass.PROFILE and self.config.REPLACE_PREVIOUS_PROFILE_IMAGE:
            await self._replace_previous_profiles(caller, keep_id=record.id)

        return UploadOutcome(state=IngestState.COMPLETE, result=result, storage_key=key)

    async def _replace_previous_profiles(self, caller: Caller, keep_id: str) -> None:
        try:
            previous = [r for r in self.image_repo.list_by_owner(caller.user_id, ImageClass.PROFILE.value) if r.id != keep_id]
        except PersistenceError as e:
            logger.warning(f"Could not list previous profile images for {caller.user_id}: {e.kind.value}")
            return
        for record in previous:
            outcome = await self.delete(record.id, caller)
            if not outcome.ok:
                logger.warning(f"Could not remove previous profile image {record.id}: {outcome.error.kind.value}")

    def _may_modify(self, record: ImageRecord, caller: Caller) -> bool:
        return record.uploaded_by == caller.user_id or caller.is_admin

    def _lookup(self, image_id: str, caller: Caller) -> RecordOutcome:
        try:
            record = self.image_repo.get(image_id)
        except PersistenceError as e:
            return RecordOutcome(error=e)
        if record is None:
            return RecordOutcome(error=MediaError(ErrorKind.NOT_FOUND))
        if not self._may_modify(record, caller):
            logger.warning(f"User {caller.user_id} ({caller.role}) denied access to image {image_id}")
            return RecordOutcome(record=record, error=MediaError(ErrorKind.AUTHORIZATION_ERROR))
        return RecordOutcome(record=record)

    async def delete(self, image_id: str, caller: Caller, timeout: Optional[float] = None) -> RecordOutcome:
        deadline = self._deadline(timeout)
        found = self._lookup(image_id, caller)
        if not found.ok:
            return RecordOutcome(error=found.error)
        record = found.record

        try:
            await self._call_store(self.blob_store.delete, record.storage_key, deadline=deadline)
        except StorageError as e:
            if e.kind != ErrorKind.STORAGE_MISCONFIGURED:
                self._mark_delete_failed(record)
            return RecordOutcome(record=record, error=e)
        except asyncio.TimeoutError:
            self._mark_delete_failed(record)
            return RecordOutcome(record=record, error=MediaError(ErrorKind.CANCELLED))

        try:
            self.image_repo.delete(image_id)
        except PersistenceError as e:
            logger.error(f"Blob {record.storage_key} deleted but metadata {image_id} remains: {e.kind.value}")
            return RecordOutcome(record=record, error=e)
        logger.info(f"Image {image_id} deleted by {caller.user_id}")
        return RecordOutcome(record=record)

    def _mark_delete_failed(self, record: ImageRecord) -> None:
        try:
            self.image_repo.update(record.id, {"status": STATUS_DELETE_FAILED})
        except PersistenceError as e:
            logger.error(f"Could not mark image {record.id} ({record.storage_key}) as delete_failed: {e.kind.value}")

    def update_metadata(self, image_id: str, caller: Caller, fields: Dict[str, Any]) -> RecordOutcome:
        not_editable = sorted(set(fields) - set(USER_EDITABLE_FIELDS))
        if not_editable:
            return RecordOutcome(error=MediaError(ErrorKind.INVALID_REQUEST, detail=f"cannot update {', '.join(not_editable)}"))
        filename = fields.get("original_filename")
        if filename is not None and not (0 < len(filename) <= MAX_FILENAME_LENGTH):
            return RecordOutcome(error=MediaError(ErrorKind.INVALID_REQUEST, detail=f"originalFilename must be 1 to {MAX_FILENAME_LENGTH} characters"))
        found = self._lookup(image_id, caller)
        if not found.ok:
            return RecordOutcome(error=found.error)
        try:
            updated = self.image_repo.update(image_id, fields)
        except PersistenceError as e:
            return RecordOutcome(record=found.record, error=e)
        if updated is None:
            return RecordOutcome(error=MediaError(ErrorKind.NOT_FOUND))
        return RecordOutcome(record=updated)

    def get_image(self, image_id: str) -> RecordOutcome:
        try:
            record = self.image_repo.get(image_id)
        except PersistenceError as e:
            return RecordOutcome(error=e)
        if record is None:
            return RecordOutcome(error=MediaError(ErrorKind.NOT_FOUND))
        return RecordOutcome(record=record)

    def list_for_owner(self, owner_id: str, image_class: Optional[ImageClass] = None) -> List[ImageRecord]:
        return self.image_repo.list_by_owner(owner_id, image_class.value if image_class else None)

    def list_for_entity(self, entity_type: str, entity_id: str, image_class: Optional[ImageClass] = None) -> List[ImageRecord]:
        return self.image_repo.list_by_entity(entity_type, entity_id, image_class.value if image_class else None)
