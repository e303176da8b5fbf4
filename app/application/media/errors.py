from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MALFORMED_INPUT = "malformed_input"
    UNSUPPORTED_FORMAT = "unsupported_format"
    CORRUPT_IMAGE = "corrupt_image"
    SIZE_EXCEEDED = "size_exceeded"
    DIMENSION_TOO_SMALL = "dimension_too_small"
    DIMENSION_TOO_LARGE = "dimension_too_large"
    INVALID_REQUEST = "invalid_request"
    PROCESSING_ERROR = "processing_error"
    STORAGE_MISCONFIGURED = "storage_misconfigured"
    STORAGE_FAILED = "storage_failed"
    CANCELLED = "cancelled"
    PERSISTENCE_ERROR = "persistence_error"
    RECORD_INCOMPLETE = "record_incomplete"
    AUTHORIZATION_ERROR = "authorization_error"
    NOT_FOUND = "not_found"


class ProcessingCause(str, Enum):
    UNSUPPORTED_OUTPUT_FORMAT = "unsupported_output_format"
    BUFFER_TOO_LARGE = "buffer_too_large"
    CORRUPT_SOURCE = "corrupt_source"


_RETRYABLE = {
    ErrorKind.STORAGE_FAILED,
    ErrorKind.CANCELLED,
    ErrorKind.PERSISTENCE_ERROR,
}

_HTTP_STATUS = {
    ErrorKind.MALFORMED_INPUT: 400,
    ErrorKind.UNSUPPORTED_FORMAT: 415,
    ErrorKind.CORRUPT_IMAGE: 422,
    ErrorKind.SIZE_EXCEEDED: 413,
    ErrorKind.DIMENSION_TOO_SMALL: 422,
    ErrorKind.DIMENSION_TOO_LARGE: 422,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.PROCESSING_ERROR: 500,
    ErrorKind.STORAGE_MISCONFIGURED: 500,
    ErrorKind.STORAGE_FAILED: 503,
    ErrorKind.CANCELLED: 504,
    ErrorKind.PERSISTENCE_ERROR: 500,
    ErrorKind.RECORD_INCOMPLETE: 500,
    ErrorKind.AUTHORIZATION_ERROR: 403,
    ErrorKind.NOT_FOUND: 404,
}


class MediaError(Exception):
    """A pipeline failure described by its kind plus structured values.

    ``limit`` and ``actual`` carry the numbers behind size and dimension
    failures, ``detail`` carries the field name or setting names involved.
    Presentation is left to :func:`describe`.
    """

    def __init__(
        self,
        kind: ErrorKind,
        *,
        limit: Optional[int] = None,
        actual: Optional[int] = None,
        detail: Optional[str] = None,
        image_class: Optional[str] = None,
    ):
        self.kind = kind
        self.limit = limit
        self.actual = actual
        self.detail = detail
        self.image_class = image_class
        super().__init__(describe(self))

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.kind, 500)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "retryable": self.retryable}
        for name in ("limit", "actual", "detail", "image_class"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind.value}, limit={self.limit}, actual={self.actual}, detail={self.detail!r})"


class ProcessingError(MediaError):
    def __init__(self, cause: ProcessingCause, detail: Optional[str] = None):
        self.cause = cause
        super().__init__(ErrorKind.PROCESSING_ERROR, detail=detail)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["cause"] = self.cause.value
        return data


class StorageError(MediaError):
    pass


class PersistenceError(MediaError):
    pass


def _megabytes(value: int) -> str:
    mb = value / (1024 * 1024)
    if mb == int(mb):
        return f"{int(mb)}MB"
    return f"{mb:.1f}MB"


def describe(error: MediaError) -> str:
    """Render a user-facing message from the structured error fields."""
    kind = error.kind
    if kind == ErrorKind.MALFORMED_INPUT:
        return "The uploaded file is empty or too small to be an image."
    if kind == ErrorKind.UNSUPPORTED_FORMAT:
        found = f" (detected {error.detail})" if error.detail else ""
        return f"Invalid file type{found}. Only JPEG, PNG, and WebP images are allowed."
    if kind == ErrorKind.CORRUPT_IMAGE:
        return "The image file is corrupted or incomplete and could not be decoded."
    if kind == ErrorKind.SIZE_EXCEEDED:
        target = f" for {error.image_class} images" if error.image_class else ""
        return (
            f"File size too large. Maximum {_megabytes(error.limit or 0)} allowed{target} "
            f"(received {_megabytes(error.actual or 0)})."
        )
    if kind == ErrorKind.DIMENSION_TOO_SMALL:
        return f"Image is too small. Minimum {error.limit}px per side required (smallest side is {error.actual}px)."
    if kind == ErrorKind.DIMENSION_TOO_LARGE:
        if error.actual is None:
            return f"Image is too large. Maximum {error.limit}px per side allowed."
        return f"Image is too large. Maximum {error.limit}px per side allowed (largest side is {error.actual}px)."
    if kind == ErrorKind.INVALID_REQUEST:
        return f"Invalid request: {error.detail}" if error.detail else "Invalid request."
    if kind == ErrorKind.PROCESSING_ERROR:
        return "Could not process the image. Please try a different image."
    if kind == ErrorKind.STORAGE_MISCONFIGURED:
        return "Server configuration error."
    if kind == ErrorKind.STORAGE_FAILED:
        return "Failed to store image. Please try again."
    if kind == ErrorKind.CANCELLED:
        return "The upload was cancelled before it completed."
    if kind in (ErrorKind.PERSISTENCE_ERROR, ErrorKind.RECORD_INCOMPLETE):
        return "Failed to save image metadata. Please try again."
    if kind == ErrorKind.AUTHORIZATION_ERROR:
        return "Not authorized to modify this image."
    if kind == ErrorKind.NOT_FOUND:
        return "Image not found."
    return "Unknown error."
