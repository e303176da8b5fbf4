import io
import logging
import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import ErrorKind, MediaError
from .image_class import ALLOWED_FORMATS, ImageClass, profile_for
from ...core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    sniffed_mime: Optional[str] = None
    errors: Tuple[MediaError, ...] = field(default_factory=tuple)
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def error(self) -> Optional[MediaError]:
        return self.errors[0] if self.errors else None

    @property
    def kinds(self) -> List[ErrorKind]:
        return [e.kind for e in self.errors]


# leading bytes of the accepted formats, used when Pillow refuses to open an oversized header
_MAGIC_PREFIXES = (
    (b"\xff\xd8\xff", "JPEG"),
    (b"\x89PNG\r\n\x1a\n", "PNG"),
)


def _format_from_magic(data: bytes) -> Optional[str]:
    for prefix, fmt in _MAGIC_PREFIXES:
        if data.startswith(prefix):
            return fmt
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "WEBP"
    return None


def _sniff(data: bytes) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
    """Identify the format from the bytes themselves and read the header size.

    Pillow only parses the header here; pixel data is not decoded. A header
    declaring more pixels than Pillow will open yields the format with no size.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.format, img.size
    except Image.DecompressionBombError as e:
        logger.warning(f"Header declares an oversized image: {e}")
        return _format_from_magic(data), None
    except UnidentifiedImageError:
        return None, None
    except (OSError, SyntaxError, ValueError) as e:
        logger.debug(f"Header parse failed while sniffing: {e}")
        return None, None


def _decodes(data: bytes) -> bool:
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(data)) as img:
                img.load()
        return True
    except (OSError, SyntaxError, ValueError, EOFError, Image.DecompressionBombError) as e:
        logger.info(f"Image failed full decode: {e}")
        return False


def validate(data: bytes, declared_filename: Optional[str], image_class: ImageClass) -> ValidationResult:
    """Check that ``data`` is a genuine, bounded raster image for ``image_class``.

    The declared filename is only logged; the format is taken from the
    bytes. Size, type and dimension problems are collected together so the
    caller can report all of them at once.
    """
    size = len(data) if data else 0
    if size < settings.MIN_UPLOAD_BYTES:
        return ValidationResult(ok=False, errors=(MediaError(ErrorKind.MALFORMED_INPUT, limit=settings.MIN_UPLOAD_BYTES, actual=size),))

    errors: List[MediaError] = []
    profile = profile_for(image_class)
    if size > profile.max_bytes:
        errors.append(MediaError(ErrorKind.SIZE_EXCEEDED, limit=profile.max_bytes, actual=size, image_class=image_class.value))

    fmt, dimensions = _sniff(data)
    sniffed_mime = Image.MIME.get(fmt) if fmt else None
    if fmt not in ALLOWED_FORMATS:
        logger.info(f"Rejected upload {declared_filename!r}: sniffed format {fmt or 'unknown'}")
        errors.append(MediaError(ErrorKind.UNSUPPORTED_FORMAT, detail=sniffed_mime))
        return ValidationResult(ok=False, sniffed_mime=sniffed_mime, errors=tuple(errors))

    sniffed_mime = ALLOWED_FORMATS[fmt]
    if dimensions is None:
        # past Pillow's pixel ceiling, so at least one edge is beyond MAX_IMAGE_DIMENSION
        errors.append(MediaError(ErrorKind.DIMENSION_TOO_LARGE, limit=settings.MAX_IMAGE_DIMENSION))
        return ValidationResult(ok=False, sniffed_mime=sniffed_mime, errors=tuple(errors))

    width, height = dimensions
    smallest, largest = min(width, height), max(width, height)
    if smallest < settings.MIN_IMAGE_DIMENSION:
        errors.append(MediaError(ErrorKind.DIMENSION_TOO_SMALL, limit=settings.MIN_IMAGE_DIMENSION, actual=smallest))
    if largest > settings.MAX_IMAGE_DIMENSION:
        errors.append(MediaError(ErrorKind.DIMENSION_TOO_LARGE, limit=settings.MAX_IMAGE_DIMENSION, actual=largest))
    elif not _decodes(data):
        errors.append(MediaError(ErrorKind.CORRUPT_IMAGE, detail=sniffed_mime))

    return ValidationResult(
        ok=not errors,
        sniffed_mime=sniffed_mime,
        errors=tuple(errors),
        width=width,
        height=height,
    )
