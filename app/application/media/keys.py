import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from .image_class import ImageClass

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")

# (class, owner kind) -> top-level category
_CATEGORIES = {
    (ImageClass.POSTER, "musical"): "posters",
    (ImageClass.POSTER, "performance"): "posters",
    (ImageClass.PROFILE, "user"): "profiles",
    (ImageClass.THUMBNAIL, "musical"): "thumbnails",
    (ImageClass.THUMBNAIL, "performance"): "thumbnails",
    (ImageClass.THUMBNAIL, "user"): "thumbnails",
}
FALLBACK_CATEGORY = "uploads"


def _segment(value: Optional[str]) -> str:
    cleaned = _UNSAFE.sub("_", str(value or "")).lstrip(".")
    return cleaned or "unknown"


def _extension(value: Optional[str]) -> str:
    ext = _UNSAFE.sub("", str(value or "")).lstrip(".").lower()
    if ext == "jpeg":
        return "jpg"
    return ext or "bin"


def derive_key(
    image_class: ImageClass,
    owner_kind: str,
    owner_id: str,
    file_extension: str,
    now: Optional[datetime] = None,
) -> str:
    """Build ``{category}/{owner_kind}/{owner_id}/{class}-{timestamp}-{random}.{ext}``."""
    kind = _segment(owner_kind).lower()
    category = _CATEGORIES.get((image_class, kind), FALLBACK_CATEGORY)
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    token = uuid.uuid4().hex[:12]
    return f"{category}/{kind}/{_segment(owner_id)}/{image_class.value}-{stamp}-{token}.{_extension(file_extension)}"
