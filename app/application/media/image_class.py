from dataclasses import dataclass
from enum import Enum
from typing import Dict

MB = 1024 * 1024


class ImageClass(str, Enum):
    POSTER = "poster"
    PROFILE = "profile"
    THUMBNAIL = "thumbnail"

    @classmethod
    def parse(cls, value: str) -> "ImageClass":
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            raise ValueError(f"must be one of: {', '.join(c.value for c in cls)}")


@dataclass(frozen=True)
class ImageProfile:
    """Per-class limits and output settings consumed by every pipeline stage."""
    max_bytes: int
    max_width: int
    max_height: int
    quality: int
    format: str
    crop_to_square: bool = False


IMAGE_PROFILES: Dict[ImageClass, ImageProfile] = {
    ImageClass.POSTER: ImageProfile(
        max_bytes=5 * MB, max_width=1200, max_height=1800, quality=85, format="jpeg",
    ),
    ImageClass.PROFILE: ImageProfile(
        max_bytes=2 * MB, max_width=300, max_height=300, quality=90, format="jpeg", crop_to_square=True,
    ),
    ImageClass.THUMBNAIL: ImageProfile(
        max_bytes=1 * MB, max_width=150, max_height=150, quality=80, format="jpeg", crop_to_square=True,
    ),
}

# sniffed Pillow format -> mime type
ALLOWED_FORMATS: Dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}

OUTPUT_MIME_TYPES: Dict[str, str] = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

OUTPUT_EXTENSIONS: Dict[str, str] = {
    "jpeg": "jpg",
    "jpg": "jpg",
    "png": "png",
    "webp": "webp",
}


def profile_for(image_class: ImageClass) -> ImageProfile:
    return IMAGE_PROFILES[image_class]


def largest_ceiling() -> int:
    return max(p.max_bytes for p in IMAGE_PROFILES.values())


def mime_type_for(fmt: str) -> str:
    return OUTPUT_MIME_TYPES.get(fmt.lower(), "image/jpeg")


def extension_for(fmt: str) -> str:
    return OUTPUT_EXTENSIONS.get(fmt.lower(), "jpg")
