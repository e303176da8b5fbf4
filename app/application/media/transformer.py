import io
import logging
from dataclasses import dataclass, fields, replace
from typing import Optional

from PIL import Image, UnidentifiedImageError

from .errors import ProcessingCause, ProcessingError
from .image_class import ImageClass, ImageProfile, extension_for, mime_type_for, profile_for
from ...core.config import settings

logger = logging.getLogger(__name__)

_ENCODERS = {"jpeg": "JPEG", "jpg": "JPEG", "png": "PNG", "webp": "WEBP"}


@dataclass
class ProcessedImage:
    data: bytes
    width: int
    height: int
    format: str
    size_bytes: int

    @property
    def mime_type(self) -> str:
        return mime_type_for(self.format)

    @property
    def extension(self) -> str:
        return extension_for(self.format)


@dataclass
class TransformOptions:
    """Caller overrides; any field left as None keeps the class default."""
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    quality: Optional[int] = None
    format: Optional[str] = None
    crop_to_square: Optional[bool] = None


def resolve_profile(image_class: ImageClass, options: Optional[TransformOptions] = None) -> ImageProfile:
    profile = profile_for(image_class)
    if options is None:
        return profile
    overrides = {
        f.name: getattr(options, f.name)
        for f in fields(options)
        if getattr(options, f.name) is not None
    }
    return replace(profile, **overrides)


def _crop_to_square(img: Image.Image, max_side: int) -> Image.Image:
    width, height = img.size
    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    img = img.crop((left, top, left + side, top + side))
    if side > max_side:
        img = img.resize((max_side, max_side), Image.Resampling.LANCZOS)
    return img


def _prepare_mode(img: Image.Image, encoder: str) -> Image.Image:
    if encoder == "JPEG" and img.mode != "RGB":
        return img.convert("RGB")
    if encoder in ("PNG", "WEBP") and img.mode not in ("RGB", "RGBA", "L", "LA"):
        return img.convert("RGBA")
    return img


def process(data: bytes, image_class: ImageClass, options: Optional[TransformOptions] = None) -> ProcessedImage:
    """Decode, crop or fit, and re-encode ``data`` per the class profile.

    Dimensions and size of the result are measured from the encoded output.
    """
    profile = resolve_profile(image_class, options)
    encoder = _ENCODERS.get(profile.format.lower())
    if encoder is None:
        raise ProcessingError(ProcessingCause.UNSUPPORTED_OUTPUT_FORMAT, detail=profile.format)

    try:
        with Image.open(io.BytesIO(data)) as src:
            bands = len(src.getbands())
            width, height = src.size
            if width * height * max(bands, 4) > settings.MAX_DECODED_BYTES:
                raise ProcessingError(ProcessingCause.BUFFER_TOO_LARGE, detail=f"{width}x{height}")
            src.load()

            if profile.crop_to_square:
                img = _crop_to_square(src, min(profile.max_width, profile.max_height))
            else:
                img = src.copy()
                # thumbnail() keeps the aspect ratio and never enlarges
                img.thumbnail((profile.max_width, profile.max_height), Image.Resampling.LANCZOS)

            img = _prepare_mode(img, encoder)
            out = io.BytesIO()
            save_kwargs = {"optimize": True}
            if encoder in ("JPEG", "WEBP"):
                save_kwargs["quality"] = profile.quality
            img.save(out, format=encoder, **save_kwargs)
    except ProcessingError:
        raise
    except (Image.DecompressionBombError, MemoryError) as e:
        raise ProcessingError(ProcessingCause.BUFFER_TOO_LARGE, detail=str(e)) from e
    except KeyError as e:
        raise ProcessingError(ProcessingCause.UNSUPPORTED_OUTPUT_FORMAT, detail=str(e)) from e
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, EOFError) as e:
        raise ProcessingError(ProcessingCause.CORRUPT_SOURCE, detail=str(e)) from e

    encoded = out.getvalue()
    try:
        with Image.open(io.BytesIO(encoded)) as result:
            out_width, out_height = result.size
    except (UnidentifiedImageError, OSError) as e:
        raise ProcessingError(ProcessingCause.UNSUPPORTED_OUTPUT_FORMAT, detail=str(e)) from e

    return ProcessedImage(
        data=encoded,
        width=out_width,
        height=out_height,
        format=profile.format.lower(),
        size_bytes=len(encoded),
    )
