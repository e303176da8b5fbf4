# Models package (re-export feature modules for stable imports)
from .media.image import UploadedImage

__all__ = [
    "UploadedImage",
]
