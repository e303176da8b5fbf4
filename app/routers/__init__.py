# Routers package
from . import media_router

__all__ = [
    "media_router",
]
