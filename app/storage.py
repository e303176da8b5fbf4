from typing import Optional

from .core.config import Settings, settings
from .application.ports.blob_store import BlobStore
from .infrastructure.storage.local_storage import LocalBlobStore
from .infrastructure.storage.s3_storage import S3BlobStore


def get_blob_store(config: Optional[Settings] = None) -> BlobStore:
    """Build the blob store selected by STORAGE_BACKEND ("s3" or "local")."""
    config = config or settings
    backend = (config.STORAGE_BACKEND or "s3").lower()
    if backend == "local":
        return LocalBlobStore(config)
    return S3BlobStore(config)
