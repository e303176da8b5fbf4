import os
import logging
from typing import Dict, List, Optional

from ...application.media.errors import ErrorKind, StorageError
from ...application.ports.blob_store import BlobStore
from ...core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Filesystem storage for development. Objects are served from /uploads."""

    def __init__(self, config: Optional[Settings] = None, upload_dir: Optional[str] = None) -> None:
        self.config = config or default_settings
        self.upload_dir = os.path.abspath(upload_dir or self.config.UPLOAD_DIR)

    def missing_configuration(self) -> List[str]:
        return [] if self.upload_dir else ["UPLOAD_DIR"]

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.upload_dir, key))
        if not path.startswith(self.upload_dir + os.sep):
            raise ValueError(f"Storage key escapes upload directory: {key}")
        return path

    def public_url(self, key: str) -> str:
        return f"{self.config.BASE_URL.rstrip('/')}/uploads/{key}"

    def put(self, data: bytes, key: str, content_type: str, attributes: Optional[Dict[str, str]] = None) -> str:
        if not data:
            raise ValueError("Cannot upload empty file")
        path = self._path(key)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except PermissionError as e:
            raise StorageError(ErrorKind.STORAGE_MISCONFIGURED, detail="UPLOAD_DIR not writable") from e
        except OSError as e:
            raise StorageError(ErrorKind.STORAGE_FAILED, detail=type(e).__name__) from e
        logger.info(f"Stored file {path} ({len(data)} bytes, {content_type})")
        return self.public_url(key)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.info(f"File {path} already absent")
        except OSError as e:
            raise StorageError(ErrorKind.STORAGE_FAILED, detail=type(e).__name__) from e
