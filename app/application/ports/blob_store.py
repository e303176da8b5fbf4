from typing import Dict, List, Optional, Protocol


class BlobStore(Protocol):
    def put(self, data: bytes, key: str, content_type: str, attributes: Optional[Dict[str, str]] = None) -> str:
        """Store ``data`` publicly readable at ``key`` and return its public URL."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""
        ...

    def public_url(self, key: str) -> str:
        ...

    def missing_configuration(self) -> List[str]:
        ...
