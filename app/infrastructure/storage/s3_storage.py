import logging
from typing import Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, PartialCredentialsError

from ...application.media.errors import ErrorKind, StorageError
from ...application.ports.blob_store import BlobStore
from ...core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# S3 error codes that mean the deployment is wrong rather than the network
CONFIGURATION_ERROR_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "NoSuchBucket",
    "InvalidBucketName",
    "AccessControlListNotSupported",
}


def _ascii_metadata(attributes: Optional[Dict[str, str]]) -> Dict[str, str]:
    # S3 user metadata travels as HTTP headers
    cleaned = {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        cleaned[str(key)] = str(value).encode("ascii", "replace").decode("ascii")
    return cleaned


class S3BlobStore(BlobStore):
    """Public-read object storage on S3 or an S3-compatible endpoint."""

    def __init__(self, config: Optional[Settings] = None, client=None) -> None:
        self.config = config or default_settings
        self.bucket = self.config.AWS_S3_BUCKET
        self.region = self.config.AWS_REGION
        self._client = client

    def missing_configuration(self) -> List[str]:
        return self.config.missing_storage_settings()

    def _get_client(self):
        missing = self.missing_configuration()
        if missing:
            logger.error(f"S3 storage is not configured, missing: {', '.join(missing)}")
            raise StorageError(ErrorKind.STORAGE_MISCONFIGURED, detail=", ".join(missing))
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region,
                endpoint_url=self.config.AWS_S3_ENDPOINT_URL,
                aws_access_key_id=self.config.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=self.config.AWS_SECRET_ACCESS_KEY,
                config=Config(
                    connect_timeout=self.config.S3_CONNECT_TIMEOUT,
                    read_timeout=self.config.S3_READ_TIMEOUT,
                    # retry policy belongs to the caller
                    retries={"total_max_attempts": 1, "mode": "standard"},
                ),
            )
        return self._client

    def public_url(self, key: str) -> str:
        if self.config.S3_PUBLIC_BASE_URL:
            return f"{self.config.S3_PUBLIC_BASE_URL.rstrip('/')}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _translate(self, error: Exception, action: str, key: str) -> StorageError:
        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return StorageError(ErrorKind.STORAGE_MISCONFIGURED, detail="credentials")
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            if code in CONFIGURATION_ERROR_CODES:
                logger.error(f"S3 {action} rejected for {key}: {code} (bucket={self.bucket}, region={self.region})")
                return StorageError(ErrorKind.STORAGE_MISCONFIGURED, detail=code)
            logger.warning(f"S3 {action} failed for {key}: {code}")
            return StorageError(ErrorKind.STORAGE_FAILED, detail=code or None)
        logger.warning(f"S3 {action} failed for {key}: {error}")
        return StorageError(ErrorKind.STORAGE_FAILED, detail=type(error).__name__)

    def put(self, data: bytes, key: str, content_type: str, attributes: Optional[Dict[str, str]] = None) -> str:
        if not data:
            raise ValueError("Cannot upload empty file")
        if not key:
            raise ValueError("Storage key is required")
        if not content_type:
            raise ValueError("Content type is required")
        client = self._get_client()
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
            "Metadata": _ascii_metadata(attributes),
        }
        # buckets with object ownership enforced reject any ACL header
        if self.config.S3_OBJECT_ACL:
            params["ACL"] = self.config.S3_OBJECT_ACL
        try:
            client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "upload", key) from e
        logger.info(f"Stored object {key} ({len(data)} bytes, {content_type})")
        return self.public_url(key)

    def delete(self, key: str) -> None:
        if not key:
            raise ValueError("Storage key is required")
        client = self._get_client()
        try:
            client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                logger.info(f"Object {key} already absent")
                return
            raise self._translate(e, "delete", key) from e
        except BotoCoreError as e:
            raise self._translate(e, "delete", key) from e
        logger.info(f"Deleted object {key}")
