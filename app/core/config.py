# app/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra='ignore')

    # Application Settings
    APP_NAME: str = "Musical Media API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./app/media.db")

    # Security Settings (tokens are issued elsewhere, only decoded here)
    SECRET_KEY: str = Field(default="change-me-in-prod", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"

    # CORS Settings
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Blob storage
    STORAGE_BACKEND: str = "s3"  # "s3" or "local"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_BUCKET: Optional[str] = None
    AWS_REGION: str = "us-east-1"
    AWS_S3_ENDPOINT_URL: Optional[str] = None
    S3_PUBLIC_BASE_URL: Optional[str] = None
    S3_OBJECT_ACL: str = "public-read"
    S3_CONNECT_TIMEOUT: float = 5.0
    S3_READ_TIMEOUT: float = 30.0

    # Local storage backend (development)
    UPLOAD_DIR: str = "uploads"
    BASE_URL: str = os.environ.get("BASE_URL", "http://localhost:8000")

    # Upload validation
    MIN_UPLOAD_BYTES: int = 100
    MIN_IMAGE_DIMENSION: int = 10
    MAX_IMAGE_DIMENSION: int = 10000
    MAX_DECODED_BYTES: int = 400 * 1024 * 1024  # 10000 x 10000 RGBA
    MULTIPART_OVERHEAD_BYTES: int = 64 * 1024

    # Pipeline
    UPLOAD_TIMEOUT_SECONDS: float = 60.0
    REPLACE_PREVIOUS_PROFILE_IMAGE: bool = True

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    def missing_storage_settings(self) -> List[str]:
        """Names of required storage settings that are not set for the active backend."""
        if self.STORAGE_BACKEND.lower() == "local":
            return [] if self.UPLOAD_DIR else ["UPLOAD_DIR"]
        missing = []
        if not self.AWS_ACCESS_KEY_ID:
            missing.append("AWS_ACCESS_KEY_ID")
        if not self.AWS_SECRET_ACCESS_KEY:
            missing.append("AWS_SECRET_ACCESS_KEY")
        if not self.AWS_S3_BUCKET:
            missing.append("AWS_S3_BUCKET")
        return missing


@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings: Settings = get_settings()
