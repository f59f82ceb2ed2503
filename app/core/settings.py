# app/core/settings.py
from dataclasses import dataclass
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class S3Config:
    bucket: str
    region: str
    access_key_id: str
    secret_access_key: str


class Settings(BaseSettings):
    # Database
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "library_db"
    POSTGRES_HOST: str = "127.0.0.1"
    POSTGRES_PORT: int = 5432
    DATABASE_ASYNC_URL: str = ""

    # Server
    PORT: int = 5000
    ENV: str = Field(
        default="production", validation_alias=AliasChoices("ENV", "NODE_ENV")
    )
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    # Storage
    UPLOADS_DIR: str = "uploads"
    MAX_FILE_SIZE_MB: int = 100
    BASE64_INFLATION: float = 1.4

    # Thumbnails
    THUMBNAIL_MAX_SOURCE_MB: int = 50
    THUMBNAIL_WIDTH: int = 300
    THUMBNAIL_HEIGHT: int = 400
    THUMBNAIL_DPI: int = 150
    THUMBNAIL_CACHE_SECONDS: int = 86400
    RASTERIZE_TIMEOUT_SECONDS: float = 30.0

    # S3 (tắt hoàn toàn nếu thiếu biến nào)
    S3_BUCKET: str = Field(
        default="", validation_alias=AliasChoices("S3_BUCKET", "AWS_S3_BUCKET")
    )
    S3_REGION: str = Field(
        default="", validation_alias=AliasChoices("S3_REGION", "AWS_REGION")
    )
    S3_ACCESS_KEY_ID: str = Field(
        default="",
        validation_alias=AliasChoices("S3_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    )
    S3_SECRET_ACCESS_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("S3_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
    )
    PRESIGN_EXPIRES_SECONDS: int = 3600

    # Security
    BCRYPT_SALT_ROUNDS: int = 10

    # tránh crash nếu .env có key dư
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        if self.DATABASE_ASYNC_URL:
            return self.DATABASE_ASYNC_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_development(self) -> bool:
        return self.ENV.lower() == "development"

    @property
    def max_file_size(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def max_base64_length(self) -> int:
        return int(self.max_file_size * self.BASE64_INFLATION)

    @property
    def thumbnail_max_source_size(self) -> int:
        return self.THUMBNAIL_MAX_SOURCE_MB * 1024 * 1024

    @property
    def s3(self) -> Optional[S3Config]:
        values = (
            self.S3_BUCKET,
            self.S3_REGION,
            self.S3_ACCESS_KEY_ID,
            self.S3_SECRET_ACCESS_KEY,
        )
        if not all(values):
            return None
        return S3Config(*values)


settings = Settings()
