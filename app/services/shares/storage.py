import asyncio
import os
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from app.core.exceptions import NotFoundError, ServerMisconfiguredError
from app.core.settings import S3Config, settings
from app.libs.formats.datetime import timestamp_ms

UPLOADS_PREFIX = "/uploads/"
S3_PREFIX = "s3://"

IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


class StorageError(Exception):
    pass


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """``s3://bucket/key/parts`` → ``(bucket, "key/parts")``."""
    if not uri or not uri.startswith(S3_PREFIX):
        raise ValueError(f"Not an s3 uri: {uri!r}")
    bucket, _, key = uri[len(S3_PREFIX):].partition("/")
    if not bucket or not key:
        raise ValueError(f"Malformed s3 uri: {uri!r}")
    return bucket, key


def _create_s3_client(config: Optional[S3Config]):
    if config is None:
        logger.info("🪣 S3 not configured → uploads stay on local disk")
        return None
    try:
        client = boto3.client(
            "s3",
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
        )
        logger.info(f"🪣 S3 client ready (bucket={config.bucket}, region={config.region})")
        return client
    except (BotoCoreError, ValueError) as e:
        logger.error(f"❌ Failed to create S3 client: {e}")
        return None


class BlobStore:
    """Where book bytes live: the uploads directory or an S3 bucket."""

    def __init__(
        self,
        uploads_dir: str | os.PathLike,
        s3_config: Optional[S3Config] = None,
        s3_client=None,
    ):
        self.uploads_dir = Path(uploads_dir).resolve()
        self.s3_config = s3_config
        self.s3_client = s3_client if s3_client is not None else _create_s3_client(s3_config)

    @property
    def s3_enabled(self) -> bool:
        return self.s3_client is not None and self.s3_config is not None

    def ensure_uploads_dir(self) -> Path:
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        return self.uploads_dir

    # ==============================
    # 📂 LOCAL DISK
    # ==============================

    def local_path(self, web_path: str) -> Path:
        """Map ``/uploads/name`` to a file inside the uploads directory."""
        if not web_path or not web_path.startswith("/"):
            raise NotFoundError("File not found")
        name = web_path[len(UPLOADS_PREFIX):] if web_path.startswith(UPLOADS_PREFIX) else web_path.lstrip("/")
        candidate = (self.uploads_dir / name).resolve()
        if self.uploads_dir not in candidate.parents:
            raise NotFoundError("File not found")
        return candidate

    async def write_upload(self, filename: str, data: bytes) -> str:
        self.ensure_uploads_dir()
        target = self.uploads_dir / filename
        async with aiofiles.open(target, "wb") as f:
            await f.write(data)
        return f"{UPLOADS_PREFIX}{filename}"

    async def save_cover(self, data: bytes, mime: Optional[str]) -> str:
        ext = IMAGE_EXTENSIONS.get((mime or "").lower(), "jpg")
        return await self.write_upload(f"cover_{timestamp_ms()}.{ext}", data)

    async def save_generated_thumbnail(self, data: bytes) -> str:
        return await self.write_upload(f"thumbnail_{timestamp_ms()}.png", data)

    @staticmethod
    def upload_filename(fieldname: str, original_name: str) -> str:
        rand = secrets.randbelow(10**9)
        base = Path(original_name or "file").name.replace(" ", "_")
        return f"{fieldname}-{timestamp_ms()}-{rand}-{base}"

    # ==============================
    # 🪣 OBJECT STORE
    # ==============================

    def _require_s3(self):
        if not self.s3_enabled:
            raise ServerMisconfiguredError(
                "Server misconfigured", "S3 storage is not configured"
            )
        return self.s3_client

    async def relay_to_s3(self, local_file: Path, filename: str, content_type: Optional[str]) -> str:
        """Upload a local file under ``books/<ms>_<filename>`` and drop the local copy."""
        client = self._require_s3()
        key = f"books/{timestamp_ms()}_{filename}"
        extra = {"ContentType": content_type} if content_type else None

        def _upload():
            with open(local_file, "rb") as fh:
                client.upload_fileobj(fh, self.s3_config.bucket, key, ExtraArgs=extra)

        try:
            await asyncio.to_thread(_upload)
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"❌ S3 upload failed for {filename}")
            raise StorageError(f"S3 upload failed: {e}") from e

        try:
            local_file.unlink()
        except OSError as e:
            logger.warning(f"⚠️ Could not remove local copy {local_file}: {e}")

        logger.info(f"🪣 Uploaded {filename} → s3://{self.s3_config.bucket}/{key}")
        return f"{S3_PREFIX}{self.s3_config.bucket}/{key}"

    async def presign(self, s3_uri: str, expires: Optional[int] = None) -> str:
        client = self._require_s3()
        bucket, key = parse_s3_uri(s3_uri)
        expires = expires or settings.PRESIGN_EXPIRES_SECONDS
        try:
            return await asyncio.to_thread(
                client.generate_presigned_url,
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires,
            )
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"❌ Presign failed for {s3_uri}")
            raise StorageError(f"Failed to presign {s3_uri}: {e}") from e


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    """Singleton built from settings; overridable with ``app.dependency_overrides``."""
    store = BlobStore(settings.UPLOADS_DIR, settings.s3)
    store.ensure_uploads_dir()
    return store
