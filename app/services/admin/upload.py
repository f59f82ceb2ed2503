from typing import Optional

import aiofiles
from fastapi import Depends, UploadFile
from loguru import logger

from app.core.exceptions import (
    LibraryError,
    PayloadTooLargeError,
    UnauthorizedError,
    ValidationError,
)
from app.core.settings import settings
from app.services.shares.storage import UPLOADS_PREFIX, BlobStore, StorageError, get_blob_store

ALLOWED_UPLOAD_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "application/epub+zip",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
}

CHUNK_SIZE = 1024 * 1024


class UploadService:
    def __init__(self, store: BlobStore = Depends(get_blob_store)):
        self.store = store

    async def upload_file_async(
        self, file: Optional[UploadFile], user_email: Optional[str], fieldname: str = "file"
    ) -> dict:
        if file is None or not file.filename:
            raise ValidationError("No file uploaded")
        if file.content_type not in ALLOWED_UPLOAD_TYPES:
            raise ValidationError(
                "Invalid file type",
                "Invalid file type. Only PDF, DOC, DOCX, TXT, EPUB and common image files are allowed.",
            )
        if not (user_email or "").strip():
            raise UnauthorizedError("User not authenticated")

        filename = self.store.upload_filename(fieldname, file.filename)
        target = self.store.ensure_uploads_dir() / filename

        # 1️⃣ Ghi ra đĩa theo từng chunk, dừng khi vượt giới hạn
        size = 0
        try:
            async with aiofiles.open(target, "wb") as out:
                while chunk := await file.read(CHUNK_SIZE):
                    size += len(chunk)
                    if size > settings.max_file_size:
                        raise PayloadTooLargeError(
                            "File too large",
                            f"The uploaded file exceeds the maximum allowed size of {settings.MAX_FILE_SIZE_MB}MB.",
                            maxSize=f"{settings.MAX_FILE_SIZE_MB}MB",
                        )
                    await out.write(chunk)
        except LibraryError:
            target.unlink(missing_ok=True)
            raise
        except OSError as e:
            target.unlink(missing_ok=True)
            logger.exception(f"❌ Failed to store upload {file.filename}")
            raise LibraryError("Failed to upload file", details=str(e)) from e

        result = {
            "success": True,
            "filePath": f"{UPLOADS_PREFIX}{filename}",
            "originalName": file.filename,
            "size": size,
            "mimetype": file.content_type,
        }

        # 2️⃣ Có S3 thì đẩy lên bucket và bỏ bản local
        if self.store.s3_enabled:
            try:
                result["filePath"] = await self.store.relay_to_s3(target, filename, file.content_type)
            except StorageError as e:
                raise LibraryError("Failed to upload file", details=str(e)) from e

        logger.info(f"📤 {file.filename} ({size} bytes) → {result['filePath']} by {user_email}")
        return result
