import base64
import binascii
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import quote

from fastapi.responses import FileResponse, JSONResponse, Response
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import (
    LibraryError,
    NotFoundError,
    PayloadTooLargeError,
    ServerMisconfiguredError,
    ValidationError,
)
from app.core.settings import settings
from app.db.models.database import Books
from app.libs.formats.text import safe_filename
from app.schemas.admin.book import (
    VARIANT_FIELDS,
    FileVariant,
    LinkVariant,
    PurchaseVariant,
    book_variant_adapter,
)
from app.services.shares.storage import S3_PREFIX, UPLOADS_PREFIX, BlobStore, StorageError

Variant = Union[FileVariant, LinkVariant, PurchaseVariant]

# ==============================
# ✅ VALIDATION
# ==============================


def check_payload_size(file_size: Optional[int], file_content: Optional[str]) -> None:
    """Reject oversized uploads before anything else is validated."""
    max_size = settings.max_file_size
    limit_mb = settings.MAX_FILE_SIZE_MB

    if file_size and file_size > max_size:
        current_mb = round(file_size / (1024 * 1024))
        raise PayloadTooLargeError(
            "File too large",
            f"File size {current_mb}MB exceeds the maximum allowed size of {limit_mb}MB. "
            "Please compress the file or use a smaller version.",
            maxSize=f"{limit_mb}MB",
            currentSize=f"{current_mb}MB",
        )

    if file_content and len(file_content) > settings.max_base64_length:
        raise PayloadTooLargeError(
            "File content too large",
            "The uploaded file content exceeds the maximum allowed size of "
            f"{limit_mb}MB. Please compress the file or use a smaller version.",
            maxSize=f"{limit_mb}MB",
            currentSize=f"{round(len(file_content) * 3 / 4 / (1024 * 1024))}MB",
        )


def _variant_error_message(exc: PydanticValidationError, book_type: Any) -> str:
    for err in exc.errors():
        if err["type"] in ("union_tag_invalid", "union_tag_not_found"):
            return "book_type must be one of: file, link, purchase"
        ctx_error = (err.get("ctx") or {}).get("error")
        if ctx_error:
            return str(ctx_error)
        field = err["loc"][-1] if err["loc"] else "book_type"
        return f"{field} is required for {book_type} type books"
    return "Invalid book payload"


def parse_variant(data: dict) -> Variant:
    """Turn a flat dict into exactly one variant or raise ``ValidationError``."""
    payload = {k: v for k, v in data.items() if v is not None}
    try:
        return book_variant_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValidationError(_variant_error_message(e, data.get("book_type"))) from e


def apply_variant(book: Books, variant: Variant) -> None:
    """Write the authoritative fields of ``variant`` and null the others."""
    for field in VARIANT_FIELDS:
        setattr(book, field, None)
    book.book_type = variant.book_type

    if isinstance(variant, FileVariant):
        book.file_path = variant.file_path
        book.file_content = variant.file_content
        book.file_size = variant.file_size
        book.file_type = variant.file_type
    elif isinstance(variant, LinkVariant):
        book.external_link = variant.external_link
    else:
        book.purchase_link = variant.purchase_link
        book.price = variant.price
        book.currency = variant.currency or "USD"


def variant_snapshot(book: Books) -> dict:
    return {"book_type": book.book_type, **{f: getattr(book, f) for f in VARIANT_FIELDS}}


# ==============================
# 📦 DOWNLOAD RESOLUTION
# ==============================


@dataclass
class PresignedUrl:
    url: str


@dataclass
class StreamFile:
    path: Path
    filename: str


@dataclass
class InlineBytes:
    content: bytes
    mime: str
    filename: str


DownloadResult = Union[PresignedUrl, StreamFile, InlineBytes]


def content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode() or "download"
    quoted = quote(filename)
    if quoted == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=utf-8''{quoted}"


class BookContentResolver:
    def __init__(self, store: BlobStore):
        self.store = store

    async def resolve(self, book: Books) -> DownloadResult:
        file_path = book.file_path or ""

        # 1️⃣ S3 → presigned URL
        if file_path.startswith(S3_PREFIX):
            if not self.store.s3_enabled:
                raise ServerMisconfiguredError("S3 not configured on server")
            try:
                return PresignedUrl(await self.store.presign(file_path))
            except StorageError as e:
                raise LibraryError("Failed to generate download URL", details=str(e)) from e
            except ValueError as e:
                raise NotFoundError("File content not found", details=str(e)) from e

        # 2️⃣ Disk
        if file_path.startswith(UPLOADS_PREFIX):
            path = self.store.local_path(file_path)
            if not path.is_file():
                raise NotFoundError("File not found on disk")
            if book.title:
                filename = safe_filename(f"{book.title}{path.suffix}", path.name)
            else:
                filename = path.name
            return StreamFile(path=path, filename=filename)

        # 3️⃣ Inline base64
        if book.file_content:
            try:
                content = base64.b64decode(book.file_content)
            except (binascii.Error, ValueError) as e:
                logger.error(f"❌ Book {book.id} inline content is not valid base64")
                raise LibraryError("Failed to decode file content", details=str(e)) from e
            name = book.file_path or book.title or "download"
            return InlineBytes(
                content=content,
                mime=book.file_type or "application/octet-stream",
                filename=safe_filename(name),
            )

        raise NotFoundError("File content not found")


def to_response(result: DownloadResult) -> Response:
    if isinstance(result, PresignedUrl):
        return JSONResponse({"url": result.url})
    if isinstance(result, StreamFile):
        return FileResponse(result.path, filename=result.filename)
    # Content-Length luôn là độ dài thật sau khi decode
    return Response(
        content=result.content,
        media_type=result.mime,
        headers={
            "Content-Disposition": content_disposition(result.filename),
            "Content-Length": str(len(result.content)),
        },
    )
