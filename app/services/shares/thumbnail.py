import base64
import binascii
import hashlib
import mimetypes
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Protocol, Sequence

import aiofiles
from fastapi import Depends
from fastapi.responses import FileResponse, RedirectResponse, Response
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    LibraryError,
    NotFoundError,
    PayloadTooLargeError,
    ValidationError,
    format_size_mb,
)
from app.core.settings import settings
from app.db.models.database import Books
from app.db.session import get_session
from app.services.shares.image_transformer import THUMBNAIL_MIME, ImageTransformer
from app.services.shares.rasterizer import Rasterizer
from app.services.shares.storage import UPLOADS_PREFIX, BlobStore, get_blob_store
from app.services.shares.temp_files import TempFileScope

PDF_MIME = "application/pdf"


@dataclass
class ThumbnailResult:
    """One resolved thumbnail: a file on disk, a redirect, or bytes."""

    source: str
    content: Optional[bytes] = None
    mime: str = THUMBNAIL_MIME
    path: Optional[Path] = None
    url: Optional[str] = None
    cacheable: bool = False
    generated: bool = False

    @property
    def etag(self) -> Optional[str]:
        if self.content is None:
            return None
        return hashlib.md5(self.content).hexdigest()


def etag_matches(if_none_match: Optional[str], etag: Optional[str]) -> bool:
    if not if_none_match or not etag:
        return False
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate == "*":
            return True
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate.strip('"') == etag:
            return True
    return False


def to_response(result: ThumbnailResult, if_none_match: Optional[str] = None) -> Response:
    if result.url:
        return RedirectResponse(result.url, status_code=302)
    if result.path:
        return FileResponse(result.path, media_type=result.mime)

    headers = {"Cache-Control": f"public, max-age={settings.THUMBNAIL_CACHE_SECONDS}"}
    etag = result.etag
    if result.cacheable and etag:
        headers["ETag"] = f'"{etag}"'
        if etag_matches(if_none_match, etag):
            return Response(status_code=304, headers=headers)
    return Response(content=result.content, media_type=result.mime, headers=headers)


# ==============================
# 🖨️ PDF → PNG
# ==============================


class PdfThumbnailRenderer:
    """Rasterize page 1 then contain-fit; all temp files die with the scope."""

    def __init__(
        self,
        rasterizer: Rasterizer,
        transformer: ImageTransformer,
        max_source_size: Optional[int] = None,
        temp_dir: Optional[str | Path] = None,
    ):
        self.rasterizer = rasterizer
        self.transformer = transformer
        self.max_source_size = max_source_size or settings.thumbnail_max_source_size
        self.temp_dir = temp_dir

    def check_size(self, size: int) -> None:
        if size > self.max_source_size:
            raise PayloadTooLargeError(
                "PDF file too large for thumbnail generation",
                f"PDF is {format_size_mb(size)}; limit is {format_size_mb(self.max_source_size)}",
                maxSize=self.max_source_size,
                currentSize=size,
            )

    async def render_file(self, key: int | str, pdf_path: Path) -> bytes:
        self.check_size(pdf_path.stat().st_size)
        async with TempFileScope(key, self.temp_dir) as scope:
            png_path = scope.png_path()
            await self.rasterizer.rasterize(pdf_path, png_path)
            return await self.transformer.to_thumbnail_async(png_path)

    async def render_bytes(self, key: int | str, pdf_bytes: bytes) -> bytes:
        self.check_size(len(pdf_bytes))
        async with TempFileScope(key, self.temp_dir) as scope:
            pdf_path = scope.pdf_path()
            async with aiofiles.open(pdf_path, "wb") as f:
                await f.write(pdf_bytes)
            png_path = scope.png_path()
            await self.rasterizer.rasterize(pdf_path, png_path)
            return await self.transformer.to_thumbnail_async(png_path)


# ==============================
# 🔗 RESOLUTION STRATEGIES
# ==============================


class ThumbnailStrategy(Protocol):
    name: str

    async def try_resolve(self, book: Books) -> Optional[ThumbnailResult]: ...


def _has_cover_derived_blob(book: Books) -> bool:
    return bool(book.thumbnail_content) and book.thumbnail_source == book.cover_image_path


class LocalCoverStrategy:
    name = "local-cover"

    def __init__(self, store: BlobStore):
        self.store = store

    async def try_resolve(self, book: Books) -> Optional[ThumbnailResult]:
        cover = book.cover_image_path or ""
        if not cover.startswith("/") or _has_cover_derived_blob(book):
            return None
        try:
            path = self.store.local_path(cover)
        except NotFoundError:
            return None
        if not path.is_file():
            logger.warning(f"⚠️ Cover {cover} for book {book.id} missing on disk")
            return None
        mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return ThumbnailResult(source=self.name, path=path, mime=mime)


class RemoteCoverStrategy:
    name = "remote-cover"

    async def try_resolve(self, book: Books) -> Optional[ThumbnailResult]:
        cover = book.cover_image_path or ""
        if cover.startswith("http"):
            return ThumbnailResult(source=self.name, url=cover)
        return None


class CachedBlobStrategy:
    name = "cached-blob"

    async def try_resolve(self, book: Books) -> Optional[ThumbnailResult]:
        if not book.thumbnail_content:
            return None
        return ThumbnailResult(
            source=self.name,
            content=bytes(book.thumbnail_content),
            mime=book.thumbnail_mime or THUMBNAIL_MIME,
            cacheable=True,
        )


class DiskPdfStrategy:
    name = "disk-pdf"

    def __init__(self, store: BlobStore, renderer: PdfThumbnailRenderer):
        self.store = store
        self.renderer = renderer

    async def try_resolve(self, book: Books) -> Optional[ThumbnailResult]:
        file_path = book.file_path or ""
        if not file_path.startswith(UPLOADS_PREFIX) or book.file_type != PDF_MIME:
            return None
        path = self.store.local_path(file_path)
        if not path.is_file():
            raise NotFoundError("PDF file not found on disk")
        content = await self.renderer.render_file(book.id, path)
        return ThumbnailResult(source=self.name, content=content, cacheable=True, generated=True)


class InlinePdfStrategy:
    name = "inline-pdf"

    def __init__(self, renderer: PdfThumbnailRenderer):
        self.renderer = renderer

    async def try_resolve(self, book: Books) -> Optional[ThumbnailResult]:
        if not book.file_content or book.file_type != PDF_MIME:
            return None
        try:
            pdf_bytes = base64.b64decode(book.file_content)
        except (binascii.Error, ValueError):
            logger.warning(f"⚠️ Book {book.id} has undecodable inline content")
            return None
        content = await self.renderer.render_bytes(book.id, pdf_bytes)
        return ThumbnailResult(source=self.name, content=content, cacheable=True, generated=True)


class ThumbnailResolver:
    def __init__(self, strategies: Sequence[ThumbnailStrategy]):
        self.strategies = list(strategies)

    async def resolve(self, book: Books) -> ThumbnailResult:
        for strategy in self.strategies:
            result = await strategy.try_resolve(book)
            if result is not None:
                logger.debug(f"🖼️ Book {book.id} thumbnail via {strategy.name}")
                return result
        raise NotFoundError("PDF file not found")


@lru_cache(maxsize=1)
def get_rasterizer() -> Rasterizer:
    return Rasterizer()


@lru_cache(maxsize=1)
def get_image_transformer() -> ImageTransformer:
    return ImageTransformer()


# ==============================
# 🧩 SERVICE
# ==============================


class ThumbnailService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        store: BlobStore = Depends(get_blob_store),
        rasterizer: Rasterizer = Depends(get_rasterizer),
        transformer: ImageTransformer = Depends(get_image_transformer),
    ):
        self.db = db
        self.store = store
        self.transformer = transformer
        self.renderer = PdfThumbnailRenderer(rasterizer, transformer)
        self.resolver = ThumbnailResolver(
            [
                LocalCoverStrategy(store),
                RemoteCoverStrategy(),
                CachedBlobStrategy(),
                DiskPdfStrategy(store, self.renderer),
                InlinePdfStrategy(self.renderer),
            ]
        )

    async def get_book_thumbnail_async(self, book_id: int) -> ThumbnailResult:
        book = await self.db.scalar(select(Books).where(Books.id == book_id))
        if not book:
            raise NotFoundError("Book not found")

        try:
            result = await self.resolver.resolve(book)
        except LibraryError:
            raise
        except Exception as e:
            logger.exception(f"❌ Thumbnail resolution crashed for book {book_id}")
            raise LibraryError("Failed to generate thumbnail", details=str(e)) from e

        if result.generated:
            await self._cache_generated(book, result.content)
        return result

    async def _cache_generated(self, book: Books, content: Optional[bytes]) -> None:
        if not content:
            return
        try:
            book.thumbnail_content = content
            book.thumbnail_mime = THUMBNAIL_MIME
            book.thumbnail_source = None
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"⚠️ Could not cache thumbnail for book {book.id}: {e}")

    # ==============================
    # ✍️ COVER WRITE PATH
    # ==============================

    async def apply_cover_async(
        self, book: Books, image_bytes: bytes, mime: Optional[str]
    ) -> Optional[str]:
        """
        Persist the uploaded cover and its normalized thumbnail on ``book``.
        Each half fails independently (logged, not raised); caller commits.
        """
        cover_path: Optional[str] = None
        try:
            cover_path = await self.store.save_cover(image_bytes, mime)
            book.cover_image_path = cover_path
        except Exception as e:
            logger.warning(f"⚠️ Saving cover for book {book.id} failed: {e}")

        try:
            thumb = await self.transformer.to_thumbnail_async(image_bytes)
            book.thumbnail_content = thumb
            book.thumbnail_mime = THUMBNAIL_MIME
            book.thumbnail_source = cover_path
        except Exception as e:
            logger.warning(f"⚠️ Thumbnail from cover for book {book.id} failed: {e}")

        return cover_path

    # ==============================
    # ⚙️ ON-DEMAND GENERATION
    # ==============================

    async def generate_from_path_async(self, file_path: str, file_type: str) -> dict:
        if not file_path:
            raise ValidationError("File path is required")

        path = self.store.local_path(file_path)
        if not path.is_file():
            raise NotFoundError("File not found")

        file_type = (file_type or "").lower()
        if file_type in ("pdf", PDF_MIME) or path.suffix.lower() == ".pdf":
            content = await self.renderer.render_file(f"gen_{path.stem}", path)
        elif file_type.startswith("image/"):
            content = await self.transformer.to_thumbnail_async(path)
        else:
            raise ValidationError("Unsupported file type for thumbnail generation")

        thumbnail_path = await self.store.save_generated_thumbnail(content)
        logger.info(f"🖼️ Generated {thumbnail_path} from {file_path}")
        return {"thumbnailPath": thumbnail_path}
