import base64
import binascii
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DatabaseError,
    LibraryError,
    NotFoundError,
    ValidationError,
)
from app.db.models.database import Books, Categories
from app.db.session import get_session
from app.schemas.admin.book import VARIANT_FIELDS, CreateBook, UpdateBook, UpdateBookCover
from app.services.shares.book_content import (
    apply_variant,
    check_payload_size,
    parse_variant,
    variant_snapshot,
)
from app.services.shares.thumbnail import ThumbnailService
from app.services.user.book import serialize_book

BASE_FIELDS = (
    "title",
    "author",
    "category_id",
    "description",
    "isbn",
    "published_year",
    "page_count",
    "cover_image_path",
)
COVER_FIELDS = {"cover_image_base64", "cover_image_type"}
SOURCE_FIELDS = {"book_type", "file_path", "file_content", "file_type"}


def decode_cover(data: str) -> bytes:
    # chấp nhận cả data URL "data:image/png;base64,...."
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid cover image data") from e


class AdminBookService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        thumbnails: ThumbnailService = Depends(ThumbnailService),
    ):
        self.db = db
        self.thumbnails = thumbnails

    async def _require_category(self, category_id: int) -> Categories:
        category = await self.db.scalar(
            select(Categories).where(Categories.id == category_id)
        )
        if not category:
            raise ValidationError("Category not found")
        return category

    async def _get_book(self, book_id: int) -> Books:
        book = await self.db.scalar(select(Books).where(Books.id == book_id))
        if not book:
            raise NotFoundError("Book not found")
        return book

    async def _apply_cover_best_effort(
        self, book: Books, data: Optional[str], mime: Optional[str]
    ) -> None:
        if not data:
            return
        try:
            image_bytes = decode_cover(data)
        except ValidationError:
            logger.warning(f"⚠️ Ignoring undecodable cover for book {book.id}")
            return
        await self.thumbnails.apply_cover_async(book, image_bytes, mime)

    # ==============================
    # ➕ CREATE
    # ==============================

    async def create_book_async(self, schema: CreateBook) -> dict:
        # 1️⃣ Giới hạn kích thước trước mọi kiểm tra khác
        check_payload_size(schema.file_size, schema.file_content)

        # 2️⃣ Variant hợp lệ theo book_type
        variant = parse_variant(
            {"book_type": schema.book_type or "file", **schema.model_dump(include=set(VARIANT_FIELDS))}
        )

        try:
            # 3️⃣ Danh mục phải tồn tại
            category = await self._require_category(schema.category_id)

            # 4️⃣ Tạo bản ghi
            book = Books(**schema.model_dump(include=set(BASE_FIELDS)))
            apply_variant(book, variant)
            self.db.add(book)
            await self.db.flush()

            # 5️⃣ Ảnh bìa + thumbnail (mỗi bước tự nuốt lỗi)
            await self._apply_cover_best_effort(
                book, schema.cover_image_base64, schema.cover_image_type
            )

            await self.db.commit()
            await self.db.refresh(book)
            logger.info(f"📚 Created {book.book_type} book #{book.id} '{book.title}'")
            return serialize_book(book, category_name=category.name)

        except LibraryError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception("❌ Failed to create book")
            raise DatabaseError("Failed to create book", details=str(e)) from e

    # ==============================
    # ✏️ UPDATE (partial)
    # ==============================

    async def update_book_async(self, book_id: int, schema: UpdateBook) -> dict:
        check_payload_size(schema.file_size, schema.file_content)

        changes = schema.model_dump(exclude_unset=True)
        cover_data = changes.pop("cover_image_base64", None)
        cover_type = changes.pop("cover_image_type", None)
        if not changes and not cover_data:
            raise ValidationError("No fields to update")

        for field in ("title", "author", "category_id"):
            if field in changes and changes[field] in (None, ""):
                raise ValidationError(f"{field} cannot be empty")

        try:
            book = await self._get_book(book_id)

            if "category_id" in changes:
                await self._require_category(changes["category_id"])

            for field in BASE_FIELDS:
                if field in changes:
                    setattr(book, field, changes[field])

            touched = {"book_type", *VARIANT_FIELDS} & changes.keys()
            if touched:
                merged = variant_snapshot(book)
                merged.update({k: changes[k] for k in touched})
                apply_variant(book, parse_variant(merged))

            # thumbnail render từ file cũ không còn đúng
            if touched & SOURCE_FIELDS and book.thumbnail_source is None:
                book.thumbnail_content = None
                book.thumbnail_mime = None

            await self._apply_cover_best_effort(book, cover_data, cover_type)

            await self.db.commit()
            await self.db.refresh(book)

            category_name = await self.db.scalar(
                select(Categories.name).where(Categories.id == book.category_id)
            )
            logger.info(f"✏️ Updated book #{book.id} ({', '.join(sorted(changes)) or 'cover'})")
            return serialize_book(book, category_name=category_name)

        except LibraryError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to update book {book_id}")
            raise DatabaseError("Failed to update book", details=str(e)) from e

    # ==============================
    # 🖼️ COVER PATCH
    # ==============================

    async def update_cover_async(self, book_id: int, schema: UpdateBookCover) -> dict:
        if not schema.cover_image_base64 and not schema.cover_image_path:
            raise ValidationError("Cover image path is required")

        try:
            book = await self._get_book(book_id)

            if schema.cover_image_base64:
                image_bytes = decode_cover(schema.cover_image_base64)
                cover_path = await self.thumbnails.apply_cover_async(
                    book, image_bytes, schema.cover_image_type
                )
                if not cover_path:
                    raise LibraryError("Failed to process cover image")
                await self.db.commit()
                return {
                    "message": "Cover image and thumbnail updated",
                    "cover_image_path": cover_path,
                }

            book.cover_image_path = schema.cover_image_path
            await self.db.commit()
            return {
                "message": "Book thumbnail updated successfully",
                "cover_image_path": schema.cover_image_path,
            }

        except LibraryError:
            await self.db.rollback()
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to update cover for book {book_id}")
            raise DatabaseError("Failed to update book thumbnail", details=str(e)) from e

    # ==============================
    # 🗑️ DELETE
    # ==============================

    async def delete_book_async(self, book_id: int) -> dict:
        try:
            book = await self._get_book(book_id)
            await self.db.delete(book)
            await self.db.commit()
            logger.info(f"🗑️ Deleted book #{book_id}")
            return {"message": "Book deleted successfully"}
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to delete book {book_id}")
            raise DatabaseError("Failed to delete book", details=str(e)) from e
