from typing import Any, Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import Select, func, null, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, defer

from app.core.context import header_email
from app.core.exceptions import DatabaseError, LibraryError, NotFoundError
from app.db.models.database import Books, Categories, DownloadLogs, Ratings, User
from app.db.session import get_session
from app.services.shares.book_content import BookContentResolver, DownloadResult
from app.services.shares.download_log import record_download
from app.services.shares.storage import BlobStore, get_blob_store

BINARY_COLUMNS = {"file_content", "thumbnail_content"}


def serialize_book(book: Books, **extra: Any) -> dict:
    """Row → JSON-able dict without the blob columns."""
    data = {
        column.key: getattr(book, column.key)
        for column in Books.__table__.columns
        if column.key not in BINARY_COLUMNS
    }
    data["thumbnail"] = f"/api/books/{book.id}/thumbnail"
    data.update(extra)
    return data


def _count_subquery(content_type: str, vote: Optional[int] = None, name: str = "n"):
    if vote is None:
        stmt = select(DownloadLogs.content_id, func.count().label(name)).where(
            DownloadLogs.content_type == content_type
        ).group_by(DownloadLogs.content_id)
    else:
        stmt = select(Ratings.content_id, func.count().label(name)).where(
            Ratings.content_type == content_type, Ratings.vote == vote
        ).group_by(Ratings.content_id)
    return stmt.subquery()


class BookService:
    def __init__(
        self,
        db: AsyncSession = Depends(get_session),
        store: BlobStore = Depends(get_blob_store),
    ):
        self.db = db
        self.store = store
        self.content_resolver = BookContentResolver(store)

    async def _viewer_id(self) -> Optional[int]:
        email = header_email()
        if not email:
            return None
        return await self.db.scalar(
            select(User.id).where(func.lower(User.email) == email.lower())
        )

    def _catalog_query(self, viewer_id: Optional[int]) -> Select:
        downloads = _count_subquery("book", name="download_count")
        up = _count_subquery("book", 1, name="up_votes")
        down = _count_subquery("book", -1, name="down_votes")

        columns = [
            Books,
            Categories.name.label("category_name"),
            func.coalesce(downloads.c.download_count, 0).label("download_count"),
            func.coalesce(up.c.up_votes, 0).label("up_votes"),
            func.coalesce(down.c.down_votes, 0).label("down_votes"),
        ]

        stmt = (
            select(*columns)
            .outerjoin(Categories, Books.category_id == Categories.id)
            .outerjoin(downloads, downloads.c.content_id == Books.id)
            .outerjoin(up, up.c.content_id == Books.id)
            .outerjoin(down, down.c.content_id == Books.id)
            .options(defer(Books.file_content), defer(Books.thumbnail_content))
        )

        if viewer_id is None:
            return stmt.add_columns(null().label("user_vote"))

        mine = aliased(Ratings)
        return stmt.add_columns(mine.vote.label("user_vote")).outerjoin(
            mine,
            (mine.content_id == Books.id)
            & (mine.content_type == "book")
            & (mine.user_id == viewer_id),
        )

    @staticmethod
    def _row_to_dict(row) -> dict:
        return serialize_book(
            row.Books,
            category_name=row.category_name,
            download_count=int(row.download_count or 0),
            up_votes=int(row.up_votes or 0),
            down_votes=int(row.down_votes or 0),
            user_vote=row.user_vote,
        )

    async def list_books_async(self, category_id: Optional[int] = None):
        try:
            stmt = self._catalog_query(await self._viewer_id())
            if category_id is not None:
                stmt = stmt.where(Books.category_id == category_id)
            stmt = stmt.order_by(Books.created_at.desc(), Books.id.desc())
            rows = (await self.db.execute(stmt)).all()
            return [self._row_to_dict(row) for row in rows]
        except Exception as e:
            logger.exception("❌ Failed to fetch books")
            raise DatabaseError("Failed to fetch books", details=str(e)) from e

    async def get_book_async(self, book_id: int):
        try:
            stmt = self._catalog_query(await self._viewer_id()).where(Books.id == book_id)
            row = (await self.db.execute(stmt)).first()
        except Exception as e:
            logger.exception(f"❌ Failed to fetch book {book_id}")
            raise DatabaseError("Failed to fetch book", details=str(e)) from e
        if row is None:
            raise NotFoundError("Book not found")
        return self._row_to_dict(row)

    async def resolve_download_async(self, book_id: int) -> DownloadResult:
        # 1️⃣ Ghi log trước (best-effort), kể cả khi tải thất bại
        await record_download(self.db, book_id, "book")

        # 2️⃣ Tìm sách
        try:
            book = await self.db.scalar(select(Books).where(Books.id == book_id))
        except Exception as e:
            logger.exception(f"❌ Failed to load book {book_id} for download")
            raise DatabaseError(details=str(e)) from e
        if not book:
            raise NotFoundError("Book not found")

        # 3️⃣ Resolve theo prefix
        try:
            return await self.content_resolver.resolve(book)
        except LibraryError:
            raise
        except Exception as e:
            logger.exception(f"❌ Download resolution failed for book {book_id}")
            raise LibraryError("Failed to download book", details=str(e)) from e
