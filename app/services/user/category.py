from fastapi import Depends
from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.db.models.database import Books, Categories, DownloadLogs, Tutorials
from app.db.session import get_session


class CategoryService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def get_categories_async(self):
        try:
            books = (
                select(Books.category_id, func.count().label("book_count"))
                .group_by(Books.category_id)
                .subquery()
            )
            tutorials = (
                select(Tutorials.category_id, func.count().label("tutorial_count"))
                .group_by(Tutorials.category_id)
                .subquery()
            )
            downloads = (
                select(Books.category_id, func.count(DownloadLogs.id).label("total_downloads"))
                .join(
                    DownloadLogs,
                    (DownloadLogs.content_id == Books.id) & (DownloadLogs.content_type == "book"),
                )
                .group_by(Books.category_id)
                .subquery()
            )

            stmt = (
                select(
                    Categories.id,
                    Categories.name,
                    Categories.description,
                    Categories.slug,
                    func.coalesce(books.c.book_count, 0).label("bookCount"),
                    func.coalesce(tutorials.c.tutorial_count, 0).label("tutorialCount"),
                    func.coalesce(downloads.c.total_downloads, 0).label("totalDownloads"),
                )
                .outerjoin(books, books.c.category_id == Categories.id)
                .outerjoin(tutorials, tutorials.c.category_id == Categories.id)
                .outerjoin(downloads, downloads.c.category_id == Categories.id)
                .order_by(Categories.name)
            )
            rows = (await self.db.execute(stmt)).mappings().all()
            return [dict(row) for row in rows]
        except Exception as e:
            logger.exception("❌ Failed to fetch categories")
            raise DatabaseError("Failed to fetch categories", details=str(e)) from e
