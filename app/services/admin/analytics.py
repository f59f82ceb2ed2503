from collections import OrderedDict
from datetime import timedelta

from fastapi import Depends
from loguru import logger
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError
from app.db.models.database import (
    Books,
    Categories,
    DownloadLogs,
    Ratings,
    Tutorials,
    User,
    ViewLogs,
)
from app.db.session import get_session
from app.libs.formats.datetime import now, time_ago

TOP_CONTENT_LIMIT = 10


def _views_by(content_type: str):
    return (
        select(ViewLogs.content_id, func.count().label("views"))
        .where(ViewLogs.content_type == content_type)
        .group_by(ViewLogs.content_id)
        .subquery()
    )


def _month_start(months_back: int):
    current = now().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    year, month = current.year, current.month - months_back + 1
    while month <= 0:
        month += 12
        year -= 1
    return current.replace(year=year, month=month)


class AnalyticsService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _count(self, model) -> int:
        return int(await self.db.scalar(select(func.count()).select_from(model)) or 0)

    # ==============================
    # 📊 DASHBOARD
    # ==============================

    async def _top_content(self) -> list[dict]:
        book_views = _views_by("book")
        tutorial_views = _views_by("tutorial")
        downloads = (
            select(DownloadLogs.content_id, func.count().label("downloads"))
            .where(DownloadLogs.content_type == "book")
            .group_by(DownloadLogs.content_id)
            .subquery()
        )

        books = (
            await self.db.execute(
                select(
                    Books.id,
                    Books.title,
                    Categories.name.label("category"),
                    func.coalesce(book_views.c.views, 0).label("views"),
                    func.coalesce(downloads.c.downloads, 0).label("downloads"),
                )
                .outerjoin(Categories, Books.category_id == Categories.id)
                .outerjoin(book_views, book_views.c.content_id == Books.id)
                .outerjoin(downloads, downloads.c.content_id == Books.id)
            )
        ).all()
        tutorials = (
            await self.db.execute(
                select(
                    Tutorials.id,
                    Tutorials.title,
                    Categories.name.label("category"),
                    func.coalesce(tutorial_views.c.views, 0).label("views"),
                )
                .outerjoin(Categories, Tutorials.category_id == Categories.id)
                .outerjoin(tutorial_views, tutorial_views.c.content_id == Tutorials.id)
            )
        ).all()

        items = [
            {
                "id": r.id,
                "title": r.title,
                "type": "book",
                "views": int(r.views),
                "downloads": int(r.downloads),
                "category": r.category or "Uncategorized",
            }
            for r in books
        ] + [
            {
                "id": r.id,
                "title": r.title,
                "type": "tutorial",
                "views": int(r.views),
                "downloads": 0,
                "category": r.category or "Uncategorized",
            }
            for r in tutorials
        ]
        items.sort(key=lambda item: item["views"], reverse=True)
        return items[:TOP_CONTENT_LIMIT]

    async def _category_stats(self) -> list[dict]:
        book_counts = (
            select(Books.category_id, func.count().label("n"))
            .group_by(Books.category_id)
            .subquery()
        )
        tutorial_counts = (
            select(Tutorials.category_id, func.count().label("n"))
            .group_by(Tutorials.category_id)
            .subquery()
        )
        rows = (
            await self.db.execute(
                select(
                    Categories.id,
                    Categories.name,
                    func.coalesce(book_counts.c.n, 0).label("bookCount"),
                    func.coalesce(tutorial_counts.c.n, 0).label("tutorialCount"),
                )
                .outerjoin(book_counts, book_counts.c.category_id == Categories.id)
                .outerjoin(tutorial_counts, tutorial_counts.c.category_id == Categories.id)
            )
        ).all()

        # lượt xem gom theo danh mục của nội dung được xem
        views: dict[int, int] = {}
        for model, content_type in ((Books, "book"), (Tutorials, "tutorial")):
            per_category = await self.db.execute(
                select(model.category_id, func.count(ViewLogs.id))
                .join(
                    model,
                    (ViewLogs.content_id == model.id)
                    & (ViewLogs.content_type == content_type),
                )
                .group_by(model.category_id)
            )
            for category_id, count in per_category:
                views[category_id] = views.get(category_id, 0) + int(count)

        stats = [
            {
                "name": r.name,
                "bookCount": int(r.bookCount),
                "tutorialCount": int(r.tutorialCount),
                "totalViews": views.get(r.id, 0),
            }
            for r in rows
        ]
        stats.sort(key=lambda item: item["totalViews"], reverse=True)
        return stats

    async def get_dashboard_async(self) -> dict:
        try:
            current = now()
            month_ago = current - timedelta(days=30)
            week_ago = current - timedelta(days=7)

            # 1️⃣ Người dùng
            users = (
                await self.db.execute(
                    select(
                        func.count(User.id).label("total"),
                        func.count(User.id).filter(User.created_at >= month_ago).label("new"),
                        func.count(User.id).filter(User.updated_at >= week_ago).label("active"),
                    )
                )
            ).one()

            # 2️⃣ Nội dung + tương tác
            return {
                "users": {
                    "total": int(users.total or 0),
                    "newThisMonth": int(users.new or 0),
                    "activeThisWeek": int(users.active or 0),
                },
                "content": {
                    "totalBooks": await self._count(Books),
                    "totalTutorials": await self._count(Tutorials),
                    "totalCategories": await self._count(Categories),
                },
                "engagement": {
                    "totalViews": await self._count(ViewLogs),
                    "totalDownloads": await self._count(DownloadLogs),
                    "totalRatings": await self._count(Ratings),
                },
                # 3️⃣ Xếp hạng
                "topContent": await self._top_content(),
                "categoryStats": await self._category_stats(),
            }
        except Exception as e:
            logger.exception("❌ Analytics query failed")
            raise DatabaseError("Failed to fetch analytics data", details=str(e)) from e

    # ==============================
    # 📈 SERIES
    # ==============================

    async def get_user_growth_async(self, months: int = 6) -> list[dict]:
        months = months if months and months > 0 else 6
        try:
            created = await self.db.scalars(
                select(User.created_at)
                .where(User.created_at >= _month_start(months))
                .order_by(User.created_at)
            )
            buckets: "OrderedDict[str, int]" = OrderedDict()
            for created_at in created:
                key = created_at.strftime("%Y-%m")
                buckets[key] = buckets.get(key, 0) + 1

            running = 0
            series = []
            for month, new_users in buckets.items():
                running += new_users
                series.append({"month": month, "newUsers": new_users, "totalUsers": running})
            return series
        except Exception as e:
            logger.exception("❌ User growth query failed")
            raise DatabaseError("Failed to fetch user growth data", details=str(e)) from e

    async def get_recent_activity_async(self, limit: int = 10) -> list[dict]:
        limit = limit if limit and limit > 0 else 10
        since = now() - timedelta(days=30)
        try:
            books = (
                await self.db.execute(
                    select(Books.id, Books.title, Books.author, Books.created_at)
                    .where(Books.created_at >= since)
                    .order_by(Books.created_at.desc())
                    .limit(limit)
                )
            ).all()
            tutorials = (
                await self.db.execute(
                    select(Tutorials.id, Tutorials.title, Tutorials.created_at)
                    .where(Tutorials.created_at >= since)
                    .order_by(Tutorials.created_at.desc())
                    .limit(limit)
                )
            ).all()
        except Exception as e:
            logger.exception("❌ Recent activity query failed")
            raise DatabaseError("Failed to fetch recent activity data", details=str(e)) from e

        events = [
            ("book", r.id, r.title, r.author, r.created_at, "New book added") for r in books
        ] + [
            ("tutorial", r.id, r.title, "System", r.created_at, "New tutorial published")
            for r in tutorials
        ]
        events.sort(key=lambda e: e[4], reverse=True)

        return [
            {
                "id": content_id,
                "action": f"{action}: {title}",
                "time": time_ago(created_at),
                "author": author,
                "type": kind,
                "created_at": created_at,
            }
            for kind, content_id, title, author, created_at, action in events[:limit]
        ]

    async def get_daily_activity_async(self, days: int = 7) -> list[dict]:
        days = days if days and days > 0 else 7
        since = now() - timedelta(days=days)
        try:
            view_day = func.date(ViewLogs.viewed_at)
            views = (
                await self.db.execute(
                    select(
                        view_day.label("day"),
                        func.count(distinct(ViewLogs.user_id)).label("active_users"),
                        func.count().label("page_views"),
                    )
                    .where(ViewLogs.viewed_at >= since)
                    .group_by(view_day)
                )
            ).all()

            download_day = func.date(DownloadLogs.downloaded_at)
            downloads = (
                await self.db.execute(
                    select(download_day.label("day"), func.count().label("downloads"))
                    .where(DownloadLogs.downloaded_at >= since)
                    .group_by(download_day)
                )
            ).all()
        except Exception as e:
            logger.exception("❌ Daily activity query failed")
            raise DatabaseError("Failed to fetch daily activity data", details=str(e)) from e

        # sqlite trả về str, postgres trả về date
        merged: dict[str, dict] = {}
        for r in views:
            key = str(r.day)
            merged[key] = {
                "date": key,
                "activeUsers": int(r.active_users or 0),
                "pageViews": int(r.page_views or 0),
                "downloads": 0,
            }
        for r in downloads:
            key = str(r.day)
            entry = merged.setdefault(
                key, {"date": key, "activeUsers": 0, "pageViews": 0, "downloads": 0}
            )
            entry["downloads"] = int(r.downloads or 0)

        return sorted(merged.values(), key=lambda item: item["date"], reverse=True)[:days]
