from typing import Any, Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import Select, func, null, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.context import header_email
from app.core.exceptions import DatabaseError, NotFoundError
from app.db.models.database import Categories, Ratings, Tutorials, User, ViewLogs
from app.db.session import get_session
from app.services.shares.download_log import record_view


def serialize_tutorial(tutorial: Tutorials, **extra: Any) -> dict:
    data = {c.key: getattr(tutorial, c.key) for c in Tutorials.__table__.columns}
    data.update(extra)
    return data


def tutorial_query(viewer_id: Optional[int] = None, with_user_vote: bool = True) -> Select:
    """Tutorials joined with category name, view count and vote tallies."""
    views = (
        select(ViewLogs.content_id, func.count().label("view_count"))
        .where(ViewLogs.content_type == "tutorial")
        .group_by(ViewLogs.content_id)
        .subquery()
    )
    up = (
        select(Ratings.content_id, func.count().label("up_votes"))
        .where(Ratings.content_type == "tutorial", Ratings.vote == 1)
        .group_by(Ratings.content_id)
        .subquery()
    )
    down = (
        select(Ratings.content_id, func.count().label("down_votes"))
        .where(Ratings.content_type == "tutorial", Ratings.vote == -1)
        .group_by(Ratings.content_id)
        .subquery()
    )

    stmt = (
        select(
            Tutorials,
            Categories.name.label("category_name"),
            func.coalesce(views.c.view_count, 0).label("view_count"),
            func.coalesce(up.c.up_votes, 0).label("up_votes"),
            func.coalesce(down.c.down_votes, 0).label("down_votes"),
        )
        .outerjoin(Categories, Tutorials.category_id == Categories.id)
        .outerjoin(views, views.c.content_id == Tutorials.id)
        .outerjoin(up, up.c.content_id == Tutorials.id)
        .outerjoin(down, down.c.content_id == Tutorials.id)
    )

    if not with_user_vote:
        return stmt
    if viewer_id is None:
        return stmt.add_columns(null().label("user_vote"))

    mine = aliased(Ratings)
    return stmt.add_columns(mine.vote.label("user_vote")).outerjoin(
        mine,
        (mine.content_id == Tutorials.id)
        & (mine.content_type == "tutorial")
        & (mine.user_id == viewer_id),
    )


def row_to_dict(row) -> dict:
    extra = {
        "category_name": row.category_name,
        "view_count": int(row.view_count or 0),
        "up_votes": int(row.up_votes or 0),
        "down_votes": int(row.down_votes or 0),
    }
    if "user_vote" in row._fields:
        extra["user_vote"] = row.user_vote
    return serialize_tutorial(row.Tutorials, **extra)


class TutorialService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _viewer_id(self) -> Optional[int]:
        email = header_email()
        if not email:
            return None
        return await self.db.scalar(
            select(User.id).where(func.lower(User.email) == email.lower())
        )

    async def list_tutorials_async(self, category_id: Optional[int] = None):
        try:
            stmt = tutorial_query(await self._viewer_id())
            if category_id is not None:
                stmt = stmt.where(Tutorials.category_id == category_id)
            stmt = stmt.order_by(Tutorials.created_at.desc(), Tutorials.id.desc())
            rows = (await self.db.execute(stmt)).all()
            return [row_to_dict(row) for row in rows]
        except Exception as e:
            logger.exception("❌ Failed to fetch tutorials")
            raise DatabaseError("Failed to fetch tutorials", details=str(e)) from e

    async def get_tutorial_async(self, tutorial_id: int):
        # 1️⃣ Ghi lượt xem (best-effort)
        await record_view(self.db, tutorial_id, "tutorial")

        # 2️⃣ Lấy chi tiết
        try:
            stmt = tutorial_query(await self._viewer_id()).where(Tutorials.id == tutorial_id)
            row = (await self.db.execute(stmt)).first()
        except Exception as e:
            logger.exception(f"❌ Failed to fetch tutorial {tutorial_id}")
            raise DatabaseError("Failed to fetch tutorial", details=str(e)) from e
        if row is None:
            raise NotFoundError("Tutorial not found")
        return row_to_dict(row)

    async def record_view_async(self, tutorial_id: int):
        await record_view(self.db, tutorial_id, "tutorial")
        try:
            count = await self.db.scalar(
                select(func.count(ViewLogs.id)).where(
                    ViewLogs.content_type == "tutorial",
                    ViewLogs.content_id == tutorial_id,
                )
            )
        except Exception as e:
            logger.warning(f"⚠️ Failed to count views for tutorial {tutorial_id}: {e}")
            return {"success": True}
        return {"success": True, "view_count": int(count or 0)}
