"""Tạo bảng + seed danh mục mặc định.

Chạy: ``python -m app.db.models.init_db``
"""
import asyncio

from loguru import logger

from app.db.models.database import Base
from app.db.session import AsyncSessionLocal, engine
from app.services.admin.category import seed_default_categories
from app.services.admin.user import ensure_role


async def init_db() -> None:
    # 1) Schema
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Tables created")

    # 2) Roles + categories
    async with AsyncSessionLocal() as db:
        for name in ("user", "moderator", "admin"):
            await ensure_role(db, name)
        await db.commit()
        await seed_default_categories(db)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
