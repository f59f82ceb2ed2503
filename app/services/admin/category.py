from fastapi import Depends
from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictError,
    DatabaseError,
    LibraryError,
    NotFoundError,
    ValidationError,
)
from app.db.models.database import Books, Categories, Tutorials
from app.db.session import get_session
from app.libs.formats.text import generate_slug
from app.schemas.admin.category import CreateCategory, UpdateCategory

DEFAULT_CATEGORIES = [
    ("Web Development", "Learn web development technologies"),
    ("Database", "Database design and management"),
    ("Cybersecurity", "Security practices and ethical hacking"),
    ("Programming", "General programming concepts"),
    ("Data Science", "Data analysis and machine learning"),
    ("Mobile Development", "Mobile app development"),
]

DUPLICATE_MESSAGE = "Category with this name or slug already exists"


def _to_dict(category: Categories) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "slug": category.slug,
    }


async def seed_default_categories(db: AsyncSession) -> int:
    """Insert the starter categories when the table is empty."""
    existing = await db.scalar(select(func.count()).select_from(Categories))
    if existing:
        return 0
    for name, description in DEFAULT_CATEGORIES:
        db.add(Categories(name=name, slug=generate_slug(name), description=description))
    await db.commit()
    logger.info(f"🌱 Seeded {len(DEFAULT_CATEGORIES)} default categories")
    return len(DEFAULT_CATEGORIES)


class AdminCategoryService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _ensure_unique(self, name: str, slug: str, exclude_id: int | None = None):
        stmt = select(Categories.id).where(
            or_(Categories.name == name, Categories.slug == slug)
        )
        if exclude_id is not None:
            stmt = stmt.where(Categories.id != exclude_id)
        if await self.db.scalar(stmt):
            raise ConflictError(DUPLICATE_MESSAGE)

    async def create_category_async(self, schema: CreateCategory):
        name = schema.name.strip()
        slug = (schema.slug or "").strip() or generate_slug(name)
        if not name or not slug:
            raise ValidationError("Category name is required")

        try:
            # 1️⃣ Kiểm tra trùng
            await self._ensure_unique(name, slug)

            # 2️⃣ Tạo mới
            category = Categories(name=name, slug=slug, description=schema.description)
            self.db.add(category)
            await self.db.commit()
            await self.db.refresh(category)
            return _to_dict(category)

        except LibraryError:
            raise
        except IntegrityError as e:
            # race giữa check và insert → ràng buộc unique bắt được
            await self.db.rollback()
            raise ConflictError(DUPLICATE_MESSAGE) from e
        except Exception as e:
            await self.db.rollback()
            logger.exception("❌ Failed to create category")
            raise DatabaseError("Failed to create category", details=str(e)) from e

    async def update_category_async(self, category_id: int, schema: UpdateCategory):
        name = schema.name.strip()
        slug = (schema.slug or "").strip() or generate_slug(name)
        if not name or not slug:
            raise ValidationError("Category name is required")

        try:
            category = await self.db.scalar(
                select(Categories).where(Categories.id == category_id)
            )
            if not category:
                raise NotFoundError("Category not found")

            await self._ensure_unique(name, slug, exclude_id=category_id)

            category.name = name
            category.slug = slug
            category.description = schema.description
            await self.db.commit()
            await self.db.refresh(category)
            return _to_dict(category)

        except LibraryError:
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(DUPLICATE_MESSAGE) from e
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to update category {category_id}")
            raise DatabaseError("Failed to update category", details=str(e)) from e

    async def delete_category_async(self, category_id: int):
        try:
            category = await self.db.scalar(
                select(Categories).where(Categories.id == category_id)
            )
            if not category:
                raise NotFoundError("Category not found")

            # 1️⃣ Không xoá khi còn sách/tutorial tham chiếu
            book_count = await self.db.scalar(
                select(func.count(Books.id)).where(Books.category_id == category_id)
            )
            tutorial_count = await self.db.scalar(
                select(func.count(Tutorials.id)).where(Tutorials.category_id == category_id)
            )
            if (book_count or 0) + (tutorial_count or 0) > 0:
                raise ValidationError(
                    "Cannot delete category that is being used by books or tutorials"
                )

            # 2️⃣ Xoá
            await self.db.delete(category)
            await self.db.commit()
            return {"message": "Category deleted successfully"}

        except LibraryError:
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise ValidationError(
                "Cannot delete category that is being used by books or tutorials"
            ) from e
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to delete category {category_id}")
            raise DatabaseError("Failed to delete category", details=str(e)) from e
