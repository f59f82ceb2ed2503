from fastapi import Depends
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError, LibraryError, NotFoundError, ValidationError
from app.db.models.database import Categories, Tutorials
from app.db.session import get_session
from app.schemas.admin.tutorial import CreateTutorial, UpdateTutorial
from app.services.user.tutorial import row_to_dict, serialize_tutorial, tutorial_query


class AdminTutorialService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _category_name(self, category_id: int) -> str:
        name = await self.db.scalar(
            select(Categories.name).where(Categories.id == category_id)
        )
        if name is None:
            raise ValidationError("Category not found")
        return name

    async def list_tutorials_async(self):
        try:
            stmt = tutorial_query(with_user_vote=False).order_by(
                Tutorials.created_at.desc(), Tutorials.id.desc()
            )
            rows = (await self.db.execute(stmt)).all()
            return [row_to_dict(row) for row in rows]
        except Exception as e:
            logger.exception("❌ Failed to fetch tutorials (admin)")
            raise DatabaseError("Failed to fetch tutorials", details=str(e)) from e

    async def create_tutorial_async(self, schema: CreateTutorial):
        try:
            category_name = await self._category_name(schema.category_id)
            tutorial = Tutorials(**schema.model_dump())
            self.db.add(tutorial)
            await self.db.commit()
            await self.db.refresh(tutorial)
            logger.info(f"🎬 Created tutorial #{tutorial.id} '{tutorial.title}'")
            return serialize_tutorial(tutorial, category_name=category_name)
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception("❌ Failed to create tutorial")
            raise DatabaseError("Failed to create tutorial", details=str(e)) from e

    async def update_tutorial_async(self, tutorial_id: int, schema: UpdateTutorial):
        changes = schema.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        for field in ("title", "category_id", "difficulty", "content_type"):
            if field in changes and changes[field] in (None, ""):
                raise ValidationError(f"{field} cannot be empty")

        try:
            tutorial = await self.db.scalar(
                select(Tutorials).where(Tutorials.id == tutorial_id)
            )
            if not tutorial:
                raise NotFoundError("Tutorial not found")

            if "category_id" in changes:
                await self._category_name(changes["category_id"])

            for field, value in changes.items():
                setattr(tutorial, field, value)
            await self.db.commit()
            await self.db.refresh(tutorial)

            category_name = await self._category_name(tutorial.category_id)
            return serialize_tutorial(tutorial, category_name=category_name)
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to update tutorial {tutorial_id}")
            raise DatabaseError("Failed to update tutorial", details=str(e)) from e

    async def delete_tutorial_async(self, tutorial_id: int):
        try:
            tutorial = await self.db.scalar(
                select(Tutorials).where(Tutorials.id == tutorial_id)
            )
            if not tutorial:
                raise NotFoundError("Tutorial not found")
            await self.db.delete(tutorial)
            await self.db.commit()
            return {"message": "Tutorial deleted successfully"}
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to delete tutorial {tutorial_id}")
            raise DatabaseError("Failed to delete tutorial", details=str(e)) from e

    async def get_tutorial_async(self, tutorial_id: int):
        row = (
            await self.db.execute(
                tutorial_query(with_user_vote=False).where(Tutorials.id == tutorial_id)
            )
        ).first()
        if row is None:
            raise NotFoundError("Tutorial not found")
        return row_to_dict(row)
