from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DatabaseError, LibraryError, ValidationError
from app.db.models.database import Ratings
from app.db.session import get_session
from app.schemas.user.rating import CastVote

CONTENT_TYPES = ("book", "tutorial")
VOTE_VALUES = {"up": 1, "down": -1}

VoteState = Literal["created", "updated", "removed"]

MESSAGES = {
    "created": "Vote cast successfully",
    "updated": "Vote updated successfully",
    "removed": "Vote removed successfully",
}


@dataclass
class VoteOutcome:
    state: VoteState
    vote: Optional[int]

    @property
    def message(self) -> str:
        return MESSAGES[self.state]

    def to_dict(self) -> dict:
        return {"message": self.message, "state": self.state, "vote": self.vote}


def parse_vote(schema: CastVote) -> tuple[str, int, int]:
    if not schema.content_type or not schema.content_id or not schema.vote:
        raise ValidationError("content_type, content_id, and vote are required")
    if schema.content_type not in CONTENT_TYPES:
        raise ValidationError("Invalid content_type. Must be 'book' or 'tutorial'.")
    if schema.vote not in VOTE_VALUES:
        raise ValidationError("Invalid vote. Must be 'up' or 'down'.")
    try:
        content_id = int(schema.content_id)
    except (TypeError, ValueError):
        raise ValidationError("content_id must be a number")
    return schema.content_type, content_id, VOTE_VALUES[schema.vote]


class RatingService:
    """Một phiếu / (user, content): cùng chiều → gỡ, ngược chiều → đổi, chưa có → tạo."""

    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    async def _decide(
        self, user_id: int, content_type: str, content_id: int, value: int
    ) -> VoteOutcome:
        existing = await self.db.scalar(
            select(Ratings).where(
                Ratings.user_id == user_id,
                Ratings.content_type == content_type,
                Ratings.content_id == content_id,
            )
        )
        if existing is None:
            self.db.add(
                Ratings(
                    user_id=user_id,
                    content_type=content_type,
                    content_id=content_id,
                    vote=value,
                )
            )
            await self.db.commit()
            return VoteOutcome("created", value)

        if existing.vote == value:
            await self.db.delete(existing)
            await self.db.commit()
            return VoteOutcome("removed", None)

        existing.vote = value
        await self.db.commit()
        return VoteOutcome("updated", value)

    async def cast_vote_async(self, user_id: int, schema: CastVote) -> VoteOutcome:
        content_type, content_id, value = parse_vote(schema)

        try:
            try:
                return await self._decide(user_id, content_type, content_id, value)
            except IntegrityError:
                # một request song song đã insert trước → chạy lại trên hàng đã có
                await self.db.rollback()
                logger.info(
                    f"🔁 Vote race on {content_type} {content_id} for user {user_id}; replaying"
                )
                return await self._decide(user_id, content_type, content_id, value)
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception("❌ Failed to process vote")
            raise DatabaseError(
                "An unexpected error occurred during voting", details=str(e)
            ) from e
