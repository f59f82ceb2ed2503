from typing import Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import client_ip, header_email
from app.db.models.database import DownloadLogs, User, ViewLogs


async def _user_id_for(db: AsyncSession, email: Optional[str]) -> Optional[int]:
    if not email:
        return None
    return await db.scalar(select(User.id).where(func.lower(User.email) == email.lower()))


async def record_download(
    db: AsyncSession, content_id: int, content_type: str = "book"
) -> bool:
    """Append one download row. Never raises; returns False when the insert failed."""
    try:
        user_id = await _user_id_for(db, header_email())
        db.add(
            DownloadLogs(
                user_id=user_id,
                content_id=content_id,
                content_type=content_type,
                ip_address=client_ip(),
            )
        )
        await db.commit()
        return True
    except Exception as e:
        await db.rollback()
        logger.warning(f"⚠️ Failed to log download of {content_type} {content_id}: {e}")
        return False


async def record_view(
    db: AsyncSession, content_id: int, content_type: str = "tutorial"
) -> bool:
    try:
        user_id = await _user_id_for(db, header_email())
        db.add(
            ViewLogs(
                user_id=user_id,
                content_id=content_id,
                content_type=content_type,
                ip_address=client_ip(),
            )
        )
        await db.commit()
        return True
    except Exception as e:
        await db.rollback()
        logger.warning(f"⚠️ Failed to log view of {content_type} {content_id}: {e}")
        return False
