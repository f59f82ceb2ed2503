# app/core/deps.py
from typing import List, Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.context import header_email
from app.core.exceptions import DatabaseError, ForbiddenError, UnauthorizedError
from app.db.models.database import User, UserRoles
from app.db.session import get_session


class AuthorizationService:
    """Identity comes from the ``x-user-email`` header (trusted, unsigned)."""

    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    # ==============================
    # 🧩 CORE AUTH CHECKS
    # ==============================

    async def find_user_by_email(self, email: str) -> Optional[User]:
        stmt = (
            select(User)
            .where(func.lower(User.email) == email.lower())
            .options(selectinload(User.user_roles).selectinload(UserRoles.role))
        )
        return await self.db.scalar(stmt)

    async def get_current_user(self) -> User:
        email = header_email()
        if not email:
            raise UnauthorizedError("Authentication required. Please log in.")

        try:
            user = await self.find_user_by_email(email)
        except Exception as e:
            logger.exception(f"❌ User lookup failed for {email}")
            raise DatabaseError(
                "Failed to verify user authentication", details=str(e)
            ) from e

        if not user:
            raise UnauthorizedError("Invalid user. Please log in again.")
        return user

    async def get_current_user_if_any(self) -> Optional[User]:
        email = header_email()
        if not email:
            return None
        try:
            return await self.find_user_by_email(email)
        except Exception as e:
            logger.warning(f"⚠️ Optional user lookup failed for {email}: {e}")
            return None

    # ==============================
    # 🧩 ROLE-BASED ACCESS CONTROL
    # ==============================

    async def require_role(self, required_roles: Optional[List[str]] = None) -> User:
        if not header_email():
            raise UnauthorizedError("Missing x-user-email header")

        current_user = await self.get_current_user_if_any()
        if current_user is None:
            raise ForbiddenError("Admin privileges required")
        if not required_roles:
            return current_user

        if not any(role in current_user.role_names for role in required_roles):
            raise ForbiddenError("Admin privileges required")

        return current_user
