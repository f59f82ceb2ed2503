import re
from typing import Optional

from fastapi import Depends
from loguru import logger
from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    ConflictError,
    DatabaseError,
    LibraryError,
    NotFoundError,
    ValidationError,
)
from app.core.security import SecurityService
from app.db.models.database import DownloadLogs, Role, User, UserRoles, ViewLogs
from app.db.session import get_session
from app.schemas.admin.user import ROLE_NAMES, CreateUser, SetupAdmin, UpdateUser, UpdateUserStatus

ROLE_PRIORITY = ("admin", "moderator", "user")
INVALID_ROLE = "Invalid role. Must be user, moderator, or admin"


def primary_role(role_names: list[str]) -> str:
    for role in ROLE_PRIORITY:
        if role in role_names:
            return role
    return "user"


async def ensure_role(db: AsyncSession, name: str) -> Role:
    """Trả về Role theo tên, tạo mới nếu chưa có."""
    role = await db.scalar(select(Role).where(Role.name == name))
    if role is None:
        role = Role(name=name)
        db.add(role)
        await db.flush()
    return role


def username_from(display_name: str, email: str) -> str:
    local = email.split("@")[0]
    base = display_name.strip() or local
    slug = re.sub(r"[^a-z0-9]+", "_", base.lower()).strip("_")[:50]
    return slug or local


class AdminUserService:
    def __init__(self, db: AsyncSession = Depends(get_session)):
        self.db = db

    # ==============================
    # 📋 LIST / SEARCH
    # ==============================

    def _listing_query(self):
        downloads = (
            select(DownloadLogs.user_id, func.count().label("total_downloads"))
            .where(DownloadLogs.user_id.is_not(None))
            .group_by(DownloadLogs.user_id)
            .subquery()
        )
        views = (
            select(ViewLogs.user_id, func.count().label("total_views"))
            .where(ViewLogs.user_id.is_not(None))
            .group_by(ViewLogs.user_id)
            .subquery()
        )
        return (
            select(
                User,
                func.coalesce(downloads.c.total_downloads, 0).label("total_downloads"),
                func.coalesce(views.c.total_views, 0).label("total_views"),
            )
            .outerjoin(downloads, downloads.c.user_id == User.id)
            .outerjoin(views, views.c.user_id == User.id)
            .options(selectinload(User.user_roles).selectinload(UserRoles.role))
            .order_by(User.created_at.desc(), User.id.desc())
        )

    @staticmethod
    def _row_to_dict(row) -> dict:
        user: User = row.User
        return {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "created_at": user.created_at,
            "updated_at": user.updated_at,
            "role": primary_role(user.role_names),
            "is_active": bool(user.is_active),
            "last_login": user.last_login,
            "total_downloads": int(row.total_downloads or 0),
            "total_views": int(row.total_views or 0),
        }

    async def list_users_async(self):
        try:
            rows = (await self.db.execute(self._listing_query())).all()
            return {"users": [self._row_to_dict(r) for r in rows]}
        except Exception as e:
            logger.exception("❌ Failed to fetch users")
            raise DatabaseError("Failed to fetch users", details=str(e)) from e

    async def search_users_async(
        self, q: str, role: Optional[str] = None, status: Optional[str] = None
    ):
        if not q:
            raise ValidationError("Search query is required")

        term = f"%{q.lower()}%"
        stmt = self._listing_query().where(
            or_(
                func.lower(User.username).like(term),
                func.lower(User.email).like(term),
                func.lower(func.coalesce(User.first_name, "")).like(term),
                func.lower(func.coalesce(User.last_name, "")).like(term),
            )
        )
        if role and role != "all":
            stmt = stmt.where(
                User.user_roles.any(UserRoles.role.has(Role.name == role))
            )
        if status and status != "all":
            stmt = stmt.where(User.is_active.is_(status == "active"))

        try:
            rows = (await self.db.execute(stmt)).all()
            return {"users": [self._row_to_dict(r) for r in rows]}
        except Exception as e:
            logger.exception("❌ Failed to search users")
            raise DatabaseError("Failed to search users", details=str(e)) from e

    async def get_stats_async(self):
        try:
            totals = (
                await self.db.execute(
                    select(
                        func.count(User.id).label("total_users"),
                        func.coalesce(func.sum(case((User.is_active.is_(True), 1), else_=0)), 0).label("active_users"),
                        func.coalesce(func.sum(case((User.is_active.is_(False), 1), else_=0)), 0).label("inactive_users"),
                    )
                )
            ).one()
            role_rows = (
                await self.db.execute(
                    select(Role.name, func.count(UserRoles.user_id))
                    .join(UserRoles, UserRoles.role_id == Role.id)
                    .group_by(Role.name)
                )
            ).all()
            return {
                "stats": {
                    "total_users": int(totals.total_users or 0),
                    "active_users": int(totals.active_users or 0),
                    "inactive_users": int(totals.inactive_users or 0),
                    "users_by_role": {name: int(count) for name, count in role_rows},
                }
            }
        except Exception as e:
            logger.exception("❌ Failed to fetch user statistics")
            raise DatabaseError("Failed to fetch user statistics", details=str(e)) from e

    # ==============================
    # ➕ CREATE / ✏️ UPDATE / 🗑️ DELETE
    # ==============================

    async def _ensure_unique(self, email: str, username: str, exclude_id: int | None = None):
        stmt = select(User.id).where(
            or_(func.lower(User.email) == email.lower(), User.username == username)
        )
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if await self.db.scalar(stmt):
            raise ConflictError("User with this email or username already exists")

    async def create_user_async(self, schema: CreateUser):
        if not (schema.username and schema.email and schema.password and schema.role):
            raise ValidationError("username, email, password, and role are required")
        if schema.role not in ROLE_NAMES:
            raise ValidationError(INVALID_ROLE)

        try:
            await self._ensure_unique(schema.email, schema.username)

            user = User(
                username=schema.username,
                email=schema.email,
                password_hash=await SecurityService.hash_password(schema.password),
                first_name=schema.first_name,
                last_name=schema.last_name,
                is_active=True,
            )
            self.db.add(user)
            await self.db.flush()

            role = await ensure_role(self.db, schema.role)
            self.db.add(UserRoles(user_id=user.id, role_id=role.id))
            await self.db.commit()
            await self.db.refresh(user)

            logger.info(f"👤 Created user #{user.id} {user.email} as {schema.role}")
            return {
                "user": {
                    "id": user.id,
                    "username": user.username,
                    "email": user.email,
                    "first_name": user.first_name,
                    "last_name": user.last_name,
                    "role": schema.role,
                    "is_active": True,
                    "created_at": user.created_at,
                    "last_login": None,
                    "total_downloads": 0,
                    "total_views": 0,
                }
            }
        except LibraryError:
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("User with this email or username already exists") from e
        except Exception as e:
            await self.db.rollback()
            logger.exception("❌ Failed to create user")
            raise DatabaseError("Failed to create user", details=str(e)) from e

    async def _get_user(self, user_id: int) -> User:
        user = await self.db.scalar(
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.user_roles), selectinload(User.ratings))
        )
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_user_async(self, user_id: int, schema: UpdateUser):
        changes = schema.model_dump(exclude_unset=True, exclude_none=True)
        role = changes.pop("role", None)
        if role is not None and role not in ROLE_NAMES:
            raise ValidationError(INVALID_ROLE)
        if not changes and not role:
            raise ValidationError("No fields to update")

        try:
            user = await self._get_user(user_id)

            if "email" in changes or "username" in changes:
                await self._ensure_unique(
                    changes.get("email", user.email),
                    changes.get("username", user.username),
                    exclude_id=user_id,
                )

            for field, value in changes.items():
                setattr(user, field, value)

            # Thay toàn bộ role hiện có bằng role mới
            if role:
                new_role = await ensure_role(self.db, role)
                user.user_roles.clear()
                await self.db.flush()
                self.db.add(UserRoles(user_id=user.id, role_id=new_role.id))

            await self.db.commit()
            return {"message": "User updated successfully"}
        except LibraryError:
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("User with this email or username already exists") from e
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to update user {user_id}")
            raise DatabaseError("Failed to update user", details=str(e)) from e

    async def delete_user_async(self, user_id: int):
        try:
            user = await self._get_user(user_id)
            await self.db.delete(user)
            await self.db.commit()
            return {"message": "User deleted successfully"}
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to delete user {user_id}")
            raise DatabaseError("Failed to delete user", details=str(e)) from e

    async def update_status_async(self, user_id: int, schema: UpdateUserStatus):
        if not isinstance(schema.is_active, bool):
            raise ValidationError("User ID and is_active boolean are required")
        is_active = schema.is_active

        try:
            user = await self._get_user(user_id)
            user.is_active = is_active
            await self.db.commit()
            return {"message": "User status updated successfully"}
        except LibraryError:
            raise
        except Exception as e:
            await self.db.rollback()
            logger.exception(f"❌ Failed to update status for user {user_id}")
            raise DatabaseError("Failed to update user status", details=str(e)) from e

    # ==============================
    # 🔑 ROLES / SETUP
    # ==============================

    async def get_roles_by_email_async(self, email: Optional[str]):
        if not email:
            raise ValidationError("email query param is required")
        rows = await self.db.scalars(
            select(Role.name)
            .join(UserRoles, UserRoles.role_id == Role.id)
            .join(User, User.id == UserRoles.user_id)
            .where(func.lower(User.email) == email.lower())
        )
        roles = list(rows)
        if not roles:
            return {"role": None, "roles": []}
        return {"role": primary_role(roles), "roles": roles}

    async def setup_admin_async(self, schema: SetupAdmin):
        if not (schema.email and schema.password and (schema.displayName or "").strip()):
            raise ValidationError("email, password, and displayName are required")

        try:
            existing = await self.db.scalar(
                select(User.id).where(func.lower(User.email) == schema.email.lower())
            )
            if existing:
                raise ConflictError("User with this email already exists")

            username = username_from(schema.displayName, schema.email)
            user = User(
                username=username,
                email=schema.email,
                password_hash=await SecurityService.hash_password(schema.password),
                first_name=schema.displayName,
                is_active=True,
            )
            self.db.add(user)
            await self.db.flush()

            admin_role = await ensure_role(self.db, "admin")
            self.db.add(UserRoles(user_id=user.id, role_id=admin_role.id))
            await self.db.commit()

            logger.info(f"🛡️ Bootstrapped admin {schema.email}")
            return {"id": user.id, "email": user.email, "username": username, "role": "admin"}
        except LibraryError:
            raise
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("User with this email already exists") from e
        except Exception as e:
            await self.db.rollback()
            logger.exception("❌ Admin setup failed")
            raise DatabaseError("Failed to create admin user", details=str(e)) from e
