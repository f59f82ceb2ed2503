from typing import Optional

from fastapi import APIRouter, Depends

from app.services.admin.user import AdminUserService

router = APIRouter(prefix="/users", tags=["ROLES"])


@router.get("/role")
async def get_user_role(
    email: Optional[str] = None,
    service: AdminUserService = Depends(AdminUserService),
):
    return await service.get_roles_by_email_async(email)
