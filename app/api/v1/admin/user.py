from typing import Optional

from fastapi import APIRouter, Depends

from app.core.deps import AuthorizationService
from app.schemas.admin.user import CreateUser, SetupAdmin, UpdateUser, UpdateUserStatus
from app.services.admin.user import AdminUserService

router = APIRouter(prefix="/admin", tags=["ADMIN USERS"])


@router.post("/setup", status_code=201)
async def setup_admin(
    schema: SetupAdmin,
    service: AdminUserService = Depends(AdminUserService),
):
    return await service.setup_admin_async(schema)


@router.get("/users")
async def list_users(
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.list_users_async()


# /stats và /search phải khai báo trước /{user_id}
@router.get("/users/stats")
async def get_user_stats(
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.get_stats_async()


@router.get("/users/search")
async def search_users(
    q: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.search_users_async(q, role, status)


@router.post("/users", status_code=201)
async def create_user(
    schema: CreateUser,
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.create_user_async(schema)


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    schema: UpdateUser,
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.update_user_async(user_id, schema)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.delete_user_async(user_id)


@router.patch("/users/{user_id}/status")
async def update_user_status(
    user_id: int,
    schema: UpdateUserStatus,
    service: AdminUserService = Depends(AdminUserService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.update_status_async(user_id, schema)
