from fastapi import APIRouter, Depends

from app.core.deps import AuthorizationService
from app.schemas.admin.category import CreateCategory, UpdateCategory
from app.services.admin.category import AdminCategoryService

router = APIRouter(prefix="/admin/categories", tags=["ADMIN CATEGORIES"])


@router.post("", status_code=201)
async def create_category(
    schema: CreateCategory,
    service: AdminCategoryService = Depends(AdminCategoryService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.create_category_async(schema)


@router.put("/{category_id}")
async def update_category(
    category_id: int,
    schema: UpdateCategory,
    service: AdminCategoryService = Depends(AdminCategoryService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.update_category_async(category_id, schema)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    service: AdminCategoryService = Depends(AdminCategoryService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.delete_category_async(category_id)
