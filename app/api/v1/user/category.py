from fastapi import APIRouter, Depends

from app.services.user.category import CategoryService

router = APIRouter(prefix="/categories", tags=["CATEGORIES"])


@router.get("")
async def get_categories(service: CategoryService = Depends(CategoryService)):
    return await service.get_categories_async()
