from typing import Optional

from fastapi import APIRouter, Depends

from app.services.user.tutorial import TutorialService

router = APIRouter(prefix="/tutorials", tags=["TUTORIALS"])


@router.get("")
async def list_tutorials(
    category_id: Optional[int] = None,
    service: TutorialService = Depends(TutorialService),
):
    return await service.list_tutorials_async(category_id)


@router.get("/{tutorial_id}")
async def get_tutorial(tutorial_id: int, service: TutorialService = Depends(TutorialService)):
    return await service.get_tutorial_async(tutorial_id)


@router.post("/{tutorial_id}/views")
async def record_tutorial_view(
    tutorial_id: int, service: TutorialService = Depends(TutorialService)
):
    return await service.record_view_async(tutorial_id)
