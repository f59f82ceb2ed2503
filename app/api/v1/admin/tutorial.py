from fastapi import APIRouter, Depends

from app.core.deps import AuthorizationService
from app.schemas.admin.tutorial import CreateTutorial, UpdateTutorial
from app.services.admin.tutorial import AdminTutorialService

router = APIRouter(prefix="/admin/tutorials", tags=["ADMIN TUTORIALS"])


@router.get("")
async def list_tutorials(
    service: AdminTutorialService = Depends(AdminTutorialService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.list_tutorials_async()


@router.get("/{tutorial_id}")
async def get_tutorial(
    tutorial_id: int,
    service: AdminTutorialService = Depends(AdminTutorialService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.get_tutorial_async(tutorial_id)


@router.post("", status_code=201)
async def create_tutorial(
    schema: CreateTutorial,
    service: AdminTutorialService = Depends(AdminTutorialService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.create_tutorial_async(schema)


@router.put("/{tutorial_id}")
async def update_tutorial(
    tutorial_id: int,
    schema: UpdateTutorial,
    service: AdminTutorialService = Depends(AdminTutorialService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.update_tutorial_async(tutorial_id, schema)


@router.delete("/{tutorial_id}")
async def delete_tutorial(
    tutorial_id: int,
    service: AdminTutorialService = Depends(AdminTutorialService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.delete_tutorial_async(tutorial_id)
