from fastapi import APIRouter, Depends

from app.core.deps import AuthorizationService
from app.services.admin.analytics import AnalyticsService

router = APIRouter(prefix="/admin/analytics", tags=["ADMIN ANALYTICS"])


@router.get("")
async def get_dashboard(
    service: AnalyticsService = Depends(AnalyticsService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.get_dashboard_async()


@router.get("/user-growth")
async def get_user_growth(
    months: int = 6,
    service: AnalyticsService = Depends(AnalyticsService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.get_user_growth_async(months)


@router.get("/recent-activity")
async def get_recent_activity(
    limit: int = 10,
    service: AnalyticsService = Depends(AnalyticsService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.get_recent_activity_async(limit)


@router.get("/daily-activity")
async def get_daily_activity(
    days: int = 7,
    service: AnalyticsService = Depends(AnalyticsService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.get_daily_activity_async(days)
