from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.deps import AuthorizationService
from app.schemas.user.rating import CastVote
from app.services.user.rating import RatingService

router = APIRouter(prefix="/ratings", tags=["RATINGS"])


@router.post("")
async def cast_vote(
    schema: CastVote,
    service: RatingService = Depends(RatingService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    user = await authorization.get_current_user()
    outcome = await service.cast_vote_async(user.id, schema)
    status_code = 201 if outcome.state == "created" else 200
    return JSONResponse(status_code=status_code, content=outcome.to_dict())
