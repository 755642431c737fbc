from fastapi import APIRouter, Depends, status

from ..dependencies import get_ladder_service
from ..entities import JoinRequest
from ..exceptions import ProblemDetail
from ..schemas import JoinRequestCreate, JoinRequestOut, RespondRequest
from ..services.ladder import LadderService

router = APIRouter(
    prefix="/join-requests",
    tags=["join-requests"],
    responses={404: {"model": ProblemDetail}, 409: {"model": ProblemDetail}},
)


def to_join_request_out(request: JoinRequest) -> JoinRequestOut:
    return JoinRequestOut(
        id=request.id,
        userId=request.user_id,
        teamId=request.team_id,
        status=request.status,
        createdAt=request.created_at,
    )


@router.post("", response_model=JoinRequestOut, status_code=status.HTTP_201_CREATED)
async def request_to_join(
    body: JoinRequestCreate,
    service: LadderService = Depends(get_ladder_service),
) -> JoinRequestOut:
    request = await service.request_to_join(body.userId, body.teamId)
    return to_join_request_out(request)


@router.post("/{request_id}/respond", response_model=JoinRequestOut)
async def respond_to_join_request(
    request_id: str,
    body: RespondRequest,
    service: LadderService = Depends(get_ladder_service),
) -> JoinRequestOut:
    request = await service.respond_to_join_request(request_id, body.accept)
    return to_join_request_out(request)
