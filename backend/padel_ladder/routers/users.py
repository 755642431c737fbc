from fastapi import APIRouter, Depends, status

from ..dependencies import get_ladder_service
from ..entities import User
from ..exceptions import ProblemDetail
from ..schemas import JoinRequestOut, UserCreate, UserOut
from ..services.ladder import LadderService
from .join_requests import to_join_request_out

router = APIRouter(
    prefix="/users",
    tags=["users"],
    responses={404: {"model": ProblemDetail}},
)


def to_user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        gender=user.gender,
        playtomicLevel=user.playtomic_level,
        teamId=user.team_id,
        createdAt=user.created_at,
    )


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: UserCreate,
    service: LadderService = Depends(get_ladder_service),
) -> UserOut:
    user = await service.register_user(
        name=body.name,
        email=body.email,
        phone=body.phone,
        gender=body.gender,
        playtomic_level=body.playtomicLevel,
    )
    return to_user_out(user)


@router.get("", response_model=list[UserOut])
async def list_users(service: LadderService = Depends(get_ladder_service)) -> list[UserOut]:
    return [to_user_out(u) for u in await service.list_users()]


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: str, service: LadderService = Depends(get_ladder_service)
) -> UserOut:
    return to_user_out(await service.get_user(user_id))


@router.get("/{user_id}/join-requests", response_model=list[JoinRequestOut])
async def list_user_join_requests(
    user_id: str, service: LadderService = Depends(get_ladder_service)
) -> list[JoinRequestOut]:
    await service.get_user(user_id)
    return [to_join_request_out(r) for r in await service.get_user_join_requests(user_id)]
