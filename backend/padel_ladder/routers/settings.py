from fastapi import APIRouter, Depends

from ..dependencies import get_ladder_service, require_admin
from ..entities import LeagueSettings
from ..exceptions import ProblemDetail, http_problem
from ..schemas import SettingsOut, SettingsUpdate
from ..services.ladder import LadderService

router = APIRouter(
    prefix="/settings",
    tags=["settings"],
    responses={403: {"model": ProblemDetail}, 404: {"model": ProblemDetail}},
)


def to_settings_out(settings: LeagueSettings) -> SettingsOut:
    return SettingsOut(
        challengeRestrictionDate=settings.challenge_restriction_date,
        maxPositionDifference=settings.max_position_difference,
    )


@router.get("", response_model=SettingsOut)
async def get_settings(service: LadderService = Depends(get_ladder_service)) -> SettingsOut:
    settings = await service.get_settings()
    if settings is None:
        raise http_problem(
            status_code=404,
            detail="league settings not configured",
            code="settings_not_found",
        )
    return to_settings_out(settings)


@router.patch("", response_model=SettingsOut, dependencies=[Depends(require_admin)])
async def update_settings(
    body: SettingsUpdate,
    service: LadderService = Depends(get_ladder_service),
) -> SettingsOut:
    settings = await service.update_settings(
        challenge_restriction_date=body.challengeRestrictionDate,
        max_position_difference=body.maxPositionDifference,
    )
    return to_settings_out(settings)
