from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..dependencies import get_ladder_service
from ..entities import Team
from ..exceptions import ProblemDetail
from ..schemas import (
    ChallengeOut,
    EligibilityOut,
    JoinRequestOut,
    LeagueName,
    TeamCreate,
    TeamOut,
)
from ..services.eligibility import ineligibility_reason
from ..services.ladder import LadderService
from .challenges import to_challenge_out
from .join_requests import to_join_request_out

router = APIRouter(
    prefix="/teams",
    tags=["teams"],
    responses={404: {"model": ProblemDetail}},
)


def to_team_out(team: Team) -> TeamOut:
    return TeamOut(
        id=team.id,
        name=team.name,
        creatorId=team.creator_id,
        league=team.league,
        position=team.position,
        previousPosition=team.previous_position,
        movement=team.movement,
        memberIds=list(team.member_ids),
        createdAt=team.created_at,
    )


@router.post("", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
async def create_team(
    body: TeamCreate,
    service: LadderService = Depends(get_ladder_service),
) -> TeamOut:
    team = await service.create_team(body.name, body.creatorId, body.league)
    return to_team_out(team)


@router.get("", response_model=list[TeamOut])
async def list_teams(
    league: LeagueName,
    available: bool = Query(False, description="Only teams with open roster spots"),
    service: LadderService = Depends(get_ladder_service),
) -> list[TeamOut]:
    if available:
        teams = await service.get_available_teams(league)
    else:
        teams = await service.standings(league)
    return [to_team_out(t) for t in teams]


@router.get("/{team_id}", response_model=TeamOut)
async def get_team(
    team_id: str, service: LadderService = Depends(get_ladder_service)
) -> TeamOut:
    return to_team_out(await service.get_team(team_id))


@router.get("/{team_id}/join-requests", response_model=list[JoinRequestOut])
async def list_team_join_requests(
    team_id: str, service: LadderService = Depends(get_ladder_service)
) -> list[JoinRequestOut]:
    await service.get_team(team_id)
    return [to_join_request_out(r) for r in await service.get_team_join_requests(team_id)]


@router.get("/{team_id}/challenges", response_model=list[ChallengeOut])
async def list_team_challenges(
    team_id: str, service: LadderService = Depends(get_ladder_service)
) -> list[ChallengeOut]:
    await service.get_team(team_id)
    return [to_challenge_out(c) for c in await service.get_team_challenges(team_id)]


@router.get("/{team_id}/challengeable", response_model=list[TeamOut])
async def list_challengeable_teams(
    team_id: str, service: LadderService = Depends(get_ladder_service)
) -> list[TeamOut]:
    return [to_team_out(t) for t in await service.get_challengeable_teams(team_id)]


@router.get("/{team_id}/can-challenge/{other_id}", response_model=EligibilityOut)
async def can_challenge(
    team_id: str,
    other_id: str,
    service: LadderService = Depends(get_ladder_service),
) -> EligibilityOut:
    challenger = await service.get_team(team_id)
    challenged = await service.get_team(other_id)
    settings = await service.get_settings()
    reason: Optional[str] = ineligibility_reason(
        challenger, challenged, settings, service.clock()
    )
    return EligibilityOut(canChallenge=reason is None, reason=reason)
