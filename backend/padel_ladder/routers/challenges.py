from fastapi import APIRouter, Depends, status

from ..dependencies import get_ladder_service
from ..entities import Challenge
from ..exceptions import ProblemDetail
from ..schemas import (
    ChallengeCreate,
    ChallengeOut,
    RespondRequest,
    ScoreSubmit,
    ScoreValidation,
)
from ..services.ladder import LadderService

router = APIRouter(
    prefix="/challenges",
    tags=["challenges"],
    responses={
        404: {"model": ProblemDetail},
        409: {"model": ProblemDetail},
        422: {"model": ProblemDetail},
    },
)


def to_challenge_out(challenge: Challenge) -> ChallengeOut:
    return ChallengeOut(
        id=challenge.id,
        challengerTeamId=challenge.challenger_team_id,
        challengedTeamId=challenge.challenged_team_id,
        status=challenge.status,
        challengerSets=challenge.challenger_sets,
        challengedSets=challenge.challenged_sets,
        scoreSubmittedBy=challenge.score_submitted_by,
        scoreValidated=challenge.score_validated,
        winnerId=challenge.winner_id,
        createdAt=challenge.created_at,
    )


@router.post("", response_model=ChallengeOut, status_code=status.HTTP_201_CREATED)
async def create_challenge(
    body: ChallengeCreate,
    service: LadderService = Depends(get_ladder_service),
) -> ChallengeOut:
    challenge = await service.create_challenge(body.challengerTeamId, body.challengedTeamId)
    return to_challenge_out(challenge)


@router.get("/{challenge_id}", response_model=ChallengeOut)
async def get_challenge(
    challenge_id: str, service: LadderService = Depends(get_ladder_service)
) -> ChallengeOut:
    return to_challenge_out(await service.get_challenge(challenge_id))


@router.post("/{challenge_id}/respond", response_model=ChallengeOut)
async def respond_to_challenge(
    challenge_id: str,
    body: RespondRequest,
    service: LadderService = Depends(get_ladder_service),
) -> ChallengeOut:
    challenge = await service.respond_to_challenge(challenge_id, body.accept)
    return to_challenge_out(challenge)


@router.post("/{challenge_id}/score", response_model=ChallengeOut)
async def submit_score(
    challenge_id: str,
    body: ScoreSubmit,
    service: LadderService = Depends(get_ladder_service),
) -> ChallengeOut:
    challenge = await service.submit_score(
        challenge_id,
        body.challengerSets,
        body.challengedSets,
        body.submittedByTeamId,
    )
    return to_challenge_out(challenge)


@router.post("/{challenge_id}/validation", response_model=ChallengeOut)
async def validate_score(
    challenge_id: str,
    body: ScoreValidation,
    service: LadderService = Depends(get_ladder_service),
) -> ChallengeOut:
    challenge = await service.validate_score(
        challenge_id, body.accept, validating_team_id=body.validatingTeamId
    )
    return to_challenge_out(challenge)
