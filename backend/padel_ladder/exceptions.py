from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class LadderError(DomainException):
    """A ladder operation was rejected; no state was changed."""

    status_code = 400
    title = "Ladder operation rejected"
    code = "ladder_error"

    def __init__(self, detail: str, *, code: str | None = None) -> None:
        super().__init__(
            status_code=type(self).status_code,
            title=type(self).title,
            detail=detail,
            code=code or type(self).code,
        )


class InvalidInputError(LadderError):
    status_code = 400
    title = "Invalid input"
    code = "invalid_input"


class ValidationError(LadderError):
    """Raised when submitted set scores are invalid."""

    status_code = 422
    title = "Invalid score"
    code = "score_invalid"


class EligibilityError(LadderError):
    status_code = 409
    title = "Challenge not allowed"
    code = "challenge_ineligible"


class DuplicateChallengeError(EligibilityError):
    title = "Duplicate active challenge"
    code = "challenge_duplicate"

    def __init__(self, challenge_id: str) -> None:
        super().__init__(
            "an active challenge already exists between these teams"
        )
        self.challenge_id = challenge_id


class NotFoundError(LadderError):
    status_code = 404
    title = "Not found"
    code = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            f"{entity.replace('_', ' ')} '{entity_id}' not found",
            code=f"{entity}_not_found",
        )
        self.entity = entity
        self.entity_id = entity_id


class CapacityError(LadderError):
    status_code = 409
    title = "Team is full"
    code = "team_full"


class MembershipError(LadderError):
    status_code = 409
    title = "Membership conflict"
    code = "membership_conflict"


class StateTransitionError(LadderError):
    status_code = 409
    title = "Invalid transition"
    code = "invalid_transition"


class StoreError(LadderError):
    status_code = 503
    title = "Store unavailable"
    code = "store_unavailable"


class StoreTimeoutError(StoreError):
    status_code = 504
    title = "Store timeout"
    code = "store_timeout"


class RankingConflictError(StoreError):
    """Positions changed between planning and writing a ranking update."""

    status_code = 409
    title = "Ranking conflict"
    code = "ranking_conflict"


class RankingIntegrityError(StoreError):
    status_code = 500
    title = "Ranking integrity violated"
    code = "ranking_integrity"


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
