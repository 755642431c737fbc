from typing import Literal, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .entities import MAX_PLAYTOMIC_LEVEL, MIN_PLAYTOMIC_LEVEL

LeagueName = Literal["mens", "womens"]


def _strip_required(value: str, field: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field} must not be empty")
    return trimmed


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    phone: str = Field(default="", max_length=50)
    gender: Literal["male", "female"]
    playtomicLevel: int = Field(..., ge=MIN_PLAYTOMIC_LEVEL, le=MAX_PLAYTOMIC_LEVEL)

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")

    @field_validator("email", mode="before")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        trimmed = _strip_required(value, "email")
        if "@" not in trimmed:
            raise ValueError("email must contain '@'")
        return trimmed


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    gender: str
    playtomicLevel: int
    teamId: Optional[str] = None
    createdAt: datetime


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    creatorId: str
    league: LeagueName

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _strip_required(value, "name")


class TeamOut(BaseModel):
    id: str
    name: str
    creatorId: str
    league: str
    position: int
    previousPosition: Optional[int] = None
    movement: int = 0
    memberIds: list[str]
    createdAt: datetime


class JoinRequestCreate(BaseModel):
    userId: str
    teamId: str

    model_config = ConfigDict(extra="forbid")


class JoinRequestOut(BaseModel):
    id: str
    userId: str
    teamId: str
    status: str
    createdAt: datetime


class RespondRequest(BaseModel):
    accept: bool


class ChallengeCreate(BaseModel):
    challengerTeamId: str
    challengedTeamId: str

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _distinct_teams(self) -> "ChallengeCreate":
        if self.challengerTeamId == self.challengedTeamId:
            raise ValueError("a team cannot challenge itself")
        return self


class ChallengeOut(BaseModel):
    id: str
    challengerTeamId: str
    challengedTeamId: str
    status: str
    challengerSets: Optional[list[int]] = None
    challengedSets: Optional[list[int]] = None
    scoreSubmittedBy: Optional[str] = None
    scoreValidated: bool
    winnerId: Optional[str] = None
    createdAt: datetime


class ScoreSubmit(BaseModel):
    """Games per set for each side; the third set may be ``null`` when unplayed.

    Set rules are enforced by the score validator so its messages reach the
    client unchanged.
    """

    challengerSets: list[Optional[int]] = Field(..., min_length=1, max_length=5)
    challengedSets: list[Optional[int]] = Field(..., min_length=1, max_length=5)
    submittedByTeamId: str

    model_config = ConfigDict(extra="forbid")


class ScoreValidation(BaseModel):
    accept: bool
    validatingTeamId: Optional[str] = None


class EligibilityOut(BaseModel):
    canChallenge: bool
    reason: Optional[str] = None


class SettingsOut(BaseModel):
    challengeRestrictionDate: date
    maxPositionDifference: int


class SettingsUpdate(BaseModel):
    challengeRestrictionDate: Optional[date] = None
    maxPositionDifference: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(extra="forbid")
