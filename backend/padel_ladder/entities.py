"""Storage-independent records shared by the ladder services and stores."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Optional

from .time_utils import utcnow

League = Literal["mens", "womens"]
Gender = Literal["male", "female"]
ChallengeStatus = Literal["pending", "accepted", "declined", "completed"]
JoinRequestStatus = Literal["pending", "accepted", "declined"]

LEAGUES: tuple[str, ...] = ("mens", "womens")
GENDER_LEAGUES: dict[str, str] = {"male": "mens", "female": "womens"}
MAX_TEAM_MEMBERS = 4
MIN_PLAYTOMIC_LEVEL = 1
MAX_PLAYTOMIC_LEVEL = 10


def new_id() -> str:
    return uuid.uuid4().hex


def league_for_gender(gender: str) -> str:
    try:
        return GENDER_LEAGUES[gender]
    except KeyError:
        raise ValueError(f"unknown gender: {gender!r}") from None


@dataclass
class User:
    id: str
    name: str
    email: str
    phone: str
    gender: str
    playtomic_level: int
    team_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def league(self) -> str:
        return league_for_gender(self.gender)


@dataclass
class Team:
    id: str
    name: str
    creator_id: str
    league: str
    position: int
    previous_position: Optional[int] = None
    member_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def movement(self) -> int:
        """Ranks gained since the last change (negative when the team dropped)."""

        if self.previous_position is None:
            return 0
        return self.previous_position - self.position

    @property
    def is_full(self) -> bool:
        return len(self.member_ids) >= MAX_TEAM_MEMBERS


@dataclass
class JoinRequest:
    id: str
    user_id: str
    team_id: str
    status: str = "pending"
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Challenge:
    id: str
    challenger_team_id: str
    challenged_team_id: str
    status: str = "pending"
    challenger_sets: Optional[list[int]] = None
    challenged_sets: Optional[list[int]] = None
    score_submitted_by: Optional[str] = None
    score_validated: bool = False
    winner_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def has_score(self) -> bool:
        return self.challenger_sets is not None and self.challenged_sets is not None

    @property
    def is_active(self) -> bool:
        if self.status in ("pending", "accepted"):
            return True
        return self.status == "completed" and not self.score_validated

    @property
    def is_validated(self) -> bool:
        return self.status == "completed" and self.score_validated

    def involves(self, team_id: str) -> bool:
        return team_id in (self.challenger_team_id, self.challenged_team_id)


@dataclass
class LeagueSettings:
    challenge_restriction_date: date
    max_position_difference: int


DEFAULT_SETTINGS = LeagueSettings(
    challenge_restriction_date=date(2025, 3, 1),
    max_position_difference=4,
)


@dataclass(frozen=True)
class PositionMove:
    """A single position change produced by the ranking engine."""

    team_id: str
    old_position: int
    new_position: int


@dataclass(frozen=True)
class MatchResult:
    winner: str  # "challenger" | "challenged"
    challenger_sets: list[int]
    challenged_sets: list[int]
    challenger_sets_won: int
    challenged_sets_won: int
