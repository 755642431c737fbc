"""Persistence boundary for the ladder.

Services only talk to a ``LeagueStore``; the SQL store and the in-memory
store are interchangeable. Every method may suspend. Methods returning a
single record return ``None`` when it does not exist.
"""

from __future__ import annotations

import abc
from typing import Optional, Sequence

from ..entities import (
    Challenge,
    JoinRequest,
    LeagueSettings,
    PositionMove,
    Team,
    User,
)


class LeagueStore(abc.ABC):
    # Users -------------------------------------------------------------
    @abc.abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def list_users(self) -> list[User]: ...

    @abc.abstractmethod
    async def add_user(self, user: User) -> None: ...

    # Teams -------------------------------------------------------------
    @abc.abstractmethod
    async def get_team(self, team_id: str) -> Optional[Team]: ...

    @abc.abstractmethod
    async def list_teams(self, league: Optional[str] = None) -> list[Team]:
        """Teams (with member ids) ordered by league then position."""

    @abc.abstractmethod
    async def create_team(self, team: Team, creator: User) -> None:
        """Insert ``team`` and make ``creator`` its first member atomically."""

    # Join requests -----------------------------------------------------
    @abc.abstractmethod
    async def get_join_request(self, request_id: str) -> Optional[JoinRequest]: ...

    @abc.abstractmethod
    async def list_join_requests(
        self,
        *,
        user_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> list[JoinRequest]:
        """Join requests, newest first."""

    @abc.abstractmethod
    async def add_join_request(self, request: JoinRequest) -> None: ...

    @abc.abstractmethod
    async def save_join_request(self, request: JoinRequest) -> None: ...

    @abc.abstractmethod
    async def accept_join_request(self, request: JoinRequest, user: User) -> None:
        """Persist the accepted request and the user's new membership atomically."""

    # Challenges --------------------------------------------------------
    @abc.abstractmethod
    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]: ...

    @abc.abstractmethod
    async def list_challenges(self, team_id: Optional[str] = None) -> list[Challenge]:
        """Challenges, newest first, optionally only those involving ``team_id``."""

    @abc.abstractmethod
    async def add_challenge(self, challenge: Challenge) -> None: ...

    @abc.abstractmethod
    async def save_challenge(self, challenge: Challenge) -> None: ...

    @abc.abstractmethod
    async def record_result(
        self, challenge: Challenge, moves: Sequence[PositionMove]
    ) -> None:
        """Persist a validated challenge together with its position moves.

        All-or-nothing: if any team's stored position differs from its
        move's ``old_position``, raise ``RankingConflictError`` and write
        nothing.
        """

    # Settings ----------------------------------------------------------
    @abc.abstractmethod
    async def get_settings(self) -> Optional[LeagueSettings]: ...

    @abc.abstractmethod
    async def save_settings(self, settings: LeagueSettings) -> None: ...
