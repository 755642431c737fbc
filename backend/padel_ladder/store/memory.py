"""Dict-backed ``LeagueStore`` for tests and embedding."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import replace
from typing import Optional, Sequence

from ..entities import (
    Challenge,
    JoinRequest,
    LeagueSettings,
    PositionMove,
    Team,
    User,
)
from ..exceptions import MembershipError, RankingConflictError, StoreError
from .base import LeagueStore


class InMemoryLeagueStore(LeagueStore):
    """Keeps records in dictionaries and hands out copies.

    ``latency`` adds a sleep before every call so tests can interleave
    concurrent operations the way network round trips would.
    """

    def __init__(
        self,
        settings: Optional[LeagueSettings] = None,
        *,
        latency: float = 0.0,
    ) -> None:
        self._users: dict[str, User] = {}
        self._teams: dict[str, Team] = {}
        self._join_requests: dict[str, JoinRequest] = {}
        self._challenges: dict[str, Challenge] = {}
        self._settings = copy.deepcopy(settings)
        self._latency = latency

    async def _io(self) -> None:
        await asyncio.sleep(self._latency)

    def _with_members(self, team: Team) -> Team:
        members = [u.id for u in self._users.values() if u.team_id == team.id]
        return replace(copy.deepcopy(team), member_ids=members)

    # Users -------------------------------------------------------------
    async def get_user(self, user_id: str) -> Optional[User]:
        await self._io()
        return copy.deepcopy(self._users.get(user_id))

    async def list_users(self) -> list[User]:
        await self._io()
        return [copy.deepcopy(u) for u in self._users.values()]

    async def add_user(self, user: User) -> None:
        await self._io()
        if user.id in self._users:
            raise StoreError(f"user '{user.id}' already exists")
        if any(u.email.lower() == user.email.lower() for u in self._users.values()):
            raise StoreError(f"email '{user.email}' is already registered")
        self._users[user.id] = copy.deepcopy(user)

    # Teams -------------------------------------------------------------
    async def get_team(self, team_id: str) -> Optional[Team]:
        await self._io()
        team = self._teams.get(team_id)
        return self._with_members(team) if team else None

    async def list_teams(self, league: Optional[str] = None) -> list[Team]:
        await self._io()
        teams = [
            self._with_members(t)
            for t in self._teams.values()
            if league is None or t.league == league
        ]
        teams.sort(key=lambda t: (t.league, t.position))
        return teams

    async def create_team(self, team: Team, creator: User) -> None:
        await self._io()
        stored = self._users.get(creator.id)
        if stored is None:
            raise StoreError(f"user '{creator.id}' does not exist")
        if stored.team_id is not None:
            raise MembershipError(f"user '{creator.id}' already belongs to a team")
        if team.id in self._teams:
            raise StoreError(f"team '{team.id}' already exists")
        if any(
            t.league == team.league and t.position == team.position
            for t in self._teams.values()
        ):
            raise StoreError(
                f"position {team.position} is already taken in league '{team.league}'"
            )
        self._teams[team.id] = replace(copy.deepcopy(team), member_ids=[])
        stored.team_id = team.id

    # Join requests -----------------------------------------------------
    async def get_join_request(self, request_id: str) -> Optional[JoinRequest]:
        await self._io()
        return copy.deepcopy(self._join_requests.get(request_id))

    async def list_join_requests(
        self,
        *,
        user_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> list[JoinRequest]:
        await self._io()
        rows = [
            copy.deepcopy(r)
            for r in self._join_requests.values()
            if (user_id is None or r.user_id == user_id)
            and (team_id is None or r.team_id == team_id)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return rows

    async def add_join_request(self, request: JoinRequest) -> None:
        await self._io()
        self._join_requests[request.id] = copy.deepcopy(request)

    async def save_join_request(self, request: JoinRequest) -> None:
        await self._io()
        if request.id not in self._join_requests:
            raise StoreError(f"join request '{request.id}' does not exist")
        self._join_requests[request.id] = copy.deepcopy(request)

    async def accept_join_request(self, request: JoinRequest, user: User) -> None:
        await self._io()
        self._join_requests[request.id] = copy.deepcopy(request)
        self._users[user.id] = copy.deepcopy(user)

    # Challenges --------------------------------------------------------
    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        await self._io()
        return copy.deepcopy(self._challenges.get(challenge_id))

    async def list_challenges(self, team_id: Optional[str] = None) -> list[Challenge]:
        await self._io()
        rows = [
            copy.deepcopy(c)
            for c in self._challenges.values()
            if team_id is None or c.involves(team_id)
        ]
        rows.sort(key=lambda c: c.created_at, reverse=True)
        return rows

    async def add_challenge(self, challenge: Challenge) -> None:
        await self._io()
        self._challenges[challenge.id] = copy.deepcopy(challenge)

    async def save_challenge(self, challenge: Challenge) -> None:
        await self._io()
        if challenge.id not in self._challenges:
            raise StoreError(f"challenge '{challenge.id}' does not exist")
        self._challenges[challenge.id] = copy.deepcopy(challenge)

    async def record_result(
        self, challenge: Challenge, moves: Sequence[PositionMove]
    ) -> None:
        await self._io()
        for move in moves:
            team = self._teams.get(move.team_id)
            if team is None or team.position != move.old_position:
                raise RankingConflictError(
                    f"team '{move.team_id}' is no longer at position {move.old_position}"
                )
        for move in moves:
            team = self._teams[move.team_id]
            team.previous_position = move.old_position
            team.position = move.new_position
        self._challenges[challenge.id] = copy.deepcopy(challenge)

    # Settings ----------------------------------------------------------
    async def get_settings(self) -> Optional[LeagueSettings]:
        await self._io()
        return copy.deepcopy(self._settings)

    async def save_settings(self, settings: LeagueSettings) -> None:
        await self._io()
        self._settings = copy.deepcopy(settings)
