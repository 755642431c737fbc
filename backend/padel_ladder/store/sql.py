"""SQLAlchemy-backed ``LeagueStore``."""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from .. import models
from ..entities import (
    Challenge,
    JoinRequest,
    LeagueSettings,
    PositionMove,
    Team,
    User,
)
from ..exceptions import MembershipError, RankingConflictError, StoreError
from ..time_utils import coerce_utc
from .base import LeagueStore

LOGGER = logging.getLogger(__name__)

# Temporary slot for the winner while the shifted range moves down; real
# positions start at 1.
PARKING_POSITION = 0
SETTINGS_ROW_ID = 1


def _to_user(row: models.User) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        gender=row.gender,
        playtomic_level=row.playtomic_level,
        team_id=row.team_id,
        created_at=coerce_utc(row.created_at),
    )


def _to_team(row: models.Team, member_ids: list[str]) -> Team:
    return Team(
        id=row.id,
        name=row.name,
        creator_id=row.creator_id,
        league=row.league,
        position=row.position,
        previous_position=(
            row.previous_position if row.previous_position is not None else row.position
        ),
        member_ids=member_ids,
        created_at=coerce_utc(row.created_at),
    )


def _to_join_request(row: models.JoinRequest) -> JoinRequest:
    return JoinRequest(
        id=row.id,
        user_id=row.user_id,
        team_id=row.team_id,
        status=row.status,
        created_at=coerce_utc(row.created_at),
    )


def _to_challenge(row: models.Challenge) -> Challenge:
    has_score = row.challenger_sets is not None and row.challenged_sets is not None
    return Challenge(
        id=row.id,
        challenger_team_id=row.challenger_team_id,
        challenged_team_id=row.challenged_team_id,
        status=row.status,
        challenger_sets=list(row.challenger_sets) if has_score else None,
        challenged_sets=list(row.challenged_sets) if has_score else None,
        score_submitted_by=row.score_submitted_by,
        score_validated=bool(row.score_validated),
        winner_id=row.winner_id,
        created_at=coerce_utc(row.created_at),
    )


def _challenge_values(challenge: Challenge) -> dict:
    return {
        "status": challenge.status,
        "challenger_sets": challenge.challenger_sets,
        "challenged_sets": challenge.challenged_sets,
        "score_submitted_by": challenge.score_submitted_by,
        "score_validated": challenge.score_validated,
        "winner_id": challenge.winner_id,
    }


class SqlLeagueStore(LeagueStore):
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, *, write: bool = False) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                if write:
                    async with session.begin():
                        yield session
                else:
                    yield session
        except SQLAlchemyError as exc:
            LOGGER.warning("League store operation failed: %s", exc)
            raise StoreError(str(getattr(exc, "orig", None) or exc)) from exc

    async def _members_by_team(
        self, session: AsyncSession, team_ids: Sequence[str]
    ) -> dict[str, list[str]]:
        members: dict[str, list[str]] = defaultdict(list)
        if not team_ids:
            return members
        rows = await session.execute(
            select(models.User.id, models.User.team_id)
            .where(models.User.team_id.in_(list(team_ids)))
            .order_by(models.User.created_at, models.User.id)
        )
        for user_id, team_id in rows.all():
            members[team_id].append(user_id)
        return members

    # Users -------------------------------------------------------------
    async def get_user(self, user_id: str) -> Optional[User]:
        async with self._session() as session:
            row = await session.get(models.User, user_id)
            return _to_user(row) if row else None

    async def list_users(self) -> list[User]:
        async with self._session() as session:
            rows = (
                await session.execute(select(models.User).order_by(models.User.created_at))
            ).scalars().all()
            return [_to_user(r) for r in rows]

    async def add_user(self, user: User) -> None:
        async with self._session(write=True) as session:
            session.add(
                models.User(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    phone=user.phone,
                    gender=user.gender,
                    playtomic_level=user.playtomic_level,
                    team_id=user.team_id,
                    created_at=user.created_at,
                )
            )

    # Teams -------------------------------------------------------------
    async def get_team(self, team_id: str) -> Optional[Team]:
        async with self._session() as session:
            row = await session.get(models.Team, team_id)
            if row is None:
                return None
            members = await self._members_by_team(session, [row.id])
            return _to_team(row, members.get(row.id, []))

    async def list_teams(self, league: Optional[str] = None) -> list[Team]:
        async with self._session() as session:
            stmt = select(models.Team).order_by(models.Team.league, models.Team.position)
            if league is not None:
                stmt = stmt.where(models.Team.league == league)
            rows = (await session.execute(stmt)).scalars().all()
            members = await self._members_by_team(session, [r.id for r in rows])
            return [_to_team(r, members.get(r.id, [])) for r in rows]

    async def create_team(self, team: Team, creator: User) -> None:
        async with self._session(write=True) as session:
            session.add(
                models.Team(
                    id=team.id,
                    name=team.name,
                    creator_id=team.creator_id,
                    league=team.league,
                    position=team.position,
                    previous_position=team.previous_position,
                    created_at=team.created_at,
                )
            )
            await session.flush()
            result = await session.execute(
                update(models.User)
                .where(models.User.id == creator.id, models.User.team_id.is_(None))
                .values(team_id=team.id)
            )
            if result.rowcount != 1:
                raise MembershipError(
                    f"user '{creator.id}' is missing or already belongs to a team"
                )

    # Join requests -----------------------------------------------------
    async def get_join_request(self, request_id: str) -> Optional[JoinRequest]:
        async with self._session() as session:
            row = await session.get(models.JoinRequest, request_id)
            return _to_join_request(row) if row else None

    async def list_join_requests(
        self,
        *,
        user_id: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> list[JoinRequest]:
        async with self._session() as session:
            stmt = select(models.JoinRequest).order_by(models.JoinRequest.created_at.desc())
            if user_id is not None:
                stmt = stmt.where(models.JoinRequest.user_id == user_id)
            if team_id is not None:
                stmt = stmt.where(models.JoinRequest.team_id == team_id)
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_join_request(r) for r in rows]

    async def add_join_request(self, request: JoinRequest) -> None:
        async with self._session(write=True) as session:
            session.add(
                models.JoinRequest(
                    id=request.id,
                    user_id=request.user_id,
                    team_id=request.team_id,
                    status=request.status,
                    created_at=request.created_at,
                )
            )

    async def save_join_request(self, request: JoinRequest) -> None:
        async with self._session(write=True) as session:
            await self._update_join_request(session, request)

    async def _update_join_request(self, session: AsyncSession, request: JoinRequest) -> None:
        result = await session.execute(
            update(models.JoinRequest)
            .where(models.JoinRequest.id == request.id)
            .values(status=request.status)
        )
        if result.rowcount != 1:
            raise StoreError(f"join request '{request.id}' does not exist")

    async def accept_join_request(self, request: JoinRequest, user: User) -> None:
        async with self._session(write=True) as session:
            await session.execute(
                update(models.User)
                .where(models.User.id == user.id)
                .values(team_id=user.team_id)
            )
            await self._update_join_request(session, request)

    # Challenges --------------------------------------------------------
    async def get_challenge(self, challenge_id: str) -> Optional[Challenge]:
        async with self._session() as session:
            row = await session.get(models.Challenge, challenge_id)
            return _to_challenge(row) if row else None

    async def list_challenges(self, team_id: Optional[str] = None) -> list[Challenge]:
        async with self._session() as session:
            stmt = select(models.Challenge).order_by(models.Challenge.created_at.desc())
            if team_id is not None:
                stmt = stmt.where(
                    or_(
                        models.Challenge.challenger_team_id == team_id,
                        models.Challenge.challenged_team_id == team_id,
                    )
                )
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_challenge(r) for r in rows]

    async def add_challenge(self, challenge: Challenge) -> None:
        async with self._session(write=True) as session:
            session.add(
                models.Challenge(
                    id=challenge.id,
                    challenger_team_id=challenge.challenger_team_id,
                    challenged_team_id=challenge.challenged_team_id,
                    created_at=challenge.created_at,
                    **_challenge_values(challenge),
                )
            )

    async def save_challenge(self, challenge: Challenge) -> None:
        async with self._session(write=True) as session:
            await self._update_challenge(session, challenge)

    async def _update_challenge(self, session: AsyncSession, challenge: Challenge) -> None:
        result = await session.execute(
            update(models.Challenge)
            .where(models.Challenge.id == challenge.id)
            .values(**_challenge_values(challenge))
        )
        if result.rowcount != 1:
            raise StoreError(f"challenge '{challenge.id}' does not exist")

    async def record_result(
        self, challenge: Challenge, moves: Sequence[PositionMove]
    ) -> None:
        async with self._session(write=True) as session:
            if moves:
                await self._apply_moves(session, moves)
            await self._update_challenge(session, challenge)

    async def _apply_moves(self, session: AsyncSession, moves: Sequence[PositionMove]) -> None:
        ids = [m.team_id for m in moves]
        rows = await session.execute(
            select(models.Team.id, models.Team.position)
            .where(models.Team.id.in_(ids))
            .with_for_update()
        )
        current = dict(rows.all())
        for move in moves:
            if current.get(move.team_id) != move.old_position:
                raise RankingConflictError(
                    f"team '{move.team_id}' is no longer at position {move.old_position}"
                )

        # UNIQUE(league, position) holds after every statement: the promoted
        # team is parked first, then the others move down starting from the
        # bottom of the range.
        promoted = [m for m in moves if m.new_position < m.old_position]
        demoted = sorted(
            (m for m in moves if m.new_position > m.old_position),
            key=lambda m: m.old_position,
            reverse=True,
        )
        for move in promoted:
            await session.execute(
                update(models.Team)
                .where(models.Team.id == move.team_id)
                .values(position=PARKING_POSITION)
            )
        for move in demoted + promoted:
            await session.execute(
                update(models.Team)
                .where(models.Team.id == move.team_id)
                .values(position=move.new_position, previous_position=move.old_position)
            )

    # Settings ----------------------------------------------------------
    async def get_settings(self) -> Optional[LeagueSettings]:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(models.LeagueSettings).order_by(models.LeagueSettings.id).limit(1)
                )
            ).scalars().first()
            if row is None:
                return None
            return LeagueSettings(
                challenge_restriction_date=row.challenge_restriction_date,
                max_position_difference=row.max_position_difference,
            )

    async def save_settings(self, settings: LeagueSettings) -> None:
        async with self._session(write=True) as session:
            row = (
                await session.execute(
                    select(models.LeagueSettings).order_by(models.LeagueSettings.id).limit(1)
                )
            ).scalars().first()
            if row is None:
                row = models.LeagueSettings(id=SETTINGS_ROW_ID)
                session.add(row)
            row.challenge_restriction_date = settings.challenge_restriction_date
            row.max_position_difference = settings.max_position_difference
