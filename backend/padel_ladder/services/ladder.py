"""Ladder operations exposed to the UI and HTTP layers.

``LadderService`` loads records from a ``LeagueStore``, runs them through the
pure challenge, eligibility, validation and ranking helpers, and writes the
result back. Any rejected operation leaves stored state untouched.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from ..cache import SettingsCache
from ..config import ACTION_TIMEOUT_SECONDS, SETTINGS_CACHE_TTL_SECONDS
from ..entities import (
    DEFAULT_SETTINGS,
    GENDER_LEAGUES,
    LEAGUES,
    MAX_PLAYTOMIC_LEVEL,
    MAX_TEAM_MEMBERS,
    MIN_PLAYTOMIC_LEVEL,
    Challenge,
    JoinRequest,
    LeagueSettings,
    Team,
    User,
    new_id,
)
from ..exceptions import (
    CapacityError,
    InvalidInputError,
    MembershipError,
    NotFoundError,
    StateTransitionError,
    StoreTimeoutError,
)
from ..store.base import LeagueStore
from ..time_utils import utcnow
from . import challenges as challenge_machine
from .changes import ChangeNotifier, NullNotifier
from .eligibility import can_challenge, challenge_window
from .ranking import LeagueLocks, apply_moves, ensure_dense, plan_ranking_shift

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class LadderService:
    def __init__(
        self,
        store: LeagueStore,
        *,
        notifier: ChangeNotifier | None = None,
        clock: Callable[[], datetime] = utcnow,
        action_timeout: float = ACTION_TIMEOUT_SECONDS,
        settings_ttl: float = SETTINGS_CACHE_TTL_SECONDS,
    ) -> None:
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.clock = clock
        self.action_timeout = action_timeout
        self.locks = LeagueLocks()
        self._settings_cache = SettingsCache(ttl_seconds=settings_ttl)
        # Last settings seen, for the synchronous ``can_challenge`` check.
        self._settings: Optional[LeagueSettings] = None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _run_action(self, action: str, operation: Awaitable[T]) -> T:
        """Await ``operation`` with the client-side action timeout.

        The operation is shielded: on timeout the caller gets a
        ``StoreTimeoutError`` while the store call keeps running and may
        still succeed later.
        """

        task = asyncio.ensure_future(operation)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.action_timeout)
        except asyncio.TimeoutError:
            LOGGER.warning("%s timed out after %.1fs", action, self.action_timeout)
            task.add_done_callback(lambda t: _log_late_outcome(action, t))
            raise StoreTimeoutError(
                f"{action} did not complete within {self.action_timeout:g} seconds"
            ) from None

    async def _require_user(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    async def _require_team(self, team_id: str) -> Team:
        team = await self.store.get_team(team_id)
        if team is None:
            raise NotFoundError("team", team_id)
        return team

    async def _require_challenge(self, challenge_id: str) -> Challenge:
        challenge = await self.store.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError("challenge", challenge_id)
        return challenge

    async def _require_join_request(self, request_id: str) -> JoinRequest:
        request = await self.store.get_join_request(request_id)
        if request is None:
            raise NotFoundError("join_request", request_id)
        return request

    async def _challenge_league(self, challenge_id: str) -> str:
        challenge = await self._require_challenge(challenge_id)
        challenger = await self._require_team(challenge.challenger_team_id)
        return challenger.league

    # ------------------------------------------------------------------
    # settings
    # ------------------------------------------------------------------
    async def get_settings(self) -> Optional[LeagueSettings]:
        settings = await self._settings_cache.get()
        if settings is None:
            settings = await self.store.get_settings()
            if settings is not None:
                await self._settings_cache.put(settings)
        self._settings = settings
        return settings

    async def update_settings(
        self,
        *,
        challenge_restriction_date: Optional[date] = None,
        max_position_difference: Optional[int] = None,
    ) -> LeagueSettings:
        if max_position_difference is not None and max_position_difference < 1:
            raise InvalidInputError("max position difference must be at least 1")

        current = await self.store.get_settings() or DEFAULT_SETTINGS
        updated = replace(current)
        if challenge_restriction_date is not None:
            updated.challenge_restriction_date = challenge_restriction_date
        if max_position_difference is not None:
            updated.max_position_difference = max_position_difference

        await self.store.save_settings(updated)
        await self._settings_cache.invalidate()
        self._settings = updated
        LOGGER.info(
            "League settings updated: restriction date %s, max difference %d",
            updated.challenge_restriction_date,
            updated.max_position_difference,
        )
        await self.notifier.publish("settings")
        return updated

    # ------------------------------------------------------------------
    # users and teams
    # ------------------------------------------------------------------
    async def register_user(
        self,
        *,
        name: str,
        email: str,
        phone: str,
        gender: str,
        playtomic_level: int,
    ) -> User:
        name = (name or "").strip()
        email = (email or "").strip()
        if not name:
            raise InvalidInputError("name is required")
        if not email:
            raise InvalidInputError("email is required")
        if gender not in GENDER_LEAGUES:
            raise InvalidInputError("gender must be 'male' or 'female'")
        if not MIN_PLAYTOMIC_LEVEL <= playtomic_level <= MAX_PLAYTOMIC_LEVEL:
            raise InvalidInputError(
                f"playtomic level must be between {MIN_PLAYTOMIC_LEVEL} and {MAX_PLAYTOMIC_LEVEL}"
            )

        existing = await self.store.list_users()
        if any(u.email.lower() == email.lower() for u in existing):
            raise MembershipError(f"email '{email}' is already registered")

        user = User(
            id=new_id(),
            name=name,
            email=email,
            phone=(phone or "").strip(),
            gender=gender,
            playtomic_level=playtomic_level,
            created_at=self.clock(),
        )
        await self.store.add_user(user)
        await self.notifier.publish("users")
        return user

    async def get_user(self, user_id: str) -> User:
        return await self._require_user(user_id)

    async def list_users(self) -> list[User]:
        return await self.store.list_users()

    async def create_team(self, name: str, creator_id: str, league: str) -> Team:
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("team name is required")
        if league not in LEAGUES:
            raise InvalidInputError(f"unknown league: {league!r}")

        async with self.locks.hold(league):
            creator = await self._require_user(creator_id)
            if creator.team_id is not None:
                raise MembershipError("player is already a member of a team")
            if creator.league != league:
                raise MembershipError(
                    f"a {creator.gender} player cannot create a team in the {league} league"
                )
            position = len(await self.store.list_teams(league)) + 1
            team = Team(
                id=new_id(),
                name=name,
                creator_id=creator.id,
                league=league,
                position=position,
                previous_position=position,
                member_ids=[creator.id],
                created_at=self.clock(),
            )
            await self.store.create_team(team, creator)

        LOGGER.info("Team %s created in %s at position %d", team.id, league, position)
        await self.notifier.publish("teams", "users")
        return team

    async def get_team(self, team_id: str) -> Team:
        return await self._require_team(team_id)

    async def standings(self, league: str) -> list[Team]:
        if league not in LEAGUES:
            raise InvalidInputError(f"unknown league: {league!r}")
        return await self.store.list_teams(league)

    async def get_available_teams(self, league: str) -> list[Team]:
        return [t for t in await self.standings(league) if len(t.member_ids) < MAX_TEAM_MEMBERS]

    # ------------------------------------------------------------------
    # join requests
    # ------------------------------------------------------------------
    async def request_to_join(self, user_id: str, team_id: str) -> JoinRequest:
        user = await self._require_user(user_id)
        team = await self._require_team(team_id)

        if user.team_id is not None:
            raise MembershipError("player is already a member of a team")
        if team.league != user.league:
            raise MembershipError(f"team plays in the {team.league} league")
        if team.is_full:
            raise CapacityError(f"Team is full ({MAX_TEAM_MEMBERS} players maximum)")

        pending = await self.store.list_join_requests(user_id=user_id, team_id=team_id)
        if any(r.status == "pending" for r in pending):
            raise MembershipError("a join request for this team is already pending")

        request = JoinRequest(
            id=new_id(), user_id=user_id, team_id=team_id, created_at=self.clock()
        )
        await self.store.add_join_request(request)
        await self.notifier.publish("join_requests")
        return request

    async def respond_to_join_request(self, request_id: str, accept: bool) -> JoinRequest:
        request = await self._require_join_request(request_id)
        team = await self._require_team(request.team_id)

        async with self.locks.hold(team.league):
            request = await self._require_join_request(request_id)
            if request.status != "pending":
                raise StateTransitionError(
                    f"join request '{request_id}' is already {request.status}"
                )

            if not accept:
                request = replace(request, status="declined")
                await self.store.save_join_request(request)
                await self.notifier.publish("join_requests")
                return request

            team = await self._require_team(request.team_id)
            if len(team.member_ids) >= MAX_TEAM_MEMBERS:
                raise CapacityError(f"Team is full ({MAX_TEAM_MEMBERS} players maximum)")
            user = await self._require_user(request.user_id)
            if user.team_id is not None:
                raise MembershipError("player is already a member of a team")

            request = replace(request, status="accepted")
            await self.store.accept_join_request(request, replace(user, team_id=team.id))

        LOGGER.info("User %s joined team %s", request.user_id, request.team_id)
        await self.notifier.publish("join_requests", "users", "teams")
        return request

    async def get_user_join_requests(self, user_id: str) -> list[JoinRequest]:
        return await self.store.list_join_requests(user_id=user_id)

    async def get_team_join_requests(self, team_id: str) -> list[JoinRequest]:
        rows = await self.store.list_join_requests(team_id=team_id)
        return [r for r in rows if r.status == "pending"]

    # ------------------------------------------------------------------
    # challenges
    # ------------------------------------------------------------------
    def can_challenge(self, challenger: Team, challenged: Team) -> bool:
        """Synchronous eligibility check against the last loaded settings.

        Nothing is loaded here: until ``get_settings`` (or any challenge
        operation) has run once on this service every pair is refused, even
        when a settings record exists. Await ``get_settings`` before filtering
        a list with this method.
        """

        return can_challenge(challenger, challenged, self._settings, self.clock())

    async def get_challengeable_teams(self, team_id: str) -> list[Team]:
        team = await self._require_team(team_id)
        settings = await self.get_settings()
        window = challenge_window(team, settings, self.clock())
        return [t for t in await self.store.list_teams(team.league) if t.position in window]

    async def get_team_challenges(self, team_id: str) -> list[Challenge]:
        return await self.store.list_challenges(team_id)

    async def get_challenge(self, challenge_id: str) -> Challenge:
        return await self._require_challenge(challenge_id)

    async def create_challenge(
        self, challenger_team_id: str, challenged_team_id: str
    ) -> Challenge:
        return await self._run_action(
            "create challenge",
            self._create_challenge(challenger_team_id, challenged_team_id),
        )

    async def _create_challenge(
        self, challenger_team_id: str, challenged_team_id: str
    ) -> Challenge:
        challenger = await self._require_team(challenger_team_id)
        settings = await self.get_settings()

        async with self.locks.hold(challenger.league):
            challenger = await self._require_team(challenger_team_id)
            challenged = await self._require_team(challenged_team_id)
            existing = await self.store.list_challenges(challenger_team_id)
            challenge = challenge_machine.open_challenge(
                challenger, challenged, settings, self.clock(), existing
            )
            await self.store.add_challenge(challenge)

        LOGGER.info(
            "Challenge %s created: %s (#%d) -> %s (#%d)",
            challenge.id,
            challenger.id,
            challenger.position,
            challenged.id,
            challenged.position,
        )
        await self.notifier.publish("challenges")
        return challenge

    async def respond_to_challenge(self, challenge_id: str, accept: bool) -> Challenge:
        league = await self._challenge_league(challenge_id)
        async with self.locks.hold(league):
            challenge = await self._require_challenge(challenge_id)
            updated = challenge_machine.respond(challenge, accept)
            if updated != challenge:
                await self.store.save_challenge(updated)
        if updated != challenge:
            await self.notifier.publish("challenges")
        return updated

    async def submit_score(
        self,
        challenge_id: str,
        challenger_sets: Sequence[Any],
        challenged_sets: Sequence[Any],
        submitting_team_id: str,
    ) -> Challenge:
        return await self._run_action(
            "submit score",
            self._submit_score(
                challenge_id, challenger_sets, challenged_sets, submitting_team_id
            ),
        )

    async def _submit_score(
        self,
        challenge_id: str,
        challenger_sets: Sequence[Any],
        challenged_sets: Sequence[Any],
        submitting_team_id: str,
    ) -> Challenge:
        league = await self._challenge_league(challenge_id)
        async with self.locks.hold(league):
            challenge = await self._require_challenge(challenge_id)
            updated = challenge_machine.record_score(
                challenge, challenger_sets, challenged_sets, submitting_team_id
            )
            await self.store.save_challenge(updated)

        LOGGER.info(
            "Score %s / %s submitted for challenge %s by %s",
            updated.challenger_sets,
            updated.challenged_sets,
            challenge_id,
            submitting_team_id,
        )
        await self.notifier.publish("challenges")
        return updated

    async def validate_score(
        self,
        challenge_id: str,
        accept: bool,
        validating_team_id: Optional[str] = None,
    ) -> Challenge:
        return await self._run_action(
            "validate score",
            self._validate_score(challenge_id, accept, validating_team_id),
        )

    async def _validate_score(
        self,
        challenge_id: str,
        accept: bool,
        validating_team_id: Optional[str],
    ) -> Challenge:
        league = await self._challenge_league(challenge_id)
        async with self.locks.hold(league):
            challenge = await self._require_challenge(challenge_id)

            if challenge.is_validated:
                if accept:
                    LOGGER.info("Challenge %s already validated; nothing to do", challenge_id)
                    return challenge
                raise StateTransitionError(
                    f"challenge '{challenge_id}' already has a validated score"
                )

            if validating_team_id is not None:
                if not challenge.involves(validating_team_id):
                    raise StateTransitionError(
                        f"team '{validating_team_id}' is not part of challenge '{challenge_id}'"
                    )
                if validating_team_id == challenge.score_submitted_by:
                    raise StateTransitionError(
                        "the score must be confirmed by the team that did not submit it"
                    )

            if not accept:
                updated = challenge_machine.dispute(challenge)
                await self.store.save_challenge(updated)
                LOGGER.info("Score for challenge %s disputed", challenge_id)
                moved = False
            else:
                updated = challenge_machine.confirm(challenge)
                moves = []
                if updated.winner_id == updated.challenger_team_id:
                    league_teams = await self.store.list_teams(league)
                    moves = plan_ranking_shift(
                        league_teams, updated.challenger_team_id, updated.challenged_team_id
                    )
                    ensure_dense(t.position for t in apply_moves(league_teams, moves))
                await self.store.record_result(updated, moves)
                moved = bool(moves)
                if moved:
                    LOGGER.info(
                        "Challenge %s won by challenger %s; %d teams re-ranked in %s",
                        challenge_id,
                        updated.winner_id,
                        len(moves),
                        league,
                    )
                else:
                    LOGGER.info(
                        "Challenge %s validated; winner %s, no position change",
                        challenge_id,
                        updated.winner_id,
                    )

        if moved:
            await self.notifier.publish("challenges", "teams")
        else:
            await self.notifier.publish("challenges")
        return updated


def _log_late_outcome(action: str, task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is None:
        LOGGER.info("%s completed after its timeout", action)
    else:
        LOGGER.warning("%s failed after its timeout: %s", action, exc)
