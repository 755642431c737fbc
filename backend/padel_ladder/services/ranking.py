"""Ladder re-ranking after a validated challenger win.

The winner takes the loser's position and every team between the two
(loser included) drops one place. The shift is computed from a position
range so any number of teams may sit between challenger and challenged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import AsyncIterator

from ..entities import PositionMove, Team
from ..exceptions import RankingIntegrityError

LOGGER = logging.getLogger(__name__)


def plan_ranking_shift(
    league_teams: Sequence[Team], winner_id: str, loser_id: str
) -> list[PositionMove]:
    """Return the position moves for ``winner_id`` beating ``loser_id``.

    An empty plan means no change: the winner already ranks equal or
    better than the loser.
    """

    by_id = {team.id: team for team in league_teams}
    try:
        winner = by_id[winner_id]
        loser = by_id[loser_id]
    except KeyError as exc:
        raise RankingIntegrityError(
            f"team {exc.args[0]!r} is not part of the league being ranked"
        ) from None

    winner_old_pos = winner.position
    loser_pos = loser.position
    if winner_old_pos <= loser_pos:
        return []

    shifted = sorted(
        (t for t in league_teams if loser_pos <= t.position < winner_old_pos),
        key=lambda t: t.position,
        reverse=True,
    )
    moves = [PositionMove(t.id, t.position, t.position + 1) for t in shifted]
    moves.append(PositionMove(winner.id, winner_old_pos, loser_pos))
    return moves


def apply_moves(teams: Iterable[Team], moves: Sequence[PositionMove]) -> list[Team]:
    """Return copies of ``teams`` with ``moves`` applied, ordered by position."""

    by_team = {move.team_id: move for move in moves}
    updated = []
    for team in teams:
        move = by_team.get(team.id)
        if move is None:
            updated.append(replace(team))
        else:
            updated.append(
                replace(team, position=move.new_position, previous_position=move.old_position)
            )
    updated.sort(key=lambda t: t.position)
    return updated


def ensure_dense(positions: Iterable[int]) -> None:
    """Raise ``RankingIntegrityError`` unless ``positions`` are exactly 1..N."""

    values = sorted(positions)
    if values != list(range(1, len(values) + 1)):
        raise RankingIntegrityError(
            f"league positions are not a dense ranking: {values}"
        )


class LeagueLocks:
    """One asyncio lock per league partition.

    Ranking updates, challenge creation and team creation read positions and
    write back derived state, so they run one at a time per league.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, league: str) -> asyncio.Lock:
        lock = self._locks.get(league)
        if lock is None:
            lock = self._locks[league] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, league: str) -> AsyncIterator[None]:
        lock = self.get(league)
        if lock.locked():
            LOGGER.debug("Waiting for league lock %r", league)
        async with lock:
            yield
