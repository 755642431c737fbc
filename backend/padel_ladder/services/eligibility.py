"""Who may challenge whom.

Before the restriction date a team may challenge any team ranked above it.
From the restriction date on, only teams at most ``max_position_difference``
places above may be challenged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..entities import LeagueSettings, Team
from ..exceptions import EligibilityError
from ..time_utils import coerce_utc, start_of_day_utc


def restriction_active(settings: LeagueSettings, now: datetime) -> bool:
    return coerce_utc(now) >= start_of_day_utc(settings.challenge_restriction_date)


def ineligibility_reason(
    challenger: Team,
    challenged: Team,
    settings: Optional[LeagueSettings],
    now: datetime,
) -> str | None:
    """Return why ``challenger`` may not challenge ``challenged``, or ``None``."""

    if challenger.league != challenged.league:
        return "teams play in different leagues"
    if challenger.id == challenged.id:
        return "a team cannot challenge itself"
    if settings is None:
        return "league settings are unavailable"

    diff = challenger.position - challenged.position
    if diff <= 0:
        return "only higher-ranked teams can be challenged"
    if restriction_active(settings, now) and diff > settings.max_position_difference:
        return (
            f"only teams up to {settings.max_position_difference} positions above "
            "can be challenged"
        )
    return None


def can_challenge(
    challenger: Team,
    challenged: Team,
    settings: Optional[LeagueSettings],
    now: datetime,
) -> bool:
    return ineligibility_reason(challenger, challenged, settings, now) is None


def ensure_can_challenge(
    challenger: Team,
    challenged: Team,
    settings: Optional[LeagueSettings],
    now: datetime,
) -> None:
    reason = ineligibility_reason(challenger, challenged, settings, now)
    if reason is not None:
        raise EligibilityError(reason)


def challenge_window(
    challenger: Team, settings: Optional[LeagueSettings], now: datetime
) -> range:
    """Positions ``challenger`` may currently challenge (best rank first)."""

    if settings is None or challenger.position <= 1:
        return range(0)
    if restriction_active(settings, now):
        lowest = max(1, challenger.position - settings.max_position_difference)
        return range(lowest, challenger.position)
    return range(1, challenger.position)
