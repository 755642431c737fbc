"""Challenge lifecycle state machine.

States: pending -> accepted -> completed, with declined as a terminal exit.
A completed challenge is final once its score is validated; a disputed
score sends it back to accepted so a new score can be submitted.

New challenges are created directly in ``accepted``: the challenged team is
obliged to play. ``respond`` still supports the pending step for callers
that want an explicit accept/decline flow.

All functions return updated copies and never touch the caller's record.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..entities import Challenge, LeagueSettings, Team, new_id
from ..exceptions import DuplicateChallengeError, StateTransitionError
from .eligibility import ensure_can_challenge
from .validation import count_set_wins, validate_match

VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["accepted", "declined"],
    "accepted": ["accepted", "declined", "completed"],
    "completed": ["completed", "accepted"],
    "declined": [],  # terminal
}


def can_transition(current: str, target: str) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def validate_transition(challenge: Challenge, target: str) -> None:
    if challenge.is_validated:
        raise StateTransitionError(
            f"challenge '{challenge.id}' already has a validated score"
        )
    if not can_transition(challenge.status, target):
        allowed = VALID_TRANSITIONS.get(challenge.status, [])
        raise StateTransitionError(
            f"cannot move challenge from '{challenge.status}' to '{target}' "
            f"(allowed: {allowed})"
        )


def find_active_between(
    challenges: Iterable[Challenge], team_a: str, team_b: str
) -> Optional[Challenge]:
    """Return the active challenge between two teams in either direction."""

    pair = {team_a, team_b}
    for challenge in challenges:
        if not challenge.is_active:
            continue
        if {challenge.challenger_team_id, challenge.challenged_team_id} == pair:
            return challenge
    return None


def open_challenge(
    challenger: Team,
    challenged: Team,
    settings: Optional[LeagueSettings],
    now: datetime,
    existing: Iterable[Challenge],
) -> Challenge:
    duplicate = find_active_between(existing, challenger.id, challenged.id)
    if duplicate is not None:
        raise DuplicateChallengeError(duplicate.id)
    ensure_can_challenge(challenger, challenged, settings, now)
    return Challenge(
        id=new_id(),
        challenger_team_id=challenger.id,
        challenged_team_id=challenged.id,
        status="accepted",
        created_at=now,
    )


def respond(challenge: Challenge, accept: bool) -> Challenge:
    if challenge.status not in ("pending", "accepted"):
        raise StateTransitionError(
            f"challenge '{challenge.id}' is {challenge.status} and can no longer be answered"
        )
    target = "accepted" if accept else "declined"
    validate_transition(challenge, target)
    return replace(challenge, status=target)


def record_score(
    challenge: Challenge,
    challenger_sets: Sequence[Optional[int]],
    challenged_sets: Sequence[Optional[int]],
    submitting_team_id: str,
) -> Challenge:
    if not challenge.involves(submitting_team_id):
        raise StateTransitionError(
            f"team '{submitting_team_id}' is not part of challenge '{challenge.id}'"
        )
    if challenge.status == "pending":
        raise StateTransitionError(
            f"challenge '{challenge.id}' has not been accepted yet"
        )
    validate_transition(challenge, "completed")

    result = validate_match(challenger_sets, challenged_sets)
    return replace(
        challenge,
        status="completed",
        challenger_sets=result.challenger_sets,
        challenged_sets=result.challenged_sets,
        score_submitted_by=submitting_team_id,
        score_validated=False,
        winner_id=None,
    )


def _require_submitted_score(challenge: Challenge) -> None:
    if challenge.status != "completed" or not challenge.has_score:
        raise StateTransitionError(
            f"challenge '{challenge.id}' has no submitted score to validate"
        )


def dispute(challenge: Challenge) -> Challenge:
    _require_submitted_score(challenge)
    validate_transition(challenge, "accepted")
    return replace(
        challenge,
        status="accepted",
        challenger_sets=None,
        challenged_sets=None,
        score_submitted_by=None,
        score_validated=False,
        winner_id=None,
    )


def confirm(challenge: Challenge) -> Challenge:
    _require_submitted_score(challenge)
    if challenge.score_validated:
        raise StateTransitionError(
            f"challenge '{challenge.id}' already has a validated score"
        )
    challenger_wins, challenged_wins = count_set_wins(
        challenge.challenger_sets or [], challenge.challenged_sets or []
    )
    winner_id = (
        challenge.challenger_team_id
        if challenger_wins > challenged_wins
        else challenge.challenged_team_id
    )
    return replace(challenge, score_validated=True, winner_id=winner_id)
