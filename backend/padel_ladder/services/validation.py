from typing import Any, Optional, Sequence

from ..entities import MatchResult
from ..exceptions import ValidationError

MANDATORY_SETS = 2
MAX_SETS = 3
SETS_TO_WIN = 2


def is_valid_set_score(winner_games: int, loser_games: int) -> bool:
    """Return ``True`` if a set can finish ``winner_games``-``loser_games``.

    A set is won 6-0 through 6-4, or 7-5 / 7-6 (the tiebreak itself is not
    modelled, only the game count).
    """

    if winner_games == 6:
        return 0 <= loser_games <= 4
    if winner_games == 7:
        return loser_games in (5, 6)
    return False


def _games(raw: Any, set_number: int) -> Optional[int]:
    if raw is None:
        return None
    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(raw, bool):
        raise ValidationError(f"Set #{set_number} scores must be integers (not booleans).")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Set #{set_number} scores must be integers.")
    if value != raw:
        raise ValidationError(f"Set #{set_number} scores must be integers.")
    return value


def validate_set(challenger_games: Any, challenged_games: Any, *, set_number: int) -> bool:
    """Validate a single set and return whether it was played.

    Both values ``None`` marks an unplayed set. Exactly one missing value,
    negative values, ties and impossible scores raise ``ValidationError``.
    """

    a = _games(challenger_games, set_number)
    b = _games(challenged_games, set_number)

    if a is None and b is None:
        return False
    if a is None or b is None:
        raise ValidationError(f"Set #{set_number}: both scores must be entered for a set.")
    if a < 0 or b < 0:
        raise ValidationError(f"Set #{set_number} scores must be >= 0.")
    if a == b:
        raise ValidationError(f"Set #{set_number} cannot be a tie.")

    if not is_valid_set_score(max(a, b), min(a, b)):
        raise ValidationError(
            f"Set #{set_number}: invalid score {a}-{b}. "
            "Valid scores are 6-0 to 6-4, 7-5 and 7-6."
        )
    return True


def count_set_wins(
    challenger_sets: Sequence[int], challenged_sets: Sequence[int]
) -> tuple[int, int]:
    """Count sets won by each side by comparing games set by set."""

    challenger_wins = sum(1 for a, b in zip(challenger_sets, challenged_sets) if a > b)
    challenged_wins = sum(1 for a, b in zip(challenger_sets, challenged_sets) if b > a)
    return challenger_wins, challenged_wins


def validate_match(
    challenger_sets: Sequence[Any], challenged_sets: Sequence[Any]
) -> MatchResult:
    """Validate a best-of-three match and return the normalized result.

    Rules:
    - Both sides list the same number of sets (at most three)
    - Sets 1 and 2 are mandatory
    - A third set is rejected when the first two sets were won by one side
    - A third set is required when the first two sets are split
    - The match must produce a winner on sets
    """

    for label, sets in (("Challenger", challenger_sets), ("Challenged", challenged_sets)):
        if not isinstance(sets, Sequence) or isinstance(sets, (str, bytes)):
            raise ValidationError(f"{label} sets must be provided as a list of games.")

    if len(challenger_sets) != len(challenged_sets):
        raise ValidationError("Both sides must report the same number of sets.")
    if len(challenger_sets) > MAX_SETS:
        raise ValidationError(f"Too many sets. Max allowed is {MAX_SETS}.")
    if len(challenger_sets) < MANDATORY_SETS:
        raise ValidationError("Sets 1 and 2 are required.")

    played: list[tuple[int, int]] = []
    for index, (a, b) in enumerate(zip(challenger_sets, challenged_sets), start=1):
        was_played = validate_set(a, b, set_number=index)
        if index <= MANDATORY_SETS and not was_played:
            raise ValidationError(f"Set #{index} is required.")
        if was_played:
            played.append((int(a), int(b)))

    first_two_a, first_two_b = count_set_wins(
        [a for a, _ in played[:MANDATORY_SETS]], [b for _, b in played[:MANDATORY_SETS]]
    )
    has_third_set = len(played) > MANDATORY_SETS

    if has_third_set and SETS_TO_WIN in (first_two_a, first_two_b):
        raise ValidationError("No 3rd set needed if one team already won 2 sets.")
    if first_two_a == first_two_b and not has_third_set:
        raise ValidationError("Match incomplete: sets are 1-1, please enter the 3rd set score.")

    normalized_a = [a for a, _ in played]
    normalized_b = [b for _, b in played]
    wins_a, wins_b = count_set_wins(normalized_a, normalized_b)
    if wins_a == wins_b:
        raise ValidationError("Match must have a winner.")

    return MatchResult(
        winner="challenger" if wins_a > wins_b else "challenged",
        challenger_sets=normalized_a,
        challenged_sets=normalized_b,
        challenger_sets_won=wins_a,
        challenged_sets_won=wins_b,
    )
