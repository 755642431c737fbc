"""Ladder services: pure rule helpers plus the store-backed ``LadderService``."""

from ..exceptions import ValidationError
from .validation import validate_match, validate_set
from .eligibility import can_challenge
from .ranking import plan_ranking_shift
from .ladder import LadderService

__all__ = [
    "validate_match",
    "validate_set",
    "ValidationError",
    "can_challenge",
    "plan_ranking_shift",
    "LadderService",
]
