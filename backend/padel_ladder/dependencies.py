"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header

from .config import get_admin_secret
from .db import get_session_factory
from .exceptions import http_problem
from .services.changes import ChangeNotifier
from .services.ladder import LadderService
from .store.sql import SqlLeagueStore

change_notifier = ChangeNotifier()
_ladder_service: Optional[LadderService] = None


def get_change_notifier() -> ChangeNotifier:
    return change_notifier


def get_ladder_service() -> LadderService:
    """Return the process-wide service backed by the SQL store.

    A single instance is shared so its per-league locks serialise ranking
    updates across requests.
    """

    global _ladder_service
    if _ladder_service is None:
        _ladder_service = LadderService(
            SqlLeagueStore(get_session_factory()),
            notifier=get_change_notifier(),
        )
    return _ladder_service


async def require_admin(
    x_admin_secret: Optional[str] = Header(default=None, alias="X-Admin-Secret"),
) -> None:
    expected = get_admin_secret()
    if not expected or not x_admin_secret or not secrets.compare_digest(
        x_admin_secret, expected
    ):
        raise http_problem(
            status_code=403,
            detail="forbidden",
            code="admin_forbidden",
        )
