import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Honour any externally provided DATABASE_URL but fall back to an in-memory
# SQLite database so local runs remain isolated.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")
os.environ.setdefault("ADMIN_SECRET", "admintest")

from padel_ladder import db, models  # noqa: F401,E402
from padel_ladder.entities import DEFAULT_SETTINGS, Team, User  # noqa: E402
from padel_ladder.services.ladder import LadderService  # noqa: E402
from padel_ladder.store.memory import InMemoryLeagueStore  # noqa: E402

# The restriction date defaults to 2025-03-01.
BEFORE_CUTOVER = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
AFTER_CUTOVER = datetime(2025, 4, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock whose time the test controls."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


async def _seed_league(store, count: int, league: str = "mens") -> list[Team]:
    """Create ``count`` one-player teams at positions 1..count."""

    gender = "male" if league == "mens" else "female"
    teams = []
    for position in range(1, count + 1):
        captain = User(
            id=f"{league}-captain-{position}",
            name=f"Captain {position}",
            email=f"captain{position}@{league}.example.com",
            phone="",
            gender=gender,
            playtomic_level=5,
        )
        await store.add_user(captain)
        team = Team(
            id=f"{league}-{position}",
            name=f"Team {position}",
            creator_id=captain.id,
            league=league,
            position=position,
            previous_position=position,
        )
        await store.create_team(team, captain)
        teams.append(team)
    return teams


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def seed_league():
    return _seed_league


@pytest.fixture
def clock():
    return FixedClock(BEFORE_CUTOVER)


@pytest.fixture
def store():
    return InMemoryLeagueStore(DEFAULT_SETTINGS)


@pytest.fixture
def service(store, clock):
    return LadderService(store, clock=clock, settings_ttl=0)


@pytest.fixture(autouse=True)
def reset_engine():
    """Drop any engine a test created through ``db.get_engine``."""

    db.engine = None
    db.AsyncSessionLocal = None
    yield
    db.engine = None
    db.AsyncSessionLocal = None
