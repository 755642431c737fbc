from .base import LeagueStore
from .memory import InMemoryLeagueStore
from .sql import SqlLeagueStore

__all__ = ["LeagueStore", "InMemoryLeagueStore", "SqlLeagueStore"]
